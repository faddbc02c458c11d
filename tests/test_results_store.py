"""
Unit tests for the in-memory result store.
"""

import pytest
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.results_store import ResultStore
from models.data_models import MatchResult, RiskLevel, EffectType


def make_result(study_id, score=1.5, level=RiskLevel.INCREASED, trait="Type 2 diabetes"):
    return MatchResult(
        study_id=study_id,
        matched_snp=f"rs{study_id}",
        user_genotype="AG",
        risk_allele=f"rs{study_id}-A",
        effect_size=str(score),
        effect_type=EffectType.ODDS_RATIO,
        risk_score=score,
        risk_level=level,
        gwas_id=f"GCST{study_id:06d}",
        trait_name=trait,
    )


@pytest.fixture
def store():
    return ResultStore([
        make_result(1, 2.5),
        make_result(2, 1.2, trait="Obesity"),
        make_result(3, 0.4, RiskLevel.DECREASED, trait="Crohn's disease"),
        make_result(4, 1.0, RiskLevel.NEUTRAL),
        make_result(5, 0.8, RiskLevel.DECREASED, trait="Obesity"),
    ])


class TestResultStore:
    """Tests for ResultStore."""

    def test_upsert_overwrites(self):
        """Test that upsert replaces the entry for a study."""
        store = ResultStore()
        store.upsert(make_result(1, 1.5))
        store.upsert(make_result(1, 3.0))
        assert len(store) == 1
        assert store.get(1).risk_score == 3.0

    def test_add_if_absent_keeps_existing(self):
        """Test that add_if_absent never replaces."""
        store = ResultStore()
        assert store.add_if_absent(make_result(1, 1.5))
        assert not store.add_if_absent(make_result(1, 3.0))
        assert store.get(1).risk_score == 1.5

    def test_membership_and_removal(self, store):
        """Test has_result, __contains__ and remove."""
        assert store.has_result(3)
        assert 3 in store
        assert store.remove(3)
        assert not store.remove(3)
        assert 3 not in store
        assert store.get(3) is None

    def test_iteration_order(self, store):
        """Test insertion order for iteration."""
        assert [r.study_id for r in store] == [1, 2, 3, 4, 5]

    def test_by_risk_level(self, store):
        """Test filtering by level."""
        assert [r.study_id for r in store.by_risk_level(RiskLevel.DECREASED)] == [3, 5]

    def test_by_trait(self, store):
        """Test case-insensitive trait filtering."""
        assert [r.study_id for r in store.by_trait("obes")] == [2, 5]

    def test_by_score_range(self, store):
        """Test inclusive score range filtering."""
        assert [r.study_id for r in store.by_score_range(0.8, 1.2)] == [2, 4, 5]

    def test_top_risks_and_protective(self, store):
        """Test ordering of the strongest results."""
        assert [r.study_id for r in store.top_risks()] == [1, 2]
        assert [r.study_id for r in store.protective_variants(limit=1)] == [3]

    def test_trait_counts(self, store):
        """Test trait frequency counts."""
        counts = dict(store.trait_counts())
        assert counts["Obesity"] == 2
        assert counts["Type 2 diabetes"] == 2

    def test_statistics(self, store):
        """Test summary statistics."""
        stats = store.get_statistics()
        assert stats['total'] == 5
        assert stats['increased'] == 2
        assert stats['decreased'] == 2
        assert stats['neutral'] == 1
        assert stats['max_score'] == 2.5
        assert stats['mean_score'] == pytest.approx(5.9 / 5)
        assert stats['traits'] == 3

    def test_empty_statistics(self):
        """Test statistics of an empty store."""
        stats = ResultStore().get_statistics()
        assert stats['total'] == 0
        assert stats['mean_score'] == 0.0

    def test_clear(self, store):
        """Test clearing the store."""
        store.clear()
        assert len(store) == 0
        assert store.all_results() == []
