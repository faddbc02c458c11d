"""
Unit tests for result export and session files.
"""

import pytest
import gzip
import json
import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.session_manager import SessionManager, SavedSession, SessionError, TSV_HEADERS
from models.data_models import MatchResult, RiskLevel, EffectType


def make_result(study_id, score=1.5, level=RiskLevel.INCREASED, title="A study"):
    return MatchResult(
        study_id=study_id,
        matched_snp=f"rs{study_id}",
        user_genotype="AG",
        risk_allele=f"rs{study_id}-A",
        effect_size="1.5",
        effect_type=EffectType.ODDS_RATIO,
        risk_score=score,
        risk_level=level,
        gwas_id=f"GCST{study_id:06d}",
        trait_name="Type 2 diabetes",
        study_title=title,
    )


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as tmp:
        yield tmp


class TestExportTsv:
    """Tests for TSV export."""

    def test_header_and_rows(self, tmp_dir):
        """Test the header row and one line per result."""
        path = os.path.join(tmp_dir, "results.tsv")
        written = SessionManager.export_tsv(path, [make_result(1), make_result(2, 0.5, RiskLevel.DECREASED)])

        with open(path, encoding='utf-8') as f:
            lines = f.read().splitlines()

        assert written == 2
        assert lines[0].split('\t') == TSV_HEADERS
        assert len(lines) == 3
        row = lines[2].split('\t')
        assert row[0] == "2"
        assert row[1] == "GCST000002"
        assert row[7] == "0.5"
        assert row[8] == "decreased"

    def test_tabs_and_newlines_replaced(self, tmp_dir):
        """Test that embedded tabs and newlines do not break columns."""
        path = os.path.join(tmp_dir, "results.tsv")
        SessionManager.export_tsv(path, [make_result(1, title="Line one\nline\ttwo")])

        with open(path, encoding='utf-8') as f:
            lines = f.read().splitlines()

        assert len(lines) == 2
        assert len(lines[1].split('\t')) == len(TSV_HEADERS)
        assert lines[1].split('\t')[3] == "Line one line two"


class TestSessions:
    """Tests for saving and loading sessions."""

    def test_save_and_load(self, tmp_dir):
        """Test that a saved session loads back into a store."""
        path = os.path.join(tmp_dir, "session.json.gz")
        session = SavedSession(
            file_name="genome.txt",
            total_variants=600000,
            results=[make_result(1), make_result(2, 0.5, RiskLevel.DECREASED)],
            genotype_file_hash="abc123",
        )

        assert SessionManager.save_session(path, session)
        loaded = SessionManager.load_session(path)

        assert loaded.file_name == "genome.txt"
        assert loaded.total_variants == 600000
        assert loaded.genotype_file_hash == "abc123"
        store = loaded.to_store()
        assert len(store) == 2
        assert store.get(2).risk_level is RiskLevel.DECREASED
        assert store.get(1).effect_type is EffectType.ODDS_RATIO

    def test_invalid_results_skipped(self, tmp_dir):
        """Test that malformed result entries are dropped with a warning."""
        path = os.path.join(tmp_dir, "session.json.gz")
        data = {
            "format_version": "1.0",
            "file_name": "genome.txt",
            "total_variants": 10,
            "results": [make_result(1).to_dict(), {"study_id": 2}, {**make_result(3).to_dict(), "risk_level": "huge"}],
        }
        with open(path, 'wb') as f:
            f.write(gzip.compress(json.dumps(data).encode('utf-8')))

        loaded = SessionManager.load_session(path)
        assert [r.study_id for r in loaded.results] == [1]

    def test_not_gzip(self, tmp_dir):
        """Test that a plain file is rejected."""
        path = os.path.join(tmp_dir, "session.json.gz")
        with open(path, 'w') as f:
            f.write('{"results": []}')

        with pytest.raises(SessionError):
            SessionManager.load_session(path)

    def test_invalid_json(self, tmp_dir):
        """Test that gzip content that is not JSON is rejected."""
        path = os.path.join(tmp_dir, "session.json.gz")
        with open(path, 'wb') as f:
            f.write(gzip.compress(b"not json"))

        with pytest.raises(SessionError):
            SessionManager.load_session(path)

    def test_missing_results(self, tmp_dir):
        """Test that JSON without a results list is rejected."""
        path = os.path.join(tmp_dir, "session.json.gz")
        with open(path, 'wb') as f:
            f.write(gzip.compress(b'{"file_name": "x"}'))

        with pytest.raises(SessionError):
            SessionManager.load_session(path)

    def test_session_info(self, tmp_dir):
        """Test summary info and the error entry for missing files."""
        path = os.path.join(tmp_dir, "session.json.gz")
        SessionManager.save_session(path, SavedSession(file_name="g.txt", total_variants=5, results=[make_result(1)]))

        info = SessionManager.get_session_info(path)
        assert info["result_count"] == 1
        assert info["file_name"] == "g.txt"

        missing = SessionManager.get_session_info(os.path.join(tmp_dir, "nope.json.gz"))
        assert "error" in missing
