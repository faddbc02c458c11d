"""
Unit tests for quality flags and confidence bands.
"""

import pytest
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.quality import (
    compute_quality_flags,
    classify_confidence,
    summarize_quality,
    VERY_SMALL_COHORT_MESSAGE,
    WEAK_ASSOCIATION_MESSAGE,
    SMALL_COHORT_MESSAGE,
    MARGINAL_ASSOCIATION_MESSAGE,
    MODERATE_SIGNAL_MESSAGE,
)
from backend.normalizer import normalize_study
from models.study_models import RawStudyRecord, Severity, ConfidenceBand


class TestQualityFlags:
    """Tests for compute_quality_flags."""

    def test_clean_study_has_no_flags(self):
        """Test a large, strongly significant study."""
        assert compute_quality_flags(6000, 1e-10, 10.0) == []

    def test_very_small_cohort_is_major(self):
        """Test the major sample-size flag."""
        flags = compute_quality_flags(300, 1e-10, 10.0)
        assert [f.message for f in flags] == [VERY_SMALL_COHORT_MESSAGE]
        assert flags[0].severity is Severity.MAJOR

    def test_weak_association_is_major(self):
        """Test the major p-value flag."""
        flags = compute_quality_flags(6000, 1e-6, 6.0)
        assert [f.message for f in flags] == [WEAK_ASSOCIATION_MESSAGE]
        assert flags[0].is_major

    def test_minor_flags(self):
        """Test the three minor flags together."""
        flags = compute_quality_flags(700, 1e-7, 5.5)
        messages = [f.message for f in flags]
        assert messages == [SMALL_COHORT_MESSAGE, MARGINAL_ASSOCIATION_MESSAGE, MODERATE_SIGNAL_MESSAGE]
        assert all(f.severity is Severity.MINOR for f in flags)

    def test_majors_listed_first(self):
        """Test that major flags precede minor ones."""
        flags = compute_quality_flags(300, 1e-5, 5.0)
        assert [f.severity for f in flags] == [Severity.MAJOR, Severity.MAJOR, Severity.MINOR]

    def test_boundaries(self):
        """Test threshold edges."""
        assert compute_quality_flags(1000, 5e-8, 6.0) == []
        flags = compute_quality_flags(999, 5e-7, 6.0)
        assert [f.message for f in flags] == [SMALL_COHORT_MESSAGE, MARGINAL_ASSOCIATION_MESSAGE]

    def test_missing_values_raise_no_flags(self):
        """Test that unparsed fields are not flagged."""
        assert compute_quality_flags(None, None, None) == []


class TestClassifyConfidence:
    """Tests for classify_confidence."""

    def test_high(self):
        """Test the high band."""
        assert classify_confidence(6000, 1e-10, 10.0) is ConfidenceBand.HIGH

    def test_major_flag_overrides(self):
        """Test that a very small cohort is low despite strong statistics."""
        assert classify_confidence(300, 1e-10, 10.0) is ConfidenceBand.LOW

    def test_medium_by_sample_size(self):
        """Test the medium band reached through sample size."""
        assert classify_confidence(6000, 1e-8, 8.0) is ConfidenceBand.MEDIUM

    def test_minor_flags_do_not_force_low(self):
        """Test that a study with only minor flags can be medium."""
        assert classify_confidence(700, 1e-7, 7.0) is ConfidenceBand.MEDIUM

    def test_missing_p_value_allowed(self):
        """Test that a null p-value does not block high or medium."""
        assert classify_confidence(6000, None, 9.5) is ConfidenceBand.HIGH
        assert classify_confidence(None, None, 7.5) is ConfidenceBand.MEDIUM

    def test_low_fallback(self):
        """Test a study that fits no higher band."""
        assert classify_confidence(1500, None, 6.5) is ConfidenceBand.LOW
        assert classify_confidence(None, None, None) is ConfidenceBand.LOW

    def test_band_labels(self):
        """Test that every band has a display label."""
        for band in ConfidenceBand:
            assert band.label


class TestSummarizeQuality:
    """Tests for summarize_quality."""

    def test_counts(self):
        """Test band and flag counts over normalized studies."""
        studies = [
            normalize_study(RawStudyRecord(study_id=1, initial_sample_size="6,000", p_value="1E-10")),
            normalize_study(RawStudyRecord(study_id=2, initial_sample_size="300", p_value="1E-10")),
            normalize_study(RawStudyRecord(study_id=3, initial_sample_size="700", p_value="1E-9")),
        ]
        summary = summarize_quality(studies)

        assert summary.high == 1
        assert summary.medium == 1
        assert summary.low == 1
        assert summary.flagged == 2
        assert summary.total == 3
