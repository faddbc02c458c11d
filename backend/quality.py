"""
Quality classification for normalized GWAS studies.

Derives severity-tagged quality flags and a heuristic confidence band from
sample size, p-value and -log10(p). The band is a browsing aid, not a
statistically validated score.
"""

from dataclasses import dataclass
from typing import Optional, List, Sequence, Iterable

from models.study_models import QualityFlag, Severity, ConfidenceBand, NormalizedStudy
from config import (
    GENOME_WIDE_SIGNIFICANCE,
    SUGGESTIVE_P_VALUE,
    VERY_SMALL_COHORT,
    SMALL_COHORT,
    MODERATE_SIGNAL_LOG_P,
    HIGH_BAND_MIN_SAMPLE_SIZE,
    HIGH_BAND_MIN_LOG_P,
    HIGH_BAND_MAX_P_VALUE,
    MEDIUM_BAND_MIN_SAMPLE_SIZE,
    MEDIUM_BAND_MIN_LOG_P,
    MEDIUM_BAND_MAX_P_VALUE,
)

VERY_SMALL_COHORT_MESSAGE = "Very small discovery cohort (<500 participants)"
WEAK_ASSOCIATION_MESSAGE = "Association well above genome-wide significance (p > 5e-7)"
SMALL_COHORT_MESSAGE = "Small discovery cohort (500-1000 participants)"
MARGINAL_ASSOCIATION_MESSAGE = "Association slightly above genome-wide significance (5e-8 < p <= 5e-7)"
MODERATE_SIGNAL_MESSAGE = "Moderate signal strength (-log10 p < 6)"


def compute_quality_flags(
    sample_size: Optional[int],
    p_value: Optional[float],
    log_p_value: Optional[float]
) -> List[QualityFlag]:
    """
    Compute the quality flags for one study.

    Major flags mark seriously questionable data, minor flags are
    informational. Missing values raise no flags.

    Args:
        sample_size: Parsed sample size.
        p_value: Parsed p-value.
        log_p_value: -log10(p).

    Returns:
        List[QualityFlag]: Flags, majors first.
    """
    flags: List[QualityFlag] = []

    if sample_size is not None and sample_size < VERY_SMALL_COHORT:
        flags.append(QualityFlag(VERY_SMALL_COHORT_MESSAGE, Severity.MAJOR))
    if p_value is not None and p_value > SUGGESTIVE_P_VALUE:
        flags.append(QualityFlag(WEAK_ASSOCIATION_MESSAGE, Severity.MAJOR))

    if sample_size is not None and VERY_SMALL_COHORT <= sample_size < SMALL_COHORT:
        flags.append(QualityFlag(SMALL_COHORT_MESSAGE, Severity.MINOR))
    if p_value is not None and GENOME_WIDE_SIGNIFICANCE < p_value <= SUGGESTIVE_P_VALUE:
        flags.append(QualityFlag(MARGINAL_ASSOCIATION_MESSAGE, Severity.MINOR))
    if log_p_value is not None and log_p_value < MODERATE_SIGNAL_LOG_P:
        flags.append(QualityFlag(MODERATE_SIGNAL_MESSAGE, Severity.MINOR))

    return flags


def classify_confidence(
    sample_size: Optional[int],
    p_value: Optional[float],
    log_p_value: Optional[float],
    flags: Optional[Sequence[QualityFlag]] = None
) -> ConfidenceBand:
    """
    Assign the confidence band. First matching rule wins:

    1. any major flag -> LOW
    2. sample size >= 5000, -log10 p >= 9 and p (when known) <= 5e-9 -> HIGH
    3. (sample size >= 2000 or -log10 p >= 7) and p (when known) <= 1e-6 -> MEDIUM
    4. otherwise LOW

    Minor flags never force LOW on their own.

    Args:
        sample_size: Parsed sample size.
        p_value: Parsed p-value.
        log_p_value: -log10(p).
        flags: Precomputed flags; computed here when None.

    Returns:
        ConfidenceBand: The band.
    """
    if flags is None:
        flags = compute_quality_flags(sample_size, p_value, log_p_value)

    if any(flag.is_major for flag in flags):
        return ConfidenceBand.LOW

    if (sample_size is not None and sample_size >= HIGH_BAND_MIN_SAMPLE_SIZE
            and log_p_value is not None and log_p_value >= HIGH_BAND_MIN_LOG_P
            and (p_value is None or p_value <= HIGH_BAND_MAX_P_VALUE)):
        return ConfidenceBand.HIGH

    well_powered = sample_size is not None and sample_size >= MEDIUM_BAND_MIN_SAMPLE_SIZE
    strong_signal = log_p_value is not None and log_p_value >= MEDIUM_BAND_MIN_LOG_P
    if (well_powered or strong_signal) and (p_value is None or p_value <= MEDIUM_BAND_MAX_P_VALUE):
        return ConfidenceBand.MEDIUM

    return ConfidenceBand.LOW


@dataclass
class QualitySummary:
    """Counts of studies per confidence band, plus flagged studies."""
    high: int = 0
    medium: int = 0
    low: int = 0
    flagged: int = 0

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low


def summarize_quality(studies: Iterable[NormalizedStudy]) -> QualitySummary:
    """
    Count studies per confidence band.

    Args:
        studies: Normalized studies.

    Returns:
        QualitySummary: Band counts and number of flagged studies.
    """
    summary = QualitySummary()
    for study in studies:
        if study.confidence_band is ConfidenceBand.HIGH:
            summary.high += 1
        elif study.confidence_band is ConfidenceBand.MEDIUM:
            summary.medium += 1
        else:
            summary.low += 1
        if study.is_flagged:
            summary.flagged += 1
    return summary
