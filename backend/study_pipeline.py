"""
Filter and sort pipeline for classified GWAS studies.

Applies the browsing filters to a batch of normalized studies, sorts the
survivors and reports the filtered total separately from the page shown.
"""

import math
from functools import cmp_to_key
from typing import Optional, List, Tuple, Sequence, Callable, Mapping

from models.study_models import (
    NormalizedStudy, StudyFilters, SortOption, QualityPolicy, ConfidenceBand, SearchResult
)
from backend.quality import QualitySummary, summarize_quality
from backend.snp_matching import SnpParseCache, get_matches, has_any_match
from backend.validators import has_usable_risk_allele
from utils.logging_config import get_logger

logger = get_logger(__name__)

Comparator = Callable[[NormalizedStudy, NormalizedStudy], int]


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _relevance_key(study: NormalizedStudy) -> float:
    return study.log_p_value if study.log_p_value is not None else -math.inf


def _power_key(study: NormalizedStudy) -> int:
    return study.sample_size if study.sample_size is not None else 0


def _search_fields(study: NormalizedStudy) -> Tuple[Optional[str], ...]:
    raw = study.raw
    return (
        raw.study,
        raw.disease_trait,
        raw.mapped_trait,
        raw.first_author,
        raw.mapped_gene,
        raw.study_accession,
    )


def matches_search(study: NormalizedStudy, search_text: str) -> bool:
    """Case-insensitive substring match over title, traits, author, gene and accession."""
    needle = search_text.strip().casefold()
    if not needle:
        return True
    return any(value and needle in value.casefold() for value in _search_fields(study))


def matches_trait(study: NormalizedStudy, trait: str) -> bool:
    """Exact match against the reported or the mapped trait."""
    trait = trait.strip()
    if not trait:
        return True
    return trait in (study.raw.disease_trait, study.raw.mapped_trait)


def is_low_quality(study: NormalizedStudy, policy: QualityPolicy) -> bool:
    """
    Decide whether a study counts as low quality under a policy.

    Args:
        study: Normalized study.
        policy: MAJOR_FLAGS, LOW_BAND or ANY_FLAG.

    Returns:
        bool: True if the exclude-low-quality filter drops the study.
    """
    if policy is QualityPolicy.LOW_BAND:
        return study.confidence_band is ConfidenceBand.LOW
    if policy is QualityPolicy.ANY_FLAG:
        return study.is_flagged
    return study.has_major_flag


def passes_filters(study: NormalizedStudy, filters: StudyFilters) -> bool:
    """
    Check one study against every enabled filter.

    Numeric filters reject studies whose field could not be parsed.
    """
    if filters.search_text and not matches_search(study, filters.search_text):
        return False

    if filters.trait and not matches_trait(study, filters.trait):
        return False

    if filters.min_sample_size is not None:
        if study.sample_size is None or study.sample_size < filters.min_sample_size:
            return False

    if filters.max_p_value is not None:
        if study.p_value is None or study.p_value > filters.max_p_value:
            return False

    if filters.min_log_p is not None:
        if study.log_p_value is None or study.log_p_value < filters.min_log_p:
            return False

    if filters.exclude_low_quality and is_low_quality(study, filters.quality_policy):
        return False

    if filters.exclude_missing_genotype and not has_usable_risk_allele(study.raw.strongest_snp_risk_allele):
        return False

    if filters.confidence_band is not None and study.confidence_band is not filters.confidence_band:
        return False

    return True


def make_comparator(sort_by: SortOption, direction: int) -> Comparator:
    """
    Build the comparator for a sort key and direction (+1 or -1).

    Missing publication dates sort last in both directions.
    """
    if sort_by is SortOption.POWER:
        return lambda a, b: direction * _cmp(_power_key(a), _power_key(b))

    if sort_by is SortOption.ALPHABETICAL:
        return lambda a, b: direction * _cmp(a.title.casefold(), b.title.casefold())

    if sort_by is SortOption.RECENT:
        def compare_recent(a: NormalizedStudy, b: NormalizedStudy) -> int:
            ta, tb = a.publication_timestamp, b.publication_timestamp
            if ta is None and tb is None:
                return 0
            if ta is None:
                return 1
            if tb is None:
                return -1
            return direction * _cmp(ta, tb)
        return compare_recent

    return lambda a, b: direction * _cmp(_relevance_key(a), _relevance_key(b))


def sort_studies(studies: Sequence[NormalizedStudy], sort_by: SortOption, ascending: bool = False) -> List[NormalizedStudy]:
    """Stable sort; studies with equal keys keep their input order."""
    direction = 1 if ascending else -1
    return sorted(studies, key=cmp_to_key(make_comparator(sort_by, direction)))


class StudyPipeline:
    """
    Filters and sorts batches of normalized studies.

    Owns the SNP parse cache shared by everything that reads study SNP
    lists during one browsing session.
    """

    def __init__(self, cache: Optional[SnpParseCache] = None) -> None:
        self.cache = cache if cache is not None else SnpParseCache()

    def filter(self, studies: Sequence[NormalizedStudy], filters: StudyFilters) -> List[NormalizedStudy]:
        """Return the studies passing every enabled filter, in input order."""
        return [study for study in studies if passes_filters(study, filters)]

    def apply(self, studies: Sequence[NormalizedStudy], filters: StudyFilters) -> Tuple[List[NormalizedStudy], int]:
        """
        Filter and sort a batch of studies.

        Args:
            studies: Normalized studies.
            filters: Filter and sort state.

        Returns:
            Tuple[List[NormalizedStudy], int]: (full filtered and sorted
            list, total filtered count)
        """
        filtered = self.filter(studies, filters)
        ordered = sort_studies(filtered, filters.sort_by, filters.sort_ascending)
        logger.debug(f"Pipeline kept {len(ordered)} of {len(studies)} studies "
                     f"(sort={filters.sort_by.value}, ascending={filters.sort_ascending})")
        return ordered, len(ordered)

    def page(self, studies: Sequence[NormalizedStudy], filters: StudyFilters, source_count: Optional[int] = None) -> SearchResult:
        """
        Filter, sort and cut a batch to the page size.

        Args:
            studies: Normalized studies.
            filters: Filter and sort state (limit is the page size).
            source_count: Rows the source matched before quality filters;
                defaults to the batch size.

        Returns:
            SearchResult: Shown page with total and truncation flag.
        """
        ordered, total = self.apply(studies, filters)
        shown = ordered[:filters.limit]
        return SearchResult(
            studies=shown,
            total=total,
            limit=filters.limit,
            truncated=total > len(shown),
            source_count=len(studies) if source_count is None else source_count,
        )

    def user_matches(self, study: NormalizedStudy, genotype_map: Optional[Mapping[str, str]]) -> List[str]:
        """SNPs of a study present in the user's genotype map, in study order."""
        return get_matches(genotype_map, study.raw.snps, self.cache)

    def has_user_match(self, study: NormalizedStudy, genotype_map: Optional[Mapping[str, str]]) -> bool:
        """Whether the user's genotype map covers any SNP of a study."""
        return has_any_match(genotype_map, study.raw.snps, self.cache)


def describe_results(
    result: SearchResult,
    filters: StudyFilters,
    summary: Optional[QualitySummary] = None
) -> str:
    """
    Build the one-line summary shown under a study listing.

    Args:
        result: Search result.
        filters: Filters that produced it.
        summary: Quality summary of the shown studies; computed when None.

    Returns:
        str: Parts joined with " · ".
    """
    if not result.studies:
        return "No studies match the current filters."

    if summary is None:
        summary = summarize_quality(result.studies)

    parts = [
        f"{result.shown} of {result.total} quality-filtered studies",
        f"{result.source_count:,} matches before quality filters",
    ]

    breakdown = []
    if summary.high > 0:
        breakdown.append(f"{summary.high} high")
    if summary.medium > 0:
        breakdown.append(f"{summary.medium} medium")
    if (summary.low > 0 and not filters.exclude_low_quality) or filters.confidence_band is ConfidenceBand.LOW:
        breakdown.append(f"{summary.low} low")
    if breakdown:
        parts.append(f"Confidence mix: {', '.join(breakdown)}")

    if result.truncated:
        parts.append(f"showing the top {result.limit}")

    if summary.flagged > 0 and not filters.exclude_low_quality:
        parts.append(f"{summary.flagged} flagged as lower confidence")

    return " · ".join(parts)
