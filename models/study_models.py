"""
Data models for GWAS Catalog studies.

Contains the raw catalog record as sourced from a study store, the
normalized/classified study derived from it, and the browsing filter state.
"""

import hashlib
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple

from config import (
    FILTER_PRESETS,
    RESULTS_PER_PAGE,
    MIN_RESULTS_PER_PAGE,
    MAX_RESULTS_PER_PAGE,
)


class Severity(Enum):
    """Severity of a quality flag."""
    MAJOR = "major"
    MINOR = "minor"


class ConfidenceBand(Enum):
    """
    Heuristic tri-level quality classification of a study.

    Not a statistical confidence interval.
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def label(self) -> str:
        """Display label used in study listings."""
        if self is ConfidenceBand.HIGH:
            return "High confidence"
        if self is ConfidenceBand.MEDIUM:
            return "Medium confidence"
        return "Lower confidence"


class SortOption(Enum):
    """Sort keys for the study listing."""
    RELEVANCE = "relevance"
    POWER = "power"
    RECENT = "recent"
    ALPHABETICAL = "alphabetical"


class QualityPolicy(Enum):
    """
    What "exclude low quality" drops.

    MAJOR_FLAGS drops studies carrying any major flag, LOW_BAND drops
    studies classified in the low confidence band, ANY_FLAG drops every
    flagged study including minor-only ones.
    """
    MAJOR_FLAGS = "major_flags"
    LOW_BAND = "low_band"
    ANY_FLAG = "any_flag"


@dataclass(frozen=True)
class QualityFlag:
    """A single severity-tagged data-quality observation."""
    message: str
    severity: Severity

    @property
    def is_major(self) -> bool:
        return self.severity is Severity.MAJOR


@dataclass(frozen=True)
class RawStudyRecord:
    """
    One GWAS Catalog association exactly as stored in the catalog.

    Every text field is optional and kept verbatim; parsing happens in
    backend.normalizer.

    Attributes:
        study_id: Source row id, or None to derive one from the record.
        study_accession: GCST accession (e.g., "GCST000001")
        study: Publication title
        disease_trait: Reported trait
        mapped_trait: EFO mapped trait
        mapped_trait_uri: EFO URI(s)
        mapped_gene: Mapped gene symbol(s)
        first_author: First author
        date: Publication date text
        journal: Journal name
        pubmedid: PubMed id
        link: Publication link
        initial_sample_size: Discovery sample description
        replication_sample_size: Replication sample description
        p_value: P-value text
        pvalue_mlog: -log10(p) text
        or_or_beta: Effect size text
        confidence_interval: 95% CI text (hints at OR vs beta)
        effect_type: Explicit effect-type hint ("OR" or "beta"), if known
        strongest_snp_risk_allele: Risk allele string (e.g., "rs123-A")
        snps: SNP list text
        risk_allele_frequency: Risk allele frequency text
    """
    study_id: Optional[int] = None
    study_accession: Optional[str] = None
    study: Optional[str] = None
    disease_trait: Optional[str] = None
    mapped_trait: Optional[str] = None
    mapped_trait_uri: Optional[str] = None
    mapped_gene: Optional[str] = None
    first_author: Optional[str] = None
    date: Optional[str] = None
    journal: Optional[str] = None
    pubmedid: Optional[str] = None
    link: Optional[str] = None
    initial_sample_size: Optional[str] = None
    replication_sample_size: Optional[str] = None
    p_value: Optional[str] = None
    pvalue_mlog: Optional[str] = None
    or_or_beta: Optional[str] = None
    confidence_interval: Optional[str] = None
    effect_type: Optional[str] = None
    strongest_snp_risk_allele: Optional[str] = None
    snps: Optional[str] = None
    risk_allele_frequency: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> 'RawStudyRecord':
        """
        Build a record from a mapping-like row (dict or sqlite3.Row).

        Unknown keys are ignored and missing keys default to None. A row
        key named "id" is taken as the study id.
        """
        keys = set(row.keys())
        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name in keys:
                values[f.name] = row[f.name]
        if 'study_id' not in values and 'id' in keys:
            values['study_id'] = row['id']
        for name, value in values.items():
            if name != 'study_id' and value is not None and not isinstance(value, str):
                values[name] = str(value)
        return cls(**values)

    @property
    def identity(self) -> int:
        """Study id from the source, or the composite hash when absent."""
        if self.study_id is not None:
            return int(self.study_id)
        return compute_study_id(self)

    @property
    def trait_name(self) -> str:
        return self.disease_trait or self.mapped_trait or 'Unknown trait'


def compute_study_id(record: RawStudyRecord) -> int:
    """
    Derive a deterministic integer identity for a catalog record.

    The composite of accession, SNP list, risk allele, p-value and effect
    size is hashed with SHA-256 and the first 8 bytes are read as a signed
    integer masked to 63 bits. Collisions are not detected.

    Args:
        record: Raw catalog record.

    Returns:
        int: Non-negative identity below 2**63.
    """
    composite = '|'.join(
        part or '' for part in (
            record.study_accession,
            record.snps,
            record.strongest_snp_risk_allele,
            record.p_value,
            record.or_or_beta,
        )
    )
    digest = hashlib.sha256(composite.encode('utf-8')).digest()
    return int.from_bytes(digest[:8], 'big', signed=False) & 0x7FFF_FFFF_FFFF_FFFF


@dataclass(frozen=True)
class NormalizedStudy:
    """
    A catalog record with parsed numeric fields and its quality classification.

    Derived once from a RawStudyRecord by backend.normalizer.normalize_study.

    Attributes:
        raw: Source record
        study_id: Stable identity
        sample_size: Parsed sample size or None
        p_value: Parsed p-value in (0, 1] or None
        log_p_value: -log10(p) (reported or derived) or None
        publication_timestamp: Epoch millis at UTC midnight or None
        quality_flags: Severity-tagged flags
        confidence_band: Heuristic classification
    """
    raw: RawStudyRecord
    study_id: int
    sample_size: Optional[int]
    p_value: Optional[float]
    log_p_value: Optional[float]
    publication_timestamp: Optional[int]
    quality_flags: Tuple[QualityFlag, ...]
    confidence_band: ConfidenceBand

    @property
    def is_flagged(self) -> bool:
        return len(self.quality_flags) > 0

    @property
    def has_major_flag(self) -> bool:
        return any(flag.is_major for flag in self.quality_flags)

    @property
    def title(self) -> str:
        return self.raw.study or ''

    def __repr__(self) -> str:
        return (f"NormalizedStudy({self.study_id}, {self.raw.study_accession}, "
                f"{self.confidence_band.value})")


@dataclass
class StudyFilters:
    """
    Stores the current state of the study browsing filters.

    Attributes:
        search_text: Free text matched against title, traits, author, gene, accession
        trait: Exact trait (disease or mapped trait)
        min_sample_size: Sample-size floor (None disables)
        max_p_value: P-value ceiling (None disables)
        min_log_p: -log10(p) floor (None disables)
        exclude_low_quality: Drop low-quality studies per quality_policy
        exclude_missing_genotype: Drop studies without a usable risk allele
        confidence_band: Exact band filter (None disables)
        sort_by: Sort key
        sort_ascending: Sort direction
        limit: Page size
        quality_policy: Meaning of exclude_low_quality
    """
    search_text: str = ''
    trait: str = ''
    min_sample_size: Optional[int] = None
    max_p_value: Optional[float] = None
    min_log_p: Optional[float] = None
    exclude_low_quality: bool = False
    exclude_missing_genotype: bool = False
    confidence_band: Optional[ConfidenceBand] = None
    sort_by: SortOption = SortOption.RELEVANCE
    sort_ascending: bool = False
    limit: int = RESULTS_PER_PAGE
    quality_policy: QualityPolicy = QualityPolicy.MAJOR_FLAGS

    def __post_init__(self) -> None:
        """Coerce enum-valued fields and validate ranges."""
        if isinstance(self.sort_by, str):
            try:
                self.sort_by = SortOption(self.sort_by)
            except ValueError:
                valid = [s.value for s in SortOption]
                raise ValueError(f"sort_by must be one of {valid}, got: {self.sort_by}")

        if isinstance(self.confidence_band, str):
            self.confidence_band = ConfidenceBand(self.confidence_band)

        if isinstance(self.quality_policy, str):
            self.quality_policy = QualityPolicy(self.quality_policy)

        if self.min_sample_size is not None and self.min_sample_size < 0:
            raise ValueError(f"min_sample_size must be >= 0, got: {self.min_sample_size}")

        if self.max_p_value is not None and not 0.0 < self.max_p_value <= 1.0:
            raise ValueError(f"max_p_value must be in (0, 1], got: {self.max_p_value}")

        if self.min_log_p is not None and self.min_log_p < 0:
            raise ValueError(f"min_log_p must be >= 0, got: {self.min_log_p}")

        self.limit = max(MIN_RESULTS_PER_PAGE, min(int(self.limit), MAX_RESULTS_PER_PAGE))

    @classmethod
    def from_preset(cls, name: str, **overrides: Any) -> 'StudyFilters':
        """
        Build filters from a named preset ("default", "all", "high", "medium", "low").

        Args:
            name: Preset name.
            **overrides: Field values applied on top of the preset.

        Raises:
            ValueError: If the preset is unknown.
        """
        if name not in FILTER_PRESETS:
            raise ValueError(f"Unknown preset '{name}', expected one of {sorted(FILTER_PRESETS)}")
        values = dict(FILTER_PRESETS[name])
        values.update(overrides)
        return cls(**values)

    def with_changes(self, **changes: Any) -> 'StudyFilters':
        """
        Return a copy with some fields changed.

        Changing any field other than confidence_band clears the band, the
        way manual edits leave a preset.
        """
        if 'confidence_band' not in changes:
            changes['confidence_band'] = None
        return replace(self, **changes)


@dataclass
class SearchResult:
    """
    Output of one browse request.

    Attributes:
        studies: The page of studies shown
        total: Number of studies passing the filters
        limit: Page size applied
        truncated: Whether total exceeds the page
        source_count: Rows matching the text/trait query before quality filters
    """
    studies: List[NormalizedStudy] = field(default_factory=list)
    total: int = 0
    limit: int = RESULTS_PER_PAGE
    truncated: bool = False
    source_count: int = 0

    @property
    def shown(self) -> int:
        return len(self.studies)
