"""
Data models for genotype data and per-study match results.

Contains the genotype map type, risk scores and the match
results produced by single-study analysis and bulk scans.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

# rsID -> 2-character genotype, no-calls preserved verbatim
GenotypeMap = Dict[str, str]


class EffectType(Enum):
    """Kind of effect size reported by a study."""
    ODDS_RATIO = "OR"
    BETA = "beta"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional['EffectType']:
        """Map loose spellings ("or", "Beta", "odds ratio") to a member."""
        if not value:
            return None
        normalized = value.strip().lower()
        if normalized in ('or', 'odds ratio', 'odds_ratio'):
            return cls.ODDS_RATIO
        if normalized in ('beta', 'b', 'beta coefficient'):
            return cls.BETA
        return None


class RiskLevel(Enum):
    """Direction of a user's genotype effect for one study."""
    INCREASED = "increased"
    DECREASED = "decreased"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class RiskScore:
    """Score and direction computed for one genotype against one study."""
    score: float
    level: RiskLevel


@dataclass
class MatchResult:
    """
    A user's genotype matched against one catalog study.

    At most one MatchResult is kept per study_id in a ResultStore.

    Attributes:
        study_id: Study identity
        matched_snp: rsID that matched the user's genotype
        user_genotype: User's genotype at matched_snp
        risk_allele: Risk allele string as reported (e.g., "rs123-A")
        effect_size: Effect size text as reported
        effect_type: OR or beta
        risk_score: Computed score, never below the floor
        risk_level: Direction of effect
        gwas_id: Study accession
        trait_name: Reported trait
        study_title: Publication title
        analysis_date: ISO timestamp of the analysis
    """
    study_id: int
    matched_snp: str
    user_genotype: str
    risk_allele: str
    effect_size: str
    effect_type: EffectType
    risk_score: float
    risk_level: RiskLevel
    gwas_id: str = ''
    trait_name: str = 'Unknown trait'
    study_title: str = 'Unknown study'
    analysis_date: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __repr__(self) -> str:
        return (f"MatchResult({self.study_id}, {self.matched_snp}={self.user_genotype}, "
                f"score={self.risk_score:.2f}, {self.risk_level.value})")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with enum members replaced by their values."""
        data = asdict(self)
        data['effect_type'] = self.effect_type.value
        data['risk_level'] = self.risk_level.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchResult':
        """
        Rebuild a result serialized with to_dict.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If an enum value is unknown.
        """
        return cls(
            study_id=int(data['study_id']),
            matched_snp=data['matched_snp'],
            user_genotype=data['user_genotype'],
            risk_allele=data['risk_allele'],
            effect_size=data['effect_size'],
            effect_type=EffectType(data.get('effect_type', EffectType.ODDS_RATIO.value)),
            risk_score=float(data['risk_score']),
            risk_level=RiskLevel(data['risk_level']),
            gwas_id=data.get('gwas_id') or '',
            trait_name=data.get('trait_name') or 'Unknown trait',
            study_title=data.get('study_title') or 'Unknown study',
            analysis_date=data.get('analysis_date') or datetime.now(timezone.utc).isoformat(),
        )


@dataclass(frozen=True)
class SnpMatch:
    """One matching SNP within a study and its score."""
    snp: str
    genotype: str
    score: float
    level: RiskLevel


@dataclass
class StudyAnalysis:
    """
    Result of analyzing one study against a genotype map.

    Attributes:
        has_match: Whether any SNP with a valid genotype matched
        primary: First match as a MatchResult (None without a match)
        all_matches: Every matching SNP with a valid genotype
        confidence_interval: CI text reported by the study
    """
    has_match: bool
    primary: Optional[MatchResult] = None
    all_matches: List[SnpMatch] = field(default_factory=list)
    confidence_interval: Optional[str] = None
