"""
Risk score calculation for a user's genotype against a study's risk allele.

Odds ratios give a multiplicative score (OR ** copies) with non-carriers as
the 1.0 reference. Betas give 1 + beta * copies, a display convenience in
trait units that must not be read as a relative risk. Every score is
floored at 0.1.
"""

import math
import re
from typing import Optional, Tuple, Mapping

import numpy as np

from models.data_models import (
    EffectType, RiskLevel, RiskScore, MatchResult, SnpMatch, StudyAnalysis
)
from models.study_models import RawStudyRecord
from backend.snp_matching import SnpParseCache, parse_snp_list
from backend.validators import is_valid_genotype
from config import MIN_RISK_SCORE
from utils.logging_config import get_logger

logger = get_logger(__name__)

NEUTRAL_SCORE = RiskScore(1.0, RiskLevel.NEUTRAL)

_LEADING_NUMBER = re.compile(r'^\s*[-+]?(\d+\.?\d*|\.\d+)(e[-+]?\d+)?', re.IGNORECASE)
_BETA_HINTS = re.compile(r'\b(unit|units|increase|decrease|sd|beta|z-score)\b')

_LEVEL_CODES = {
    1: RiskLevel.INCREASED,
    -1: RiskLevel.DECREASED,
    0: RiskLevel.NEUTRAL,
}


def parse_effect_size(raw: Optional[str]) -> Optional[float]:
    """
    Parse the leading number of an effect size field.

    Args:
        raw: Effect size text (e.g., "1.27", "0.85 [0.80-0.90]").

    Returns:
        Optional[float]: Finite value, or None.
    """
    if not raw:
        return None
    match = _LEADING_NUMBER.match(raw)
    if not match:
        return None
    value = float(match.group(0))
    return value if math.isfinite(value) else None


def detect_effect_type(hint: Optional[str] = None, confidence_interval: Optional[str] = None) -> EffectType:
    """
    Decide whether an effect size is an odds ratio or a beta.

    An explicit hint wins. Otherwise a confidence interval text mentioning
    units, increase/decrease, SD or beta marks a beta; anything else is
    treated as an odds ratio.

    Args:
        hint: Explicit effect type ("OR", "beta").
        confidence_interval: 95% CI text from the catalog.

    Returns:
        EffectType: Detected effect type.
    """
    parsed = EffectType.parse(hint)
    if parsed is not None:
        return parsed
    if confidence_interval and _BETA_HINTS.search(confidence_interval.lower()):
        return EffectType.BETA
    return EffectType.ODDS_RATIO


def extract_risk_allele(risk_allele_text: Optional[str]) -> str:
    """
    Extract the tested allele from a string like "rs123-A".

    Args:
        risk_allele_text: Risk allele string.

    Returns:
        str: Text after the last "-", or the whole string without one.
    """
    if not risk_allele_text:
        return ''
    return risk_allele_text.split('-')[-1].strip()


def count_risk_alleles(genotype: str, allele: str) -> int:
    """
    Count copies of the risk allele in a genotype.

    Args:
        genotype: User's genotype (e.g., "AG").
        allele: Single-base risk allele.

    Returns:
        int: 0, 1, or 2.
    """
    if not allele:
        return 0
    return sum(1 for base in genotype if base == allele)


def _score_odds_ratio(effect: float, count: int) -> Tuple[float, RiskLevel]:
    if count == 0 or effect == 1:
        return 1.0, RiskLevel.NEUTRAL
    if effect < 1:
        return effect ** count, RiskLevel.DECREASED
    return effect ** count, RiskLevel.INCREASED


def _score_beta(effect: float, count: int) -> Tuple[float, RiskLevel]:
    score = 1.0 + effect * count
    if count == 0 or effect == 0:
        return score, RiskLevel.NEUTRAL
    if effect > 0:
        return score, RiskLevel.INCREASED
    return score, RiskLevel.DECREASED


def calculate_risk_score(
    user_genotype: str,
    risk_allele_text: str,
    effect_size: str,
    effect_type: EffectType = EffectType.ODDS_RATIO
) -> RiskScore:
    """
    Calculate the risk score of one genotype for one study.

    Unparseable effect sizes and no-call genotypes give the neutral score
    of 1.0. Callers are expected to drop no-call genotypes before scoring.

    Args:
        user_genotype: Two-character genotype (e.g., "AG").
        risk_allele_text: Risk allele string (e.g., "rs123-A").
        effect_size: Effect size text.
        effect_type: Odds ratio or beta.

    Returns:
        RiskScore: Score (>= 0.1) and direction.
    """
    effect = parse_effect_size(effect_size)
    if effect is None:
        return NEUTRAL_SCORE

    if not is_valid_genotype(user_genotype):
        return NEUTRAL_SCORE

    count = count_risk_alleles(user_genotype, extract_risk_allele(risk_allele_text))

    if effect_type is EffectType.BETA:
        score, level = _score_beta(effect, count)
    else:
        score, level = _score_odds_ratio(effect, count)

    return RiskScore(max(MIN_RISK_SCORE, score), level)


def calculate_risk_scores(
    effects: np.ndarray,
    counts: np.ndarray,
    is_beta: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorized form of calculate_risk_score over parsed inputs.

    Args:
        effects: Finite effect sizes.
        counts: Risk allele copies (0, 1, 2) per entry.
        is_beta: True where the effect is a beta; all odds ratios if None.

    Returns:
        Tuple[np.ndarray, np.ndarray]: (scores floored at 0.1, level codes
        with 1 increased, -1 decreased, 0 neutral)

    Raises:
        ValueError: If array shapes differ.
    """
    effects = np.asarray(effects, dtype=float)
    counts = np.asarray(counts, dtype=float)
    if is_beta is None:
        is_beta = np.zeros(effects.shape, dtype=bool)
    else:
        is_beta = np.asarray(is_beta, dtype=bool)

    if effects.shape != counts.shape or effects.shape != is_beta.shape:
        raise ValueError("effects, counts and is_beta must have the same shape")

    carrier = counts > 0

    or_neutral = ~carrier | (effects == 1.0)
    or_scores = np.where(or_neutral, 1.0, np.power(effects, counts))
    or_levels = np.where(or_neutral, 0, np.where(effects > 1.0, 1, -1))

    beta_scores = 1.0 + effects * counts
    beta_levels = np.where(carrier, np.sign(effects), 0)

    scores = np.where(is_beta, beta_scores, or_scores)
    levels = np.where(is_beta, beta_levels, or_levels).astype(int)

    return np.maximum(scores, MIN_RISK_SCORE), levels


def level_from_code(code: int) -> RiskLevel:
    """Map a level code from calculate_risk_scores to a RiskLevel."""
    return _LEVEL_CODES[int(code)]


def study_effect_type(raw: RawStudyRecord) -> EffectType:
    """Effect type of a catalog record from its hint or CI text."""
    return detect_effect_type(raw.effect_type, raw.confidence_interval)


def build_match_result(
    raw: RawStudyRecord,
    snp: str,
    genotype: str,
    score: RiskScore,
    effect_type: EffectType
) -> MatchResult:
    """Assemble the MatchResult for one study and matched SNP."""
    return MatchResult(
        study_id=raw.identity,
        matched_snp=snp,
        user_genotype=genotype,
        risk_allele=raw.strongest_snp_risk_allele or '',
        effect_size=raw.or_or_beta or '',
        effect_type=effect_type,
        risk_score=score.score,
        risk_level=score.level,
        gwas_id=raw.study_accession or '',
        trait_name=raw.trait_name,
        study_title=raw.study or 'Unknown study',
    )


def analyze_study(
    genotype_map: Mapping[str, str],
    raw: RawStudyRecord,
    cache: Optional[SnpParseCache] = None
) -> StudyAnalysis:
    """
    Analyze one study against a genotype map, scoring every matching SNP.

    No-call genotypes are skipped. The first scored SNP is the primary
    result.

    Args:
        genotype_map: rsID -> genotype.
        raw: Catalog record.
        cache: Optional SNP parse cache.

    Returns:
        StudyAnalysis: has_match False when the study lacks a SNP list,
        risk allele or effect size, or nothing valid matched.
    """
    if not raw.strongest_snp_risk_allele or not raw.or_or_beta or not raw.snps:
        return StudyAnalysis(has_match=False)

    effect_type = study_effect_type(raw)
    matches = []

    for snp in parse_snp_list(raw.snps, cache):
        genotype = genotype_map.get(snp)
        if genotype is None or not is_valid_genotype(genotype):
            continue
        score = calculate_risk_score(genotype, raw.strongest_snp_risk_allele, raw.or_or_beta, effect_type)
        matches.append(SnpMatch(snp=snp, genotype=genotype, score=score.score, level=score.level))

    if not matches:
        return StudyAnalysis(has_match=False)

    first = matches[0]
    primary = build_match_result(raw, first.snp, first.genotype, RiskScore(first.score, first.level), effect_type)

    return StudyAnalysis(
        has_match=True,
        primary=primary,
        all_matches=matches,
        confidence_interval=raw.confidence_interval,
    )


def get_risk_interpretation(result: MatchResult) -> str:
    """
    Get a human-readable interpretation of a match result.

    Args:
        result: Match result.

    Returns:
        str: Interpretation text.
    """
    allele = extract_risk_allele(result.risk_allele) or '?'
    copies = count_risk_alleles(result.user_genotype, allele)
    copy_text = f"{copies} cop{'y' if copies == 1 else 'ies'} of the {allele} allele"

    if result.effect_type is EffectType.BETA:
        if result.risk_level is RiskLevel.NEUTRAL:
            return (f"You carry {copy_text}; no trait shift is expected from this variant. "
                    "Beta values are in trait units, not relative risk.")
        change = result.risk_score - 1.0
        direction = "higher" if change > 0 else "lower"
        return (f"You carry {copy_text}, associated with a {abs(change):.3g} unit {direction} "
                f"value of {result.trait_name}. Beta values are in trait units, not relative risk.")

    if result.risk_level is RiskLevel.INCREASED:
        return (f"You carry {copy_text}, associated with {result.risk_score:.2f}x the odds of "
                f"{result.trait_name} relative to non-carriers.")
    if result.risk_level is RiskLevel.DECREASED:
        return (f"You carry {copy_text}, associated with {result.risk_score:.2f}x the odds of "
                f"{result.trait_name} relative to non-carriers (protective).")
    return f"You carry {copy_text}; your odds match the reference group for {result.trait_name}."
