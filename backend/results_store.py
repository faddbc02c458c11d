"""
In-memory store of match results keyed by study id.
"""

from collections import Counter
from typing import Dict, List, Optional, Iterator, Iterable, Any

from models.data_models import MatchResult, RiskLevel
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ResultStore:
    """
    Holds at most one MatchResult per study id.

    upsert overwrites an existing entry; add_if_absent keeps it. Insertion
    order is preserved for iteration and export.
    """

    def __init__(self, results: Optional[Iterable[MatchResult]] = None) -> None:
        self._results: Dict[int, MatchResult] = {}
        if results:
            self.upsert_many(results)

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[MatchResult]:
        return iter(list(self._results.values()))

    def __contains__(self, study_id: int) -> bool:
        return study_id in self._results

    def has_result(self, study_id: int) -> bool:
        return study_id in self._results

    def get(self, study_id: int) -> Optional[MatchResult]:
        return self._results.get(study_id)

    def upsert(self, result: MatchResult) -> None:
        """Insert a result, replacing any earlier one for the same study."""
        self._results[result.study_id] = result

    def upsert_many(self, results: Iterable[MatchResult]) -> int:
        count = 0
        for result in results:
            self.upsert(result)
            count += 1
        return count

    def add_if_absent(self, result: MatchResult) -> bool:
        """
        Insert a result unless its study already has one.

        Returns:
            bool: True if inserted.
        """
        if result.study_id in self._results:
            return False
        self._results[result.study_id] = result
        return True

    def remove(self, study_id: int) -> bool:
        return self._results.pop(study_id, None) is not None

    def clear(self) -> None:
        self._results.clear()

    def all_results(self) -> List[MatchResult]:
        return list(self._results.values())

    def by_risk_level(self, level: RiskLevel) -> List[MatchResult]:
        """Results with the given risk level."""
        return [r for r in self._results.values() if r.risk_level is level]

    def by_trait(self, pattern: str) -> List[MatchResult]:
        """Results whose trait name contains the pattern (case-insensitive)."""
        needle = pattern.casefold()
        return [r for r in self._results.values() if needle in r.trait_name.casefold()]

    def by_score_range(self, min_score: float, max_score: float) -> List[MatchResult]:
        """Results with min_score <= risk_score <= max_score."""
        return [r for r in self._results.values() if min_score <= r.risk_score <= max_score]

    def top_risks(self, limit: int = 10) -> List[MatchResult]:
        """Highest-scoring increased-risk results."""
        increased = self.by_risk_level(RiskLevel.INCREASED)
        return sorted(increased, key=lambda r: r.risk_score, reverse=True)[:limit]

    def protective_variants(self, limit: int = 10) -> List[MatchResult]:
        """Lowest-scoring decreased-risk results."""
        decreased = self.by_risk_level(RiskLevel.DECREASED)
        return sorted(decreased, key=lambda r: r.risk_score)[:limit]

    def trait_counts(self) -> List[tuple]:
        """(trait name, result count) pairs, most frequent first."""
        return Counter(r.trait_name for r in self._results.values()).most_common()

    def get_statistics(self) -> Dict[str, Any]:
        """
        Summary statistics over the stored results.

        Returns:
            Dict[str, Any]: total, per-level counts, mean score, distinct
            traits and highest score.
        """
        results = list(self._results.values())
        levels = Counter(r.risk_level for r in results)
        scores = [r.risk_score for r in results]
        return {
            'total': len(results),
            'increased': levels.get(RiskLevel.INCREASED, 0),
            'decreased': levels.get(RiskLevel.DECREASED, 0),
            'neutral': levels.get(RiskLevel.NEUTRAL, 0),
            'mean_score': sum(scores) / len(scores) if scores else 0.0,
            'max_score': max(scores) if scores else 0.0,
            'traits': len({r.trait_name for r in results}),
        }
