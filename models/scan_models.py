"""
Data models for the bulk catalog scan ("Run All").

Contains the scan phase state machine and the progress snapshot handed to
progress observers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List

from models.data_models import MatchResult


class ScanPhase(Enum):
    """Phases of a bulk scan. ERROR is reachable from every other phase."""
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanPhase.COMPLETE, ScanPhase.CANCELLED, ScanPhase.ERROR)


@dataclass(frozen=True)
class ScanProgress:
    """
    Snapshot of a running scan.

    Attributes:
        phase: Current phase
        batches_fetched: Catalog batches received from the study source
        studies_processed: Studies examined so far
        studies_total: Catalog size if known, else None
        studies_matched: New match results recorded in this run
        elapsed_seconds: Wall time since the scan started
        message: Optional status message (error text in the ERROR phase)
    """
    phase: ScanPhase
    batches_fetched: int = 0
    studies_processed: int = 0
    studies_total: Optional[int] = None
    studies_matched: int = 0
    elapsed_seconds: float = 0.0
    message: str = ""

    @property
    def percent(self) -> float:
        """Completion percentage, 0 when the total is unknown."""
        if not self.studies_total:
            return 0.0
        return min(100.0, self.studies_processed / self.studies_total * 100)

    def __repr__(self) -> str:
        return (f"ScanProgress({self.phase.value}, {self.studies_processed}"
                f"/{self.studies_total}, matched={self.studies_matched})")


@dataclass
class ScanResult:
    """
    Outcome of a bulk scan.

    Attributes:
        results: Match results recorded by this run, in catalog order
        progress: Final progress snapshot
        cancelled: Whether the scan stopped on the abort signal
    """
    results: List[MatchResult] = field(default_factory=list)
    progress: Optional[ScanProgress] = None
    cancelled: bool = False

    @property
    def match_count(self) -> int:
        return len(self.results)
