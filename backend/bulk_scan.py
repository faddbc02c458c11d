"""
Bulk scan of the whole study catalog against a user's genotype map.

Walks the study source in bounded batches, scores the first matching SNP
with a valid genotype for every study and records one MatchResult per
study in a ResultStore. Scans are cooperative: the abort signal is
checked between batches and a batch always completes once started.
"""

import time
from typing import Optional, List, Callable, Mapping

import numpy as np

from models.data_models import MatchResult, RiskScore, EffectType
from models.scan_models import ScanPhase, ScanProgress, ScanResult
from models.study_models import RawStudyRecord
from backend.results_store import ResultStore
from backend.snp_matching import SnpParseCache, has_any_match, get_matches
from backend.validators import is_valid_genotype
from backend.risk_calculator import (
    parse_effect_size, extract_risk_allele, count_risk_alleles,
    calculate_risk_scores, level_from_code, study_effect_type, build_match_result
)
from config import SCAN_BATCH_SIZE, PROGRESS_INTERVAL_SECONDS
from utils.logging_config import get_logger

logger = get_logger(__name__)


class BulkScanError(Exception):
    """Exception raised when a scan stops because a collaborator failed."""

    def __init__(self, message: str, phase: Optional[ScanPhase] = None) -> None:
        super().__init__(message)
        self.phase = phase


class _Candidate:
    """A study selected for scoring within one batch."""
    __slots__ = ('raw', 'snp', 'genotype', 'effect', 'count', 'effect_type')

    def __init__(self, raw: RawStudyRecord, snp: str, genotype: str,
                 effect: Optional[float], count: int, effect_type: EffectType) -> None:
        self.raw = raw
        self.snp = snp
        self.genotype = genotype
        self.effect = effect
        self.count = count
        self.effect_type = effect_type


class BulkScanner:
    """
    Runs the "scan everything" analysis over a study source.

    The source must provide fetch_batch(filters, offset, limit) and
    count(filters), as database.catalog_database.CatalogDatabase does.
    Only one run per scanner is expected at a time.
    """

    def __init__(
        self,
        source,
        store: Optional[ResultStore] = None,
        batch_size: int = SCAN_BATCH_SIZE,
        progress_interval: float = PROGRESS_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        cache: Optional[SnpParseCache] = None
    ) -> None:
        """
        Initialize the scanner.

        Args:
            source: Study source.
            store: Result store shared across runs; a new one if None.
            batch_size: Studies fetched per batch.
            progress_interval: Minimum seconds between progress events.
            clock: Monotonic clock, replaceable in tests.
            cache: SNP parse cache; a new one if None.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got: {batch_size}")
        self.source = source
        self.store = store if store is not None else ResultStore()
        self.batch_size = batch_size
        self.progress_interval = progress_interval
        self.clock = clock
        self.cache = cache if cache is not None else SnpParseCache()
        self.phase: Optional[ScanPhase] = None
        self._progress_callback: Optional[Callable[[ScanProgress], None]] = None
        self._last_report: Optional[float] = None

    def set_progress_callback(self, callback: Callable[[ScanProgress], None]) -> None:
        """
        Set callback for progress updates.

        Args:
            callback: Function taking a ScanProgress snapshot.
        """
        self._progress_callback = callback

    def _report_progress(self, progress: ScanProgress, force: bool = False) -> None:
        """Report progress if a callback is set and the interval has passed."""
        now = self.clock()
        if not force and self._last_report is not None and now - self._last_report < self.progress_interval:
            return
        self._last_report = now
        if self._progress_callback:
            self._progress_callback(progress)

    def _select_candidate(self, genotype_map: Mapping[str, str], raw: RawStudyRecord) -> Optional[_Candidate]:
        if not has_any_match(genotype_map, raw.snps, self.cache):
            return None
        if not raw.strongest_snp_risk_allele or not raw.or_or_beta:
            return None

        for snp in get_matches(genotype_map, raw.snps, self.cache):
            genotype = genotype_map[snp]
            if not is_valid_genotype(genotype):
                continue
            allele = extract_risk_allele(raw.strongest_snp_risk_allele)
            return _Candidate(
                raw=raw,
                snp=snp,
                genotype=genotype,
                effect=parse_effect_size(raw.or_or_beta),
                count=count_risk_alleles(genotype, allele),
                effect_type=study_effect_type(raw),
            )
        return None

    def _score_candidates(self, candidates: List[_Candidate]) -> List[MatchResult]:
        # unparseable effect sizes score as OR 1.0, the neutral result
        effects = np.array([c.effect if c.effect is not None else 1.0 for c in candidates], dtype=float)
        counts = np.array([c.count for c in candidates], dtype=float)
        is_beta = np.array(
            [c.effect is not None and c.effect_type is EffectType.BETA for c in candidates], dtype=bool
        )
        scores, levels = calculate_risk_scores(effects, counts, is_beta)

        return [
            build_match_result(
                c.raw, c.snp, c.genotype,
                RiskScore(float(score), level_from_code(level)),
                c.effect_type
            )
            for c, score, level in zip(candidates, scores, levels)
        ]

    def analyze_batch(self, genotype_map: Mapping[str, str], batch: List[RawStudyRecord]) -> List[MatchResult]:
        """
        Score one batch of studies, skipping studies already in the store.

        Args:
            genotype_map: rsID -> genotype.
            batch: Raw studies.

        Returns:
            List[MatchResult]: New results in batch order (not yet stored).
        """
        candidates: List[_Candidate] = []
        seen = set()
        for raw in batch:
            study_id = raw.identity
            if study_id in seen or self.store.has_result(study_id):
                continue
            candidate = self._select_candidate(genotype_map, raw)
            if candidate is None:
                continue
            seen.add(study_id)
            candidates.append(candidate)

        if not candidates:
            return []
        return self._score_candidates(candidates)

    def run(self, genotype_map: Mapping[str, str], abort=None) -> ScanResult:
        """
        Scan the entire catalog.

        Args:
            genotype_map: rsID -> genotype.
            abort: Object with is_set() (e.g. threading.Event), checked
                between batches.

        Returns:
            ScanResult: Results recorded by this run and the final progress.
            Results recorded before a cancellation are kept in the store.

        Raises:
            BulkScanError: If the genotype map is empty or the study source fails.
        """
        start = self.clock()
        self._last_report = None
        batches = 0
        processed = 0
        total: Optional[int] = None
        results: List[MatchResult] = []

        def snapshot(phase: ScanPhase, message: str = "") -> ScanProgress:
            self.phase = phase
            return ScanProgress(
                phase=phase,
                batches_fetched=batches,
                studies_processed=processed,
                studies_total=total,
                studies_matched=len(results),
                elapsed_seconds=self.clock() - start,
                message=message,
            )

        def fail(message: str) -> BulkScanError:
            failed_phase = self.phase
            self._report_progress(snapshot(ScanPhase.ERROR, message), force=True)
            logger.error(message)
            return BulkScanError(message, failed_phase)

        if not genotype_map:
            self._report_progress(snapshot(ScanPhase.ERROR, "No genotype data loaded"), force=True)
            raise BulkScanError("No genotype data loaded", ScanPhase.FETCHING)

        self._report_progress(snapshot(ScanPhase.FETCHING, "Counting studies"), force=True)
        try:
            total = self.source.count(None)
        except Exception as e:
            raise fail(f"Study source unavailable: {e}") from e

        logger.info(f"Starting scan of {total:,} studies against {len(genotype_map):,} variants")

        cancelled = False
        offset = 0
        while True:
            if abort is not None and abort.is_set():
                cancelled = True
                break

            self.phase = ScanPhase.FETCHING
            try:
                batch = self.source.fetch_batch(None, offset, self.batch_size)
            except Exception as e:
                raise fail(f"Failed to fetch studies at offset {offset}: {e}") from e

            if not batch:
                break

            batches += 1
            offset += len(batch)
            self._report_progress(snapshot(ScanPhase.ANALYZING))

            buffer = self.analyze_batch(genotype_map, batch)
            for result in buffer:
                self.store.add_if_absent(result)
            results.extend(buffer)
            processed += len(batch)

            logger.debug(f"Batch {batches}: {len(batch)} studies, {len(buffer)} new matches")
            self._report_progress(snapshot(ScanPhase.ANALYZING))

            if len(batch) < self.batch_size:
                break

            # hand control back between batches
            time.sleep(0)

        phase = ScanPhase.CANCELLED if cancelled else ScanPhase.COMPLETE
        final = snapshot(phase, "Scan cancelled" if cancelled else "Scan complete")
        self._report_progress(final, force=True)

        logger.info(
            f"Scan {phase.value}: {processed:,} studies in {batches} batches, "
            f"{len(results):,} new matches in {final.elapsed_seconds:.1f}s"
        )

        return ScanResult(results=results, progress=final, cancelled=cancelled)
