"""Chunked conflict scanner.

Compares every manual transaction against every bank-imported transaction
(row-major: manual[0] x imported[0..n], then manual[1] x ...). The work is
split into chunks of at most chunk_size comparisons or chunk_time_budget_ms
of wall-clock time. After each chunk the next one is handed to the host
scheduler, so a large scan never monopolizes the host.

Each scan is a ScanSession tagged with a generation number. Starting or
cancelling a scan moves the scanner's generation on; a continuation whose
session generation no longer matches is dropped before it touches any
state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable

from txn_conflicts.matching.scorer import SimilarityScorer
from txn_conflicts.schemas import ConflictPair, Transaction

if TYPE_CHECKING:
    from txn_conflicts.detection.state import ConflictState
    from txn_conflicts.scanning.scheduler import ScheduledCall, Scheduler

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    """Lifecycle of a scan session."""

    IDLE = "IDLE"
    SCANNING = "SCANNING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass
class ScanSession:
    """Cursor state for one pass over the manual x imported cross-product."""

    generation: int
    manual: list[Transaction]
    imported: list[Transaction]
    state: ScanState = ScanState.SCANNING
    manual_index: int = 0
    imported_index: int = 0
    processed: int = 0
    chunks: int = 0
    found: list[ConflictPair] = field(default_factory=list)
    started_at: float = 0.0

    @property
    def total(self) -> int:
        return len(self.manual) * len(self.imported)

    @property
    def done(self) -> bool:
        return self.manual_index >= len(self.manual)

    @property
    def progress(self) -> int:
        """Percentage of comparisons processed (0-100)."""
        if self.total == 0:
            return 100
        return round(self.processed / self.total * 100)


class ConflictScanner:
    """Runs scan sessions chunk by chunk on a host scheduler.

    Usage:
        scanner = ConflictScanner(state, QueueScheduler())
        scanner.start(transactions)
        scheduler.run_until_idle()
        state.conflicts
    """

    def __init__(
        self,
        state: ConflictState,
        scheduler: Scheduler,
        scorer: SimilarityScorer | None = None,
        similarity_threshold: float = 0.8,
        chunk_size: int = 50,
        chunk_time_budget_ms: float = 20.0,
        clock: Callable[[], float] = time.perf_counter,
        on_conflict_found: Callable[[list[ConflictPair]], None] | None = None,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            state: Shared read model the scan publishes into.
            scheduler: Host scheduler that runs continuations.
            scorer: Pair scorer (default weights if None).
            similarity_threshold: Minimum score for a pair to be reported.
            chunk_size: Maximum comparisons per chunk.
            chunk_time_budget_ms: Chunk stops early once this much time has passed.
            clock: Monotonic clock in seconds, used for the chunk budget.
            on_conflict_found: Called once per completed scan with a non-empty result.
            on_progress: Called with the progress percentage after every chunk.
        """
        self.state = state
        self.scheduler = scheduler
        self.scorer = scorer or SimilarityScorer()
        self.similarity_threshold = similarity_threshold
        self.chunk_size = chunk_size
        self.chunk_time_budget_ms = chunk_time_budget_ms
        self.clock = clock
        self.on_conflict_found = on_conflict_found
        self.on_progress = on_progress

        self._generation = 0
        self._session: ScanSession | None = None
        self._pending: ScheduledCall | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def session(self) -> ScanSession | None:
        """The most recently started session."""
        return self._session

    @property
    def scan_state(self) -> ScanState:
        """State of the latest session (IDLE before the first scan)."""
        session = self._session
        return session.state if session is not None else ScanState.IDLE

    @property
    def is_scanning(self) -> bool:
        session = self._session
        return session is not None and session.state == ScanState.SCANNING

    def start(self, transactions: Iterable[Transaction]) -> ScanSession:
        """Start a new scan, superseding any scan in progress.

        Args:
            transactions: Snapshot to scan. Only manual and bank transactions take part.

        Returns:
            The new session. It is already COMPLETED when either side is empty.
        """
        with self.state.lock:
            self._invalidate()

            manual: list[Transaction] = []
            imported: list[Transaction] = []
            for tx in transactions:
                if tx.is_manual:
                    manual.append(tx)
                elif tx.is_bank:
                    imported.append(tx)

            session = ScanSession(
                generation=self._generation,
                manual=manual,
                imported=imported,
                started_at=self.clock(),
            )
            self._session = session

            if not manual or not imported:
                logger.debug(
                    "Scan #%d skipped: %d manual, %d bank transactions",
                    session.generation,
                    len(manual),
                    len(imported),
                )
                session.state = ScanState.COMPLETED
                self.state.publish_scan([])
                return session

            logger.info(
                "Scan #%d started: %d manual x %d bank (%d comparisons)",
                session.generation,
                len(manual),
                len(imported),
                session.total,
            )
            self.state.begin_scan()
            self._schedule(session)
            return session

    def cancel(self) -> None:
        """Cancel the scan in progress, if any. The published list is kept."""
        with self.state.lock:
            was_scanning = self.is_scanning
            self._invalidate()
            if was_scanning:
                self.state.end_scan()

    def run_chunk(self, session: ScanSession) -> bool:
        """Process one chunk of comparisons for a session.

        Stops after chunk_size comparisons or once the time budget is
        exceeded. At least one comparison runs per chunk.

        Returns:
            True when the whole cross-product has been processed.
        """
        start = self.clock()
        budget = self.chunk_time_budget_ms / 1000.0
        chunk_processed = 0
        last_imported = len(session.imported)

        while chunk_processed < self.chunk_size and not session.done:
            manual_tx = session.manual[session.manual_index]
            imported_tx = session.imported[session.imported_index]

            result = self.scorer.score(manual_tx, imported_tx)
            if result.conflict_type is not None and result.score >= self.similarity_threshold:
                session.found.append(
                    ConflictPair(
                        manual=manual_tx,
                        imported=imported_tx,
                        conflict_type=result.conflict_type,
                        score=result.score,
                    )
                )

            session.imported_index += 1
            if session.imported_index >= last_imported:
                session.imported_index = 0
                session.manual_index += 1

            session.processed += 1
            chunk_processed += 1

            if self.clock() - start >= budget:
                break

        session.chunks += 1
        return session.done

    def _continue(self, session: ScanSession) -> None:
        with self.state.lock:
            if session.generation != self._generation:
                logger.debug(
                    "Dropping stale continuation for scan #%d (current #%d)",
                    session.generation,
                    self._generation,
                )
                return

            self._pending = None
            done = self.run_chunk(session)
            progress = session.progress
            logger.debug(
                "Scan #%d chunk %d: %d/%d comparisons (%d%%)",
                session.generation,
                session.chunks,
                session.processed,
                session.total,
                progress,
            )

            if done:
                session.state = ScanState.COMPLETED
                self.state.publish_scan(session.found)
            else:
                self.state.set_progress(progress)
                self._schedule(session)

            found = list(session.found) if done else []

        # Callbacks run outside the lock
        if self.on_progress:
            self.on_progress(progress)

        if done:
            logger.info(
                "Scan #%d completed: %d conflict(s) in %d chunk(s), %dms",
                session.generation,
                len(found),
                session.chunks,
                int((self.clock() - session.started_at) * 1000),
            )
            if found and self.on_conflict_found:
                self.on_conflict_found(found)

    def _schedule(self, session: ScanSession) -> None:
        self._pending = self.scheduler.call_soon(lambda: self._continue(session))

    def _invalidate(self) -> None:
        """Move to a new generation and drop the pending continuation."""
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._session is not None and self._session.state == ScanState.SCANNING:
            self._session.state = ScanState.CANCELLED
            logger.debug("Scan #%d cancelled", self._session.generation)
