"""Host-facing conflict detection facade.

ConflictDetector ties the scanner, the resolver and the shared read model
together behind the surface a host works with:

- feed it transaction snapshots (update_transactions)
- read conflicts / is_analyzing / is_resolving / progress
- resolve one conflict, resolve all, or force a rescan
- close() it when the host goes away
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Sequence

from txn_conflicts.config import DetectionConfig
from txn_conflicts.detection.state import ConflictSnapshot, ConflictState
from txn_conflicts.matching.scorer import SimilarityScorer
from txn_conflicts.resolution.resolver import ConflictResolver
from txn_conflicts.scanning.scanner import ConflictScanner, ScanState
from txn_conflicts.schemas import ConflictPair, Resolution, Transaction

if TYPE_CHECKING:
    from txn_conflicts.scanning.scheduler import Scheduler
    from txn_conflicts.transactions_client import TransactionsClient

logger = logging.getLogger(__name__)


class ConflictDetector:
    """Detects and resolves manual vs. bank-import duplicates.

    A scan starts whenever update_transactions() receives a different
    snapshot object; passing the same object again while it is being
    scanned (or after) does nothing. reanalyze_conflicts() always restarts.

    Usage:
        scheduler = QueueScheduler()
        with ConflictDetector(client, scheduler) as detector:
            detector.update_transactions(transactions)
            scheduler.run_until_idle()
            detector.resolve_conflict("m1", "keep-bank")
    """

    def __init__(
        self,
        client: TransactionsClient,
        scheduler: Scheduler,
        config: DetectionConfig | None = None,
        on_conflict_found: Callable[[list[ConflictPair]], None] | None = None,
        on_progress: Callable[[int], None] | None = None,
        notify: Callable[[str], None] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the detector.

        Args:
            client: Transaction API client used for resolutions.
            scheduler: Host scheduler that runs scan chunks.
            config: Detection settings (defaults if None).
            on_conflict_found: Called once per completed scan with a non-empty result.
            on_progress: Called with the progress percentage after every chunk.
            notify: Called with a user-facing message when a resolution fails.
            clock: Monotonic clock override for the chunk time budget.
        """
        self.config = config or DetectionConfig()
        self._state = ConflictState()
        self._transactions: Sequence[Transaction] | None = None
        self._closed = False

        scanner_kwargs = {}
        if clock is not None:
            scanner_kwargs["clock"] = clock

        self.scanner = ConflictScanner(
            state=self._state,
            scheduler=scheduler,
            scorer=SimilarityScorer(date_window_days=self.config.date_window_days),
            similarity_threshold=self.config.similarity_threshold,
            chunk_size=self.config.chunk_size,
            chunk_time_budget_ms=self.config.chunk_time_budget_ms,
            on_conflict_found=on_conflict_found,
            on_progress=on_progress,
            **scanner_kwargs,
        )
        self.resolver = ConflictResolver(client=client, state=self._state, notify=notify)

    # Read model

    @property
    def conflicts(self) -> list[ConflictPair]:
        return self._state.conflicts

    @property
    def is_analyzing(self) -> bool:
        return self._state.is_analyzing

    @property
    def is_resolving(self) -> bool:
        return self._state.is_resolving

    @property
    def progress(self) -> int:
        return self._state.progress

    @property
    def state(self) -> ConflictSnapshot:
        """Consistent copy of conflicts, flags and progress."""
        return self._state.snapshot()

    # Actions

    def update_transactions(self, transactions: Sequence[Transaction]) -> None:
        """Hand the detector a transaction snapshot.

        A new snapshot object supersedes any scan in progress. The same
        object is ignored.
        """
        self._check_open()
        if transactions is self._transactions:
            logger.debug("Snapshot unchanged, not rescanning")
            return
        self._transactions = transactions
        self.scanner.start(transactions)

    def reanalyze_conflicts(self) -> None:
        """Cancel any pending scan and rescan the current snapshot from zero."""
        self._check_open()
        logger.info("Re-analyzing conflicts")
        self.scanner.start(self._transactions or [])

    def resolve_conflict(self, conflict_id: str, resolution: Resolution | str) -> bool:
        """Resolve one conflict. See ConflictResolver.resolve_conflict."""
        return self.resolver.resolve_conflict(conflict_id, resolution)

    def resolve_all_conflicts(self, resolution: Resolution | str) -> bool:
        """Resolve every listed conflict. See ConflictResolver.resolve_all_conflicts."""
        return self.resolver.resolve_all_conflicts(resolution)

    def wait_for_scan(self, timeout: float | None = None) -> bool:
        """Block until no scan is in progress (for threaded schedulers).

        Returns:
            True if the scan finished (or none was running), False on timeout.
        """
        with self._state.changed:
            return self._state.changed.wait_for(
                lambda: self.scanner.scan_state != ScanState.SCANNING, timeout
            )

    def close(self) -> None:
        """Tear down: cancel any pending scan. Further updates are rejected."""
        if self._closed:
            return
        self.scanner.cancel()
        self._closed = True
        logger.debug("Conflict detector closed")

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("ConflictDetector is closed")

    def __enter__(self) -> "ConflictDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
