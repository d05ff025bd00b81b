"""Tests for the chunked conflict scanner and host schedulers."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from fixtures import FakeClock, bank, manual
from txn_conflicts.detection.state import ConflictState
from txn_conflicts.scanning import (
    ConflictScanner,
    QueueScheduler,
    ScanState,
    ThreadScheduler,
)
from txn_conflicts.schemas import ConflictType


def build_scanner(scheduler, clock=None, **kwargs) -> tuple[ConflictScanner, ConflictState]:
    state = ConflictState()
    scanner = ConflictScanner(
        state=state,
        scheduler=scheduler,
        clock=clock or FakeClock(),
        **kwargs,
    )
    return scanner, state


class TestScanSession:
    """Tests for partitioning and empty-side handling."""

    def test_empty_manual_side_completes_immediately(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        session = scanner.start([bank("b1"), bank("b2")])

        assert session.state == ScanState.COMPLETED
        assert state.conflicts == []
        assert state.progress == 100
        assert state.is_analyzing is False
        assert scheduler.pending == 0

    def test_empty_bank_side_completes_immediately(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        session = scanner.start([manual("m1")])

        assert session.state == ScanState.COMPLETED
        assert state.progress == 100
        assert scheduler.pending == 0

    def test_empty_snapshot_clears_previous_conflicts(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        scanner.start([manual("m1"), bank("b1")])
        scheduler.run_until_idle()
        assert len(state.conflicts) == 1

        scanner.start([])
        assert state.conflicts == []
        assert state.progress == 100

    def test_transactions_without_origin_are_ignored(self, scheduler: QueueScheduler) -> None:
        scanner, _ = build_scanner(scheduler)
        session = scanner.start([manual("m1"), bank("b1"), manual("x1", origin=None)])

        assert [t.id for t in session.manual] == ["m1"]
        assert [t.id for t in session.imported] == ["b1"]
        assert session.total == 1

    def test_partitions_preserve_input_order(self, scheduler: QueueScheduler) -> None:
        scanner, _ = build_scanner(scheduler)
        session = scanner.start(
            [bank("b2"), manual("m2"), bank("b1"), manual("m1"), manual("m3")]
        )
        assert [t.id for t in session.manual] == ["m2", "m1", "m3"]
        assert [t.id for t in session.imported] == ["b2", "b1"]


class TestChunking:
    """Tests for chunk bounds, ordering and progress."""

    def test_first_chunk_is_scheduled_not_run(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        session = scanner.start([manual("m1"), bank("b1")])

        assert session.state == ScanState.SCANNING
        assert session.processed == 0
        assert state.is_analyzing is True
        assert state.progress == 0
        assert scheduler.pending == 1

    def test_chunk_size_bounds_each_chunk(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler, chunk_size=3)
        transactions = [manual(f"m{i}") for i in range(3)] + [bank(f"b{i}") for i in range(4)]
        session = scanner.start(transactions)

        scheduler.run_once()
        assert session.processed == 3
        assert state.progress == 25

        turns = scheduler.run_until_idle()
        # 12 comparisons in chunks of 3
        assert turns == 3
        assert session.chunks == 4
        assert session.processed == 12
        assert session.state == ScanState.COMPLETED

    def test_time_budget_stops_chunk_early(self, scheduler: QueueScheduler) -> None:
        """With every clock read 15ms apart, a 20ms budget allows two comparisons."""
        scanner, _ = build_scanner(
            scheduler, clock=FakeClock(step=0.015), chunk_size=50, chunk_time_budget_ms=20
        )
        session = scanner.start([manual("m1"), manual("m2")] + [bank(f"b{i}") for i in range(5)])

        scheduler.run_once()
        assert session.processed == 2

    def test_session_start_uses_scanner_clock(self, scheduler: QueueScheduler) -> None:
        clock = FakeClock()
        clock.now = 42.5
        scanner, _ = build_scanner(scheduler, clock=clock)

        session = scanner.start([manual("m1"), bank("b1")])

        assert session.started_at == 42.5

    def test_at_least_one_comparison_per_chunk(self, scheduler: QueueScheduler) -> None:
        scanner, _ = build_scanner(
            scheduler, clock=FakeClock(step=10.0), chunk_size=50, chunk_time_budget_ms=1
        )
        session = scanner.start([manual("m1")] + [bank(f"b{i}") for i in range(3)])

        assert scheduler.run_until_idle() == 3
        assert session.state == ScanState.COMPLETED

    def test_row_major_order(self, scheduler: QueueScheduler) -> None:
        seen = []
        scorer = MagicMock()

        def score(m, b):
            seen.append((m.id, b.id))
            return MagicMock(score=0.0, conflict_type=None)

        scorer.score.side_effect = score
        scanner, _ = build_scanner(scheduler, scorer=scorer, chunk_size=4)
        scanner.start([manual("m1"), manual("m2"), bank("b1"), bank("b2"), bank("b3")])
        scheduler.run_until_idle()

        assert seen == [
            ("m1", "b1"),
            ("m1", "b2"),
            ("m1", "b3"),
            ("m2", "b1"),
            ("m2", "b2"),
            ("m2", "b3"),
        ]

    def test_progress_is_monotonic(self, scheduler: QueueScheduler) -> None:
        progress: list[int] = []
        scanner, _ = build_scanner(scheduler, chunk_size=2, on_progress=progress.append)
        scanner.start([manual(f"m{i}") for i in range(3)] + [bank(f"b{i}") for i in range(3)])
        scheduler.run_until_idle()

        assert progress == sorted(progress)
        assert progress[-1] == 100
        assert len(progress) == 5


class TestScanResults:
    """Tests for the published conflict list."""

    def test_detects_duplicate(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        scanner.start(
            [
                manual("m1", date="2024-01-10", amount=-5000, payee="Store A"),
                bank("b1", date="2024-01-11", amount=-5000, payee="Store A"),
            ]
        )
        scheduler.run_until_idle()

        [conflict] = state.conflicts
        assert conflict.manual.id == "m1"
        assert conflict.imported.id == "b1"
        assert conflict.conflict_type == ConflictType.MULTIPLE
        assert conflict.score == pytest.approx(1.0)

    def test_below_threshold_not_recorded(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        scanner.start(
            [
                manual("m1", date="2024-01-10", amount=-5000, payee="Store A"),
                bank("b1", date="2024-01-11", amount=-5002, payee="Store A"),
            ]
        )
        scheduler.run_until_idle()
        assert state.conflicts == []
        assert state.progress == 100

    def test_custom_threshold(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler, similarity_threshold=0.6)
        scanner.start([manual("m1", amount=-5000), bank("b1", amount=-5002)])
        scheduler.run_until_idle()
        assert len(state.conflicts) == 1
        assert state.conflicts[0].score == pytest.approx(0.6)

    def test_results_published_only_at_end(self, scheduler: QueueScheduler, duplicate_snapshot) -> None:
        scanner, state = build_scanner(scheduler, chunk_size=1)
        scanner.start(duplicate_snapshot)

        scheduler.run_once()
        # m1 x b1 matched, but nothing is published mid-scan
        assert scanner.session.found
        assert state.conflicts == []

        scheduler.run_until_idle()
        assert [(c.manual.id, c.imported.id) for c in state.conflicts] == [
            ("m1", "b1"),
            ("m2", "b2"),
        ]

    def test_multiple_matches_per_manual_are_all_listed(self, scheduler: QueueScheduler) -> None:
        scanner, state = build_scanner(scheduler)
        scanner.start([manual("m1"), bank("b1"), bank("b2")])
        scheduler.run_until_idle()
        assert [(c.manual.id, c.imported.id) for c in state.conflicts] == [
            ("m1", "b1"),
            ("m1", "b2"),
        ]

    def test_rescan_is_deterministic(self, scheduler: QueueScheduler, duplicate_snapshot) -> None:
        scanner, state = build_scanner(scheduler, chunk_size=2)
        scanner.start(duplicate_snapshot)
        scheduler.run_until_idle()
        first = state.conflicts

        scanner.start(duplicate_snapshot)
        scheduler.run_until_idle()
        assert state.conflicts == first

    def test_on_conflict_found_called_once_when_non_empty(
        self, scheduler: QueueScheduler, duplicate_snapshot
    ) -> None:
        callback = MagicMock()
        scanner, _ = build_scanner(scheduler, chunk_size=2, on_conflict_found=callback)
        scanner.start(duplicate_snapshot)
        scheduler.run_until_idle()

        callback.assert_called_once()
        assert len(callback.call_args[0][0]) == 2

    def test_on_conflict_found_not_called_for_empty_result(self, scheduler: QueueScheduler) -> None:
        callback = MagicMock()
        scanner, _ = build_scanner(scheduler, on_conflict_found=callback)
        scanner.start([manual("m1", amount=-1), bank("b1", amount=-2, date="2025-01-01")])
        scheduler.run_until_idle()
        scanner.start([manual("m1")])

        callback.assert_not_called()


class TestCancellation:
    """Tests for generation-based cancellation."""

    def test_restart_invalidates_pending_continuation(
        self, scheduler: QueueScheduler, duplicate_snapshot
    ) -> None:
        scanner, state = build_scanner(scheduler, chunk_size=1)
        old = scanner.start(duplicate_snapshot)
        scheduler.run_once()

        new = scanner.start([manual("m9"), bank("b9")])
        assert old.state == ScanState.CANCELLED
        assert new.generation == old.generation + 1
        assert scheduler.pending == 1

        scheduler.run_until_idle()
        assert old.processed == 1
        assert [(c.manual.id, c.imported.id) for c in state.conflicts] == [("m9", "b9")]

    def test_stale_continuation_does_not_commit(
        self, scheduler: QueueScheduler, duplicate_snapshot
    ) -> None:
        scanner, state = build_scanner(scheduler, chunk_size=100)
        old = scanner.start(duplicate_snapshot)
        # Bypass the cancelled handle and call the old continuation directly
        scanner.start([manual("m1")])
        scanner._continue(old)

        assert old.processed == 0
        assert state.conflicts == []

    def test_cancel_keeps_published_list(self, scheduler: QueueScheduler, duplicate_snapshot) -> None:
        scanner, state = build_scanner(scheduler, chunk_size=1)
        scanner.start(duplicate_snapshot)
        scheduler.run_until_idle()
        published = state.conflicts

        session = scanner.start(list(duplicate_snapshot))
        scheduler.run_once()
        scanner.cancel()

        assert session.state == ScanState.CANCELLED
        assert scanner.scan_state == ScanState.CANCELLED
        assert state.is_analyzing is False
        assert state.conflicts == published
        assert scheduler.run_until_idle() == 0

    def test_idle_before_first_scan(self, scheduler: QueueScheduler) -> None:
        scanner, _ = build_scanner(scheduler)
        assert scanner.scan_state == ScanState.IDLE
        assert scanner.is_scanning is False


class TestQueueScheduler:
    """Tests for QueueScheduler."""

    def test_runs_in_fifo_order(self) -> None:
        scheduler = QueueScheduler()
        calls = []
        scheduler.call_soon(lambda: calls.append(1))
        scheduler.call_soon(lambda: calls.append(2))

        assert scheduler.run_until_idle() == 2
        assert calls == [1, 2]

    def test_cancelled_calls_are_skipped(self) -> None:
        scheduler = QueueScheduler()
        calls = []
        handle = scheduler.call_soon(lambda: calls.append(1))
        scheduler.call_soon(lambda: calls.append(2))
        handle.cancel()

        assert scheduler.pending == 1
        assert scheduler.run_once() is True
        assert calls == [2]
        assert scheduler.run_once() is False

    def test_max_turns(self) -> None:
        scheduler = QueueScheduler()
        for _ in range(5):
            scheduler.call_soon(lambda: None)
        assert scheduler.run_until_idle(max_turns=2) == 2
        assert scheduler.pending == 3


class TestThreadScheduler:
    """Tests for ThreadScheduler."""

    def test_runs_callbacks_on_worker_thread(self) -> None:
        scheduler = ThreadScheduler()
        done = threading.Event()
        names = []

        def callback():
            names.append(threading.current_thread().name)
            done.set()

        try:
            scheduler.call_soon(callback)
            assert done.wait(timeout=5)
            assert names == ["conflict-scan-worker"]
        finally:
            scheduler.shutdown()

    def test_worker_survives_failing_callback(self) -> None:
        scheduler = ThreadScheduler()
        done = threading.Event()

        def boom():
            raise RuntimeError("boom")

        try:
            scheduler.call_soon(boom)
            scheduler.call_soon(done.set)
            assert done.wait(timeout=5)
        finally:
            scheduler.shutdown()

    def test_call_after_shutdown_raises(self) -> None:
        scheduler = ThreadScheduler()
        scheduler.shutdown()
        with pytest.raises(RuntimeError):
            scheduler.call_soon(lambda: None)

    def test_full_scan_on_worker_thread(self, duplicate_snapshot) -> None:
        scheduler = ThreadScheduler()
        finished = threading.Event()
        try:
            scanner, state = build_scanner(
                scheduler, chunk_size=1, on_conflict_found=lambda c: finished.set()
            )
            scanner.start(duplicate_snapshot)
            assert finished.wait(timeout=5)
            assert len(state.conflicts) == 2
            assert state.is_analyzing is False
        finally:
            scheduler.shutdown()
