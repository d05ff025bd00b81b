"""Shared conflict read model.

The scan continuation and the resolver's success handlers both write here.
With the QueueScheduler they interleave on one thread; with the
ThreadScheduler they do not, so every read and write goes through one
re-entrant lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from txn_conflicts.schemas import ConflictPair


@dataclass(frozen=True)
class ConflictSnapshot:
    """Point-in-time copy of the read model exposed to the host."""

    conflicts: tuple[ConflictPair, ...]
    is_analyzing: bool
    is_resolving: bool
    progress: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "conflicts": [c.to_dict() for c in self.conflicts],
            "isAnalyzing": self.is_analyzing,
            "isResolving": self.is_resolving,
            "progress": self.progress,
        }


class ConflictState:
    """Lock-protected conflict list, progress and status flags."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        # Signalled whenever is_analyzing changes
        self.changed = threading.Condition(self.lock)
        self._conflicts: list[ConflictPair] = []
        self._is_analyzing = False
        self._resolving = 0
        self._progress = 0

    # Reads

    @property
    def conflicts(self) -> list[ConflictPair]:
        with self.lock:
            return list(self._conflicts)

    @property
    def is_analyzing(self) -> bool:
        with self.lock:
            return self._is_analyzing

    @property
    def is_resolving(self) -> bool:
        with self.lock:
            return self._resolving > 0

    @property
    def progress(self) -> int:
        with self.lock:
            return self._progress

    def snapshot(self) -> ConflictSnapshot:
        with self.lock:
            return ConflictSnapshot(
                conflicts=tuple(self._conflicts),
                is_analyzing=self._is_analyzing,
                is_resolving=self._resolving > 0,
                progress=self._progress,
            )

    def find(self, conflict_id: str) -> ConflictPair | None:
        """Return the first pair whose manual transaction has this id."""
        with self.lock:
            for pair in self._conflicts:
                if pair.manual.id == conflict_id:
                    return pair
            return None

    # Scan writes

    def begin_scan(self) -> None:
        with self.lock:
            self._is_analyzing = True
            self._progress = 0
            self.changed.notify_all()

    def set_progress(self, progress: int) -> None:
        with self.lock:
            self._progress = progress

    def publish_scan(self, conflicts: list[ConflictPair]) -> None:
        """Replace the list with a completed scan's result."""
        with self.lock:
            self._conflicts = list(conflicts)
            self._progress = 100
            self._is_analyzing = False
            self.changed.notify_all()

    def end_scan(self) -> None:
        """Clear the analyzing flag without publishing (scan cancelled)."""
        with self.lock:
            self._is_analyzing = False
            self.changed.notify_all()

    # Resolution writes

    def begin_resolving(self) -> None:
        with self.lock:
            self._resolving += 1

    def end_resolving(self) -> None:
        with self.lock:
            self._resolving = max(0, self._resolving - 1)

    def remove(self, conflict_id: str) -> int:
        """Drop every pair keyed by this manual transaction id.

        Returns:
            Number of pairs removed.
        """
        with self.lock:
            before = len(self._conflicts)
            self._conflicts = [c for c in self._conflicts if c.manual.id != conflict_id]
            return before - len(self._conflicts)

    def clear(self) -> None:
        with self.lock:
            self._conflicts = []
