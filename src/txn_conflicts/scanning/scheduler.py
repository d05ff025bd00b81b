"""
Host schedulers that drive scan continuations.

The scanner never loops over a whole scan by itself. After each chunk it
hands the next step to a scheduler and returns, so the host decides when
work happens:

- QueueScheduler: the host pumps a FIFO of pending calls itself
  (one call per "turn"). Single-threaded and deterministic.
- ThreadScheduler: a single daemon worker thread drains the calls in
  order. Callbacks then run off the host thread, so shared state must be
  locked (see detection.state.ConflictState).
"""

import itertools
import logging
import queue
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)


class ScheduledCall:
    """Handle for a callback waiting in a scheduler."""

    _ids = itertools.count(1)

    def __init__(self, callback: Callable[[], None]):
        self.id = next(self._ids)
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""
        self.cancelled = True

    def run(self) -> bool:
        """Run the callback unless cancelled.

        Returns:
            True if the callback ran.
        """
        if self.cancelled:
            return False
        self.callback()
        return True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"<ScheduledCall #{self.id} {state}>"


class Scheduler(ABC):
    """Schedules callbacks on the host's next free opportunity."""

    @abstractmethod
    def call_soon(self, callback: Callable[[], None]) -> ScheduledCall:
        """Schedule callback to run on a later turn."""


class QueueScheduler(Scheduler):
    """FIFO scheduler pumped explicitly by the host."""

    def __init__(self) -> None:
        self._calls: deque[ScheduledCall] = deque()

    def call_soon(self, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(callback)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> int:
        """Number of scheduled calls that have not been cancelled."""
        return sum(1 for call in self._calls if not call.cancelled)

    def run_once(self) -> bool:
        """Run the next non-cancelled call.

        Returns:
            True if a callback ran, False if nothing was pending.
        """
        while self._calls:
            call = self._calls.popleft()
            if call.run():
                return True
        return False

    def run_until_idle(self, max_turns: int | None = None) -> int:
        """Run calls until none are pending (callbacks may schedule more).

        Args:
            max_turns: Stop after this many callbacks (None = no limit).

        Returns:
            Number of callbacks that ran.
        """
        turns = 0
        while max_turns is None or turns < max_turns:
            if not self.run_once():
                break
            turns += 1
        return turns


class ThreadScheduler(Scheduler):
    """Runs callbacks in order on one background worker thread."""

    def __init__(self, name: str = "conflict-scan-worker") -> None:
        self._queue: queue.Queue[ScheduledCall | None] = queue.Queue()
        self._shutdown = threading.Event()
        self._thread = threading.Thread(target=self._worker_loop, name=name, daemon=True)
        self._thread.start()

    def call_soon(self, callback: Callable[[], None]) -> ScheduledCall:
        if self._shutdown.is_set():
            raise RuntimeError("Scheduler has been shut down")
        call = ScheduledCall(callback)
        self._queue.put(call)
        return call

    def shutdown(self, wait: bool = True, timeout: float | None = 5.0) -> None:
        """Stop the worker. Calls still queued are dropped."""
        self._shutdown.set()
        self._queue.put(None)
        if wait:
            self._thread.join(timeout)

    def _worker_loop(self) -> None:
        logger.debug("Scheduler worker %s started", self._thread.name)
        while not self._shutdown.is_set():
            call = self._queue.get()
            if call is None or self._shutdown.is_set():
                break
            try:
                call.run()
            except Exception as e:
                # Keep the worker alive for later sessions
                logger.error(f"Error in scheduled call {call!r}: {e}", exc_info=True)
        logger.debug("Scheduler worker %s stopped", self._thread.name)
