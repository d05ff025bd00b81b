"""Chunked conflict scanning driven by a host scheduler."""

from txn_conflicts.scanning.scanner import ConflictScanner, ScanSession, ScanState
from txn_conflicts.scanning.scheduler import (
    QueueScheduler,
    ScheduledCall,
    Scheduler,
    ThreadScheduler,
)

__all__ = [
    "ConflictScanner",
    "QueueScheduler",
    "ScanSession",
    "ScanState",
    "ScheduledCall",
    "Scheduler",
    "ThreadScheduler",
]
