"""Applying resolution decisions to detected conflicts."""

from txn_conflicts.resolution.resolver import (
    ConflictNotFoundError,
    ConflictResolutionError,
    ConflictResolver,
    log_notifier,
)

__all__ = [
    "ConflictNotFoundError",
    "ConflictResolutionError",
    "ConflictResolver",
    "log_notifier",
]
