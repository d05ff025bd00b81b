"""Host-facing conflict detection: read model and facade."""

from txn_conflicts.detection.detector import ConflictDetector
from txn_conflicts.detection.state import ConflictSnapshot, ConflictState

__all__ = ["ConflictDetector", "ConflictSnapshot", "ConflictState"]
