"""
Conflict pairs and resolution choices.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .transaction import Origin, Transaction


class ConflictType(str, Enum):
    """Which factor(s) made a pair look like a duplicate."""

    DATE = "date"
    AMOUNT = "amount"
    PAYEE = "payee"
    MULTIPLE = "multiple"


class Resolution(str, Enum):
    """
    How a conflict is resolved.

    KEEP_BOTH: Not a duplicate, keep both transactions
    KEEP_MANUAL: Keep the manual entry, drop the bank import
    KEEP_BANK: Keep the bank import, drop the manual entry
    """

    KEEP_BOTH = "keep-both"
    KEEP_MANUAL = "keep-manual"
    KEEP_BANK = "keep-bank"

    @classmethod
    def parse(cls, value: Union["Resolution", str]) -> "Resolution":
        """Coerce a string or member to a Resolution.

        Raises:
            ValueError: If value is not a known resolution.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown resolution {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class ConflictPair:
    """A (manual, imported) pair flagged as a likely duplicate."""

    manual: Transaction
    imported: Transaction
    conflict_type: ConflictType
    score: float

    def __post_init__(self) -> None:
        if self.manual.origin != Origin.MANUAL:
            raise ValueError(f"Transaction {self.manual.id} is not a manual transaction")
        if self.imported.origin != Origin.BANK:
            raise ValueError(f"Transaction {self.imported.id} is not a bank transaction")

    @property
    def conflict_id(self) -> str:
        """Lookup key used by resolve_conflict (the manual transaction id)."""
        return self.manual.id

    def to_resolution(self, resolution: Resolution) -> dict:
        """Build the wire item sent to the resolution endpoints."""
        return {
            "manualTransactionId": self.manual.id,
            "importedTransactionId": self.imported.id,
            "resolution": Resolution.parse(resolution).value,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "manual": self.manual.to_dict(),
            "imported": self.imported.to_dict(),
            "conflictType": self.conflict_type.value,
            "score": self.score,
        }
