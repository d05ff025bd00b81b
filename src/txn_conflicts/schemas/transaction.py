"""
Transaction record as supplied by the host.

Transactions are owned by the external persistence store. The engine only
holds read-only references to them during a scan.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Origin(str, Enum):
    """Where a transaction came from."""

    MANUAL = "manual"
    BANK = "bank"


@dataclass(frozen=True)
class Transaction:
    """A single transaction from the snapshot.

    amount is a signed integer in minor currency units (e.g. cents).
    date is an ISO calendar date (YYYY-MM-DD); any time part is ignored.
    """

    id: str
    date: str
    amount: int
    payee: str = ""
    payee_name: Optional[str] = None
    category: Optional[str] = None
    category_name: Optional[str] = None
    notes: Optional[str] = None
    account_id: str = ""
    origin: Optional[Origin] = None
    cleared: Optional[bool] = None

    @property
    def display_payee(self) -> str:
        """Payee name used for matching (resolved name first, raw payee second)."""
        return self.payee_name or self.payee or ""

    @property
    def is_manual(self) -> bool:
        return self.origin == Origin.MANUAL

    @property
    def is_bank(self) -> bool:
        return self.origin == Origin.BANK

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        """Deserialize from the REST wire shape.

        Unknown or missing origins map to None, which keeps the transaction
        out of both scan partitions.
        """
        origin = None
        raw_origin = data.get("origin")
        if raw_origin:
            try:
                origin = Origin(raw_origin)
            except ValueError:
                origin = None

        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            amount=int(data["amount"]),
            payee=data.get("payee") or "",
            payee_name=data.get("payee_name"),
            category=data.get("category"),
            category_name=data.get("category_name"),
            notes=data.get("notes"),
            account_id=str(data.get("accountId") or data.get("account_id") or ""),
            origin=origin,
            cleared=data.get("cleared"),
        )

    def to_dict(self) -> dict:
        """Serialize to the REST wire shape."""
        return {
            "id": self.id,
            "date": self.date,
            "amount": self.amount,
            "payee": self.payee,
            "payee_name": self.payee_name,
            "category": self.category,
            "category_name": self.category_name,
            "notes": self.notes,
            "accountId": self.account_id,
            "origin": self.origin.value if self.origin else None,
            "cleared": self.cleared,
        }
