"""
Test helpers for building transaction snapshots.

- make_transaction / manual / bank: Transaction factories with defaults
- FakeClock: controllable monotonic clock for chunk time budgets
- API_URL: base URL used with the responses mock
"""

from txn_conflicts.schemas import Origin, Transaction

API_URL = "http://txn-api.test"


def make_transaction(
    id: str,
    date: str = "2024-01-10",
    amount: int = -5000,
    payee: str = "Store A",
    origin: Origin | None = Origin.MANUAL,
    **kwargs,
) -> Transaction:
    """Build a Transaction with sensible defaults."""
    kwargs.setdefault("account_id", "acc-1")
    return Transaction(id=id, date=date, amount=amount, payee=payee, origin=origin, **kwargs)


def manual(id: str, **kwargs) -> Transaction:
    kwargs.setdefault("origin", Origin.MANUAL)
    return make_transaction(id, **kwargs)


def bank(id: str, **kwargs) -> Transaction:
    kwargs.setdefault("origin", Origin.BANK)
    return make_transaction(id, **kwargs)


class FakeClock:
    """Clock that advances by a fixed step on every read."""

    def __init__(self, step: float = 0.0):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value
