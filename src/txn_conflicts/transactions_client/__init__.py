"""
Transaction REST API Client.

Provides:
- Resolve one conflict (POST /api/transactions-conflict/resolve)
- Resolve a batch of conflicts (POST /api/transactions-conflict/resolve-batch)
- List transactions (GET /api/transactions)

Treats API errors as loud failures: every non-2xx response raises.
"""

from .client import (
    PersistenceAPIError,
    PersistenceConnectionError,
    PersistenceError,
    TransactionsClient,
)

__all__ = [
    "TransactionsClient",
    "PersistenceError",
    "PersistenceAPIError",
    "PersistenceConnectionError",
]
