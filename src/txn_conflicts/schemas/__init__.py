"""Data model: transactions, conflict pairs and resolutions."""

from .conflict import ConflictPair, ConflictType, Resolution
from .transaction import Origin, Transaction

__all__ = [
    "ConflictPair",
    "ConflictType",
    "Origin",
    "Resolution",
    "Transaction",
]
