"""Shared pytest fixtures."""

from unittest.mock import MagicMock

import pytest

from fixtures import FakeClock, bank, manual
from txn_conflicts.config import DetectionConfig
from txn_conflicts.detection import ConflictDetector
from txn_conflicts.scanning import QueueScheduler
from txn_conflicts.schemas import Transaction
from txn_conflicts.transactions_client import TransactionsClient


@pytest.fixture
def scheduler() -> QueueScheduler:
    return QueueScheduler()


@pytest.fixture
def mock_client() -> MagicMock:
    """TransactionsClient double that records calls."""
    return MagicMock(spec=TransactionsClient)


@pytest.fixture
def frozen_clock() -> FakeClock:
    """Clock that never advances, so chunks are bounded by chunk_size only."""
    return FakeClock()


@pytest.fixture
def detector(mock_client, scheduler, frozen_clock) -> ConflictDetector:
    """Detector on a QueueScheduler with a mocked client and 2-comparison chunks."""
    return ConflictDetector(
        client=mock_client,
        scheduler=scheduler,
        config=DetectionConfig(chunk_size=2),
        clock=frozen_clock,
    )


@pytest.fixture
def duplicate_snapshot() -> list[Transaction]:
    """Two manual entries, each duplicated by one bank import, plus noise."""
    return [
        manual("m1", date="2024-01-10", amount=-5000, payee="Store A"),
        manual("m2", date="2024-02-01", amount=-1299, payee="Coffee Shop"),
        bank("b1", date="2024-01-11", amount=-5000, payee="Store A"),
        bank("b2", date="2024-02-02", amount=-1299, payee="COFFEE SHOP"),
        bank("b3", date="2024-03-15", amount=-90000, payee="Landlord"),
    ]
