"""Similarity scoring for manual/bank transaction pairs.

Each pair is scored by three additive signals:
- Date: within a small window of days
- Amount: exact match (in minor units)
- Payee: case-insensitive equality, or substring containment

The scorer is pure: no I/O, no state, same inputs give the same score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from txn_conflicts.schemas import ConflictType, Transaction

logger = logging.getLogger(__name__)


@dataclass
class SimilaritySignal:
    """A single factor that contributed to a similarity score."""

    signal: ConflictType
    weight: float
    detail: str


@dataclass
class SimilarityScore:
    """Result of scoring one manual/imported pair."""

    score: float
    conflict_type: ConflictType | None = None
    signals: list[SimilaritySignal] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "score": self.score,
            "conflict_type": self.conflict_type.value if self.conflict_type else None,
            "signals": [
                {"signal": s.signal.value, "weight": s.weight, "detail": s.detail}
                for s in self.signals
            ],
        }


class SimilarityScorer:
    """Scores how likely a manual transaction duplicates a bank import.

    Weights add up to 1.0 when every factor matches:
    - Date within window: 0.30
    - Amount equal: 0.40
    - Payee equal: 0.30 (or 0.20 when one contains the other)
    """

    WEIGHT_DATE = 0.30
    WEIGHT_AMOUNT = 0.40
    WEIGHT_PAYEE_EXACT = 0.30
    WEIGHT_PAYEE_PARTIAL = 0.20

    # Amounts are integers, so this is an exact comparison
    AMOUNT_EPSILON = 0.01

    def __init__(self, date_window_days: int = 2) -> None:
        """Initialize the scorer.

        Args:
            date_window_days: Maximum day difference that still counts as a date match.
        """
        self.date_window_days = date_window_days

    def score(self, manual: Transaction, imported: Transaction) -> SimilarityScore:
        """Score a manual transaction against an imported one.

        Args:
            manual: Manually entered transaction.
            imported: Bank-imported transaction.

        Returns:
            SimilarityScore. conflict_type is None when no factor matched.
        """
        signals: list[SimilaritySignal] = []

        date_signal = self._score_date(manual.date, imported.date)
        if date_signal:
            signals.append(date_signal)

        amount_signal = self._score_amount(manual.amount, imported.amount)
        if amount_signal:
            signals.append(amount_signal)

        payee_signal = self._score_payee(manual.display_payee, imported.display_payee)
        if payee_signal:
            signals.append(payee_signal)

        # Round away float drift (0.7 + 0.2 != 0.9)
        total = round(sum(s.weight for s in signals), 4)

        if not signals:
            return SimilarityScore(score=0.0)
        if len(signals) > 1:
            conflict_type = ConflictType.MULTIPLE
        else:
            conflict_type = signals[0].signal

        return SimilarityScore(score=total, conflict_type=conflict_type, signals=signals)

    def _score_date(self, first: str | date, second: str | date) -> SimilaritySignal | None:
        first_date = parse_date(first)
        second_date = parse_date(second)
        if first_date is None or second_date is None:
            logger.debug("Unparseable date in pair: %r vs %r", first, second)
            return None

        days_diff = abs((first_date - second_date).days)
        if days_diff <= self.date_window_days:
            return SimilaritySignal(
                signal=ConflictType.DATE,
                weight=self.WEIGHT_DATE,
                detail=_describe_days(days_diff),
            )
        return None

    def _score_amount(self, first: int, second: int) -> SimilaritySignal | None:
        if abs(first - second) < self.AMOUNT_EPSILON:
            return SimilaritySignal(
                signal=ConflictType.AMOUNT,
                weight=self.WEIGHT_AMOUNT,
                detail=f"exact: {first}",
            )
        return None

    def _score_payee(self, first: str, second: str) -> SimilaritySignal | None:
        first_lower = first.lower()
        second_lower = second.lower()

        # Two empty payees are equal; one empty payee is contained in any other
        if first_lower == second_lower:
            return SimilaritySignal(
                signal=ConflictType.PAYEE,
                weight=self.WEIGHT_PAYEE_EXACT,
                detail="exact",
            )

        # Handles "Amazon" vs "Amazon Marketplace"
        if first_lower in second_lower or second_lower in first_lower:
            return SimilaritySignal(
                signal=ConflictType.PAYEE,
                weight=self.WEIGHT_PAYEE_PARTIAL,
                detail="contains",
            )

        return None


def _describe_days(days: int) -> str:
    if days == 0:
        return "same day"
    if days == 1:
        return "1 day"
    return f"{days} days"


def parse_date(value: str | date | None) -> date | None:
    """Parse a calendar date, ignoring any time part.

    Args:
        value: Date as ISO string, date or datetime.

    Returns:
        date or None if parsing fails.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


_default_scorer = SimilarityScorer()


def calculate_similarity(manual: Transaction, imported: Transaction) -> SimilarityScore:
    """Score a pair with the default weights and date window."""
    return _default_scorer.score(manual, imported)
