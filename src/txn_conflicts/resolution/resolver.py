"""Conflict resolution against the transaction REST API.

The in-memory conflict list is only mutated after the API confirms a
resolution. On any failure the list is left exactly as it was, the host is
notified, and the exception propagates to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from txn_conflicts.schemas import Resolution

if TYPE_CHECKING:
    from txn_conflicts.detection.state import ConflictState
    from txn_conflicts.transactions_client import TransactionsClient

logger = logging.getLogger(__name__)


class ConflictResolutionError(Exception):
    """Base exception for resolution errors raised before any API call."""

    pass


class ConflictNotFoundError(ConflictResolutionError):
    """No conflict in the current list is keyed by this manual transaction id."""

    def __init__(self, conflict_id: str):
        self.conflict_id = conflict_id
        super().__init__(f"Conflict not found: {conflict_id}")


def log_notifier(message: str) -> None:
    """Default user-facing notifier: log the message."""
    logger.error(message)


class ConflictResolver:
    """Applies resolution decisions and updates the conflict list.

    The is_resolving flag raised here is informational only; it does not
    stop a scan from replacing the list afterwards.
    """

    def __init__(
        self,
        client: TransactionsClient,
        state: ConflictState,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            client: Transaction API client.
            state: Shared read model holding the conflict list.
            notify: Called with a user-facing message when a resolution fails.
        """
        self.client = client
        self.state = state
        self.notify = notify or log_notifier

    def resolve_conflict(self, conflict_id: str, resolution: Resolution | str) -> bool:
        """Resolve the conflict keyed by a manual transaction id.

        Args:
            conflict_id: ID of the manual transaction in the conflict.
            resolution: keep-both, keep-manual or keep-bank.

        Returns:
            True once the API confirmed the resolution.

        Raises:
            ConflictNotFoundError: If no conflict has this manual id (no API call made).
            PersistenceError: If the API call failed (list unchanged).
        """
        resolution = Resolution.parse(resolution)
        self.state.begin_resolving()
        try:
            conflict = self.state.find(conflict_id)
            if conflict is None:
                raise ConflictNotFoundError(conflict_id)

            self.client.resolve_conflict(conflict, resolution)

            removed = self.state.remove(conflict_id)
            logger.info(
                "Conflict %s resolved as %s (%d pair(s) removed)",
                conflict_id,
                resolution.value,
                removed,
            )
            return True
        except Exception as e:
            logger.error("Error resolving conflict %s: %s", conflict_id, e)
            self.notify("Failed to resolve conflict")
            raise
        finally:
            self.state.end_resolving()

    def resolve_all_conflicts(self, resolution: Resolution | str) -> bool:
        """Resolve every conflict in the current list with one batch request.

        Returns:
            True once the API confirmed the batch, False if there was nothing
            to resolve (no API call made).

        Raises:
            PersistenceError: If the API call failed (list unchanged).
        """
        resolution = Resolution.parse(resolution)
        conflicts = self.state.conflicts
        if not conflicts:
            logger.debug("No conflicts to resolve")
            return False

        self.state.begin_resolving()
        try:
            self.client.resolve_conflicts(conflicts, resolution)
            self.state.clear()
            logger.info("Resolved all %d conflict(s) as %s", len(conflicts), resolution.value)
            return True
        except Exception as e:
            logger.error("Error resolving conflicts: %s", e)
            self.notify("Failed to resolve conflicts")
            raise
        finally:
            self.state.end_resolving()
