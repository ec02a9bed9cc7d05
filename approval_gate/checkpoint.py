"""Resumable checkpoint for an open approval request.

The main phase saves the request right after the ticket is created. If the
job is cancelled before a verdict is reached, the post phase loads it and
closes the ticket as not planned.
"""

from __future__ import annotations

import logging
from typing import Protocol

from approval_gate.exceptions import CheckpointError
from approval_gate.models import ApprovalRequest, CloseReason
from approval_gate.tracker import TicketTracker

logger = logging.getLogger(__name__)

REQUEST_KEY = "approval_request"
COMPLETED_KEY = "cleanup_completed"


class StateStore(Protocol):
    def save_state(self, key: str, value: str) -> None: ...

    def get_state(self, key: str) -> str:
        """Saved value, or an empty string when nothing was saved."""
        ...


class MemoryStateStore:
    """Dict-backed state store for tests and local runs."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def save_state(self, key: str, value: str) -> None:
        self.values[key] = value

    def get_state(self, key: str) -> str:
        return self.values.get(key, "")


class ApprovalCheckpoint:
    """Persists the in-flight request and whether it was finalized."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def save(self, request: ApprovalRequest) -> None:
        logger.debug("Saving approval request state: #%d", request.id)
        self._store.save_state(REQUEST_KEY, request.to_json())
        self._store.save_state(COMPLETED_KEY, "false")

    def load(self) -> ApprovalRequest | None:
        raw = self._store.get_state(REQUEST_KEY)
        if not raw:
            return None
        try:
            return ApprovalRequest.from_json(raw)
        except (ValueError, KeyError, TypeError) as exc:
            raise CheckpointError(f"Saved approval request is corrupt: {exc}") from exc

    def mark_completed(self) -> None:
        self._store.save_state(COMPLETED_KEY, "true")

    def is_completed(self) -> bool:
        return self._store.get_state(COMPLETED_KEY) == "true"


def run_cleanup(tracker: TicketTracker, checkpoint: ApprovalCheckpoint) -> None:
    """Close a ticket left open by a cancelled run.

    No-op when nothing was saved or the run already finalized its ticket.
    Never raises on tracker failures.
    """
    request = checkpoint.load()
    if request is None:
        logger.info("No approval request found for cleanup")
        return
    if checkpoint.is_completed():
        logger.info("Approval request #%d was already finalized", request.id)
        return

    logger.info("Closing approval request left open: %s", request.ticket_url)
    try:
        tracker.close_ticket(request.id, CloseReason.NOT_PLANNED)
    except Exception as exc:
        logger.warning("Failed to close issue #%d during cleanup: %s", request.id, exc)
