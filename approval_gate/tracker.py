"""Ticket-tracker capability set consumed by the approval lifecycle."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from approval_gate.models import CloseReason, Comment, Ticket


@runtime_checkable
class TicketTracker(Protocol):
    """Operations the lifecycle needs from the ticket tracker.

    Implementations raise ``TicketTrackerError`` on failure.
    ``GitHubTicketTracker`` is the production adapter.
    """

    def create_ticket(self, title: str, body: str) -> Ticket: ...

    def get_ticket(self, ticket_id: int) -> Ticket: ...

    def list_comments(
        self, ticket_id: int, since: datetime | None = None
    ) -> list[Comment]:
        """Comments in chronological order, optionally only those since ``since``."""
        ...

    def add_comment(self, ticket_id: int, body: str) -> None: ...

    def close_ticket(
        self, ticket_id: int, reason: CloseReason | None = None
    ) -> None: ...

    def check_author_permission(self, author: str) -> bool:
        """True when the author has write, maintain or admin access."""
        ...

    def check_team_membership(self, team: str, author: str) -> bool: ...
