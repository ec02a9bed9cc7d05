"""Data models shared by the approval lifecycle.

Plain dataclasses for observed tracker data and run state, a frozen pydantic
model for the validated approval policy.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_APPROVAL_KEYWORDS = ("approved!",)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(str, Enum):
    """State reason sent when closing a ticket."""

    COMPLETED = "completed"
    NOT_PLANNED = "not_planned"


class VerdictStatus(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    TIMED_OUT = "timed-out"


class Decision(str, Enum):
    """Outcome of evaluating a single comment."""

    APPROVED = "approved"
    REJECTED = "rejected"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class Ticket:
    """A tracking ticket as reported by the tracker."""
    id: int
    url: str
    state: TicketState = TicketState.OPEN


@dataclass(frozen=True)
class Comment:
    """One response observed on a ticket."""
    id: int
    body: str
    author: str
    created_at: datetime


@dataclass(frozen=True)
class ApprovalRequest:
    """Identity of an in-flight approval.

    Created once when the ticket is opened and persisted as the run's
    checkpoint so that the post phase can close the ticket if the job is
    cancelled.
    """
    id: int
    ticket_url: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def for_ticket(
        cls,
        ticket: Ticket,
        timeout_seconds: float,
        created_at: datetime,
    ) -> ApprovalRequest:
        return cls(
            id=ticket.id,
            ticket_url=ticket.url,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=timeout_seconds),
        )

    def seconds_remaining(self, now: datetime) -> float:
        """Seconds left until the request expires, never negative."""
        return max(0.0, (self.expires_at - now).total_seconds())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ticket_url": self.ticket_url,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> ApprovalRequest:
        """Decode a request saved with ``to_json``.

        Raises ``ValueError``, ``KeyError`` or ``TypeError`` on malformed input.
        """
        data = json.loads(raw)
        return cls(
            id=int(data["id"]),
            ticket_url=str(data["ticket_url"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


@dataclass(frozen=True)
class Verdict:
    """Terminal outcome of an approval request.

    Use the ``approved`` / ``rejected`` / ``timed_out`` constructors; the
    variant invariants are checked on creation.
    """
    status: VerdictStatus
    ticket_url: str
    failed: bool
    approvers: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.status == VerdictStatus.APPROVED and self.failed:
            raise ValueError("an approved verdict cannot be failed")
        if self.status == VerdictStatus.APPROVED and not self.approvers:
            raise ValueError("an approved verdict needs an approver")
        if self.status == VerdictStatus.TIMED_OUT and self.approvers:
            raise ValueError("a timed-out verdict has no approvers")

    @classmethod
    def approved(cls, ticket_url: str, approver: str) -> Verdict:
        return cls(VerdictStatus.APPROVED, ticket_url, failed=False, approvers=(approver,))

    @classmethod
    def rejected(
        cls,
        ticket_url: str,
        approvers: tuple[str, ...] | list[str],
        failed: bool,
    ) -> Verdict:
        return cls(VerdictStatus.REJECTED, ticket_url, failed=failed, approvers=tuple(approvers))

    @classmethod
    def timed_out(cls, ticket_url: str, failed: bool) -> Verdict:
        return cls(VerdictStatus.TIMED_OUT, ticket_url, failed=failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "ticket_url": self.ticket_url,
            "failed": self.failed,
            "approvers": list(self.approvers),
            "timestamp": self.timestamp.isoformat(),
        }


def _normalize_keywords(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [k.strip().lower() for k in value if k and k.strip()]


class Policy(BaseModel):
    """Validated approval policy.

    Keywords are stored lower-cased; matching is a case-insensitive substring
    test against the lower-cased comment body.
    """

    model_config = ConfigDict(frozen=True)

    timeout_seconds: float = Field(gt=0)
    poll_interval_seconds: float = Field(gt=0)
    approval_keywords: tuple[str, ...] = DEFAULT_APPROVAL_KEYWORDS
    rejection_keywords: tuple[str, ...] = ()  # no default, empty disables rejection
    fail_on_rejection: bool = True
    fail_on_timeout: bool = True

    @field_validator("approval_keywords", mode="before")
    @classmethod
    def _approval_keywords(cls, value: Any) -> tuple[str, ...]:
        keywords = _normalize_keywords(value)
        return tuple(keywords) if keywords else DEFAULT_APPROVAL_KEYWORDS

    @field_validator("rejection_keywords", mode="before")
    @classmethod
    def _rejection_keywords(cls, value: Any) -> tuple[str, ...]:
        return tuple(_normalize_keywords(value))
