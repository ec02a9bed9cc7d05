"""Shared test fixtures for the approval gate."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from approval_gate.checkpoint import ApprovalCheckpoint, MemoryStateStore
from approval_gate.exceptions import TicketTrackerError
from approval_gate.models import (
    ApprovalRequest,
    CloseReason,
    Comment,
    Policy,
    Ticket,
    TicketState,
)

REPO_URL = "https://github.com/acme/widgets"


class FakeTicketTracker:
    """In-memory ticket tracker implementing the TicketTracker protocol.

    Failures are injected per operation via ``fail``; every call is recorded
    in ``calls`` as ``(operation, args)``.
    """

    def __init__(self, permitted: set[str] | None = None) -> None:
        self._lock = threading.Lock()
        self.tickets: dict[int, Ticket] = {}
        self.comments: dict[int, list[Comment]] = {}
        self.posted: dict[int, list[str]] = {}
        self.close_reasons: dict[int, CloseReason | None] = {}
        self.permitted = set(permitted or ())
        self.team_members: dict[str, set[str]] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, int | None] = {}
        self._next_id = 1
        self._next_comment_id = 1000
        self.on_call: Callable[[str], None] | None = None

    # -- test helpers ---------------------------------------------------

    def fail(self, operation: str, times: int | None = None) -> None:
        """Make ``operation`` raise, ``times`` times or forever when None."""
        self.failures[operation] = times

    def post(self, ticket_id: int, author: str, body: str) -> Comment:
        with self._lock:
            comment = Comment(
                id=self._next_comment_id,
                body=body,
                author=author,
                created_at=datetime.now(timezone.utc),
            )
            self._next_comment_id += 1
            self.comments.setdefault(ticket_id, []).append(comment)
            return comment

    def close_externally(self, ticket_id: int) -> None:
        with self._lock:
            ticket = self.tickets[ticket_id]
            self.tickets[ticket_id] = Ticket(ticket.id, ticket.url, TicketState.CLOSED)

    def count(self, operation: str) -> int:
        with self._lock:
            return sum(1 for op, _ in self.calls if op == operation)

    def _record(self, operation: str, *args) -> None:
        with self._lock:
            self.calls.append((operation, args))
            if operation in self.failures:
                remaining = self.failures[operation]
                if remaining is not None:
                    if remaining <= 1:
                        del self.failures[operation]
                    else:
                        self.failures[operation] = remaining - 1
                raise TicketTrackerError(operation, "injected failure", status_code=502)
        if self.on_call is not None:
            self.on_call(operation)

    # -- TicketTracker --------------------------------------------------

    def create_ticket(self, title: str, body: str) -> Ticket:
        self._record("create_ticket", title, body)
        with self._lock:
            ticket = Ticket(self._next_id, f"{REPO_URL}/issues/{self._next_id}")
            self._next_id += 1
            self.tickets[ticket.id] = ticket
            return ticket

    def get_ticket(self, ticket_id: int) -> Ticket:
        self._record("get_ticket", ticket_id)
        with self._lock:
            return self.tickets[ticket_id]

    def list_comments(self, ticket_id: int, since: datetime | None = None) -> list[Comment]:
        self._record("list_comments", ticket_id, since)
        with self._lock:
            return list(self.comments.get(ticket_id, []))

    def add_comment(self, ticket_id: int, body: str) -> None:
        self._record("add_comment", ticket_id, body)
        with self._lock:
            self.posted.setdefault(ticket_id, []).append(body)

    def close_ticket(self, ticket_id: int, reason: CloseReason | None = None) -> None:
        self._record("close_ticket", ticket_id, reason)
        with self._lock:
            ticket = self.tickets.get(ticket_id) or Ticket(ticket_id, f"{REPO_URL}/issues/{ticket_id}")
            self.tickets[ticket_id] = Ticket(ticket.id, ticket.url, TicketState.CLOSED)
            self.close_reasons[ticket_id] = reason

    def check_author_permission(self, author: str) -> bool:
        self._record("check_author_permission", author)
        return author in self.permitted

    def check_team_membership(self, team: str, author: str) -> bool:
        self._record("check_team_membership", team, author)
        return author in self.team_members.get(team, set())


@pytest.fixture
def tracker() -> FakeTicketTracker:
    return FakeTicketTracker(permitted={"alice", "bob"})


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def checkpoint(store) -> ApprovalCheckpoint:
    return ApprovalCheckpoint(store)


@pytest.fixture
def policy() -> Policy:
    return Policy(
        timeout_seconds=60,
        poll_interval_seconds=5,
        approval_keywords=["approved!"],
        rejection_keywords=["reject!"],
        fail_on_rejection=True,
        fail_on_timeout=True,
    )


@pytest.fixture
def fast_policy() -> Callable[..., Policy]:
    """Policy factory with sub-second timings for engine tests."""

    def _make(**overrides) -> Policy:
        values = {
            "timeout_seconds": 2.0,
            "poll_interval_seconds": 0.02,
            "approval_keywords": ["approved!"],
            "rejection_keywords": ["reject!"],
            "fail_on_rejection": True,
            "fail_on_timeout": True,
        }
        values.update(overrides)
        return Policy(**values)

    return _make


@pytest.fixture
def open_request(tracker) -> Callable[[Policy], ApprovalRequest]:
    """Create a ticket on the fake tracker and return its request."""

    def _make(policy: Policy) -> ApprovalRequest:
        ticket = tracker.create_ticket("Approval Request", "body")
        tracker.calls.clear()
        return ApprovalRequest.for_ticket(
            ticket, policy.timeout_seconds, created_at=datetime.now(timezone.utc)
        )

    return _make


@pytest.fixture
def sample_request() -> ApprovalRequest:
    created = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
    return ApprovalRequest(
        id=42,
        ticket_url=f"{REPO_URL}/issues/42",
        created_at=created,
        expires_at=created + timedelta(seconds=60),
    )


@pytest.fixture
def runner_env(monkeypatch, tmp_path):
    """Minimal GitHub Actions environment; returns the output/state file paths."""
    for name in ("GITHUB_TOKEN", "INPUT_GITHUB-TOKEN", "RUNNER_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    output = tmp_path / "output.txt"
    state = tmp_path / "state.txt"
    output.touch()
    state.touch()
    monkeypatch.setenv("GITHUB_TOKEN", "ghs_test_fake")
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")
    monkeypatch.setenv("GITHUB_WORKFLOW", "deploy")
    monkeypatch.setenv("GITHUB_JOB", "release")
    monkeypatch.setenv("GITHUB_ACTION", "gate")
    monkeypatch.setenv("GITHUB_ACTOR", "carol")
    monkeypatch.setenv("GITHUB_RUN_ID", "777")
    monkeypatch.setenv("GITHUB_OUTPUT", str(output))
    monkeypatch.setenv("GITHUB_STATE", str(state))
    return {"output": output, "state": state}
