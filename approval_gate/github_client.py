"""GitHub Issues adapter for the ticket tracker.

Wraps the GitHub REST API (v3) with ``httpx``:
- issues: create, get, close (with state reason)
- issue comments: list (paginated, ``since`` filter), add
- collaborator permission and team membership checks
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from approval_gate.exceptions import TicketTrackerError
from approval_gate.models import CloseReason, Comment, Ticket, TicketState

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "issue-approval-gate/1.0"
_WRITE_PERMISSIONS = frozenset({"write", "maintain", "admin"})
_PAGE_SIZE = 100


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _ticket_from(data: dict[str, Any]) -> Ticket:
    return Ticket(
        id=data["number"],
        url=data["html_url"],
        state=TicketState(data.get("state", "open")),
    )


def _comment_from(data: dict[str, Any]) -> Comment:
    user = data.get("user") or {}
    return Comment(
        id=data["id"],
        body=data.get("body") or "",
        author=user.get("login", "ghost"),
        created_at=_parse_timestamp(data["created_at"]),
    )


class GitHubTicketTracker:
    """Ticket tracker backed by issues of a single GitHub repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = DEFAULT_API_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._issues_path = f"/repos/{owner}/{repo}/issues"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubTicketTracker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Send a request, mapping failures to ``TicketTrackerError``.

        Returns ``None`` for a 404 when ``allow_not_found`` is set.
        """
        logger.debug("GitHub %s %s (%s)", method, url, operation)
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TicketTrackerError(operation, str(exc)) from exc

        if allow_not_found and response.status_code == 404:
            return None
        if response.is_error:
            raise TicketTrackerError(
                operation,
                response.text[:500],
                status_code=response.status_code,
            )
        return response

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def create_ticket(self, title: str, body: str) -> Ticket:
        response = self._request(
            "create_ticket", "POST", self._issues_path, json={"title": title, "body": body}
        )
        ticket = _ticket_from(response.json())
        logger.info("Successfully created issue: %s", ticket.url)
        return ticket

    def get_ticket(self, ticket_id: int) -> Ticket:
        response = self._request("get_ticket", "GET", f"{self._issues_path}/{ticket_id}")
        return _ticket_from(response.json())

    def close_ticket(self, ticket_id: int, reason: CloseReason | None = None) -> None:
        payload: dict[str, Any] = {"state": "closed"}
        if reason is not None:
            payload["state_reason"] = CloseReason(reason).value
        self._request("close_ticket", "PATCH", f"{self._issues_path}/{ticket_id}", json=payload)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def list_comments(self, ticket_id: int, since: datetime | None = None) -> list[Comment]:
        params: dict[str, Any] | None = {"per_page": _PAGE_SIZE}
        if since is not None:
            params["since"] = _format_timestamp(since)

        url: str | None = f"{self._issues_path}/{ticket_id}/comments"
        comments: list[Comment] = []
        while url:
            response = self._request("list_comments", "GET", url, params=params)
            comments.extend(_comment_from(item) for item in response.json())
            # The next link already carries the query string.
            url = response.links.get("next", {}).get("url")
            params = None

        logger.debug("Fetched %d comments for issue #%d", len(comments), ticket_id)
        return comments

    def add_comment(self, ticket_id: int, body: str) -> None:
        self._request(
            "add_comment", "POST", f"{self._issues_path}/{ticket_id}/comments", json={"body": body}
        )

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def check_author_permission(self, author: str) -> bool:
        response = self._request(
            "check_author_permission",
            "GET",
            f"/repos/{self.owner}/{self.repo}/collaborators/{author}/permission",
            allow_not_found=True,
        )
        if response is None:
            return False
        return response.json().get("permission") in _WRITE_PERMISSIONS

    def check_team_membership(self, team: str, author: str) -> bool:
        response = self._request(
            "check_team_membership",
            "GET",
            f"/orgs/{self.owner}/teams/{team}/memberships/{author}",
            allow_not_found=True,
        )
        if response is None:
            return False
        return response.json().get("state") == "active"
