"""Who may approve or reject.

Approver entries:
- ``anyone``: every commenter
- ``author``: the workflow actor that triggered the run
- ``<login>``: an explicitly listed user (case-insensitive)
- ``team:<slug>``: active members of an organization team

With no entries, anyone with write, maintain or admin access to the
repository is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from approval_gate.exceptions import PermissionCheckError
from approval_gate.tracker import TicketTracker

logger = logging.getLogger(__name__)

ANYONE = "anyone"
AUTHOR = "author"
TEAM_PREFIX = "team:"


class PermissionChecker:
    """Decides whether a comment author may resolve the approval."""

    def __init__(
        self,
        tracker: TicketTracker,
        allowed_approvers: Iterable[str] = (),
        actor: str = "",
    ) -> None:
        self._tracker = tracker
        self._approvers = [a.strip() for a in allowed_approvers if a and a.strip()]
        self._actor = actor

    @property
    def allowed_approvers(self) -> list[str]:
        return list(self._approvers)

    def is_allowed(self, author: str) -> bool:
        """Check the author against the approver list.

        Raises ``PermissionCheckError`` when no rule granted access and a
        tracker lookup failed, since the answer is then unknown rather than
        "no".
        """
        logger.debug(
            "Checking if %s may approve (allowed approvers: %s)",
            author,
            self._approvers or "repository writers",
        )
        lowered = [a.lower() for a in self._approvers]

        if ANYONE in lowered:
            return True

        if AUTHOR in lowered and self._actor and author == self._actor:
            logger.debug("%s is allowed (workflow actor)", author)
            return True

        if author.lower() in lowered:
            logger.debug("%s is allowed (explicitly listed)", author)
            return True

        lookup_failed = False
        for approver in self._approvers:
            if not approver.lower().startswith(TEAM_PREFIX):
                continue
            team = approver[len(TEAM_PREFIX):]
            try:
                if self._tracker.check_team_membership(team, author):
                    logger.debug("%s is allowed (member of team %s)", author, team)
                    return True
            except Exception as exc:
                lookup_failed = True
                logger.warning(
                    "Failed to check membership of %s in team %s: %s", author, team, exc
                )

        if not self._approvers:
            try:
                if self._tracker.check_author_permission(author):
                    logger.debug("%s is allowed (repository write access)", author)
                    return True
            except Exception as exc:
                lookup_failed = True
                logger.warning("Failed to check repository permission for %s: %s", author, exc)

        if lookup_failed:
            raise PermissionCheckError(author)

        logger.debug("%s is not an allowed approver", author)
        return False
