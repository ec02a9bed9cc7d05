"""Comment decision function.

Maps one comment plus the keyword policy to approved, rejected or
indeterminate. Rejection keywords are checked before approval keywords, and
a keyword class only fires when the author passes the permission check.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from approval_gate.models import Comment, Decision, Policy

logger = logging.getLogger(__name__)

PermissionCheck = Callable[[str], bool]


def _matches(body: str, keywords: Iterable[str]) -> bool:
    return any(k.lower() in body for k in keywords)


def decide(comment: Comment, policy: Policy, is_permitted: PermissionCheck) -> Decision:
    """Evaluate a single comment.

    ``is_permitted`` is called at most once per matched keyword class and is
    never cached; it may raise ``PermissionCheckError``, which propagates.
    """
    body = comment.body.lower()
    logger.debug("Processing comment from %s: %r", comment.author, body[:100])

    if _matches(body, policy.rejection_keywords):
        if is_permitted(comment.author):
            return Decision.REJECTED
        logger.debug("Rejection ignored from unauthorized user %s", comment.author)

    if _matches(body, policy.approval_keywords):
        if is_permitted(comment.author):
            return Decision.APPROVED
        logger.debug("Approval ignored from unauthorized user %s", comment.author)

    return Decision.INDETERMINATE
