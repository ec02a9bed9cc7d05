"""Closes the ticket once a verdict is reached.

Approved  -> closing comment, closed as completed
Rejected  -> closing comment, closed as not planned
Timed out -> closing comment, closed as not planned when the timeout fails
             the step, as completed otherwise
"""

from __future__ import annotations

import logging

from approval_gate.checkpoint import ApprovalCheckpoint
from approval_gate.models import ApprovalRequest, CloseReason, Policy, Verdict, VerdictStatus
from approval_gate.tracker import TicketTracker

logger = logging.getLogger(__name__)


def close_reason(verdict: Verdict, policy: Policy) -> CloseReason:
    if verdict.status == VerdictStatus.APPROVED:
        return CloseReason.COMPLETED
    if verdict.status == VerdictStatus.REJECTED:
        return CloseReason.NOT_PLANNED
    return CloseReason.NOT_PLANNED if policy.fail_on_timeout else CloseReason.COMPLETED


def closing_message(verdict: Verdict, policy: Policy) -> str:
    if verdict.status == VerdictStatus.APPROVED:
        by = f" by @{', @'.join(verdict.approvers)}" if verdict.approvers else ""
        return (
            f"✅ **Approval Received{by}**\n\n"
            "The manual approval request has been approved."
        )
    if verdict.status == VerdictStatus.REJECTED:
        return "❌ **Approval Rejected**\n\nThe manual approval request has been rejected."
    outcome = "timed out" if policy.fail_on_timeout else "approved"
    return f"⏱️ **Approval Timed Out**\n\nThe manual approval request has been {outcome}."


class Finalizer:
    """Best-effort ticket finalization; never raises on tracker failures."""

    def __init__(
        self,
        tracker: TicketTracker,
        policy: Policy,
        checkpoint: ApprovalCheckpoint | None = None,
    ) -> None:
        self._tracker = tracker
        self._policy = policy
        self._checkpoint = checkpoint

    def finalize(self, verdict: Verdict, request: ApprovalRequest) -> None:
        message = closing_message(verdict, self._policy)
        reason = close_reason(verdict, self._policy)
        logger.info(message)

        try:
            self._tracker.add_comment(request.id, message)
        except Exception as exc:
            logger.warning("Failed to comment on issue #%d: %s", request.id, exc)

        try:
            self._tracker.close_ticket(request.id, reason)
        except Exception as exc:
            # Left unmarked so the post phase closes it.
            logger.warning("Failed to close issue #%d: %s", request.id, exc)
            return

        if self._checkpoint is not None:
            try:
                self._checkpoint.mark_completed()
            except Exception as exc:
                logger.warning("Failed to record finalization of issue #%d: %s", request.id, exc)
