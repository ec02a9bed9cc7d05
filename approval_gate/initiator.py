"""Opens the approval ticket and records the request checkpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from approval_gate.checkpoint import ApprovalCheckpoint
from approval_gate.models import ApprovalRequest, Policy, utcnow
from approval_gate.tracker import TicketTracker

logger = logging.getLogger(__name__)


class RequestInitiator:
    def __init__(
        self,
        tracker: TicketTracker,
        checkpoint: ApprovalCheckpoint,
        policy: Policy,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tracker = tracker
        self._checkpoint = checkpoint
        self._policy = policy
        self._clock = clock

    def open(self, title: str, body: str) -> ApprovalRequest:
        """Create the ticket and checkpoint the resulting request.

        Tracker failures propagate; nothing is saved in that case.
        """
        ticket = self._tracker.create_ticket(title, body)
        request = ApprovalRequest.for_ticket(
            ticket,
            self._policy.timeout_seconds,
            created_at=self._clock(),
        )
        self._checkpoint.save(request)
        logger.info("Approval request created at %s", request.ticket_url)
        return request
