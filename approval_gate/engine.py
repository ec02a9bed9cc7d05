"""Approval lifecycle engine.

Races a timeout against a poll loop for one approval request:

- Timeout activity: a ``threading.Timer`` armed for the time left until the
  request expires.
- Poll activity: a daemon thread that, every poll interval, checks whether
  the ticket was closed and then runs new comments through ``decide``.
- ``ResolutionLatch``: a single-assignment cell. Whichever activity claims it
  first finalizes the ticket and publishes the verdict; later resolutions are
  discarded.

States: pending -> approved | rejected | timed-out (terminal).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from approval_gate.decision import PermissionCheck, decide
from approval_gate.exceptions import PermissionCheckError
from approval_gate.finalizer import Finalizer
from approval_gate.models import (
    ApprovalRequest,
    Decision,
    Policy,
    TicketState,
    Verdict,
    utcnow,
)
from approval_gate.tracker import TicketTracker

logger = logging.getLogger(__name__)

PENDING = "pending"
# Cycles a comment is retried when its author's permissions cannot be looked up.
MAX_PERMISSION_ATTEMPTS = 3


class ResolutionLatch:
    """At-most-once resolution guard.

    ``claim`` is the compare-and-set that picks the winner; only the winner
    calls ``publish``. ``wait`` blocks until a verdict is published.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed_by: str | None = None
        self._verdict: Verdict | None = None
        self._published = threading.Event()

    @property
    def claimed_by(self) -> str | None:
        with self._lock:
            return self._claimed_by

    @property
    def verdict(self) -> Verdict | None:
        with self._lock:
            return self._verdict

    def claim(self, source: str) -> bool:
        with self._lock:
            if self._claimed_by is not None:
                return False
            self._claimed_by = source
            return True

    def publish(self, verdict: Verdict) -> None:
        with self._lock:
            if self._claimed_by is None:
                raise RuntimeError("publish() called before claim()")
            if self._verdict is not None:
                raise RuntimeError("verdict already published")
            self._verdict = verdict
        self._published.set()

    def wait(self, timeout: float | None = None) -> Verdict | None:
        self._published.wait(timeout)
        return self.verdict


class LifecycleEngine:
    """Waits for one approval request to reach a verdict."""

    def __init__(
        self,
        tracker: TicketTracker,
        policy: Policy,
        request: ApprovalRequest,
        finalizer: Finalizer,
        is_permitted: PermissionCheck,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tracker = tracker
        self._policy = policy
        self._request = request
        self._finalizer = finalizer
        self._is_permitted = is_permitted
        self._clock = clock

        self._latch = ResolutionLatch()
        self._stop = threading.Event()
        self._start_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._poller: threading.Thread | None = None
        # Comment ids already run through decide(); only touched by the poller.
        self._seen: set[int] = set()
        self._permission_failures: dict[int, int] = {}
        self.cycles = 0

    @property
    def request(self) -> ApprovalRequest:
        return self._request

    @property
    def state(self) -> str:
        verdict = self._latch.verdict
        return verdict.status.value if verdict is not None else PENDING

    @property
    def resolved_by(self) -> str | None:
        """Which activity won: ``poll`` or ``timeout``."""
        return self._latch.claimed_by

    def await_verdict(self, wait_timeout: float | None = None) -> Verdict:
        """Block until the request resolves and return its verdict.

        The ticket has already been finalized when this returns. Calling it
        again returns the same verdict. ``wait_timeout`` bounds the wait and
        raises ``TimeoutError``; it is meant for callers that must not block
        forever, independently of the request's own timeout.
        """
        self._start()
        verdict = self._latch.wait(wait_timeout)
        if verdict is None:
            raise TimeoutError(f"No verdict for {self._request.ticket_url} within {wait_timeout}s")
        return verdict

    def _start(self) -> None:
        with self._start_lock:
            if self._poller is not None:
                return
            remaining = self._request.seconds_remaining(self._clock())
            logger.debug(
                "Starting approval request process with %s (%.1fs remaining)",
                self._request.to_dict(),
                remaining,
            )
            logger.info("Waiting for approval at %s", self._request.ticket_url)

            self._timer = threading.Timer(remaining, self._on_timeout)
            self._timer.daemon = True
            self._poller = threading.Thread(
                target=self._poll_loop, daemon=True, name=f"approval-poll-{self._request.id}"
            )
            self._timer.start()
            self._poller.start()

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    def _on_timeout(self) -> None:
        logger.info("Approval request timed out")
        self._resolve(
            Verdict.timed_out(self._request.ticket_url, failed=self._policy.fail_on_timeout),
            source="timeout",
        )

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            try:
                verdict = self._poll_once()
            except Exception:
                logger.exception("Unexpected error while polling %s", self._request.ticket_url)
                verdict = None

            if verdict is not None:
                self._resolve(verdict, source="poll")
                return

            if self._stop.is_set():
                return
            logger.info("Still waiting for approval at %s", self._request.ticket_url)
            if self._stop.wait(self._policy.poll_interval_seconds):
                return

    def _poll_once(self) -> Verdict | None:
        """Run one poll cycle; returns a verdict or ``None`` to keep waiting."""
        self.cycles += 1
        url = self._request.ticket_url

        if self._stop.is_set():
            return None
        try:
            ticket = self._tracker.get_ticket(self._request.id)
        except Exception as exc:
            logger.warning("Error checking issue status: %s", exc)
        else:
            if ticket.state == TicketState.CLOSED:
                # The closer and their reason are unknown; treat it as a failing rejection.
                logger.info("Issue was closed unexpectedly, treating as rejection")
                return Verdict.rejected(url, (), failed=True)

        if self._stop.is_set():
            return None
        try:
            comments = self._tracker.list_comments(self._request.id, since=self._request.created_at)
        except Exception as exc:
            logger.warning("Error checking comments: %s", exc)
            return None
        logger.debug("Found %d comments to process", len(comments))

        for comment in comments:
            if comment.id in self._seen:
                continue
            if self._stop.is_set():
                return None
            try:
                decision = decide(comment, self._policy, self._permitted)
            except PermissionCheckError as exc:
                attempts = self._permission_failures.get(comment.id, 0) + 1
                self._permission_failures[comment.id] = attempts
                if attempts >= MAX_PERMISSION_ATTEMPTS:
                    logger.warning(
                        "%s after %d attempts, ignoring comment %d", exc, attempts, comment.id
                    )
                    self._seen.add(comment.id)
                else:
                    logger.warning("%s, retrying comment %d next cycle", exc, comment.id)
                continue
            self._seen.add(comment.id)

            if decision == Decision.APPROVED:
                return Verdict.approved(url, comment.author)
            if decision == Decision.REJECTED:
                return Verdict.rejected(
                    url, (comment.author,), failed=self._policy.fail_on_rejection
                )
            logger.debug("No relevant keywords found in comment from %s", comment.author)

        return None

    def _permitted(self, author: str) -> bool:
        # Lookups go to the tracker too; none are sent once resolved.
        if self._stop.is_set():
            return False
        return self._is_permitted(author)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, verdict: Verdict, source: str) -> bool:
        if not self._latch.claim(source):
            logger.debug(
                "Discarding %s verdict from %s: already resolved by %s",
                verdict.status.value,
                source,
                self._latch.claimed_by,
            )
            return False

        self._stop.set()
        if self._timer is not None:
            self._timer.cancel()

        logger.debug("Approval response from %s: %s", source, verdict.to_dict())
        try:
            self._finalizer.finalize(verdict, self._request)
        finally:
            self._latch.publish(verdict)
        return True
