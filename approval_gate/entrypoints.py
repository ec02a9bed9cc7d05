"""Main and post phases of the approval step.

main: open the approval issue, wait for a verdict, publish outputs.
post: close the issue if the main phase never reached a verdict.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from approval_gate.actions_runtime import ActionsStateStore, set_failed, set_output
from approval_gate.checkpoint import ApprovalCheckpoint, StateStore, run_cleanup
from approval_gate.config import Settings, load_settings
from approval_gate.content import build_content
from approval_gate.engine import LifecycleEngine
from approval_gate.exceptions import ApprovalGateError, CheckpointError, ConfigurationError
from approval_gate.finalizer import Finalizer
from approval_gate.github_client import GitHubTicketTracker
from approval_gate.initiator import RequestInitiator
from approval_gate.models import Verdict, VerdictStatus
from approval_gate.permissions import PermissionChecker
from approval_gate.tracker import TicketTracker

logger = logging.getLogger(__name__)


def make_tracker(settings: Settings) -> GitHubTicketTracker:
    env = settings.env
    return GitHubTicketTracker(settings.token, env.owner, env.repo, env.api_url)


def request_approval(
    settings: Settings,
    tracker: TicketTracker,
    store: StateStore,
    environ: Mapping[str, str] | None = None,
) -> Verdict:
    """Open the approval issue and block until it resolves."""
    policy = settings.policy
    checkpoint = ApprovalCheckpoint(store)
    content = build_content(settings.inputs, policy, settings.env, environ)

    request = RequestInitiator(tracker, checkpoint, policy).open(content.title, content.body)
    permissions = PermissionChecker(tracker, settings.inputs.approver_list, settings.env.actor)
    engine = LifecycleEngine(
        tracker,
        policy,
        request,
        Finalizer(tracker, policy, checkpoint),
        permissions.is_allowed,
    )
    return engine.await_verdict()


def report_verdict(verdict: Verdict, environ: Mapping[str, str] | None = None) -> int:
    """Publish step outputs; returns the exit code."""
    set_output("status", verdict.status.value, environ)
    set_output("approvers", ",".join(verdict.approvers), environ)
    set_output("issue-url", verdict.ticket_url, environ)

    if verdict.status == VerdictStatus.APPROVED:
        logger.info("✅ Approval granted by: %s", ", ".join(verdict.approvers))
        return 0

    if verdict.status == VerdictStatus.REJECTED:
        message = "❌ Approval request was rejected"
    else:
        message = "⏱️ Approval request timed out"
    if verdict.failed:
        return set_failed(message)
    logger.info(message)
    return 0


def main_phase(
    tracker: TicketTracker | None = None,
    store: StateStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        return set_failed(str(exc))

    owned = tracker is None
    active_tracker = make_tracker(settings) if tracker is None else tracker
    try:
        verdict = request_approval(
            settings, active_tracker, store or ActionsStateStore(environ), environ
        )
    except ApprovalGateError as exc:
        return set_failed(f"Failed to await approval: {exc}")
    finally:
        if owned:
            active_tracker.close()

    return report_verdict(verdict, environ)


def post_phase(
    tracker: TicketTracker | None = None,
    store: StateStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logger.warning("Skipping cleanup: %s", exc)
        return 0

    owned = tracker is None
    active_tracker = make_tracker(settings) if tracker is None else tracker
    try:
        run_cleanup(active_tracker, ApprovalCheckpoint(store or ActionsStateStore(environ)))
    except CheckpointError as exc:
        logger.warning("Skipping cleanup: %s", exc)
    finally:
        if owned:
            active_tracker.close()
    return 0
