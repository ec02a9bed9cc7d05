"""Manual approval gate for GitHub Actions, backed by GitHub issues."""

from approval_gate.decision import decide
from approval_gate.engine import LifecycleEngine, ResolutionLatch
from approval_gate.finalizer import Finalizer
from approval_gate.initiator import RequestInitiator
from approval_gate.models import (
    ApprovalRequest,
    CloseReason,
    Comment,
    Decision,
    Policy,
    Ticket,
    TicketState,
    Verdict,
    VerdictStatus,
)

__version__ = "1.0.0"

__all__ = [
    "ApprovalRequest",
    "CloseReason",
    "Comment",
    "Decision",
    "Finalizer",
    "LifecycleEngine",
    "Policy",
    "RequestInitiator",
    "ResolutionLatch",
    "Ticket",
    "TicketState",
    "Verdict",
    "VerdictStatus",
    "decide",
]
