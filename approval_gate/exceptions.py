"""Exception hierarchy for the approval gate.

All gate exceptions inherit from ``ApprovalGateError`` so entry points can
catch them in one place and turn them into a failed step.
"""

from __future__ import annotations


class ApprovalGateError(Exception):
    """Base exception for all approval-gate failures."""

    __slots__ = ()


class ConfigurationError(ApprovalGateError):
    """Raised when inputs or the runner environment are invalid."""

    __slots__ = ("errors",)

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class TicketTrackerError(ApprovalGateError):
    """Raised when a call to the ticket tracker fails.

    Attributes
    ----------
    operation : str
        Tracker operation that failed (``create_ticket``, ``get_ticket``...).
    status_code : int | None
        HTTP status of the failed response, ``None`` for transport errors.
    detail : str
        Truncated response body or transport error message.
    """

    __slots__ = ("detail", "operation", "status_code")

    def __init__(
        self,
        operation: str,
        detail: str,
        *,
        status_code: int | None = None,
    ) -> None:
        status = f"HTTP {status_code}" if status_code is not None else "transport error"
        super().__init__(f"{operation} failed ({status}): {detail}")
        self.operation = operation
        self.status_code = status_code
        self.detail = detail


class PermissionCheckError(ApprovalGateError):
    """Raised when an author's permission could not be determined."""

    __slots__ = ("author",)

    def __init__(self, author: str) -> None:
        super().__init__(f"Could not determine permissions for {author!r}")
        self.author = author


class CheckpointError(ApprovalGateError):
    """Raised when a saved approval request cannot be decoded."""

    __slots__ = ()
