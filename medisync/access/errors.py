"""Errors raised by the document access registry.

Every error is a caller error and is raised synchronously; a failed call
leaves the targeted request untouched.
"""

from __future__ import annotations


class AccessRequestError(Exception):
    """Base class for access registry errors."""


class NotFoundError(AccessRequestError, LookupError):
    """Raised when an operation references an unknown request id."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Access request {request_id} not found")


class InvalidStateError(AccessRequestError):
    """Raised when approve/deny targets a request that is no longer pending."""

    def __init__(
        self,
        request_id: str,
        current_status: str,
        attempted: str,
        *,
        terminal: bool = False,
    ) -> None:
        self.request_id = request_id
        self.current_status = current_status
        self.attempted = attempted
        # denied and expired requests can never change again
        self.terminal = terminal
        suffix = " (final)" if terminal else ""
        super().__init__(
            f"Cannot {attempted} access request {request_id}: status is {current_status}{suffix}"
        )


class ValidationError(AccessRequestError, ValueError):
    """Raised when a request is created with missing identity fields."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field} must not be empty")
