"""Typed failure values threaded through the login and provisioning stages.

Validation stages return either their result or a ``Failure``; callers check
with ``isinstance`` and convert the failure into a response at the surface
where it is detected. Exceptions are reserved for adapter faults
(``UserServiceError``) and genuinely unexpected errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of failure kinds, each bound to an HTTP status."""

    INVALID_REQUEST = "invalid_request"
    INVALID_RELAY = "invalid_relay"
    INVALID_IDP_INITIATED = "invalid_idp_initiated"
    ORG_NOT_FOUND = "org_not_found"
    SAML_NOT_CONFIGURED = "saml_not_configured"
    SSO_DISABLED = "sso_disabled"
    UNAUTHORIZED = "unauthorized"
    ASSERTION_INVALID = "assertion_invalid"
    ATTRIBUTES_MISSING = "attributes_missing"
    PROVISION_ERROR = "provision_error"
    SESSION_ERROR = "session_error"
    INVALID_FILTER = "invalid_filter"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        """HTTP status reported for this kind."""
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.INVALID_RELAY: 400,
    ErrorKind.INVALID_IDP_INITIATED: 400,
    ErrorKind.ORG_NOT_FOUND: 404,
    ErrorKind.SAML_NOT_CONFIGURED: 400,
    ErrorKind.SSO_DISABLED: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.ASSERTION_INVALID: 500,
    ErrorKind.ATTRIBUTES_MISSING: 500,
    ErrorKind.PROVISION_ERROR: 500,
    ErrorKind.SESSION_ERROR: 500,
    ErrorKind.INVALID_FILTER: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UPSTREAM_ERROR: 500,
    ErrorKind.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class Failure:
    """A failed stage.

    Attributes:
        kind: What went wrong; determines the HTTP status.
        message: Client-safe description.
        context: Extra detail for logs (never sent to clients verbatim).
    """

    kind: ErrorKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        """HTTP status for this failure."""
        return self.kind.status_code


class UserServiceError(Exception):
    """Raised when a user-service call fails at the transport or protocol level."""

    def __init__(self, operation: str, message: str) -> None:
        """Initialize the error.

        Args:
            operation: User-service operation that failed (e.g. ``user/create``).
            message: Description of the fault.
        """
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message
