"""Exception classes for the application.

Two families of errors travel through the service:

- ``DomainError`` is raised by services. It carries a ``DomainErrorCode``
  that the HTTP layer maps onto a fixed status code.
- ``StatusError`` is raised by the HTTP adapter itself for problems detected
  before any service is called (missing header, undecodable body, bad file).

Both are rendered the same way: an empty response body with the message in
the ``G-Consee-Error`` header.
"""

from __future__ import annotations

from enum import StrEnum


class DomainErrorCode(StrEnum):
    """Kinds of failures reported by the services."""

    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    MULTIPLE_ERRORS_OCCURED = "MULTIPLE_ERRORS_OCCURED"
    UNKNOWN = "UNKNOWN"


_STATUS_BY_CODE: dict[DomainErrorCode, int] = {
    DomainErrorCode.NOT_IMPLEMENTED: 404,
    DomainErrorCode.ALREADY_EXISTS: 409,
    DomainErrorCode.NOT_FOUND: 404,
    DomainErrorCode.INVALID_INPUT: 400,
    DomainErrorCode.PERMISSION_DENIED: 403,
    DomainErrorCode.INTERNAL_ERROR: 500,
}


class DomainError(Exception):
    """Business-level failure raised by the services.

    Attributes:
        code: Kind of the failure.
        message: Human-readable description, also used as ``str(error)``.

    Example:
        raise DomainError(DomainErrorCode.NOT_FOUND, "key not found")
    """

    def __init__(self, code: DomainErrorCode, message: str) -> None:
        """Initialize domain error.

        Args:
            code: Kind of the failure.
            message: Human-readable description.
        """
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def status_code(self) -> int:
        """HTTP status code this error maps to."""
        return _STATUS_BY_CODE.get(self.code, 500)

    @property
    def is_not_found(self) -> bool:
        return self.code == DomainErrorCode.NOT_FOUND

    def __repr__(self) -> str:
        return f"DomainError(code={self.code.value!r}, message={self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DomainError):
            return NotImplemented
        return self.code == other.code and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.code, self.message))


class StatusError(Exception):
    """Adapter-level failure with an explicit HTTP status.

    Example:
        raise StatusError(400, "token is empty")
        # "an error occurred while processing request: token is empty (status: 400)"
    """

    def __init__(self, status: int, message: str, process: str = "processing request") -> None:
        """Initialize status error.

        Args:
            status: HTTP status code to respond with.
            message: Cause of the failure.
            process: What the adapter was doing when it failed.
        """
        self.status = status
        self.message = message
        self.process = process
        super().__init__(self.render())

    def render(self) -> str:
        """Return the message sent back in the error header."""
        return f"an error occurred while {self.process}: {self.message} (status: {self.status})"

    @classmethod
    def from_domain_error(cls, error: DomainError) -> StatusError:
        """Wrap a ``DomainError`` using the fixed code to status mapping."""
        if error.code not in _STATUS_BY_CODE:
            return cls(500, "unknown error")
        return cls(error.status_code, error.message)


# ──────────────────────────────────────────────────────────────
# Shared errors
# ──────────────────────────────────────────────────────────────


def not_implemented() -> DomainError:
    return DomainError(DomainErrorCode.NOT_IMPLEMENTED, "service function not implemented")


def failed_to_connect_consul() -> DomainError:
    return DomainError(DomainErrorCode.INTERNAL_ERROR, "failed to connect to consul")


def permission_denied() -> DomainError:
    return DomainError(DomainErrorCode.PERMISSION_DENIED, "permission denied")


def admin_permission_denied() -> DomainError:
    """The fixed admin credentials were refused; this is a server-side fault."""
    return DomainError(DomainErrorCode.INTERNAL_ERROR, "permission denied")


def failed_to_parse() -> DomainError:
    return DomainError(DomainErrorCode.INTERNAL_ERROR, "failed to parse value")


def not_admin() -> DomainError:
    return DomainError(DomainErrorCode.PERMISSION_DENIED, "token should have admin permission")


def unknown_error() -> DomainError:
    return DomainError(DomainErrorCode.UNKNOWN, "unknown error")


def not_found(message: str) -> DomainError:
    return DomainError(DomainErrorCode.NOT_FOUND, message)


def already_exists(message: str) -> DomainError:
    return DomainError(DomainErrorCode.ALREADY_EXISTS, message)


def invalid_input(message: str) -> DomainError:
    return DomainError(DomainErrorCode.INVALID_INPUT, message)


def internal_error(message: str) -> DomainError:
    return DomainError(DomainErrorCode.INTERNAL_ERROR, message)
