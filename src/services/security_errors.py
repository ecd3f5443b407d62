"""Errors raised by the authentication defense services."""


class SecurityServiceError(Exception):
    """Base class for security service errors."""

    pass


class NotFoundError(SecurityServiceError):
    """Raised when an account or alert referenced by an admin action does not exist."""

    pass


class InvalidInputError(SecurityServiceError):
    """Raised for malformed input or a missing precondition."""

    pass


class AlertTransitionError(InvalidInputError):
    """Raised when an alert lifecycle transition is not allowed."""

    pass


class PolicyDeniedError(SecurityServiceError):
    """
    Raised when policy forbids an administrative action.

    Attributes:
        code: Machine-readable reason, e.g. ``SELF_RESET_FORBIDDEN``
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class ConcurrentUpdateError(SecurityServiceError):
    """Raised when a conditional update keeps losing to concurrent writers."""

    pass


class ImmutableRecordError(SecurityServiceError):
    """Raised on an attempt to delete or rewrite an audit trail record."""

    pass
