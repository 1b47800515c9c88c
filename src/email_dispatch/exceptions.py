"""Custom exceptions for email dispatch."""


class EmailDispatchError(Exception):
    """Base exception for all email dispatch errors."""

    pass


class ValidationError(EmailDispatchError):
    """Raised when an address, attachment or request fails validation."""

    pass


class ConfigurationError(EmailDispatchError):
    """Raised when SMTP settings or the default sender are missing."""

    pass


class TemplateError(EmailDispatchError):
    """Raised when there's an error with template loading or rendering."""

    pass


class TransportError(EmailDispatchError):
    """Raised when the underlying mail transport fails."""

    pass


class AuthenticationError(TransportError):
    """Raised when authentication with the SMTP server fails."""

    pass


class DeliveryError(TransportError):
    """Raised when the SMTP server refuses the message."""

    pass


class OperationCancelledError(EmailDispatchError):
    """Raised when a send is cancelled through its cancellation token.

    The sender re-raises this instead of turning it into a failure response,
    so callers can tell "cancelled" apart from "failed".
    """

    pass
