"""Email composition and SMTP delivery with validated requests and templates."""

__version__ = "0.1.0"

from .exceptions import (
    EmailDispatchError,
    ValidationError,
    ConfigurationError,
    TemplateError,
    TransportError,
    AuthenticationError,
    DeliveryError,
    OperationCancelledError,
)
from .address import EmailAddress
from .attachment import EmailAttachment
from .cancellation import CancellationToken
from .config import Settings, SmtpSettings, load_settings
from .models import EmailPriority, EmailSendResponse, RenderedContent
from .renderer import TemplateRenderer, Jinja2TemplateRenderer
from .request import (
    SendRequest,
    EmailRequest,
    TemplatedEmailRequest,
    ValidatedRequest,
    PlainContent,
    TemplateContent,
)
from .sender import EmailSender
from .transports import MockTransport, SmtpTransport, Transport

__all__ = [
    "EmailDispatchError",
    "ValidationError",
    "ConfigurationError",
    "TemplateError",
    "TransportError",
    "AuthenticationError",
    "DeliveryError",
    "OperationCancelledError",
    "EmailAddress",
    "EmailAttachment",
    "CancellationToken",
    "Settings",
    "SmtpSettings",
    "load_settings",
    "EmailPriority",
    "EmailSendResponse",
    "RenderedContent",
    "TemplateRenderer",
    "Jinja2TemplateRenderer",
    "SendRequest",
    "EmailRequest",
    "TemplatedEmailRequest",
    "ValidatedRequest",
    "PlainContent",
    "TemplateContent",
    "EmailSender",
    "MockTransport",
    "SmtpTransport",
    "Transport",
]
