"""Mail transport implementations."""

from .base import MailPriority, Transport
from .mock import MockTransport
from .smtp import SmtpCredentials, SmtpTransport

__all__ = ["MailPriority", "Transport", "MockTransport", "SmtpCredentials", "SmtpTransport"]
