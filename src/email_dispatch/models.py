"""Data models for email dispatch."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

FAILURE_MESSAGE = "Email sending failed."
CANCELLED_MESSAGE = "The operation was cancelled"


class EmailPriority(str, Enum):
    """Priority associated with an email."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass(frozen=True)
class RenderedContent:
    """Bodies produced by a template renderer."""

    html_content: Optional[str] = None
    text_content: Optional[str] = None


@dataclass(frozen=True)
class EmailSendResponse:
    """Result of sending an email.

    Use :meth:`success` or :meth:`failure` to build one.
    """

    is_success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @classmethod
    def success(
        cls, message_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None
    ) -> "EmailSendResponse":
        """Create a successful response.

        Args:
            message_id: Optional message identifier
            metadata: Optional extra data about the send

        Returns:
            Response with ``is_success`` set and no error message
        """
        return cls(is_success=True, message_id=message_id, metadata=metadata or {})

    @classmethod
    def failure(
        cls,
        error_message: Optional[str] = None,
        message_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "EmailSendResponse":
        """Create a failed response.

        Args:
            error_message: What went wrong; a generic message is used if omitted
            message_id: Optional message identifier
            metadata: Optional extra data about the send

        Returns:
            Response with ``is_success`` cleared
        """
        return cls(
            is_success=False,
            message_id=message_id,
            error_message=error_message or FAILURE_MESSAGE,
            metadata=metadata or {},
        )

    @classmethod
    def cancelled(cls, message_id: Optional[str] = None, started: bool = False) -> "EmailSendResponse":
        """Create the response for a bulk entry that was cancelled.

        ``started`` tells whether the send had begun, in which case the
        request was consumed; otherwise it still belongs to the caller.
        """
        return cls(
            is_success=False,
            message_id=message_id,
            error_message=CANCELLED_MESSAGE,
            metadata={"cancelled": True, "started": started},
        )

    @property
    def is_cancelled(self) -> bool:
        return bool(self.metadata.get("cancelled", False))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_success": self.is_success,
            "message_id": self.message_id,
            "error_message": self.error_message,
            "sent_at": self.sent_at.isoformat(),
            "metadata": dict(self.metadata),
        }
