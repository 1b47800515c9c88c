"""Base mail transport interface."""

from abc import ABC, abstractmethod
from email.message import EmailMessage
from enum import Enum
from typing import Dict, Optional

from ..cancellation import CancellationToken


class MailPriority(Enum):
    """Wire-level priority levels and the headers that carry them."""

    LOW = ("5", "non-urgent", "low")
    NORMAL = (None, None, None)
    HIGH = ("1", "urgent", "high")

    @property
    def headers(self) -> Dict[str, str]:
        """Headers to stamp on a message; empty for normal priority."""
        x_priority, priority, importance = self.value
        if x_priority is None:
            return {}
        return {"X-Priority": x_priority, "Priority": priority, "Importance": importance}


class Transport(ABC):
    """Abstract base class for mail transports.

    Senders call :meth:`send` from several threads at once only when
    ``thread_safe`` is true; otherwise calls are serialized by the sender.
    """

    thread_safe = False

    @abstractmethod
    def send(
        self, message: EmailMessage, cancellation_token: Optional[CancellationToken] = None
    ) -> None:
        """Send a fully built message.

        Args:
            message: Wire message with From, recipients and body set
            cancellation_token: Checked before the blocking network call

        Raises:
            TransportError: If the message could not be delivered
            OperationCancelledError: If cancellation was requested
        """
        pass

    def close(self) -> None:
        """Release any resources held by the transport."""
