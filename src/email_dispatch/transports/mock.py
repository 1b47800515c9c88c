"""In-memory transport for tests and dry runs."""

import logging
import threading
from email.message import EmailMessage
from typing import List, Optional

from ..cancellation import CancellationToken
from ..exceptions import TransportError
from .base import Transport

logger = logging.getLogger(__name__)


class MockTransport(Transport):
    """Transport that records messages instead of sending them."""

    thread_safe = True

    def __init__(self, fail_with: Optional[str] = None):
        """Initialize the mock transport.

        Args:
            fail_with: If set, every send raises TransportError with this message
        """
        self.fail_with = fail_with
        self.sent_messages: List[EmailMessage] = []
        self._lock = threading.Lock()

    def send(
        self, message: EmailMessage, cancellation_token: Optional[CancellationToken] = None
    ) -> None:
        """Pretend to send an email."""
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()
        if self.fail_with:
            raise TransportError(self.fail_with)

        with self._lock:
            self.sent_messages.append(message)
        logger.info(f"Recorded message {message['Message-ID']} to {message['To']}")
