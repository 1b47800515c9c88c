"""Cooperative cancellation for send pipelines."""

import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError


class CancellationToken:
    """Cancellation flag with an optional deadline, shared across threads.

    Pipeline stages call :meth:`raise_if_cancelled` before doing work; nothing
    is interrupted mid-call.
    """

    def __init__(self, deadline: Optional[float] = None):
        """Initialize the token.

        Args:
            deadline: Optional ``time.monotonic()`` value after which the
                token reports itself as cancelled
        """
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """Create a token that cancels itself after ``seconds``."""
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def none(cls) -> "CancellationToken":
        """Create a token that is only cancelled by an explicit ``cancel()``."""
        return cls()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested.

        Raises:
            OperationCancelledError: If the token is cancelled or past its deadline
        """
        if self.is_cancelled:
            raise OperationCancelledError("The operation was cancelled")
