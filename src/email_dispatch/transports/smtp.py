"""SMTP transport over smtplib."""

import logging
import smtplib
import ssl
import threading
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, TYPE_CHECKING

from ..cancellation import CancellationToken
from ..exceptions import (
    AuthenticationError,
    ConfigurationError,
    DeliveryError,
    TransportError,
)
from .base import Transport

if TYPE_CHECKING:
    from ..config import SmtpSettings

logger = logging.getLogger(__name__)

DEFAULT_PORT = 587
IMPLICIT_TLS_PORT = 465
DEFAULT_TIMEOUT_MS = 100000


@dataclass(frozen=True)
class SmtpCredentials:
    """Login credentials, optionally qualified by a Windows domain."""

    username: str
    password: str
    domain: Optional[str] = None

    @property
    def login_name(self) -> str:
        if self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username

    def __repr__(self) -> str:
        return f"SmtpCredentials(username={self.username!r}, domain={self.domain!r})"


class SmtpTransport(Transport):
    """Sends messages through an SMTP server.

    One SMTP session is opened per message. Calls to :meth:`send` are
    serialized, so a single transport can be shared by bulk senders.
    """

    thread_safe = True

    def __init__(
        self,
        host: str,
        credentials: SmtpCredentials,
        port: int = DEFAULT_PORT,
        use_ssl: bool = True,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        """Initialize the SMTP transport.

        Args:
            host: SMTP server host name
            credentials: Login credentials
            port: Server port; 465 uses implicit TLS
            use_ssl: Encrypt the session (STARTTLS, or implicit TLS on 465)
            timeout_ms: Socket timeout in milliseconds
        """
        if not host:
            raise ConfigurationError("SMTP host is required.")
        if credentials is None:
            raise ConfigurationError("SMTP credentials are required.")

        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.timeout_ms = timeout_ms
        self.credentials = credentials
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "SmtpSettings") -> "SmtpTransport":
        """Create a transport from SMTP settings.

        Raises:
            ConfigurationError: If the host, username or password is missing
        """
        if not settings.host:
            raise ConfigurationError("SMTP host is required.")
        if not settings.username or not settings.password:
            raise ConfigurationError("Username and password are required to create credentials.")

        credentials = SmtpCredentials(
            username=settings.username,
            password=settings.password.get_secret_value(),
            domain=settings.domain or None,
        )
        return cls(
            host=settings.host,
            credentials=credentials,
            port=settings.port,
            use_ssl=settings.enable_ssl,
            timeout_ms=settings.timeout_milliseconds,
        )

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def _connect(self) -> smtplib.SMTP:
        logger.debug(f"Connecting to SMTP server {self.host}:{self.port}")

        if self.use_ssl and self.port == IMPLICIT_TLS_PORT:
            connection = smtplib.SMTP_SSL(
                self.host,
                self.port,
                timeout=self.timeout_seconds,
                context=ssl.create_default_context(),
            )
        else:
            connection = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)

        try:
            if self.use_ssl and self.port != IMPLICIT_TLS_PORT:
                connection.starttls(context=ssl.create_default_context())
            connection.login(self.credentials.login_name, self.credentials.password)
        except (smtplib.SMTPException, OSError):
            connection.close()
            raise
        return connection

    def send(
        self, message: EmailMessage, cancellation_token: Optional[CancellationToken] = None
    ) -> None:
        """Send a message over a fresh SMTP session.

        Args:
            message: Wire message to send
            cancellation_token: Checked before connecting and before transmitting

        Raises:
            AuthenticationError: If login fails
            DeliveryError: If the server refuses the sender or recipients
            TransportError: For any other SMTP or network failure
        """
        token = cancellation_token or CancellationToken.none()

        with self._lock:
            token.raise_if_cancelled()
            try:
                connection = self._connect()
            except smtplib.SMTPAuthenticationError as e:
                raise AuthenticationError(f"SMTP authentication failed: {e}") from e
            except smtplib.SMTPException as e:
                raise TransportError(f"Failed to connect to SMTP server: {e}") from e
            except OSError as e:
                raise TransportError(f"Network error connecting to {self.host}: {e}") from e

            try:
                token.raise_if_cancelled()
                refused = connection.send_message(message)
                if refused:
                    raise DeliveryError(f"Some recipients were refused: {refused}")
                logger.debug(f"SMTP server accepted message {message['Message-ID']}")
            except smtplib.SMTPRecipientsRefused as e:
                raise DeliveryError(f"All recipients refused: {e.recipients}") from e
            except smtplib.SMTPSenderRefused as e:
                raise DeliveryError(f"Sender refused: {e}") from e
            except smtplib.SMTPException as e:
                raise TransportError(f"Failed to send email: {e}") from e
            except OSError as e:
                raise TransportError(f"Network error sending email: {e}") from e
            finally:
                try:
                    connection.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")
