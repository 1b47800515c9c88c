"""Main email sender: validates, renders, maps and transmits requests."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from email.message import EmailMessage as MimeMessage
from email.utils import format_datetime
from typing import Callable, Iterable, List, Optional, TypeVar

from .address import EmailAddress
from .cancellation import CancellationToken
from .config import SmtpSettings
from .exceptions import ConfigurationError, OperationCancelledError, ValidationError
from .models import EmailPriority, EmailSendResponse
from .renderer import TemplateRenderer
from .request import (
    EmailRequest,
    PlainContent,
    SendRequest,
    TemplatedEmailRequest,
    ValidatedRequest,
)
from .transports.base import MailPriority, Transport
from .transports.smtp import SmtpTransport

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

_PRIORITY_MAP = {
    EmailPriority.LOW: MailPriority.LOW,
    EmailPriority.NORMAL: MailPriority.NORMAL,
    EmailPriority.HIGH: MailPriority.HIGH,
}

R = TypeVar("R", bound=SendRequest)


def convert_priority(priority: EmailPriority) -> MailPriority:
    """Map a request priority to the wire priority; unknown values map to normal."""
    return _PRIORITY_MAP.get(priority, MailPriority.NORMAL)


class EmailSender:
    """High-level email sender that coordinates renderer and transport."""

    def __init__(
        self,
        settings: Optional[SmtpSettings] = None,
        transport: Optional[Transport] = None,
        renderer: Optional[TemplateRenderer] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """Initialize the email sender.

        Args:
            settings: SMTP settings; used for the default sender and, when no
                transport is given, to build an SMTP transport on first send
            transport: Transport instance to use instead of SMTP
            renderer: Template renderer for templated requests
            max_workers: Thread pool size for bulk sends
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.settings = settings or SmtpSettings()
        self.renderer = renderer
        self.max_workers = max_workers
        self._transport = transport
        self._transport_lock = threading.Lock()
        self._send_lock = threading.Lock()

    @property
    def transport(self) -> Transport:
        """The transport, created from settings on first use.

        Raises:
            ConfigurationError: If SMTP host or credentials are missing
        """
        with self._transport_lock:
            if self._transport is None:
                self._transport = SmtpTransport.from_settings(self.settings)
                logger.info(
                    f"Created SMTP transport for {self.settings.host}:{self.settings.port}"
                )
        return self._transport

    def _resolve_sender(self, from_address: Optional[EmailAddress]) -> EmailAddress:
        if from_address is not None:
            return from_address
        if not self.settings.sender_email:
            raise ConfigurationError("Sender email is not configured.")
        return EmailAddress(self.settings.sender_email, self.settings.sender_name)

    def build_message(self, request: ValidatedRequest) -> MimeMessage:
        """Map a validated request onto a wire message.

        Args:
            request: Validated request with plain content

        Returns:
            Message ready for the transport

        Raises:
            ConfigurationError: If neither the request nor settings name a sender
            ValidationError: If the request has no usable body
        """
        content = request.content
        if not isinstance(content, PlainContent):
            raise ValidationError("Templated requests must be rendered before sending.")
        if not content.html_content and not content.text_content:
            raise ValidationError("Either html content or text content must be provided.")

        message = MimeMessage()
        message["From"] = self._resolve_sender(request.from_address).to_mail_address()
        if request.to:
            message["To"] = [address.to_mail_address() for address in request.to]
        if request.cc:
            message["Cc"] = [address.to_mail_address() for address in request.cc]
        if request.bcc:
            message["Bcc"] = [address.to_mail_address() for address in request.bcc]
        message["Subject"] = request.subject

        if content.html_content:
            message.set_content(content.html_content, subtype="html")
        else:
            message.set_content(content.text_content)

        for attachment in request.attachments:
            maintype, _, subtype = attachment.mime_type.partition("/")
            if attachment.is_inline:
                message.add_attachment(
                    attachment.read_bytes(),
                    maintype=maintype,
                    subtype=subtype or "octet-stream",
                    filename=attachment.file_name,
                    disposition="inline",
                    cid=f"<{attachment.content_id.strip('<>')}>",
                )
            else:
                message.add_attachment(
                    attachment.read_bytes(),
                    maintype=maintype,
                    subtype=subtype or "octet-stream",
                    filename=attachment.file_name,
                )

        for name, value in convert_priority(request.priority).headers.items():
            message[name] = value

        for name, value in request.headers.items():
            del message[name]
            message[name] = value

        del message["Date"]
        message["Date"] = format_datetime(datetime.now(timezone.utc), usegmt=True)

        return message

    def _transmit(
        self, transport: Transport, message: MimeMessage, token: CancellationToken
    ) -> None:
        if getattr(transport, "thread_safe", False):
            token.raise_if_cancelled()
            transport.send(message, token)
            return
        with self._send_lock:
            token.raise_if_cancelled()
            transport.send(message, token)

    def send_email(
        self,
        request: EmailRequest,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EmailSendResponse:
        """Send a single email.

        The request is consumed: its attachment streams are closed whatever
        the outcome.

        Args:
            request: Email request to send
            cancellation_token: Optional cancellation token

        Returns:
            EmailSendResponse describing the outcome

        Raises:
            ValidationError: If ``request`` is None
            OperationCancelledError: If cancellation was requested
        """
        if request is None:
            raise ValidationError("Email request is required.")

        token = cancellation_token or CancellationToken.none()
        try:
            token.raise_if_cancelled()
            logger.debug(f"Preparing to send email with subject {request.subject!r}")

            validated = request.validate()
            message = self.build_message(validated)
            transport = self.transport

            logger.info(
                f"Sending email {validated.message_id} to "
                f"{', '.join(a.address for a in validated.to)} with subject {validated.subject!r}"
            )
            self._transmit(transport, message, token)

            logger.info(
                f"Email sent successfully with message id {validated.message_id}",
                extra={"message_id": validated.message_id},
            )
            return EmailSendResponse.success(
                message_id=validated.message_id,
                metadata={"recipients": len(validated.recipients)},
            )
        except OperationCancelledError:
            logger.warning(
                f"Email sending with subject {request.subject!r} and message id "
                f"{request.message_id} was cancelled",
                extra={"message_id": request.message_id},
            )
            raise
        except Exception as e:
            logger.error(
                f"Failed sending email with subject {request.subject!r} and message id "
                f"{request.message_id}: {e}",
                extra={"message_id": request.message_id},
            )
            return EmailSendResponse.failure(str(e), message_id=request.message_id)
        finally:
            request.close()

    def send_templated_email(
        self,
        request: TemplatedEmailRequest,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EmailSendResponse:
        """Render a templated request and send the result.

        Args:
            request: Templated email request
            cancellation_token: Optional cancellation token

        Returns:
            EmailSendResponse describing the outcome

        Raises:
            ValidationError: If ``request`` is None
            OperationCancelledError: If cancellation was requested
        """
        if request is None:
            raise ValidationError("Templated email request is required.")

        if self.renderer is None:
            logger.error("Template renderer is not configured. Unable to send templated email.")
            request.close()
            return EmailSendResponse.failure(
                "Template renderer is not configured", message_id=request.message_id
            )

        token = cancellation_token or CancellationToken.none()
        try:
            token.raise_if_cancelled()
            request.validate()
            rendered = self.renderer.render_template(
                request.template_id, request.template_content, token
            )
            email_request = EmailRequest.from_rendered(request, rendered)
            return self.send_email(email_request, token)
        except OperationCancelledError:
            logger.warning(f"Templated email {request.message_id} was cancelled")
            raise
        except Exception as e:
            logger.error(
                f"Failed rendering template {request.template_id!r} for message id "
                f"{request.message_id}: {e}"
            )
            return EmailSendResponse.failure(str(e), message_id=request.message_id)
        finally:
            request.close()

    def _send_bulk(
        self,
        send: Callable[[R, CancellationToken], EmailSendResponse],
        requests: Iterable[R],
        cancellation_token: Optional[CancellationToken],
    ) -> List[EmailSendResponse]:
        if requests is None:
            raise ValidationError("Requests are required.")

        token = cancellation_token or CancellationToken.none()
        requests = list(requests)
        results: List[Optional[EmailSendResponse]] = [None] * len(requests)

        def run(index: int, request: R) -> None:
            if token.is_cancelled:
                return
            if request is None:
                results[index] = EmailSendResponse.failure("Email request is required.")
                return
            try:
                results[index] = send(request, token)
            except OperationCancelledError:
                logger.warning(f"Bulk send cancelled at request {index + 1}/{len(requests)}")
                results[index] = EmailSendResponse.cancelled(request.message_id, started=True)

        if requests:
            workers = min(self.max_workers, len(requests))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(run, index, request)
                    for index, request in enumerate(requests)
                ]
                for future in futures:
                    future.result()

        # Slots still empty belong to requests that never started
        responses = [
            response
            if response is not None
            else EmailSendResponse.cancelled(request.message_id if request is not None else None)
            for request, response in zip(requests, results)
        ]

        cancelled = sum(1 for response in responses if response.is_cancelled)
        failed = sum(1 for response in responses if not response.is_success) - cancelled
        logger.info(
            f"Bulk send finished: {len(responses) - cancelled}/{len(requests)} completed, "
            f"{failed} failed, {cancelled} cancelled"
        )
        return responses

    def send_bulk_email(
        self,
        requests: Iterable[EmailRequest],
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[EmailSendResponse]:
        """Send many emails, one response per request in input order.

        A failed request does not stop the batch. Once cancellation is
        requested no further sends start; the entries for requests that were
        cancelled report ``is_cancelled``. Requests that never started are
        left open and still belong to the caller.

        Args:
            requests: Email requests to send
            cancellation_token: Optional cancellation token

        Returns:
            List of EmailSendResponse objects
        """
        return self._send_bulk(self.send_email, requests, cancellation_token)

    def send_bulk_templated_email(
        self,
        requests: Iterable[TemplatedEmailRequest],
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[EmailSendResponse]:
        """Templated counterpart of :meth:`send_bulk_email`."""
        return self._send_bulk(self.send_templated_email, requests, cancellation_token)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def __enter__(self) -> "EmailSender":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
