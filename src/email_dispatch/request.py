"""Request builders and the validated request they produce.

A caller builds an :class:`EmailRequest` (direct bodies) or a
:class:`TemplatedEmailRequest` (template id plus data), adds recipients,
headers and attachments, and calls :meth:`SendRequest.validate`. Validation
returns a frozen :class:`ValidatedRequest`; that snapshot is the only thing
the sender maps onto a wire message.
"""

import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .address import EmailAddress
from .attachment import EmailAttachment
from .exceptions import ValidationError
from .models import EmailPriority, RenderedContent
from .validators import validate_header_name

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 998  # RFC 5322 line limit
MAX_CONTENT_LENGTH = 1024 * 1024
MAX_RECIPIENTS_PER_TYPE = 100
BULK_MAX_RECIPIENTS_PER_TYPE = 500
MESSAGE_ID_HEADER = "Message-ID"
DEFAULT_MESSAGE_ID_DOMAIN = "localhost"


@dataclass(frozen=True)
class PlainContent:
    """Directly supplied text and/or HTML bodies."""

    text_content: Optional[str] = None
    html_content: Optional[str] = None

    @property
    def has_content(self) -> bool:
        return bool(self.text_content or self.html_content)


@dataclass(frozen=True)
class TemplateContent:
    """A template id and the opaque data handed to the renderer."""

    template_id: Optional[str]
    data: Any


RequestContent = Union[PlainContent, TemplateContent]


@dataclass(frozen=True)
class ValidatedRequest:
    """Immutable snapshot of a request that passed validation."""

    message_id: str
    subject: str
    from_address: Optional[EmailAddress]
    to: Tuple[EmailAddress, ...]
    cc: Tuple[EmailAddress, ...]
    bcc: Tuple[EmailAddress, ...]
    priority: EmailPriority
    headers: Mapping[str, str]
    attachments: Tuple[EmailAttachment, ...]
    content: RequestContent

    @property
    def recipients(self) -> Tuple[EmailAddress, ...]:
        return self.to + self.cc + self.bcc


def generate_message_id(domain: Optional[str] = None) -> str:
    """Generate an RFC 5322 style ``<timestamp.random@domain>`` message id."""
    timestamp = int(time.time() * 1000)
    return f"<{timestamp}.{secrets.token_hex(8)}@{domain or DEFAULT_MESSAGE_ID_DOMAIN}>"


def _clean_content(value: Optional[str], kind: str) -> Optional[str]:
    if value is not None and len(value) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"{kind} content cannot exceed {MAX_CONTENT_LENGTH} characters.")
    if value is None or not value.strip():
        return None
    return value.strip()


def _validate_content(content: RequestContent) -> None:
    if isinstance(content, PlainContent):
        if not content.has_content:
            raise ValidationError("Email must have either text content or html content.")
        _clean_content(content.text_content, "Text")
        _clean_content(content.html_content, "Html")
    elif isinstance(content, TemplateContent):
        # template data is checked when it is assigned
        pass
    else:
        raise TypeError(f"Unsupported request content: {type(content).__name__}")


class SendRequest(ABC):
    """Common recipients, subject, headers and attachments of an email request."""

    def __init__(
        self,
        to: Union[EmailAddress, Iterable[EmailAddress], None] = None,
        subject: Optional[str] = None,
        from_address: Optional[EmailAddress] = None,
        priority: EmailPriority = EmailPriority.NORMAL,
        max_recipients_per_type: int = MAX_RECIPIENTS_PER_TYPE,
    ):
        """Initialize the request.

        Args:
            to: Primary recipient or recipients
            subject: Subject line; may also be assigned later
            from_address: Sender; falls back to the configured default sender
            priority: Email priority
            max_recipients_per_type: Cap for each of to, cc and bcc
        """
        if max_recipients_per_type < 1:
            raise ValueError("max_recipients_per_type must be at least 1")

        self.max_recipients_per_type = max_recipients_per_type
        self.from_address = from_address
        self.priority = priority
        self._to: List[EmailAddress] = []
        self._cc: List[EmailAddress] = []
        self._bcc: List[EmailAddress] = []
        self._attachments: List[EmailAttachment] = []
        self._headers: Dict[str, str] = {}
        self._subject = ""
        self._closed = False

        domain = from_address.domain if from_address else None
        self._message_id = generate_message_id(domain)
        self._headers[MESSAGE_ID_HEADER] = self._message_id

        if isinstance(to, EmailAddress):
            self.add_to(to)
        elif to is not None:
            self.add_to(*to)

        if subject is not None:
            self.subject = subject

    @property
    def message_id(self) -> str:
        return self._message_id

    @property
    def subject(self) -> str:
        return self._subject

    @subject.setter
    def subject(self, value: str) -> None:
        if value is None or not value.strip():
            raise ValidationError("Subject cannot be null or empty.")
        value = value.strip()
        if len(value) > MAX_SUBJECT_LENGTH:
            raise ValidationError(f"Subject cannot exceed {MAX_SUBJECT_LENGTH} characters.")
        self._subject = value

    @property
    def to(self) -> Tuple[EmailAddress, ...]:
        return tuple(self._to)

    @property
    def cc(self) -> Tuple[EmailAddress, ...]:
        return tuple(self._cc)

    @property
    def bcc(self) -> Tuple[EmailAddress, ...]:
        return tuple(self._bcc)

    @property
    def attachments(self) -> Tuple[EmailAttachment, ...]:
        return tuple(self._attachments)

    @property
    def headers(self) -> Mapping[str, str]:
        return MappingProxyType(self._headers)

    @property
    def total_recipients(self) -> int:
        return len(self._to) + len(self._cc) + len(self._bcc)

    def _add_recipients(
        self, kind: str, target: List[EmailAddress], addresses: Tuple[EmailAddress, ...]
    ) -> None:
        for address in addresses:
            if address is None:
                continue
            if not isinstance(address, EmailAddress):
                raise ValidationError(f"{kind} recipient must be an EmailAddress, got {address!r}")
            if len(target) >= self.max_recipients_per_type:
                raise ValidationError(
                    f"Cannot add more than {self.max_recipients_per_type} {kind} recipients."
                )
            if any(existing.address == address.address for existing in target):
                logger.debug(f"Ignoring duplicate {kind} recipient {address.address}")
                continue
            target.append(address)

    def add_to(self, *addresses: EmailAddress) -> "SendRequest":
        """Add primary recipients. Duplicates within To are ignored.

        Raises:
            ValidationError: If To is already at its recipient cap
        """
        self._add_recipients("To", self._to, addresses)
        return self

    def add_cc(self, *addresses: EmailAddress) -> "SendRequest":
        """Add carbon-copy recipients. Duplicates within Cc are ignored."""
        self._add_recipients("Cc", self._cc, addresses)
        return self

    def add_bcc(self, *addresses: EmailAddress) -> "SendRequest":
        """Add blind-copy recipients. Duplicates within Bcc are ignored."""
        self._add_recipients("Bcc", self._bcc, addresses)
        return self

    def add_header(self, name: str, value: Optional[str]) -> "SendRequest":
        """Set a custom header, replacing any existing value for ``name``.

        Args:
            name: Header name; trimmed, at most 76 characters
            value: Header value; trimmed, blank becomes an empty string. A
                Message-ID value also becomes the request's message id

        Raises:
            ValidationError: If the name is invalid or the value spans lines
        """
        is_valid, result = validate_header_name(name)
        if not is_valid:
            raise ValidationError(result)
        name = result

        value = "" if value is None or not str(value).strip() else str(value).strip()
        if "\r" in value or "\n" in value:
            raise ValidationError(f"Header {name} value cannot contain line breaks.")
        if name.lower() == MESSAGE_ID_HEADER.lower():
            if not (value.startswith("<") and value.endswith(">") and "@" in value):
                raise ValidationError("Message-ID header must be of the form <id@domain>.")
            self._message_id = value

        for existing in [key for key in self._headers if key.lower() == name.lower()]:
            del self._headers[existing]
        self._headers[name] = value
        return self

    def add_headers(self, headers: Mapping[str, Optional[str]]) -> "SendRequest":
        for name, value in headers.items():
            self.add_header(name, value)
        return self

    def add_attachment(
        self, attachment: Union[EmailAttachment, Iterable[EmailAttachment]]
    ) -> "SendRequest":
        """Attach one or more attachments; the request takes ownership of them."""
        if isinstance(attachment, EmailAttachment):
            attachments = [attachment]
        elif attachment is None:
            raise ValidationError("Attachment cannot be null.")
        else:
            attachments = list(attachment)

        for item in attachments:
            if not isinstance(item, EmailAttachment):
                raise ValidationError(f"Expected an EmailAttachment, got {item!r}")
            self._attachments.append(item)
        return self

    @property
    @abstractmethod
    def content(self) -> RequestContent:
        """The kind-specific body source of this request."""

    def validate(self) -> ValidatedRequest:
        """Validate the request as a whole.

        Returns:
            Immutable snapshot of the request

        Raises:
            ValidationError: If there are no recipients, no subject, a
                recipient listed under more than one of to/cc/bcc, or no usable
                content
        """
        if self.total_recipients == 0:
            raise ValidationError("At least one recipient is required.")
        if not self._subject:
            raise ValidationError("Subject is required.")

        seen = set()
        for address in self._to + self._cc + self._bcc:
            if address.address in seen:
                raise ValidationError(
                    f"Recipient {address.address} appears in more than one of To, Cc and Bcc."
                )
            seen.add(address.address)

        content = self.content
        _validate_content(content)

        return ValidatedRequest(
            message_id=self._message_id,
            subject=self._subject,
            from_address=self.from_address,
            to=self.to,
            cc=self.cc,
            bcc=self.bcc,
            priority=self.priority,
            headers=MappingProxyType(dict(self._headers)),
            attachments=self.attachments,
            content=content,
        )

    def close(self) -> None:
        """Release every attachment stream. Safe to call more than once."""
        if self._closed:
            return
        for attachment in self._attachments:
            attachment.close()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class EmailRequest(SendRequest):
    """An email whose text and/or HTML body is supplied directly.

    When both bodies are set, HTML takes precedence on the wire.
    """

    def __init__(
        self,
        to: Union[EmailAddress, Iterable[EmailAddress], None] = None,
        subject: Optional[str] = None,
        text_content: Optional[str] = None,
        html_content: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(to, subject, **kwargs)
        self._text_content = _clean_content(text_content, "Text")
        self._html_content = _clean_content(html_content, "Html")

    @property
    def text_content(self) -> Optional[str]:
        return self._text_content

    @text_content.setter
    def text_content(self, value: Optional[str]) -> None:
        self._text_content = _clean_content(value, "Text")

    @property
    def html_content(self) -> Optional[str]:
        return self._html_content

    @html_content.setter
    def html_content(self, value: Optional[str]) -> None:
        self._html_content = _clean_content(value, "Html")

    @property
    def has_content(self) -> bool:
        return self.content.has_content

    def set_content(
        self, text_content: Optional[str] = None, html_content: Optional[str] = None
    ) -> "EmailRequest":
        self.text_content = text_content
        self.html_content = html_content
        return self

    @property
    def content(self) -> PlainContent:
        return PlainContent(self._text_content, self._html_content)

    @classmethod
    def from_rendered(
        cls, request: "TemplatedEmailRequest", rendered: RenderedContent
    ) -> "EmailRequest":
        """Build the content request equivalent to a rendered templated request.

        Recipients, subject, priority, headers, attachments and the message id
        carry over; attachment ownership moves to the new request.
        """
        email_request = cls(
            to=request.to,
            subject=request.subject,
            text_content=rendered.text_content,
            html_content=rendered.html_content,
            from_address=request.from_address,
            priority=request.priority,
            max_recipients_per_type=request.max_recipients_per_type,
        )
        email_request.add_cc(*request.cc)
        email_request.add_bcc(*request.bcc)
        email_request._headers.clear()
        email_request.add_headers(request.headers)
        email_request._message_id = request.message_id
        email_request.add_attachment(request.attachments)
        return email_request


_UNSET = object()


class TemplatedEmailRequest(SendRequest):
    """An email whose bodies come from rendering a template."""

    def __init__(
        self,
        to: Union[EmailAddress, Iterable[EmailAddress], None] = None,
        subject: Optional[str] = None,
        template_id: Optional[str] = None,
        template_content: Any = _UNSET,
        **kwargs,
    ):
        """Initialize the request.

        Args:
            to: Primary recipient or recipients
            subject: Subject line
            template_id: Identifier the renderer resolves
            template_content: Data passed to the renderer; must not be None
        """
        super().__init__(to, subject, **kwargs)
        self._template_id: Optional[str] = None
        if template_id is not None:
            self.template_id = template_id
        self.template_content = {} if template_content is _UNSET else template_content

    @property
    def template_id(self) -> Optional[str]:
        return self._template_id

    @template_id.setter
    def template_id(self, value: str) -> None:
        if value is None or not value.strip():
            raise ValidationError("Template id cannot be null or empty.")
        self._template_id = value.strip()

    @property
    def template_content(self) -> Any:
        return self._template_content

    @template_content.setter
    def template_content(self, value: Any) -> None:
        if value is None:
            raise ValidationError("Template content cannot be null.")
        self._template_content = value

    def set_template(self, template_id: str, template_content: Any = _UNSET) -> "TemplatedEmailRequest":
        self.template_id = template_id
        if template_content is not _UNSET:
            self.template_content = template_content
        return self

    @property
    def content(self) -> TemplateContent:
        return TemplateContent(self._template_id, self._template_content)
