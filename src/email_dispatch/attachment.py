"""Email attachments with size and file-type policy."""

import io
import logging
import os
import re
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_SIZE = 25 * 1024 * 1024  # 25 MiB
DEFAULT_MIME_TYPE = "application/octet-stream"
MIME_TYPE_PATTERN = re.compile(r"^[A-Za-z0-9][\w!#$&^.+-]*/[A-Za-z0-9][\w!#$&^.+-]*$")

MIME_TYPES = {
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".html": "text/html",
    ".htm": "text/html",
    ".ics": "text/calendar",
    ".json": "application/json",
    ".xml": "application/xml",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".rtf": "application/rtf",
    ".zip": "application/zip",
}

ALLOWED_EXTENSIONS = frozenset(MIME_TYPES)

BLOCKED_EXTENSIONS = frozenset(
    {
        ".exe", ".bat", ".cmd", ".com", ".cpl", ".dll", ".hta", ".jar",
        ".js", ".jse", ".lnk", ".msi", ".msp", ".ps1", ".reg", ".scr",
        ".sh", ".vb", ".vbe", ".vbs", ".wsf", ".wsh",
    }
)


def guess_mime_type(file_name: str) -> str:
    """Return the MIME type for ``file_name`` from its extension."""
    return MIME_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_MIME_TYPE)


def _stream_size(stream: BinaryIO) -> int:
    stream.seek(0, io.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


class EmailAttachment:
    """A file attached to an email.

    The attachment owns its content stream; ``close()`` releases it. Use the
    ``from_*`` factories rather than the constructor.
    """

    def __init__(
        self,
        content: BinaryIO,
        file_name: str,
        mime_type: Optional[str] = None,
        is_inline: bool = False,
        content_id: Optional[str] = None,
    ):
        """Initialize and validate the attachment.

        Args:
            content: Readable, seekable binary stream
            file_name: File name shown to the recipient
            mime_type: MIME type, defaults to application/octet-stream
            is_inline: Whether the attachment is displayed inline
            content_id: Content-ID referenced from the HTML body, required if inline

        Raises:
            ValidationError: If the stream, file name, extension, size or
                inline metadata is invalid
        """
        if (
            content is None
            or getattr(content, "closed", False)
            or not content.readable()
            or not content.seekable()
        ):
            raise ValidationError("Content stream must be readable and seekable.")

        if file_name is None or not file_name.strip():
            raise ValidationError("File name cannot be null or empty.")
        file_name = file_name.strip()

        extension = Path(file_name).suffix.lower()
        if not extension:
            raise ValidationError(f"File name must have an extension: {file_name}")
        if extension in BLOCKED_EXTENSIONS:
            raise ValidationError(f"File type {extension} is not allowed for security reasons.")
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"File type {extension} is not supported.")

        size = _stream_size(content)
        if size > MAX_ATTACHMENT_SIZE:
            raise ValidationError(
                f"Attachment {file_name} is {size} bytes, exceeding the "
                f"{MAX_ATTACHMENT_SIZE} byte limit."
            )

        if is_inline and (content_id is None or not content_id.strip()):
            raise ValidationError("Content id must be provided for inline attachment.")

        if mime_type is not None and mime_type.strip() and not MIME_TYPE_PATTERN.match(mime_type.strip()):
            raise ValidationError(f"Invalid MIME type: {mime_type}")

        self._content = content
        self._size = size
        self._closed = False
        self.file_name = file_name
        self.mime_type = mime_type.strip() if mime_type and mime_type.strip() else DEFAULT_MIME_TYPE
        self.is_inline = is_inline
        self.content_id = content_id.strip() if is_inline else None

    @classmethod
    def from_stream(
        cls,
        stream: BinaryIO,
        file_name: str,
        mime_type: Optional[str] = None,
        is_inline: bool = False,
        content_id: Optional[str] = None,
    ) -> "EmailAttachment":
        """Wrap an existing stream. Ownership passes to the attachment on success."""
        resolved = mime_type or guess_mime_type(file_name or "")
        return cls(stream, file_name, resolved, is_inline, content_id)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        file_name: str,
        mime_type: Optional[str] = None,
        is_inline: bool = False,
        content_id: Optional[str] = None,
    ) -> "EmailAttachment":
        """Create an attachment from an in-memory buffer."""
        if data is None:
            raise ValidationError("Attachment content cannot be null.")
        stream = io.BytesIO(data)
        try:
            return cls.from_stream(stream, file_name, mime_type, is_inline, content_id)
        except ValidationError:
            stream.close()
            raise

    @classmethod
    def from_file(
        cls,
        file_path: Union[str, os.PathLike],
        mime_type: Optional[str] = None,
        is_inline: bool = False,
        content_id: Optional[str] = None,
    ) -> "EmailAttachment":
        """Open ``file_path`` and use its base name as the attachment file name."""
        if file_path is None or not str(file_path).strip():
            raise ValidationError("File path cannot be null or empty.")

        path = Path(file_path)
        stream = open(path, "rb")
        try:
            return cls.from_stream(stream, path.name, mime_type, is_inline, content_id)
        except ValidationError:
            stream.close()
            raise

    @classmethod
    def inline(
        cls,
        data: bytes,
        file_name: str,
        content_id: str,
        mime_type: Optional[str] = None,
    ) -> "EmailAttachment":
        """Create an inline attachment referenced as ``cid:<content_id>``."""
        return cls.from_bytes(data, file_name, mime_type, is_inline=True, content_id=content_id)

    @property
    def content(self) -> BinaryIO:
        """The content stream, rewound to the start."""
        if self._closed:
            raise ValueError(f"Attachment {self.file_name} has been closed")
        self._content.seek(0)
        return self._content

    @property
    def size(self) -> int:
        return self._size

    @property
    def closed(self) -> bool:
        return self._closed

    def read_bytes(self) -> bytes:
        """Read the whole attachment from the start."""
        return self.content.read()

    def close(self) -> None:
        """Release the content stream. Safe to call more than once."""
        if self._closed:
            return
        self._content.close()
        self._closed = True
        logger.debug(f"Released attachment stream for {self.file_name}")

    def __enter__(self) -> "EmailAttachment":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return (
            f"EmailAttachment(file_name={self.file_name!r}, mime_type={self.mime_type!r}, "
            f"size={self._size}, is_inline={self.is_inline})"
        )
