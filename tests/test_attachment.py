"""Tests for email attachments."""

import io

import pytest

from email_dispatch.attachment import (
    DEFAULT_MIME_TYPE,
    MAX_ATTACHMENT_SIZE,
    EmailAttachment,
    guess_mime_type,
)
from email_dispatch.exceptions import ValidationError


class TestEmailAttachment:
    """Tests for EmailAttachment."""

    def test_from_bytes_creates_attachment(self):
        """Test creating an attachment from a byte buffer."""
        data = bytes([1, 2, 3])
        attachment = EmailAttachment.from_bytes(data, "test.txt", "text/plain")

        assert attachment.file_name == "test.txt"
        assert attachment.mime_type == "text/plain"
        assert attachment.is_inline is False
        assert attachment.content_id is None
        assert attachment.size == 3
        assert attachment.read_bytes() == data

    def test_from_file_creates_attachment(self, tmp_path):
        """Test creating an attachment from a file path."""
        path = tmp_path / "AttachmentTestFile.txt"
        path.write_bytes(b"attachment body")

        with EmailAttachment.from_file(path) as attachment:
            assert attachment.file_name == "AttachmentTestFile.txt"
            assert attachment.mime_type == "text/plain"
            assert attachment.read_bytes() == b"attachment body"

        assert attachment.closed

    def test_from_stream_infers_mime_type(self):
        """Test mime type inference from the extension."""
        attachment = EmailAttachment.from_stream(io.BytesIO(b"%PDF"), "report.PDF")
        assert attachment.mime_type == "application/pdf"

    def test_explicit_mime_type_wins(self):
        """Test that a supplied mime type is kept."""
        attachment = EmailAttachment.from_bytes(b"{}", "data.txt", "application/json")
        assert attachment.mime_type == "application/json"

    @pytest.mark.parametrize("mime_type", ["pdf", "application/", "/pdf", "text/plain; charset=utf-8"])
    def test_malformed_mime_type(self, mime_type):
        """Test that explicit mime types must be type/subtype."""
        with pytest.raises(ValidationError, match="Invalid MIME type"):
            EmailAttachment.from_bytes(b"%PDF", "report.pdf", mime_type)

    def test_content_rewinds_on_each_access(self):
        """Test that content can be read more than once."""
        attachment = EmailAttachment.from_bytes(b"abc", "a.txt")

        assert attachment.content.read() == b"abc"
        assert attachment.content.read() == b"abc"

    def test_inline_without_content_id_raises(self):
        """Test that inline attachments require a content id."""
        with pytest.raises(ValidationError, match="Content id"):
            EmailAttachment.from_bytes(b"\x01", "a.txt", is_inline=True)

    def test_inline_with_content_id(self):
        """Test inline attachment metadata."""
        attachment = EmailAttachment.inline(b"\x89PNG", "logo.png", "logo-cid")

        assert attachment.is_inline is True
        assert attachment.content_id == "logo-cid"
        assert attachment.mime_type == "image/png"

    def test_too_large_raises(self):
        """Test that content over 25 MiB is rejected."""
        with pytest.raises(ValidationError, match="limit"):
            EmailAttachment.from_bytes(bytes(MAX_ATTACHMENT_SIZE + 1), "big.txt")

    def test_exactly_at_limit_succeeds(self):
        """Test that content of exactly 25 MiB is accepted."""
        attachment = EmailAttachment.from_bytes(bytes(MAX_ATTACHMENT_SIZE), "big.txt")
        assert attachment.size == MAX_ATTACHMENT_SIZE
        attachment.close()

    @pytest.mark.parametrize("file_name", ["virus.exe", "script.JS", "run.bat", "setup.msi"])
    def test_blocked_extension_raises(self, file_name):
        """Test that executable-like extensions are rejected."""
        with pytest.raises(ValidationError, match="security"):
            EmailAttachment.from_bytes(b"x", file_name)

    def test_unlisted_extension_raises(self):
        """Test that extensions outside the allowlist are rejected."""
        with pytest.raises(ValidationError, match="not supported"):
            EmailAttachment.from_bytes(b"x", "archive.rar")

    @pytest.mark.parametrize("file_name", ["", "   ", "README", None])
    def test_missing_file_name_or_extension_raises(self, file_name):
        """Test that a file name with an extension is required."""
        with pytest.raises(ValidationError):
            EmailAttachment.from_bytes(b"x", file_name)

    def test_unreadable_stream_raises(self):
        """Test that closed streams are rejected."""
        stream = io.BytesIO(b"x")
        stream.close()
        with pytest.raises(ValidationError, match="readable"):
            EmailAttachment.from_stream(stream, "a.txt")

    def test_close_is_idempotent(self):
        """Test that closing twice releases the stream once."""
        stream = io.BytesIO(b"abc")
        attachment = EmailAttachment.from_stream(stream, "a.txt")

        attachment.close()
        attachment.close()

        assert stream.closed
        assert attachment.closed
        with pytest.raises(ValueError):
            attachment.read_bytes()

    def test_failed_from_file_closes_file(self, tmp_path, monkeypatch):
        """Test that the opened file is closed when validation fails."""
        path = tmp_path / "payload.exe"
        path.write_bytes(b"MZ")
        opened = []
        real_open = open

        def tracking_open(*args, **kwargs):
            handle = real_open(*args, **kwargs)
            opened.append(handle)
            return handle

        monkeypatch.setattr("builtins.open", tracking_open)
        with pytest.raises(ValidationError):
            EmailAttachment.from_file(path)

        assert opened and opened[0].closed


class TestGuessMimeType:
    """Tests for the extension to MIME table."""

    @pytest.mark.parametrize(
        "file_name, expected",
        [
            ("a.jpg", "image/jpeg"),
            ("a.JPEG", "image/jpeg"),
            ("a.htm", "text/html"),
            ("a.xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
            ("a.unknown", DEFAULT_MIME_TYPE),
        ],
    )
    def test_known_and_unknown_extensions(self, file_name, expected):
        """Test lookups for known and unknown extensions."""
        assert guess_mime_type(file_name) == expected
