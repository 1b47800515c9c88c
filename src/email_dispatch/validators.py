"""Email validation utilities."""

import re
import unicodedata
from typing import Optional, Tuple

from email_validator import validate_email, EmailNotValidError

MAX_ADDRESS_LENGTH = 254
MAX_DISPLAY_NAME_LENGTH = 64
MAX_HEADER_NAME_LENGTH = 76

_LABEL = r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
ADDRESS_PATTERN = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    rf"@{_LABEL}(?:\.{_LABEL})+$"
)

# RFC 5322 field-name: printable US-ASCII except colon
HEADER_NAME_PATTERN = re.compile(r"^[\x21-\x39\x3b-\x7e]+$")


def validate_email_address(email: str) -> Tuple[bool, str]:
    """Validate an email address with email-validator.

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, normalized address or error message)
    """
    try:
        valid = validate_email(email, check_deliverability=False)
        return True, valid.normalized
    except EmailNotValidError as e:
        return False, str(e)


def has_control_characters(value: str) -> bool:
    """Return True if ``value`` contains any Unicode control character."""
    return any(unicodedata.category(ch) == "Cc" for ch in value)


def validate_header_name(name: Optional[str]) -> Tuple[bool, str]:
    """Validate a header field name.

    Args:
        name: Header name, untrimmed

    Returns:
        Tuple of (is_valid, trimmed name or error message)
    """
    if name is None or not name.strip():
        return False, "Header name cannot be null or empty."

    name = name.strip()
    if len(name) > MAX_HEADER_NAME_LENGTH:
        return False, f"Header name cannot exceed {MAX_HEADER_NAME_LENGTH} characters."
    if not HEADER_NAME_PATTERN.match(name):
        return False, f"Header name contains invalid characters: {name!r}"

    return True, name
