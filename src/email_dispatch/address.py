"""Validated email address value type."""

from dataclasses import dataclass
from email.headerregistry import Address
from typing import Optional, Tuple

from .exceptions import ValidationError
from .validators import (
    ADDRESS_PATTERN,
    MAX_ADDRESS_LENGTH,
    MAX_DISPLAY_NAME_LENGTH,
    has_control_characters,
    validate_email_address,
)


@dataclass(frozen=True, eq=False)
class EmailAddress:
    """An email address with an optional display name.

    The address is lowercased on construction. Equality and hashing ignore
    case on both the address and the display name.
    """

    address: str
    display_name: Optional[str] = None

    def __post_init__(self):
        address = self._check_address(self.address)
        display_name = self._check_display_name(self.display_name)

        object.__setattr__(self, "address", address)
        object.__setattr__(self, "display_name", display_name)

    @staticmethod
    def _check_address(address: Optional[str]) -> str:
        if address is None or not str(address).strip():
            raise ValidationError("Email address cannot be null or empty.")

        address = str(address).strip()
        if len(address) > MAX_ADDRESS_LENGTH:
            raise ValidationError(
                f"Email address cannot exceed {MAX_ADDRESS_LENGTH} characters."
            )
        if not ADDRESS_PATTERN.match(address):
            raise ValidationError(f"Invalid email address format: {address}")

        is_valid, error = validate_email_address(address)
        if not is_valid:
            raise ValidationError(f"Invalid email address {address}: {error}")

        return address.lower()

    @staticmethod
    def _check_display_name(display_name: Optional[str]) -> Optional[str]:
        if display_name is None or not display_name.strip():
            return None

        trimmed = display_name.strip()
        if len(trimmed) > MAX_DISPLAY_NAME_LENGTH:
            raise ValidationError(
                f"Display name cannot exceed {MAX_DISPLAY_NAME_LENGTH} characters."
            )
        # checked on the raw value; str.strip() also removes \x1c-\x1f
        if has_control_characters(display_name):
            raise ValidationError("Display name cannot contain control characters.")

        return trimmed

    @classmethod
    def create(cls, address: str, display_name: Optional[str] = None) -> "EmailAddress":
        """Create a validated address.

        Raises:
            ValidationError: If the address or display name is invalid
        """
        return cls(address, display_name)

    @classmethod
    def try_create(
        cls, address: Optional[str], display_name: Optional[str] = None
    ) -> Tuple[bool, Optional["EmailAddress"]]:
        """Create an address without raising.

        Returns:
            Tuple of (created, address or None)
        """
        try:
            return True, cls(address, display_name)
        except ValidationError:
            return False, None

    @property
    def local_part(self) -> str:
        return self.address.rsplit("@", 1)[0]

    @property
    def domain(self) -> str:
        return self.address.rsplit("@", 1)[1]

    @property
    def has_display_name(self) -> bool:
        return self.display_name is not None

    def to_mail_address(self) -> Address:
        """Convert to the stdlib header address used on the wire message."""
        return Address(display_name=self.display_name or "", addr_spec=self.address)

    def _key(self) -> Tuple[str, str]:
        return self.address, (self.display_name or "").casefold()

    def __eq__(self, other):
        if not isinstance(other, EmailAddress):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __str__(self) -> str:
        if self.display_name:
            return f"{self.display_name} <{self.address}>"
        return self.address
