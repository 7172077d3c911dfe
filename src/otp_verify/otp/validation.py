"""Identity normalization and input format checks."""

from __future__ import annotations

import re
from collections.abc import Callable

from otp_verify.errors import InvalidCode, InvalidIdentity

# Validates an already-normalized identity
IdentityValidator = Callable[[str], bool]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_email(identity: str) -> bool:
    """Loose email syntax check: ``local@domain.tld`` without whitespace."""
    return bool(_EMAIL_RE.match(identity))


def normalize_identity(
    identity: object, validator: IdentityValidator = is_email
) -> str:
    """Trim and case-fold *identity*, raising ``InvalidIdentity`` if malformed."""
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidIdentity("Identity must be a non-empty string")
    normalized = identity.strip().casefold()
    if not validator(normalized):
        raise InvalidIdentity("Invalid identity format")
    return normalized


def validate_code(code: object, length: int) -> str:
    """Return *code* unchanged if it is exactly *length* ASCII digits."""
    if (
        not isinstance(code, str)
        or len(code) != length
        or not code.isascii()
        or not code.isdigit()
    ):
        raise InvalidCode(f"OTP must be {length} digits")
    return code
