"""Numeric one-time passcode generation."""

from __future__ import annotations

import secrets

DEFAULT_CODE_LENGTH = 6


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Return a random *length*-digit code with no leading zero.

    The value is drawn uniformly from ``[10**(length-1), 10**length - 1]``.
    ``secrets.randbelow`` rejects out-of-range samples internally, so the
    draw carries no modulo bias.
    """
    if length < 1:
        raise ValueError(f"Code length must be positive, got {length}")
    low = 10 ** (length - 1)
    span = 10**length - low
    return str(low + secrets.randbelow(span))
