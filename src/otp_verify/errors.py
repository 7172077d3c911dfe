"""Exception hierarchy for OTP issuance, verification and account checks.

Only :class:`ValidationError` is raised by the OTP manager itself.  The
:class:`VerificationFailed` family describes the ordinary negative outcomes
of a verification; they are returned as a ``VerifyResult`` and only turned
into exceptions on request via ``VerifyResult.raise_for_outcome()``.
"""

from __future__ import annotations


class OTPError(Exception):
    """Base class for every error raised by this package."""


# ── Input validation ─────────────────────────────────────

class ValidationError(OTPError, ValueError):
    """Malformed identity or code; rejected before touching the store."""


class InvalidIdentity(ValidationError):
    """The identity is not in the expected format (e.g. not an email)."""


class InvalidCode(ValidationError):
    """The code is not a string of the configured number of digits."""


# ── Verification outcomes ────────────────────────────────

class VerificationFailed(OTPError):
    """A verification attempt did not succeed."""

    code = "verification_failed"
    reason = "Verification failed"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)


class NotFoundError(VerificationFailed):
    code = "not_found"
    reason = "OTP not found"


class ExpiredError(VerificationFailed):
    code = "expired"
    reason = "OTP expired"


class AttemptsExceededError(VerificationFailed):
    code = "attempts_exceeded"
    reason = "Maximum verification attempts exceeded"


class MismatchError(VerificationFailed):
    code = "invalid"
    reason = "Invalid OTP"


# ── Account checks ───────────────────────────────────────

class AccountError(OTPError):
    """The account is not in a state that allows the requested action."""


class UserNotFoundError(AccountError):
    pass


class AlreadyVerifiedError(AccountError):
    pass


class UserExistsError(AccountError):
    pass
