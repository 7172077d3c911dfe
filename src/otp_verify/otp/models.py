"""Value objects for stored passcodes and verification results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from otp_verify.errors import (
    AttemptsExceededError,
    ExpiredError,
    MismatchError,
    NotFoundError,
    VerificationFailed,
)


@dataclass
class OTPRecord:
    """The stored state for one identity's live code.

    Only the bcrypt hash of the code is kept.  ``created_at`` and
    ``last_attempt_at`` are informational.
    """

    identity: str
    code_hash: str
    expires_at: datetime
    created_at: datetime
    attempts: int = 0
    last_attempt_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def __repr__(self) -> str:
        # Keep the hash out of logs and tracebacks
        return (
            f"<OTPRecord identity={self.identity!r} attempts={self.attempts} "
            f"expires_at={self.expires_at.isoformat()}>"
        )


@dataclass(frozen=True)
class OTPMetadata:
    """Non-secret view of a record, for monitoring and tests."""

    identity: str
    expires_at: datetime
    attempts: int
    remaining_attempts: int
    is_expired: bool
    created_at: datetime
    last_attempt_at: datetime | None


class VerifyOutcome(str, Enum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    INVALID = "invalid"


_FAILURES: dict[VerifyOutcome, type[VerificationFailed]] = {
    VerifyOutcome.NOT_FOUND: NotFoundError,
    VerifyOutcome.EXPIRED: ExpiredError,
    VerifyOutcome.ATTEMPTS_EXCEEDED: AttemptsExceededError,
    VerifyOutcome.INVALID: MismatchError,
}


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of a single verification attempt."""

    outcome: VerifyOutcome
    reason: str | None = None
    remaining_attempts: int | None = None

    @property
    def valid(self) -> bool:
        return self.outcome is VerifyOutcome.VALID

    def raise_for_outcome(self) -> None:
        """Raise the matching ``VerificationFailed`` subclass unless valid."""
        if self.valid:
            return
        raise _FAILURES[self.outcome](self.reason)
