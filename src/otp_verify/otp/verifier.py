"""Timing-safe verification of a supplied code against the store."""

from __future__ import annotations

import logging

from otp_verify.otp import hashing
from otp_verify.otp.models import VerifyOutcome, VerifyResult
from otp_verify.otp.store import AttemptStatus, OTPStore
from otp_verify.otp.validation import validate_code

logger = logging.getLogger(__name__)


class Verifier:
    """Checks codes against an :class:`OTPStore`.

    Every branch that ends without a match, except a spent attempt budget,
    performs one bcrypt comparison of the same cost as a real check, so
    "no such identity", "expired" and "wrong code" take the same time.
    The attempt counter is incremented before the comparison runs, and the
    comparison against a live record happens under the identity's lock.
    """

    def __init__(self, store: OTPStore) -> None:
        self._store = store

    async def verify(self, identity: object, code: object) -> VerifyResult:
        """Verify *code* for *identity*.

        Raises ``InvalidIdentity`` / ``InvalidCode`` for malformed input;
        every other outcome is returned, never raised.
        """
        key = self._store.normalize(identity)
        code = validate_code(code, self._store.code_length)

        async def compare(code_hash: str) -> bool:
            return await hashing.check_code_async(code, code_hash)

        result = await self._store.attempt(key, compare)

        if result.status is AttemptStatus.NOT_FOUND:
            await self._burn(code)
            logger.info("OTP verification for %s: no active code", key)
            return VerifyResult(VerifyOutcome.NOT_FOUND, "OTP not found or expired")

        if result.status is AttemptStatus.EXPIRED:
            await self._burn(code)
            logger.info("OTP verification for %s: code expired", key)
            return VerifyResult(VerifyOutcome.EXPIRED, "OTP expired")

        if result.status is AttemptStatus.EXHAUSTED:
            logger.info("OTP verification for %s: attempt budget spent", key)
            return _exceeded()

        if result.matched:
            logger.info("OTP verified for %s", key)
            return VerifyResult(VerifyOutcome.VALID)

        remaining = self._store.max_attempts - result.attempt
        if remaining <= 0:
            return _exceeded()
        logger.info(
            "Invalid OTP for %s (%d attempts remaining)", key, remaining
        )
        return VerifyResult(
            VerifyOutcome.INVALID,
            f"Invalid OTP. {remaining} attempts remaining",
            remaining_attempts=remaining,
        )

    async def _burn(self, code: str) -> None:
        """Compare against the dummy hash; the result is discarded."""
        dummy = await hashing.dummy_hash_async(self._store.hash_cost)
        await hashing.check_code_async(code, dummy)


def _exceeded() -> VerifyResult:
    return VerifyResult(
        VerifyOutcome.ATTEMPTS_EXCEEDED,
        "Maximum verification attempts exceeded",
        remaining_attempts=0,
    )
