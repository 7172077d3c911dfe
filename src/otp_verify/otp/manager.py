"""OTP manager — the issuance / verification entry point for callers."""

from __future__ import annotations

import logging
from datetime import timedelta

from otp_verify.config import Settings
from otp_verify.otp.generator import generate_code
from otp_verify.otp.models import OTPMetadata, VerifyResult
from otp_verify.otp.store import Clock, OTPStore
from otp_verify.otp.sweeper import ExpirySweeper
from otp_verify.otp.validation import IdentityValidator, is_email
from otp_verify.otp.verifier import Verifier

logger = logging.getLogger(__name__)


class OTPManager:
    """Owns one :class:`OTPStore` plus its verifier and expiry sweeper.

    Construct a single instance at startup and pass it to whatever issues
    or checks codes.  The sweeper only runs between ``start()`` and
    ``stop()``.
    """

    def __init__(
        self,
        store: OTPStore,
        sweep_interval: float = 60.0,
    ) -> None:
        self.store = store
        self._verifier = Verifier(store)
        self._sweeper = ExpirySweeper(store, sweep_interval)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        clock: Clock | None = None,
        identity_validator: IdentityValidator = is_email,
    ) -> OTPManager:
        store = OTPStore(
            ttl=timedelta(seconds=settings.otp_ttl_seconds),
            max_attempts=settings.otp_max_attempts,
            code_length=settings.otp_code_length,
            hash_cost=settings.otp_hash_cost,
            clock=clock,
            identity_validator=identity_validator,
        )
        return cls(store, sweep_interval=settings.otp_sweep_interval_seconds)

    @property
    def ttl(self) -> timedelta:
        return self.store.ttl

    @property
    def sweeper(self) -> ExpirySweeper:
        return self._sweeper

    # ── Lifecycle ────────────────────────────────────────

    def start(self) -> None:
        self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()

    # ── Operations ───────────────────────────────────────

    def generate_code(self) -> str:
        return generate_code(self.store.code_length)

    async def issue(self, identity: object, ttl: timedelta | None = None) -> str:
        """Generate a code for *identity*, store its hash and return it.

        Any earlier code for the identity stops working.  The plaintext is
        returned exactly once; the manager cannot produce it again.
        """
        code = self.generate_code()
        await self.store.put(identity, code, ttl)
        return code

    async def verify(self, identity: object, code: object) -> VerifyResult:
        return await self._verifier.verify(identity, code)

    async def cancel(self, identity: object) -> bool:
        """Invalidate any live code for *identity*."""
        return await self.store.delete(identity)

    async def inspect(self, identity: object) -> OTPMetadata | None:
        return await self.store.inspect(identity)
