"""Account verification service — email ownership confirmed by OTP.

Flow
----
1. A user registers (or already exists) with ``is_verified = False``.
2. ``send_code`` issues a fresh code and emails it.  A failed delivery is
   logged but the code stays stored; resending simply supersedes it.
3. ``verify_code`` checks the code and marks the user verified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import aiosmtplib
from sqlalchemy.ext.asyncio import AsyncSession

from otp_verify.database.repository import UserRepository
from otp_verify.errors import AlreadyVerifiedError, UserExistsError, UserNotFoundError
from otp_verify.models.user import User
from otp_verify.otp.manager import OTPManager
from otp_verify.services.email_service import EmailService

logger = logging.getLogger(__name__)


@dataclass
class IssuedCode:
    """What the caller learns after a code was issued."""

    email: str
    code: str
    delivered: bool
    expires_in_seconds: int


class VerificationService:
    """Ties the OTP manager to the user store and the email channel."""

    def __init__(
        self,
        otp_manager: OTPManager,
        db_session: AsyncSession,
        email_service: EmailService,
    ) -> None:
        self._otp = otp_manager
        self._users = UserRepository(db_session)
        self._email = email_service

    async def register(self, email: str, name: str = "") -> tuple[User, IssuedCode]:
        """Create an unverified user and send them a code."""
        identity = self._otp.store.normalize(email)
        if await self._users.exists(identity):
            raise UserExistsError("Email already registered")
        user = await self._users.create(identity, name)
        logger.info("Registered user %s", identity)
        issued = await self._issue_and_deliver(identity)
        return user, issued

    async def send_code(self, email: str) -> IssuedCode:
        """Issue and deliver a code to an existing, unverified user."""
        identity = self._otp.store.normalize(email)
        await self._unverified_user(identity)
        return await self._issue_and_deliver(identity)

    async def resend_code(self, email: str) -> IssuedCode:
        """Same as :meth:`send_code`; the new code replaces the old one."""
        return await self.send_code(email)

    async def verify_code(self, email: str, code: str) -> User:
        """Verify *code* and mark the user verified.

        Raises a ``VerificationFailed`` subclass when the code is not
        accepted.
        """
        identity = self._otp.store.normalize(email)
        user = await self._unverified_user(identity)

        result = await self._otp.verify(identity, code)
        result.raise_for_outcome()

        await self._users.mark_verified(user)
        logger.info("User %s verified", identity)
        return user

    # ── Private helpers ──────────────────────────────────

    async def _unverified_user(self, identity: str) -> User:
        user = await self._users.find_by_email(identity)
        if user is None:
            raise UserNotFoundError("User not found")
        if user.is_verified:
            raise AlreadyVerifiedError("User already verified")
        return user

    async def _issue_and_deliver(self, identity: str) -> IssuedCode:
        code = await self._otp.issue(identity)
        ttl_seconds = int(self._otp.ttl.total_seconds())

        delivered = True
        try:
            await self._email.send_otp(identity, code, max(ttl_seconds // 60, 1))
        except (aiosmtplib.SMTPException, OSError):
            # The stored code is kept; the user can ask for a resend
            delivered = False
            logger.exception("Failed to deliver verification code to %s", identity)

        return IssuedCode(
            email=identity,
            code=code,
            delivered=delivered,
            expires_in_seconds=ttl_seconds,
        )
