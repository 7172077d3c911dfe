"""FastAPI dependencies for the verification endpoints."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from otp_verify.database.engine import get_session
from otp_verify.otp.manager import OTPManager
from otp_verify.services.email_service import EmailService
from otp_verify.services.verification_service import VerificationService


def get_otp_manager(request: Request) -> OTPManager:
    """The manager created by the application lifespan."""
    return request.app.state.otp_manager


def get_email_service() -> EmailService:
    return EmailService()


def get_verification_service(
    otp_manager: OTPManager = Depends(get_otp_manager),
    db_session: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
) -> VerificationService:
    return VerificationService(otp_manager, db_session, email_service)
