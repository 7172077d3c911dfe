"""Verification API router.

Endpoints
---------
POST /auth/register          → create an unverified user and send a code
POST /auth/send-otp          → issue and email a code
POST /auth/resend-otp        → same, superseding the previous code
POST /auth/verify-otp        → check a code and mark the user verified
GET  /auth/otp-status?email= → non-secret OTP metadata (debug only)
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from otp_verify.api.dependencies import get_otp_manager, get_verification_service
from otp_verify.config import settings
from otp_verify.errors import (
    AlreadyVerifiedError,
    UserExistsError,
    UserNotFoundError,
    ValidationError,
    VerificationFailed,
)
from otp_verify.otp.manager import OTPManager
from otp_verify.services.verification_service import IssuedCode, VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["verification"])


# ── Response / request models ────────────────────────────

class RegisterRequest(BaseModel):
    email: str
    name: str = ""


class OTPSendRequest(BaseModel):
    email: str


class OTPSendResponse(BaseModel):
    success: bool
    message: str
    expires_in_seconds: int
    delivered: bool
    otp: str | None = None


class OTPVerifyRequest(BaseModel):
    email: str
    otp: str


class OTPVerifyResponse(BaseModel):
    success: bool
    message: str
    email: str


class OTPStatusResponse(BaseModel):
    email: str
    expires_at: datetime
    attempts: int
    remaining_attempts: int
    is_expired: bool
    created_at: datetime
    last_attempt_at: datetime | None


# ── Helpers ──────────────────────────────────────────────

def _send_response(issued: IssuedCode, message: str) -> OTPSendResponse:
    # The code is live even when the email bounced
    if not issued.delivered:
        message = "OTP created, but the email could not be delivered. Please resend."
    return OTPSendResponse(
        success=True,
        message=message,
        expires_in_seconds=issued.expires_in_seconds,
        delivered=issued.delivered,
        otp=issued.code if settings.otp_expose_code else None,
    )


def _account_error(exc: Exception) -> HTTPException:
    if isinstance(exc, UserNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (AlreadyVerifiedError, UserExistsError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


# ── Endpoints ────────────────────────────────────────────

@router.post("/register", response_model=OTPSendResponse, status_code=201)
async def register(
    body: RegisterRequest,
    service: VerificationService = Depends(get_verification_service),
):
    """Create an unverified account and email it a verification code."""
    try:
        _, issued = await service.register(body.email, body.name)
    except (ValidationError, UserExistsError) as exc:
        raise _account_error(exc) from exc
    return _send_response(
        issued, "Registration successful. Please verify your email with OTP."
    )


@router.post("/send-otp", response_model=OTPSendResponse)
async def send_otp(
    body: OTPSendRequest,
    service: VerificationService = Depends(get_verification_service),
):
    """Issue a code for an existing, unverified account."""
    try:
        issued = await service.send_code(body.email)
    except (ValidationError, UserNotFoundError, AlreadyVerifiedError) as exc:
        raise _account_error(exc) from exc
    return _send_response(issued, "OTP sent successfully")


@router.post("/resend-otp", response_model=OTPSendResponse)
async def resend_otp(
    body: OTPSendRequest,
    service: VerificationService = Depends(get_verification_service),
):
    """Issue a new code; the previous one stops working."""
    try:
        issued = await service.resend_code(body.email)
    except (ValidationError, UserNotFoundError, AlreadyVerifiedError) as exc:
        raise _account_error(exc) from exc
    return _send_response(issued, "OTP resent successfully")


@router.post("/verify-otp", response_model=OTPVerifyResponse)
async def verify_otp(
    body: OTPVerifyRequest,
    service: VerificationService = Depends(get_verification_service),
):
    """Check a code and mark the account verified."""
    try:
        user = await service.verify_code(body.email, body.otp)
    except (ValidationError, UserNotFoundError, AlreadyVerifiedError) as exc:
        raise _account_error(exc) from exc
    except VerificationFailed as exc:
        logger.info("OTP verification failed for %s: %s", body.email, exc.code)
        raise HTTPException(
            status_code=400,
            detail={"outcome": exc.code, "message": str(exc)},
        ) from exc

    return OTPVerifyResponse(
        success=True, message="Email verified successfully", email=user.email
    )


@router.get("/otp-status", response_model=OTPStatusResponse)
async def otp_status(
    email: str = Query(..., description="Email the code was issued for"),
    otp_manager: OTPManager = Depends(get_otp_manager),
):
    """Non-secret metadata about the live code, only when ``debug`` is on."""
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")

    meta = await otp_manager.inspect(email)
    if meta is None:
        raise HTTPException(status_code=404, detail="No active OTP")
    return OTPStatusResponse(
        email=meta.identity,
        expires_at=meta.expires_at,
        attempts=meta.attempts,
        remaining_attempts=meta.remaining_attempts,
        is_expired=meta.is_expired,
        created_at=meta.created_at,
        last_attempt_at=meta.last_attempt_at,
    )
