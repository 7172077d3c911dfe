"""Verification API client — async HTTP client for the ``/auth`` endpoints.

Lets another service (or a test) drive the send / verify flow over HTTP.
``base_url`` points at a running OTP Verify instance; a custom httpx
transport can be passed to talk to an in-process app instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

import httpx

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """Outcome of a send / resend request."""

    success: bool
    message: str
    delivered: bool = False
    otp: str | None = None


@dataclass
class VerifyResponse:
    """Outcome of a verify request; ``outcome`` is ``"valid"`` on success."""

    success: bool
    outcome: str
    message: str


@dataclass
class OTPStatus:
    email: str
    attempts: int
    remaining_attempts: int
    expires_at: datetime


class VerificationAPIClient:
    """Async HTTP wrapper around the verification API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, transport=self._transport)

    # ── Sending ──────────────────────────────────────────

    async def send_otp(self, email: str) -> SendResult:
        """Ask the service to issue and email a code to *email*."""
        return await self._send("/auth/send-otp", email)

    async def resend_otp(self, email: str) -> SendResult:
        """Ask for a fresh code; the previous one is invalidated."""
        return await self._send("/auth/resend-otp", email)

    async def _send(self, path: str, email: str) -> SendResult:
        try:
            async with self._client() as client:
                resp = await client.post(path, json={"email": email})
            data = resp.json()
            if resp.status_code == 200:
                logger.info("OTP send result for %s: %s", email, data.get("message"))
                return SendResult(
                    success=data.get("success", False),
                    message=data.get("message", ""),
                    delivered=data.get("delivered", False),
                    otp=data.get("otp"),
                )
            logger.error("OTP send failed: %s %s", resp.status_code, resp.text)
            return SendResult(success=False, message=str(data.get("detail", "")))
        except httpx.HTTPError as exc:
            logger.exception("OTP send request error: %s", exc)
            return SendResult(success=False, message="Request failed")

    # ── Verifying ────────────────────────────────────────

    async def verify_otp(self, email: str, otp: str) -> VerifyResponse:
        """Submit *otp* for *email*."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    "/auth/verify-otp", json={"email": email, "otp": otp}
                )
            data = resp.json()
            if resp.status_code == 200:
                return VerifyResponse(
                    success=True, outcome="valid", message=data.get("message", "")
                )
            detail = data.get("detail")
            if resp.status_code == 400 and isinstance(detail, dict):
                return VerifyResponse(
                    success=False,
                    outcome=detail.get("outcome", "invalid"),
                    message=detail.get("message", ""),
                )
            logger.error("OTP verify failed: %s %s", resp.status_code, resp.text)
            return VerifyResponse(success=False, outcome="error", message=str(detail))
        except httpx.HTTPError as exc:
            logger.exception("OTP verify request error: %s", exc)
            return VerifyResponse(success=False, outcome="error", message="Request failed")

    async def otp_status(self, email: str) -> OTPStatus | None:
        """Metadata about the live code, or ``None`` if there is none."""
        try:
            async with self._client() as client:
                resp = await client.get("/auth/otp-status", params={"email": email})
            if resp.status_code == 200:
                data = resp.json()
                return OTPStatus(
                    email=data["email"],
                    attempts=data["attempts"],
                    remaining_attempts=data["remaining_attempts"],
                    expires_at=datetime.fromisoformat(data["expires_at"]),
                )
            if resp.status_code == 404:
                return None
            logger.error("OTP status failed: %s %s", resp.status_code, resp.text)
            return None
        except httpx.HTTPError as exc:
            logger.exception("OTP status request error: %s", exc)
            return None
