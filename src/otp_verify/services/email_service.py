"""Email service — delivers verification codes via async SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from otp_verify.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class EmailService:
    """Sends transactional emails using the configured SMTP server."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or default_settings

    def build_otp_message(
        self, to_email: str, code: str, ttl_minutes: int
    ) -> EmailMessage:
        """Compose the verification email carrying *code*."""
        app_name = self._config.app_name
        msg = EmailMessage()
        msg["Subject"] = f"Your verification code — {app_name}"
        msg["From"] = self._config.email_from
        msg["To"] = to_email
        msg.set_content(
            f"Your verification code is: {code}\n\n"
            f"This code will expire in {ttl_minutes} minutes.\n\n"
            "If you didn't request this code, please ignore this email.\n\n"
            f"The {app_name} Team"
        )
        msg.add_alternative(
            "<html><body>"
            "<h2>Email Verification</h2>"
            "<p>Your verification code is:</p>"
            f'<p style="font-size:32px;font-weight:bold;letter-spacing:5px">{code}</p>'
            f"<p>This code will expire in {ttl_minutes} minutes.</p>"
            "<p>If you didn't request this code, please ignore this email.</p>"
            "</body></html>",
            subtype="html",
        )
        return msg

    async def send_otp(self, to_email: str, code: str, ttl_minutes: int) -> None:
        """Send *code* to *to_email*.

        Raises ``aiosmtplib.SMTPException`` or ``OSError`` if the SMTP
        server cannot be reached or rejects the message.
        """
        msg = self.build_otp_message(to_email, code, ttl_minutes)

        logger.info("Sending verification code email to %s", to_email)

        await aiosmtplib.send(
            msg,
            hostname=self._config.smtp_host,
            port=self._config.smtp_port,
            username=self._config.smtp_username or None,
            password=self._config.smtp_password or None,
            start_tls=self._config.smtp_start_tls,
        )

        logger.info("Verification code email sent to %s", to_email)
