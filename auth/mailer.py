"""
auth/mailer.py -- OTP email delivery for the local identity provider.

The Appwrite backend sends its own emails; this module is only used when
IDENTITY_BACKEND=local. Two senders:

  LogOtpSender  -- writes the code to the log at WARNING level. Development
                   only: the code is a credential.
  SmtpOtpSender -- plain SMTP with optional STARTTLS.

Both raise OtpDeliveryError on failure; the local provider turns that into a
ProviderError, which the OTP issuer reports as "Failed to send an OTP".
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from core.config import Settings

logger = logging.getLogger("vaultpro.auth.mailer")


class OtpDeliveryError(Exception):
    """The OTP email could not be handed to the mail transport."""


def _build_body(code: str, expire_seconds: int) -> str:
    minutes = max(1, expire_seconds // 60)
    return "\n\n".join(
        [
            f"Your VaultPro verification code is: {code}",
            f"This code expires in {minutes} minutes.",
            "If you did not request this, you can ignore this email.",
        ]
    )


class LogOtpSender:
    def send(self, email: str, code: str, expire_seconds: int) -> None:
        if not email:
            raise OtpDeliveryError("No recipient address")
        logger.warning("[OTP EMAIL MOCK] email=%s code=%s", email, code)


class SmtpOtpSender:
    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.smtp_from
        self.use_tls = settings.smtp_use_tls
        self.subject = settings.otp_email_subject

    def send(self, email: str, code: str, expire_seconds: int) -> None:
        if not self.host or not self.sender:
            raise OtpDeliveryError("SMTP_HOST and SMTP_FROM must be set")

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = email
        msg["Subject"] = self.subject
        msg.set_content(_build_body(code, expire_seconds))

        try:
            with smtplib.SMTP(host=self.host, port=self.port, timeout=15) as client:
                client.ehlo()
                if self.use_tls:
                    client.starttls()
                    client.ehlo()
                if self.username:
                    client.login(self.username, self.password)
                client.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise OtpDeliveryError(f"SMTP delivery failed: {exc}") from exc


def get_otp_sender(settings: Settings):
    """Return the sender selected by OTP_DELIVERY."""
    if settings.otp_delivery == "smtp":
        return SmtpOtpSender(settings)
    return LogOtpSender()
