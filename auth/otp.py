"""
auth/otp.py -- Email OTP issuance and verification.

OtpIssuer is the only place that talks to the provider's challenge API.
It narrows provider failures into the two errors the flows care about:

  issue()  -> OtpDispatchError    ("Failed to send an OTP")
  verify() -> VerificationError   (one message for wrong / expired / unknown)

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.errors import OtpDispatchError, ProviderError, VerificationError
from auth.models import Session
from auth.provider import IdentityProvider
from auth.tokens import unique_id

logger = logging.getLogger("vaultpro.auth.otp")


class OtpIssuer:
    def __init__(self, provider: IdentityProvider) -> None:
        self.provider = provider

    def issue(self, email: str) -> str:
        """Send an OTP challenge to `email` and return the account identifier it is tied to.

        A fresh id is proposed on every call; the provider keeps the existing
        id when the email is already registered with it.
        """
        try:
            handle = self.provider.send_email_challenge(unique_id(), email)
        except ProviderError as exc:
            logger.warning("OTP dispatch failed for %s (provider status %s)", email, exc.provider_status)
            raise OtpDispatchError() from exc
        if not handle.user_id:
            raise OtpDispatchError()
        return handle.user_id

    def verify(self, account_id: str, secret: str) -> Session:
        """Exchange a submitted code for a Session. Any failure is a VerificationError."""
        if not account_id or not secret:
            raise VerificationError()
        try:
            return self.provider.verify_challenge(account_id, secret)
        except ProviderError as exc:
            logger.info("OTP verification rejected for account %s", account_id)
            raise VerificationError() from exc
