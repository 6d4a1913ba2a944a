"""
auth/errors.py -- Exception hierarchy for the identity and session layer.

Every error carries a machine-readable code, a fixed user-facing message and
the HTTP status the API layer should answer with. api/main.py renders any
AuthError through the standard ErrorResponse envelope, so route handlers let
these propagate instead of catching them one by one.

Messages are deliberately fixed strings. Provider and store exceptions are
chained (raise ... from exc) and logged, never echoed back to the caller.

Layer rule: no imports from api/.
"""

from __future__ import annotations

GENERIC_MESSAGE = "Failed to create account or sign in. Please try again."


class AuthError(Exception):
    """Base class for every error raised by auth/."""

    code = "auth_error"
    message = GENERIC_MESSAGE
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class OtpDispatchError(AuthError):
    """The identity provider could not send an OTP challenge."""

    code = "otp_failed"
    message = "Failed to send an OTP"
    status_code = 502


class DuplicateAccountError(AuthError):
    """Sign-up against an email that already has an Account."""

    code = "user_exists"
    message = "User already exists."
    status_code = 409


class UnknownAccountError(AuthError):
    """Sign-in against an email with no Account."""

    code = "user_not_found"
    message = "User does not exist. Please sign up."
    status_code = 404


class VerificationError(AuthError):
    """Wrong, expired, consumed or unknown OTP.

    The causes are not distinguished so callers cannot tell which part of the
    challenge failed.
    """

    code = "invalid_otp"
    message = "Invalid or expired code."
    status_code = 401


class CreateError(AuthError):
    """The credential store rejected an Account write."""

    code = "account_create_failed"
    status_code = 500


class ProviderError(AuthError):
    """Opaque failure from the identity provider.

    provider_status mirrors the provider's own status code where it has one
    (409 for an email that is already registered, 401 for bad credentials).
    """

    code = "provider_error"
    status_code = 502

    def __init__(self, message: str | None = None, provider_status: int | None = None) -> None:
        super().__init__(message)
        self.provider_status = provider_status


class SessionResolutionError(AuthError):
    """No usable session. Never propagated to the HTTP layer as an exception."""

    code = "unauthorized"
    message = "Authentication required."
    status_code = 401

    def __init__(self, message: str | None = None, reason: str = "no_session") -> None:
        super().__init__(message)
        self.reason = reason  # "no_session" | "invalid_session" | "missing_account"


class DemoLoginError(AuthError):
    """Demo provisioning failed at the provider or the store."""

    code = "demo_login_failed"
    message = "Failed to log in as demo user. Please try again in some time."
    status_code = 503


class ReservedAccountError(AuthError):
    """OTP requested for the demo account's email. That identity is password-only."""

    code = "demo_account_reserved"
    message = "This email belongs to the demo account. Use the demo login instead."
    status_code = 403
