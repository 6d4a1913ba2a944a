"""
API request and response models for the VaultPro identity endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Field names on the wire are camelCase (accountId, sessionId, fullName) to
match what the web client already sends and reads.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. The email
# challenge itself is the real validation.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-up."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    full_name: str = Field(alias="fullName", min_length=2, max_length=50)
    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)


class SignInRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-in and /auth/otp/resend."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)


class VerifyRequest(BaseModel):
    """Request body for POST /api/v1/auth/verify.

    password is the OTP code the user received by email.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    account_id: str = Field(alias="accountId", min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountIdResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account_id: str = Field(alias="accountId")


class SessionIdResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class AccountResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    email: str
    full_name: str = Field(alias="fullName")
    avatar: str
    account_id: str = Field(alias="accountId")

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        """Factory Method -- the mapping lives next to the output model."""
        return cls(
            id=account.id,
            email=account.email,
            full_name=account.full_name,
            avatar=account.avatar_url,
            account_id=account.account_id,
        )


class DemoStatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_demo: bool = Field(alias="isDemo")


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    backend: str
