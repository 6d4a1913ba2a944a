"""
auth/models.py -- Domain dataclasses for identity and session entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores, providers and the lifecycle manager do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auth.errors import SessionResolutionError


@dataclass
class Account:
    """One registered identity as recorded in the credential store.

    email is the natural key and is compared exactly as stored. account_id is
    the identity provider's id for this person -- the link between the stored
    record and whatever OTP challenge or session proves who they are.

    avatar_url is derived from full_name once, at creation, and never updated.
    """

    email: str
    full_name: str
    avatar_url: str
    account_id: str
    id: str | None = None  # document id assigned by the store
    created_at: str | None = None


@dataclass
class Identity:
    """The identity provider's answer to "who owns this session"."""

    id: str
    email: str
    name: str = ""


@dataclass
class ChallengeHandle:
    """A pending email OTP challenge. user_id is the account identifier."""

    user_id: str
    expires_at: str | None = None


@dataclass
class Session:
    """An authenticated provider session.

    secret is the bearer credential that goes into the session cookie. It is
    only ever available at creation time; providers store a hash.
    """

    session_id: str
    secret: str
    account_id: str
    expires_at: str | None = None


@dataclass(frozen=True)
class CookieSpec:
    """Semantic description of the session cookie.

    Attributes are fixed, except that secure follows SECURE_COOKIES (on by
    default, off only for plain-HTTP local development).
    """

    name: str
    value: str
    path: str = "/"
    httponly: bool = True
    samesite: str = "strict"
    secure: bool = True


@dataclass(frozen=True)
class SessionContext:
    """Per-request session capability, threaded explicitly into every call.

    secret is the inbound session cookie value, or None when the request
    carried no cookie.
    """

    secret: str | None = None


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a SessionContext: exactly one of account / error."""

    account: Account | None = None
    error: SessionResolutionError | None = None

    @property
    def ok(self) -> bool:
        return self.account is not None


@dataclass
class DemoLogin:
    """Outcome of a demo button click.

    On success session and cookie are set. redirect_to is "/" only on the
    existing-demo-account branch. On failure error holds the user-facing
    message and nothing else is set.
    """

    session: Session | None = None
    cookie: CookieSpec | None = None
    redirect_to: str | None = None
    created: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
