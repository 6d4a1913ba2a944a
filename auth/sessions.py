"""
auth/sessions.py -- Session cookie issuance and current-session resolution.

SessionIssuer owns three things:
  1. The cookie contract: name from SESSION_COOKIE_NAME (appwrite-session),
     Path=/, HttpOnly, SameSite=Strict, Secure. No max-age -- the provider
     decides how long a session lives. Secure can only be dropped through
     SECURE_COOKIES=false, for plain-HTTP local development.
  2. Resolution: SessionContext -> Resolution. The two failure layers (no
     valid provider session; provider identity with no Account record) are
     both returned as an error Resolution, never raised. Provider and
     database failures count as an invalid session. current_account()
     collapses that to None for callers that only need "who, if anyone".
  3. Best-effort destruction of the current session.

Layer rule: no imports from api/. Response objects are duck-typed Starlette
responses (set_cookie / delete_cookie).
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import ProviderError, SessionResolutionError
from auth.models import Account, CookieSpec, Resolution, Session, SessionContext
from auth.provider import IdentityProvider

logger = logging.getLogger("vaultpro.auth.sessions")


class SessionIssuer:
    def __init__(
        self,
        provider: IdentityProvider,
        store,
        cookie_name: str = "appwrite-session",
        secure: bool = True,
    ) -> None:
        self.provider = provider
        self.store = store
        self.cookie_name = cookie_name
        self.secure = secure

    # ------------------------------------------------------------------
    # Cookie
    # ------------------------------------------------------------------

    def mint_cookie(self, session: Session) -> CookieSpec:
        return CookieSpec(name=self.cookie_name, value=session.secret, secure=self.secure)

    def apply_cookie(self, response, cookie: CookieSpec) -> None:
        """Write the session cookie onto a response."""
        response.set_cookie(
            cookie.name,
            value=cookie.value,
            path=cookie.path,
            httponly=cookie.httponly,
            samesite=cookie.samesite,
            secure=cookie.secure,
        )

    def clear_cookie(self, response) -> None:
        # Attributes must match the ones the cookie was set with or some
        # browsers keep the original.
        response.delete_cookie(
            self.cookie_name,
            path="/",
            httponly=True,
            samesite="strict",
            secure=self.secure,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, ctx: SessionContext) -> Resolution:
        """Resolve the Account behind a session cookie, as a Resolution."""
        if not ctx.secret:
            return Resolution(error=SessionResolutionError(reason="no_session"))
        try:
            identity = self.provider.get_current_identity(ctx.secret)
        except ProviderError as exc:
            logger.debug("Session rejected by provider (status %s)", exc.provider_status)
            return Resolution(error=SessionResolutionError(reason="invalid_session"))
        except SQLAlchemyError:
            logger.exception("Session lookup failed")
            return Resolution(error=SessionResolutionError(reason="invalid_session"))

        try:
            account = self.store.find_by_email(identity.email)
        except (ProviderError, SQLAlchemyError):
            logger.exception("Account lookup failed while resolving session for identity %s", identity.id)
            return Resolution(error=SessionResolutionError(reason="invalid_session"))
        if account is None:
            logger.warning("Session for identity %s has no matching account record", identity.id)
            return Resolution(error=SessionResolutionError(reason="missing_account"))
        return Resolution(account=account)

    def current_account(self, ctx: SessionContext) -> Account | None:
        """Return the current Account or None. Never raises on resolution failure."""
        return self.resolve(ctx).account

    # ------------------------------------------------------------------
    # Destruction
    # ------------------------------------------------------------------

    def destroy_current(self, ctx: SessionContext) -> bool:
        """Delete the provider's current session. Returns False if that failed.

        Failure is logged and swallowed: sign-out must still clear the cookie
        and send the caller to sign-in.
        """
        if not ctx.secret:
            return False
        try:
            self.provider.delete_current_session(ctx.secret)
        except ProviderError as exc:
            logger.warning("Failed to sign out user (provider status %s)", exc.provider_status)
            return False
        except SQLAlchemyError:
            logger.exception("Failed to sign out user")
            return False
        return True
