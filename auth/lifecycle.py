"""
auth/lifecycle.py -- Account lifecycle: sign-up, sign-in, OTP verification, demo login.

AccountLifecycleManager is stateless between calls; the credential store is
the source of truth and every flow re-reads it.

Sign-up (email, full_name):
  1. Look up the email.
  2. Issue an OTP whether or not it exists. Failure aborts with
     OtpDispatchError before anything is written.
  3. Existing Account -> DuplicateAccountError. The OTP already sent is not
     cancelled.
  4. Otherwise create the Account linked to the fresh account id.
  5. Return the account id; the caller submits the code next.

Sign-in (email):
  Unknown email -> UnknownAccountError and no OTP. Known email -> OTP is sent
  and the stored Account's account id is returned, so verification resolves
  against the identity that already owns the record.

Demo login:
  A single configured email/password identifies the shared demo account. The
  existing-account branch opens a password session and asks for a redirect
  to "/"; the first-click branch registers the identity, records the Account
  and opens a session. Failures are logged and returned as a DemoLogin with
  a fixed message -- handle_demo_click() never raises.

The demo email is refused by every OTP flow (ReservedAccountError) so only
handle_demo_click() ever registers it.

Uniqueness of Account per email is check-then-create and therefore best
effort: concurrent sign-ups for one fresh email can each create a record.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import (
    AuthError,
    DemoLoginError,
    DuplicateAccountError,
    ReservedAccountError,
    UnknownAccountError,
)
from auth.models import Account, CookieSpec, DemoLogin, Session, SessionContext
from auth.otp import OtpIssuer
from auth.provider import IdentityProvider
from auth.sessions import SessionIssuer
from auth.tokens import unique_id
from core.config import Settings

logger = logging.getLogger("vaultpro.auth")


def avatar_placeholder_url(full_name: str, template: str) -> str:
    """Placeholder avatar URL for a display name. Same name, same URL."""
    return template.format(name=quote(full_name.strip(), safe=""))


class AccountLifecycleManager:
    def __init__(
        self,
        store,
        provider: IdentityProvider,
        otp: OtpIssuer,
        sessions: SessionIssuer,
        settings: Settings,
    ) -> None:
        self.store = store
        self.provider = provider
        self.otp = otp
        self.sessions = sessions
        self.avatar_template = settings.avatar_placeholder_url
        self.demo_email = settings.demo_account_email
        self.demo_password = settings.demo_account_password
        self.demo_name = settings.demo_account_name

    # ------------------------------------------------------------------
    # OTP flows
    # ------------------------------------------------------------------

    def _refuse_demo_email(self, email: str) -> None:
        # The demo identity is password-only; an OTP challenge would register
        # the address as passwordless first.
        if email == self.demo_email:
            raise ReservedAccountError()

    def sign_up(self, email: str, full_name: str) -> str:
        self._refuse_demo_email(email)
        existing = self.store.find_by_email(email)

        account_id = self.otp.issue(email)

        if existing is not None:
            raise DuplicateAccountError()

        self.store.create(
            email=email,
            full_name=full_name,
            avatar_url=avatar_placeholder_url(full_name, self.avatar_template),
            account_id=account_id,
        )
        logger.info("Account created for %s", email)
        return account_id

    def sign_in(self, email: str) -> str:
        self._refuse_demo_email(email)
        existing = self.store.find_by_email(email)
        if existing is None:
            raise UnknownAccountError()

        self.otp.issue(email)
        return existing.account_id

    def resend_otp(self, email: str) -> str:
        """Send a fresh code for an email, e.g. from the OTP dialog's resend action."""
        self._refuse_demo_email(email)
        return self.otp.issue(email)

    def verify_secret(self, account_id: str, secret: str) -> tuple[Session, CookieSpec]:
        """Verify a submitted code and mint the session cookie for it."""
        session = self.otp.verify(account_id, secret)
        return session, self.sessions.mint_cookie(session)

    # ------------------------------------------------------------------
    # Current session
    # ------------------------------------------------------------------

    def get_current_user(self, ctx: SessionContext) -> Account | None:
        return self.sessions.current_account(ctx)

    def is_demo_user(self, ctx: SessionContext) -> bool:
        """True iff the current Account is the demo account. False when nobody is signed in."""
        account = self.get_current_user(ctx)
        return account is not None and account.email == self.demo_email

    def sign_out(self, ctx: SessionContext) -> bool:
        """Best-effort delete of the current session. Never raises."""
        return self.sessions.destroy_current(ctx)

    # ------------------------------------------------------------------
    # Demo account
    # ------------------------------------------------------------------

    def handle_demo_click(self) -> DemoLogin:
        try:
            existing = self.store.find_by_email(self.demo_email)

            if existing is not None:
                session = self.provider.create_password_session(self.demo_email, self.demo_password)
                return DemoLogin(session=session, cookie=self.sessions.mint_cookie(session), redirect_to="/")

            identity = self.provider.create_password_identity(
                unique_id(), self.demo_email, self.demo_password, name=self.demo_name
            )
            self.store.create(
                email=self.demo_email,
                full_name=self.demo_name,
                avatar_url=avatar_placeholder_url(self.demo_name, self.avatar_template),
                account_id=identity.id,
            )
            logger.info("Demo account provisioned (identity %s)", identity.id)

            session = self.provider.create_password_session(self.demo_email, self.demo_password)
            return DemoLogin(session=session, cookie=self.sessions.mint_cookie(session), created=True)
        except (AuthError, SQLAlchemyError):
            logger.exception("Failed to log in as demo user")
            return DemoLogin(error=DemoLoginError.message)
