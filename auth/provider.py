"""
auth/provider.py -- Identity provider boundary and the local implementation.

IdentityProvider is the contract the rest of auth/ is written against. It
mirrors the handful of Appwrite Account calls the product uses, so the same
lifecycle code runs against Appwrite (auth/appwrite.py) or against
LocalIdentityProvider, which keeps identities, OTP challenges and sessions in
a SQL database next to the credential store.

LocalIdentityProvider behavior:
  Email challenges: sending a challenge to an unknown email registers a
      passwordless identity under the caller-supplied id; a known email keeps
      its existing id. Each new challenge replaces the previous one for that
      identity. Codes are single use, expire after OTP_EXPIRE_SECONDS and are
      burned after OTP_MAX_ATTEMPTS wrong guesses.

  Consumption is a conditional DELETE whose rowcount must be 1, so two
      concurrent verifications of the same code mint at most one session.

  Password identities: identities.email is UNIQUE, so registering the same
      email twice fails with provider_status=409 -- the behavior the demo
      login race relies on.

  Every failure raises ProviderError. Callers translate it into the error
  their flow reports.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ProviderError
from auth.mailer import OtpDeliveryError
from auth.models import ChallengeHandle, Identity, Session
from auth.store import make_engine
from auth.tokens import (
    burn_password_check,
    generate_otp_code,
    generate_session_secret,
    hash_password,
    hash_secret,
    secrets_match,
    unique_id,
    verify_password,
)
from core.config import Settings

logger = logging.getLogger("vaultpro.auth.provider")


class IdentityProvider(Protocol):
    def send_email_challenge(self, account_id: str, email: str) -> ChallengeHandle: ...

    def verify_challenge(self, account_id: str, secret: str) -> Session: ...

    def create_password_identity(self, identity_id: str, email: str, password: str, name: str = "") -> Identity: ...

    def create_password_session(self, email: str, password: str) -> Session: ...

    def get_current_identity(self, session_secret: str) -> Identity: ...

    def delete_current_session(self, session_secret: str) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_identities = Table(
    "identities",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("name", Text, nullable=False, server_default=""),
    Column("hashed_password", Text),  # NULL for OTP-only identities
    Column("created_at", String(32), nullable=False),
)

_challenges = Table(
    "otp_challenges",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("secret_hash", String(64), nullable=False),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("secret_hash", String(64), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _expired(expires_at: str) -> bool:
    return datetime.fromisoformat(expires_at) <= _now()


# ---------------------------------------------------------------------------
# Local provider
# ---------------------------------------------------------------------------


class LocalIdentityProvider:
    """SQL-backed IdentityProvider.

    sender is any object with send(email, code, expire_seconds); see
    auth/mailer.py. Tests pass a capturing sender to read the code.
    """

    def __init__(self, db_url: str, settings: Settings, sender) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)
        self.sender = sender
        self.otp_expire_seconds = settings.otp_expire_seconds
        self.otp_max_attempts = settings.otp_max_attempts
        self.session_expire_seconds = settings.session_expire_seconds

    # ------------------------------------------------------------------
    # Email OTP
    # ------------------------------------------------------------------

    def send_email_challenge(self, account_id: str, email: str) -> ChallengeHandle:
        if not email or "@" not in email:
            raise ProviderError("Invalid email address", provider_status=400)

        user_id = self._ensure_identity(account_id, email)
        code = generate_otp_code()
        expires_at = (_now() + timedelta(seconds=self.otp_expire_seconds)).isoformat()

        with self.engine.begin() as conn:
            conn.execute(delete(_challenges).where(_challenges.c.user_id == user_id))
            conn.execute(
                _challenges.insert().values(
                    id=unique_id(),
                    user_id=user_id,
                    secret_hash=hash_secret(code),
                    attempts=0,
                    created_at=_now().isoformat(),
                    expires_at=expires_at,
                )
            )

        try:
            self.sender.send(email, code, self.otp_expire_seconds)
        except OtpDeliveryError as exc:
            logger.warning("OTP delivery failed for identity %s: %s", user_id, exc)
            raise ProviderError("Email delivery failed", provider_status=503) from exc

        return ChallengeHandle(user_id=user_id, expires_at=expires_at)

    def _ensure_identity(self, account_id: str, email: str) -> str:
        """Return the id of the identity owning `email`, registering it under account_id if new."""
        existing = self._identity_by_email(email)
        if existing is not None:
            return existing.id
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _identities.insert().values(
                        id=account_id,
                        email=email,
                        name="",
                        hashed_password=None,
                        created_at=_now().isoformat(),
                    )
                )
        except IntegrityError:
            # A concurrent challenge registered the email first.
            existing = self._identity_by_email(email)
            if existing is None:
                raise ProviderError("Identity registration failed", provider_status=409) from None
            return existing.id
        return account_id

    def verify_challenge(self, account_id: str, secret: str) -> Session:
        # Raising inside begin() would roll back the attempt counter, so the
        # outcome is decided in the transaction and raised after commit.
        verified = False
        with self.engine.begin() as conn:
            row = conn.execute(select(_challenges).where(_challenges.c.user_id == account_id)).fetchone()
            if row is None:
                pass
            elif _expired(row.expires_at) or row.attempts >= self.otp_max_attempts:
                conn.execute(delete(_challenges).where(_challenges.c.id == row.id))
            elif not secrets_match(secret, row.secret_hash):
                conn.execute(
                    update(_challenges).where(_challenges.c.id == row.id).values(attempts=_challenges.c.attempts + 1)
                )
            else:
                verified = conn.execute(delete(_challenges).where(_challenges.c.id == row.id)).rowcount == 1
        if not verified:
            raise ProviderError("Invalid token", provider_status=401)
        return self._create_session(account_id)

    # ------------------------------------------------------------------
    # Password identities (demo account)
    # ------------------------------------------------------------------

    def create_password_identity(self, identity_id: str, email: str, password: str, name: str = "") -> Identity:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _identities.insert().values(
                        id=identity_id,
                        email=email,
                        name=name,
                        hashed_password=hash_password(password),
                        created_at=_now().isoformat(),
                    )
                )
        except IntegrityError as exc:
            raise ProviderError(
                "A user with the same id, email, or phone already exists", provider_status=409
            ) from exc
        return Identity(id=identity_id, email=email, name=name)

    def create_password_session(self, email: str, password: str) -> Session:
        row = self._identity_by_email(email)
        if row is None or row.hashed_password is None:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            burn_password_check(password)
            raise ProviderError("Invalid credentials", provider_status=401)
        if not verify_password(password, row.hashed_password):
            raise ProviderError("Invalid credentials", provider_status=401)
        return self._create_session(row.id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _create_session(self, user_id: str) -> Session:
        secret = generate_session_secret()
        session = Session(
            session_id=unique_id(),
            secret=secret,
            account_id=user_id,
            expires_at=(_now() + timedelta(seconds=self.session_expire_seconds)).isoformat(),
        )
        with self.engine.begin() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.session_id,
                    user_id=user_id,
                    secret_hash=hash_secret(secret),
                    created_at=_now().isoformat(),
                    expires_at=session.expires_at,
                )
            )
        return session

    def get_current_identity(self, session_secret: str) -> Identity:
        if not session_secret:
            raise ProviderError("No session", provider_status=401)
        with self.engine.connect() as conn:
            session_row = conn.execute(
                select(_sessions).where(_sessions.c.secret_hash == hash_secret(session_secret))
            ).fetchone()
            if session_row is None:
                raise ProviderError("No session", provider_status=401)
            if _expired(session_row.expires_at):
                conn.execute(delete(_sessions).where(_sessions.c.id == session_row.id))
                conn.commit()
                raise ProviderError("Session expired", provider_status=401)
            identity_row = conn.execute(select(_identities).where(_identities.c.id == session_row.user_id)).fetchone()
        if identity_row is None:
            raise ProviderError("Identity not found", provider_status=404)
        return Identity(id=identity_row.id, email=identity_row.email, name=identity_row.name or "")

    def delete_current_session(self, session_secret: str) -> None:
        if not session_secret:
            raise ProviderError("No session", provider_status=401)
        with self.engine.begin() as conn:
            deleted = conn.execute(
                delete(_sessions).where(_sessions.c.secret_hash == hash_secret(session_secret))
            ).rowcount
        if deleted == 0:
            raise ProviderError("No session", provider_status=401)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _identity_by_email(self, email: str):
        with self.engine.connect() as conn:
            return conn.execute(select(_identities).where(_identities.c.email == email)).fetchone()

    def close(self) -> None:
        self.engine.dispose()
