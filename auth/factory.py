"""
auth/factory.py -- Assemble the identity stack for the configured backend.

Used by the API lifespan and by the CLI so both wire the same objects:

  IDENTITY_BACKEND=local     CredentialStore + LocalIdentityProvider sharing DATABASE_URL
  IDENTITY_BACKEND=appwrite  AppwriteCredentialStore + AppwriteIdentityProvider
                             sharing one AppwriteClient
"""

from __future__ import annotations

from auth.appwrite import AppwriteClient, AppwriteCredentialStore, AppwriteIdentityProvider
from auth.lifecycle import AccountLifecycleManager
from auth.mailer import get_otp_sender
from auth.otp import OtpIssuer
from auth.provider import LocalIdentityProvider
from auth.sessions import SessionIssuer
from auth.store import CredentialStore
from core.config import Settings


def build_lifecycle(settings: Settings, db_url: str | None = None, sender=None) -> AccountLifecycleManager:
    """Return a ready AccountLifecycleManager.

    db_url overrides DATABASE_URL (tests use named in-memory databases).
    sender overrides the OTP sender selected by OTP_DELIVERY (local backend only).
    """
    if settings.identity_backend == "appwrite":
        client = AppwriteClient(settings)
        provider = AppwriteIdentityProvider(client)
        store = AppwriteCredentialStore(
            client,
            database_id=settings.appwrite_database_id,
            collection_id=settings.appwrite_users_collection_id,
        )
    else:
        url = db_url or settings.database_url
        store = CredentialStore(url)
        provider = LocalIdentityProvider(url, settings, sender or get_otp_sender(settings))

    sessions = SessionIssuer(
        provider,
        store,
        cookie_name=settings.session_cookie_name,
        secure=settings.secure_cookies,
    )
    return AccountLifecycleManager(
        store=store,
        provider=provider,
        otp=OtpIssuer(provider),
        sessions=sessions,
        settings=settings,
    )


def close_lifecycle(lifecycle: AccountLifecycleManager) -> None:
    """Release engines / HTTP pools held by the stack."""
    lifecycle.store.close()
    close = getattr(lifecycle.provider, "close", None)
    if close is not None:
        close()
