"""
tests/test_sessions.py -- Unit tests for OtpIssuer and SessionIssuer.

Providers and stores are MagicMocks here: the point is how provider and store
failures are narrowed into the lifecycle's own errors and Resolution values,
not the provider itself (see test_local_provider.py).
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import OtpDispatchError, ProviderError, VerificationError
from auth.models import Account, ChallengeHandle, Identity, Session, SessionContext
from auth.otp import OtpIssuer
from auth.sessions import SessionIssuer
from core.config import Settings


def _account(email: str = "ann@x.com") -> Account:
    return Account(email=email, full_name="Ann", avatar_url="u", account_id="acct-1", id="doc-1")


def _session() -> Session:
    return Session(session_id="sess-1", secret="s3cr3t", account_id="acct-1")


# ---------------------------------------------------------------------------
# OtpIssuer
# ---------------------------------------------------------------------------


class TestOtpIssuer:
    def test_issue_returns_provider_user_id(self) -> None:
        provider = MagicMock()
        provider.send_email_challenge.return_value = ChallengeHandle(user_id="existing-id")

        assert OtpIssuer(provider).issue("ann@x.com") == "existing-id"
        proposed_id, email = provider.send_email_challenge.call_args.args
        assert email == "ann@x.com"
        assert len(proposed_id) == 20

    def test_issue_proposes_fresh_id_each_call(self) -> None:
        provider = MagicMock()
        provider.send_email_challenge.return_value = ChallengeHandle(user_id="x")
        issuer = OtpIssuer(provider)

        issuer.issue("ann@x.com")
        issuer.issue("ann@x.com")
        first, second = (c.args[0] for c in provider.send_email_challenge.call_args_list)
        assert first != second

    def test_issue_provider_failure_is_dispatch_error(self) -> None:
        provider = MagicMock()
        provider.send_email_challenge.side_effect = ProviderError("boom", provider_status=500)

        with pytest.raises(OtpDispatchError) as excinfo:
            OtpIssuer(provider).issue("ann@x.com")
        assert excinfo.value.message == "Failed to send an OTP"
        assert isinstance(excinfo.value.__cause__, ProviderError)

    def test_verify_returns_session(self) -> None:
        provider = MagicMock()
        provider.verify_challenge.return_value = _session()

        assert OtpIssuer(provider).verify("acct-1", "123456").session_id == "sess-1"
        provider.verify_challenge.assert_called_once_with("acct-1", "123456")

    def test_verify_provider_failure_is_verification_error(self) -> None:
        provider = MagicMock()
        provider.verify_challenge.side_effect = ProviderError("Invalid token", provider_status=401)

        with pytest.raises(VerificationError):
            OtpIssuer(provider).verify("acct-1", "000000")

    @pytest.mark.parametrize("account_id,secret", [("", "123456"), ("acct-1", "")])
    def test_verify_empty_input_never_reaches_provider(self, account_id: str, secret: str) -> None:
        provider = MagicMock()
        with pytest.raises(VerificationError):
            OtpIssuer(provider).verify(account_id, secret)
        provider.verify_challenge.assert_not_called()


# ---------------------------------------------------------------------------
# SessionIssuer
# ---------------------------------------------------------------------------


class TestCookie:
    def test_mint_cookie_attributes(self) -> None:
        cookie = SessionIssuer(MagicMock(), MagicMock()).mint_cookie(_session())
        assert cookie.name == "appwrite-session"
        assert cookie.value == "s3cr3t"
        assert cookie.path == "/"
        assert cookie.httponly is True
        assert cookie.samesite == "strict"
        assert cookie.secure is True

    def test_apply_cookie_sets_all_attributes(self) -> None:
        issuer = SessionIssuer(MagicMock(), MagicMock(), cookie_name="sid")
        response = MagicMock()

        issuer.apply_cookie(response, issuer.mint_cookie(_session()))

        response.set_cookie.assert_called_once_with(
            "sid", value="s3cr3t", path="/", httponly=True, samesite="strict", secure=True
        )

    def test_clear_cookie_matches_set_attributes(self) -> None:
        issuer = SessionIssuer(MagicMock(), MagicMock(), secure=False)
        response = MagicMock()

        issuer.clear_cookie(response)

        response.delete_cookie.assert_called_once_with(
            "appwrite-session", path="/", httponly=True, samesite="strict", secure=False
        )


    def test_secure_flag_is_the_only_configurable_attribute(self) -> None:
        assert Settings(debug=True).secure_cookies is True

        cookie = SessionIssuer(MagicMock(), MagicMock(), secure=False).mint_cookie(_session())
        assert cookie.secure is False
        assert (cookie.name, cookie.path, cookie.httponly, cookie.samesite) == ("appwrite-session", "/", True, "strict")


class TestResolve:
    def test_no_cookie(self) -> None:
        provider = MagicMock()
        resolution = SessionIssuer(provider, MagicMock()).resolve(SessionContext())

        assert not resolution.ok
        assert resolution.error.reason == "no_session"
        provider.get_current_identity.assert_not_called()

    def test_provider_rejects_session(self) -> None:
        provider = MagicMock()
        provider.get_current_identity.side_effect = ProviderError("No session", provider_status=401)

        resolution = SessionIssuer(provider, MagicMock()).resolve(SessionContext(secret="stale"))
        assert resolution.error.reason == "invalid_session"

    def test_provider_database_failure_is_invalid_session(self) -> None:
        provider = MagicMock()
        provider.get_current_identity.side_effect = OperationalError("SELECT", {}, Exception("db locked"))

        issuer = SessionIssuer(provider, MagicMock())
        resolution = issuer.resolve(SessionContext(secret="s3cr3t"))

        assert resolution.error.reason == "invalid_session"
        assert issuer.current_account(SessionContext(secret="s3cr3t")) is None

    def test_identity_without_account_record(self) -> None:
        provider = MagicMock()
        provider.get_current_identity.return_value = Identity(id="acct-1", email="ann@x.com")
        store = MagicMock()
        store.find_by_email.return_value = None

        resolution = SessionIssuer(provider, store).resolve(SessionContext(secret="s3cr3t"))
        assert resolution.account is None
        assert resolution.error.reason == "missing_account"

    def test_store_failure_is_invalid_session(self) -> None:
        provider = MagicMock()
        provider.get_current_identity.return_value = Identity(id="acct-1", email="ann@x.com")
        store = MagicMock()
        store.find_by_email.side_effect = OperationalError("SELECT", {}, Exception("db gone"))

        resolution = SessionIssuer(provider, store).resolve(SessionContext(secret="s3cr3t"))
        assert resolution.error.reason == "invalid_session"

    def test_resolves_account_by_identity_email(self) -> None:
        provider = MagicMock()
        provider.get_current_identity.return_value = Identity(id="acct-1", email="ann@x.com")
        store = MagicMock()
        store.find_by_email.return_value = _account()

        issuer = SessionIssuer(provider, store)
        resolution = issuer.resolve(SessionContext(secret="s3cr3t"))

        assert resolution.ok
        assert resolution.error is None
        store.find_by_email.assert_called_once_with("ann@x.com")
        assert issuer.current_account(SessionContext(secret="s3cr3t")).email == "ann@x.com"

    def test_current_account_none_on_failure(self) -> None:
        provider = MagicMock()
        provider.get_current_identity.side_effect = ProviderError("No session", provider_status=401)
        assert SessionIssuer(provider, MagicMock()).current_account(SessionContext(secret="x")) is None


class TestDestroy:
    def test_deletes_provider_session(self) -> None:
        provider = MagicMock()
        assert SessionIssuer(provider, MagicMock()).destroy_current(SessionContext(secret="s3cr3t")) is True
        provider.delete_current_session.assert_called_once_with("s3cr3t")

    def test_provider_failure_is_swallowed(self) -> None:
        provider = MagicMock()
        provider.delete_current_session.side_effect = ProviderError("No session", provider_status=401)
        assert SessionIssuer(provider, MagicMock()).destroy_current(SessionContext(secret="s3cr3t")) is False

    def test_database_failure_is_swallowed(self) -> None:
        provider = MagicMock()
        provider.delete_current_session.side_effect = OperationalError("DELETE", {}, Exception("db locked"))
        assert SessionIssuer(provider, MagicMock()).destroy_current(SessionContext(secret="s3cr3t")) is False

    def test_no_cookie_is_noop(self) -> None:
        provider = MagicMock()
        assert SessionIssuer(provider, MagicMock()).destroy_current(SessionContext()) is False
        provider.delete_current_session.assert_not_called()
