"""
tests/test_local_provider.py -- Unit tests for LocalIdentityProvider.

The local provider stands in for Appwrite's Account API, so these tests pin
the behaviors the lifecycle depends on:
  - an email challenge registers the email once and keeps its id afterwards
  - codes are single use, expire, and burn after too many wrong guesses
  - a new challenge replaces the previous one
  - password identities are unique per email (409) and log in with bcrypt
  - sessions resolve to their identity until deleted or expired
  - every failure surfaces as ProviderError with the provider's status code
"""

from __future__ import annotations

import pytest

from auth.errors import ProviderError


@pytest.fixture
def provider(lifecycle):
    return lifecycle.provider


class TestEmailChallenge:
    def test_unknown_email_registers_identity_under_proposed_id(self, provider, sender) -> None:
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")
        assert handle.user_id == "proposed-1"
        assert handle.expires_at
        assert sender.count("ann@x.com") == 1

    def test_known_email_keeps_existing_id(self, provider) -> None:
        first = provider.send_email_challenge("proposed-1", "ann@x.com")
        second = provider.send_email_challenge("proposed-2", "ann@x.com")
        assert second.user_id == first.user_id == "proposed-1"

    def test_code_is_numeric_and_six_digits(self, provider, sender) -> None:
        provider.send_email_challenge("proposed-1", "ann@x.com")
        code = sender.last_code("ann@x.com")
        assert code.isdigit()
        assert len(code) == 6

    def test_invalid_email_rejected(self, provider) -> None:
        with pytest.raises(ProviderError) as excinfo:
            provider.send_email_challenge("proposed-1", "not-an-email")
        assert excinfo.value.provider_status == 400

    def test_delivery_failure_is_provider_error(self, failing_lifecycle) -> None:
        with pytest.raises(ProviderError) as excinfo:
            failing_lifecycle.provider.send_email_challenge("proposed-1", "ann@x.com")
        assert excinfo.value.provider_status == 503


class TestVerifyChallenge:
    def test_correct_code_mints_session(self, provider, sender) -> None:
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")
        session = provider.verify_challenge(handle.user_id, sender.last_code("ann@x.com"))

        assert session.account_id == "proposed-1"
        assert session.secret
        assert session.session_id
        assert provider.get_current_identity(session.secret).email == "ann@x.com"

    def test_code_is_single_use(self, provider, sender) -> None:
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")
        code = sender.last_code("ann@x.com")
        provider.verify_challenge(handle.user_id, code)

        with pytest.raises(ProviderError) as excinfo:
            provider.verify_challenge(handle.user_id, code)
        assert excinfo.value.provider_status == 401

    def test_wrong_code_rejected(self, provider, sender) -> None:
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")
        code = sender.last_code("ann@x.com")
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(ProviderError):
            provider.verify_challenge(handle.user_id, wrong)
        # A wrong guess does not consume the challenge.
        assert provider.verify_challenge(handle.user_id, code).account_id == handle.user_id

    def test_unknown_account_rejected(self, provider) -> None:
        with pytest.raises(ProviderError):
            provider.verify_challenge("nobody", "123456")

    def test_new_challenge_replaces_previous_code(self, provider, sender) -> None:
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")
        old_code = sender.last_code("ann@x.com")
        provider.send_email_challenge("proposed-1", "ann@x.com")
        new_code = sender.last_code("ann@x.com")

        if old_code != new_code:
            with pytest.raises(ProviderError):
                provider.verify_challenge(handle.user_id, old_code)
        assert provider.verify_challenge(handle.user_id, new_code).secret

    def test_expired_code_rejected(self, provider, sender) -> None:
        provider.otp_expire_seconds = 0
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")

        with pytest.raises(ProviderError):
            provider.verify_challenge(handle.user_id, sender.last_code("ann@x.com"))

    def test_challenge_burned_after_max_attempts(self, provider, sender) -> None:
        handle = provider.send_email_challenge("proposed-1", "ann@x.com")
        code = sender.last_code("ann@x.com")
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(provider.otp_max_attempts):
            with pytest.raises(ProviderError):
                provider.verify_challenge(handle.user_id, wrong)
        # The right code no longer works once the attempt budget is spent.
        with pytest.raises(ProviderError):
            provider.verify_challenge(handle.user_id, code)


class TestPasswordIdentity:
    def test_create_and_log_in(self, provider) -> None:
        identity = provider.create_password_identity("demo-1", "demo@demo.com", "demo@123", name="Demo User")
        assert identity.id == "demo-1"
        assert identity.name == "Demo User"

        session = provider.create_password_session("demo@demo.com", "demo@123")
        assert session.account_id == "demo-1"

    def test_duplicate_email_is_409(self, provider) -> None:
        provider.create_password_identity("demo-1", "demo@demo.com", "demo@123")
        with pytest.raises(ProviderError) as excinfo:
            provider.create_password_identity("demo-2", "demo@demo.com", "demo@123")
        assert excinfo.value.provider_status == 409

    def test_wrong_password_is_401(self, provider) -> None:
        provider.create_password_identity("demo-1", "demo@demo.com", "demo@123")
        with pytest.raises(ProviderError) as excinfo:
            provider.create_password_session("demo@demo.com", "wrong")
        assert excinfo.value.provider_status == 401

    def test_unknown_email_is_401(self, provider) -> None:
        with pytest.raises(ProviderError) as excinfo:
            provider.create_password_session("ghost@x.com", "demo@123")
        assert excinfo.value.provider_status == 401

    def test_otp_only_identity_cannot_password_login(self, provider) -> None:
        provider.send_email_challenge("proposed-1", "ann@x.com")
        with pytest.raises(ProviderError):
            provider.create_password_session("ann@x.com", "")


class TestSessions:
    def test_delete_current_session(self, provider) -> None:
        provider.create_password_identity("demo-1", "demo@demo.com", "demo@123")
        session = provider.create_password_session("demo@demo.com", "demo@123")

        provider.delete_current_session(session.secret)

        with pytest.raises(ProviderError):
            provider.get_current_identity(session.secret)
        with pytest.raises(ProviderError):
            provider.delete_current_session(session.secret)

    def test_unknown_secret_rejected(self, provider) -> None:
        with pytest.raises(ProviderError) as excinfo:
            provider.get_current_identity("not-a-session")
        assert excinfo.value.provider_status == 401

    def test_empty_secret_rejected(self, provider) -> None:
        with pytest.raises(ProviderError):
            provider.get_current_identity("")

    def test_expired_session_rejected(self, provider) -> None:
        provider.session_expire_seconds = 0
        provider.create_password_identity("demo-1", "demo@demo.com", "demo@123")
        session = provider.create_password_session("demo@demo.com", "demo@123")

        with pytest.raises(ProviderError) as excinfo:
            provider.get_current_identity(session.secret)
        assert excinfo.value.provider_status == 401

    def test_sessions_are_independent(self, provider) -> None:
        provider.create_password_identity("demo-1", "demo@demo.com", "demo@123")
        first = provider.create_password_session("demo@demo.com", "demo@123")
        second = provider.create_password_session("demo@demo.com", "demo@123")

        provider.delete_current_session(first.secret)
        assert provider.get_current_identity(second.secret).id == "demo-1"
