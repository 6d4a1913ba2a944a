"""
auth/appwrite.py -- Appwrite REST adapters for the identity provider and credential store.

Used when IDENTITY_BACKEND=appwrite. Talks to the Appwrite v1 REST API with
requests; no Appwrite SDK is required.

Two kinds of call:
  Admin calls carry X-Appwrite-Key. They create email tokens, exchange them for
      sessions (the admin key is what makes Appwrite return the session
      secret), register the demo identity, and read/write the users collection.
  Session calls carry X-Appwrite-Session with the cookie secret instead of the
      key, so Appwrite answers "who is this" / "delete current" for that
      session only.

Errors: any transport failure, non-2xx status or undecodable body becomes a
ProviderError carrying Appwrite's status code. The body message is logged
(truncated), never surfaced.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from auth.errors import CreateError, ProviderError
from auth.models import Account, ChallengeHandle, Identity, Session
from auth.tokens import unique_id
from core.config import Settings

logger = logging.getLogger("vaultpro.auth.appwrite")


class AppwriteClient:
    """Thin JSON-over-HTTP client for one Appwrite project."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.base_url = settings.appwrite_endpoint.rstrip("/")
        self.project_id = settings.appwrite_project_id
        self.api_key = settings.appwrite_api_key
        self.timeout = settings.appwrite_timeout_seconds
        # Shared session for connection pooling. Appwrite never needs to
        # redirect an API call more than a couple of hops.
        self._http = session or requests.Session()
        self._http.max_redirects = 3

    def _headers(self, session_secret: str | None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Response-Format": "1.6.0",
        }
        if session_secret is None:
            headers["X-Appwrite-Key"] = self.api_key
        else:
            headers["X-Appwrite-Session"] = session_secret
        return headers

    def call(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: list[tuple[str, str]] | None = None,
        session_secret: str | None = None,
    ) -> dict[str, Any]:
        """Perform one API call and return the decoded JSON body ({} for 204)."""
        url = f"{self.base_url}{path}"
        try:
            resp = self._http.request(
                method,
                url,
                headers=self._headers(session_secret),
                json=body,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Appwrite %s %s failed: %s", method, path, exc)
            raise ProviderError("Identity provider unavailable") from exc

        if resp.status_code >= 400:
            logger.warning("Appwrite %s %s returned %d: %s", method, path, resp.status_code, resp.text[:500])
            raise ProviderError("Identity provider returned an error", provider_status=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError("Identity provider returned invalid JSON", provider_status=resp.status_code) from exc
        if not isinstance(data, dict):
            raise ProviderError("Identity provider returned invalid JSON", provider_status=resp.status_code)
        return data

    def close(self) -> None:
        self._http.close()


# ---------------------------------------------------------------------------
# Identity provider
# ---------------------------------------------------------------------------


class AppwriteIdentityProvider:
    """IdentityProvider backed by the Appwrite Account API."""

    def __init__(self, client: AppwriteClient) -> None:
        self.client = client

    def send_email_challenge(self, account_id: str, email: str) -> ChallengeHandle:
        data = self.client.call("POST", "/account/tokens/email", body={"userId": account_id, "email": email})
        return ChallengeHandle(user_id=_required(data, "userId"), expires_at=data.get("expire"))

    def verify_challenge(self, account_id: str, secret: str) -> Session:
        data = self.client.call("POST", "/account/sessions/token", body={"userId": account_id, "secret": secret})
        return _to_session(data)

    def create_password_identity(self, identity_id: str, email: str, password: str, name: str = "") -> Identity:
        body = {"userId": identity_id, "email": email, "password": password}
        if name:
            body["name"] = name
        data = self.client.call("POST", "/account", body=body)
        return Identity(id=_required(data, "$id"), email=data.get("email", email), name=data.get("name", name))

    def create_password_session(self, email: str, password: str) -> Session:
        data = self.client.call("POST", "/account/sessions/email", body={"email": email, "password": password})
        return _to_session(data)

    def get_current_identity(self, session_secret: str) -> Identity:
        if not session_secret:
            raise ProviderError("No session", provider_status=401)
        data = self.client.call("GET", "/account", session_secret=session_secret)
        return Identity(id=_required(data, "$id"), email=data.get("email", ""), name=data.get("name", ""))

    def delete_current_session(self, session_secret: str) -> None:
        if not session_secret:
            raise ProviderError("No session", provider_status=401)
        self.client.call("DELETE", "/account/sessions/current", session_secret=session_secret)


def _required(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not value:
        raise ProviderError(f"Identity provider response is missing {key}")
    return value


def _to_session(data: dict[str, Any]) -> Session:
    secret = data.get("secret") or ""
    if not secret:
        # Appwrite only returns the secret to admin-key callers.
        raise ProviderError("Session created without a secret; check APPWRITE_API_KEY scopes")
    return Session(
        session_id=_required(data, "$id"),
        secret=secret,
        account_id=data.get("userId", ""),
        expires_at=data.get("expire"),
    )


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class AppwriteCredentialStore:
    """Account records kept as documents in an Appwrite Databases collection.

    Document attributes: email, fullName, avatar, accountId.
    """

    def __init__(self, client: AppwriteClient, database_id: str, collection_id: str) -> None:
        self.client = client
        self._documents_path = f"/databases/{database_id}/collections/{collection_id}/documents"

    def _query(self, email: str, limit: int) -> dict[str, Any]:
        queries = [
            json.dumps({"method": "equal", "attribute": "email", "values": [email]}),
            json.dumps({"method": "limit", "values": [limit]}),
        ]
        return self.client.call("GET", self._documents_path, params=[("queries[]", q) for q in queries])

    def find_by_email(self, email: str) -> Account | None:
        result = self._query(email, limit=1)
        documents = result.get("documents") or []
        if result.get("total", 0) <= 0 or not documents:
            return None
        return _document_to_account(documents[0])

    def count_by_email(self, email: str) -> int:
        return int(self._query(email, limit=1).get("total", 0))

    def create(self, email: str, full_name: str, avatar_url: str, account_id: str) -> Account:
        body = {
            "documentId": unique_id(),
            "data": {
                "fullName": full_name,
                "email": email,
                "avatar": avatar_url,
                "accountId": account_id,
            },
        }
        try:
            document = self.client.call("POST", self._documents_path, body=body)
        except ProviderError as exc:
            raise CreateError() from exc
        return _document_to_account(document)

    def close(self) -> None:
        self.client.close()


def _document_to_account(doc: dict[str, Any]) -> Account:
    return Account(
        id=doc.get("$id"),
        email=doc.get("email", ""),
        full_name=doc.get("fullName", ""),
        avatar_url=doc.get("avatar", ""),
        account_id=doc.get("accountId", ""),
        created_at=doc.get("$createdAt"),
    )
