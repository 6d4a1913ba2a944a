"""
auth/dependencies.py -- FastAPI Depends() helpers for the session layer.

The session cookie is read in exactly one place, get_session_context(), and
turned into an explicit SessionContext. Everything downstream receives that
value instead of reaching back into the request.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: auth/dependencies.py may import from fastapi (for Request and
HTTPException) because it is part of the FastAPI dependency injection system.
It does not import from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.lifecycle import AccountLifecycleManager
from auth.models import Account, SessionContext


def get_lifecycle(request: Request) -> AccountLifecycleManager:
    """Return the AccountLifecycleManager wired into app.state by the lifespan."""
    return request.app.state.lifecycle


def get_session_context(request: Request) -> SessionContext:
    """Build the per-request SessionContext from the session cookie."""
    lifecycle: AccountLifecycleManager = request.app.state.lifecycle
    secret = request.cookies.get(lifecycle.sessions.cookie_name) or None
    return SessionContext(secret=secret)


def try_get_current_account(
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> Account | None:
    """Return the signed-in Account, or None. Never raises."""
    return lifecycle.get_current_user(ctx)


def get_current_account(account: Account | None = Depends(try_get_current_account)) -> Account:
    """Require a session. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    if account is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return account
