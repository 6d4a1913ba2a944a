"""
api/routes/v1/auth.py -- Passwordless sign-up / sign-in, session and demo endpoints.

Routes:
  POST /api/v1/auth/sign-up      -- create account if absent, email an OTP; {accountId}
  POST /api/v1/auth/sign-in      -- email an OTP to an existing account; {accountId}
  POST /api/v1/auth/otp/resend   -- email a fresh OTP; {accountId}
  POST /api/v1/auth/verify       -- exchange OTP for a session; {sessionId} + cookie
  GET  /api/v1/auth/me           -- current account (requires session)
  GET  /api/v1/auth/demo-status  -- {isDemo}; false when nobody is signed in
  POST /api/v1/auth/sign-out     -- delete session, clear cookie, 302 /sign-in
  POST /api/v1/auth/demo         -- demo login; 302 / (existing) or {sessionId} (first click)

Errors raised by the lifecycle (AuthError subclasses) are not caught here;
api/main.py renders them through the ErrorResponse envelope with their own
status code and fixed message.

Security:
  [H2] Every route that sends an email or checks a code is rate-limited per IP.
  [M5] Cache-Control: no-store on every response that sets or clears the cookie.
  Sign-out always ends in the redirect, whether or not the provider deleted
  the session.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import OTP_RATE_LIMIT, limiter
from api.models import (
    AccountIdResponse,
    AccountResponse,
    DemoStatusResponse,
    ErrorDetail,
    ErrorResponse,
    SessionIdResponse,
    SignInRequest,
    SignUpRequest,
    VerifyRequest,
)
from auth.dependencies import get_current_account, get_lifecycle, get_session_context
from auth.errors import DemoLoginError
from auth.lifecycle import AccountLifecycleManager
from auth.models import Account, SessionContext

SIGN_IN_PATH = "/sign-in"

logger = logging.getLogger("vaultpro.api.auth")

# Auth policy:
# - POST /auth/sign-up, /auth/sign-in, /auth/otp/resend, /auth/verify: public, rate-limited
# - POST /auth/demo:        public -- that is the point of the demo button
# - POST /auth/sign-out:    public -- clearing a cookie needs no prior auth
# - GET  /auth/demo-status: public -- answers false without a session
# - GET  /auth/me:          requires session (get_current_account)
router = APIRouter()


# ---------------------------------------------------------------------------
# OTP flows
# ---------------------------------------------------------------------------


@router.post("/auth/sign-up", response_model=AccountIdResponse)
@limiter.limit(OTP_RATE_LIMIT)  # [H2]
def sign_up(
    request: Request,
    body: SignUpRequest,
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> AccountIdResponse:
    """Create an account for a new email and send it an OTP."""
    account_id = lifecycle.sign_up(body.email, body.full_name)
    return AccountIdResponse(account_id=account_id)


@router.post("/auth/sign-in", response_model=AccountIdResponse)
@limiter.limit(OTP_RATE_LIMIT)  # [H2]
def sign_in(
    request: Request,
    body: SignInRequest,
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> AccountIdResponse:
    """Send an OTP to an existing account."""
    return AccountIdResponse(account_id=lifecycle.sign_in(body.email))


@router.post("/auth/otp/resend", response_model=AccountIdResponse)
@limiter.limit(OTP_RATE_LIMIT)  # [H2]
def resend_otp(
    request: Request,
    body: SignInRequest,
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> AccountIdResponse:
    return AccountIdResponse(account_id=lifecycle.resend_otp(body.email))


@router.post("/auth/verify", response_model=SessionIdResponse)
@limiter.limit(OTP_RATE_LIMIT)  # [H2]
def verify(
    request: Request,
    body: VerifyRequest,
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> JSONResponse:
    """Exchange the emailed code for a session and set the session cookie."""
    session, cookie = lifecycle.verify_secret(body.account_id, body.password)
    resp = JSONResponse(content=SessionIdResponse(session_id=session.session_id).model_dump(by_alias=True))
    lifecycle.sessions.apply_cookie(resp, cookie)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Current session
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=AccountResponse)
def me(account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse.from_account(account)


@router.get("/auth/demo-status", response_model=DemoStatusResponse)
def demo_status(
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> DemoStatusResponse:
    """Tell the layout whether to show the demo restrictions notice."""
    return DemoStatusResponse(is_demo=lifecycle.is_demo_user(ctx))


@router.post("/auth/sign-out")
def sign_out(
    ctx: SessionContext = Depends(get_session_context),
    lifecycle: AccountLifecycleManager = Depends(get_lifecycle),
) -> RedirectResponse:
    """Delete the current session and redirect to sign-in, even if the delete failed."""
    resp = RedirectResponse(SIGN_IN_PATH, status_code=302)
    lifecycle.sessions.clear_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    try:
        lifecycle.sign_out(ctx)
    except Exception:
        # The redirect and cookie clear happen whatever the provider did.
        logger.exception("Sign-out failed, redirecting anyway")
    return resp


# ---------------------------------------------------------------------------
# Demo account
# ---------------------------------------------------------------------------


@router.post("/auth/demo")
def demo_login(lifecycle: AccountLifecycleManager = Depends(get_lifecycle)):
    """Log the caller in as the shared demo account, provisioning it on first use."""
    outcome = lifecycle.handle_demo_click()
    if not outcome.ok:
        return JSONResponse(
            status_code=DemoLoginError.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=DemoLoginError.code, message=outcome.error or DemoLoginError.message)
            ).model_dump(),
        )

    if outcome.redirect_to:
        resp = RedirectResponse(outcome.redirect_to, status_code=302)
    else:
        resp = JSONResponse(content=SessionIdResponse(session_id=outcome.session.session_id).model_dump(by_alias=True))
    lifecycle.sessions.apply_cookie(resp, outcome.cookie)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
