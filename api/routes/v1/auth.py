"""
api/routes/v1/auth.py -- Registration, verification, login and profile endpoints.

Routes:
  POST /api/v1/auth/register                    -- create unverified user, email OTP (201)
  POST /api/v1/auth/verify-otp                  -- confirm OTP; sets session cookie
  POST /api/v1/auth/resend-otp                  -- replace the OTP and email it again
  POST /api/v1/auth/login                       -- password login; sets session cookie
  GET  /api/v1/auth/logout                      -- clears cookie
  POST /api/v1/auth/forgot-password             -- email a reset OTP
  POST /api/v1/auth/verify-forgot-password-otp  -- check reset OTP without consuming it
  POST /api/v1/auth/reset-password              -- consume reset OTP, set new password
  GET  /api/v1/auth/me                          -- current user (requires auth)
  GET  /api/v1/auth/refresh-token               -- fresh session (requires auth)
  PUT  /api/v1/auth/update-profile              -- name / phone (requires auth)
  PUT  /api/v1/auth/change-password             -- new password, fresh session (requires auth)

Security:
  Login and register share a 5 per 15 minutes limit per address. OTP routes
  allow 3 per 10 minutes, password reset routes 3 per hour.
  Unknown email and wrong password both return "bad_credentials".
  Cache-Control: no-store on every response that carries a token.

All handlers are sync def: FastAPI runs them in its threadpool, so bcrypt
does not block the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import AUTH_LIMIT, GENERAL_LIMIT, OTP_LIMIT, PASSWORD_RESET_LIMIT, limiter
from api.models import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionResponse,
    UpdateProfileRequest,
    UserOut,
    VerifyOtpRequest,
)
from auth.dependencies import get_current_user
from auth.flows import AuthFlow
from auth.models import User
from auth.store import UserStore

# Auth policy:
# - register, verify-otp, resend-otp, login, logout, forgot-password,
#   verify-forgot-password-otp, reset-password: public
# - me, refresh-token, update-profile, change-password: requires auth (get_current_user)
router = APIRouter()


def _session_response(request: Request, user: User, token: str) -> JSONResponse:
    resp = JSONResponse(content=SessionResponse(token=token, user=UserOut.from_user(user)).model_dump(mode="json"))
    request.app.state.sessions.set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an unverified account and email it a 6-digit verification code."""
    flow: AuthFlow = request.app.state.auth_flow
    user = flow.register(body.email, body.password, body.name, phone=body.phone)
    return RegisterResponse(
        message="Registration successful. Please check your email for the verification code.",
        user=UserOut.from_user(user),
    )


@limiter.limit(OTP_LIMIT)
@router.post("/auth/verify-otp", response_model=SessionResponse)
def verify_otp(request: Request, body: VerifyOtpRequest) -> JSONResponse:
    """Confirm the verification code. Marks the account verified and opens a session."""
    flow: AuthFlow = request.app.state.auth_flow
    user, token = flow.verify_otp(body.email, body.otp)
    return _session_response(request, user, token)


@limiter.limit(OTP_LIMIT)
@router.post("/auth/resend-otp", response_model=MessageResponse)
def resend_otp(request: Request, body: EmailRequest) -> MessageResponse:
    """Issue a replacement verification code. Any earlier code stops working."""
    flow: AuthFlow = request.app.state.auth_flow
    flow.resend_otp(body.email)
    return MessageResponse(message="A new verification code has been sent to your email.")


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_LIMIT)
@router.post("/auth/login", response_model=SessionResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    401 bad_credentials for an unknown email or a wrong password.
    403 unverified when the password is right but the email is unconfirmed.
    """
    flow: AuthFlow = request.app.state.auth_flow
    user, token = flow.login(body.email, body.password)
    return _session_response(request, user, token)


@router.get("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content={"message": "Logged out successfully."})
    request.app.state.sessions.clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@limiter.limit(PASSWORD_RESET_LIMIT)
@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(request: Request, body: EmailRequest) -> MessageResponse:
    """Email a reset code. The response is identical for unknown addresses."""
    flow: AuthFlow = request.app.state.auth_flow
    flow.forgot_password(body.email)
    return MessageResponse(message="If an account exists for this email, a reset code has been sent.")


@limiter.limit(OTP_LIMIT)
@router.post("/auth/verify-forgot-password-otp", response_model=MessageResponse)
def verify_forgot_password_otp(request: Request, body: VerifyOtpRequest) -> MessageResponse:
    flow: AuthFlow = request.app.state.auth_flow
    flow.verify_forgot_password_otp(body.email, body.otp)
    return MessageResponse(message="Code verified. You can now set a new password.")


@limiter.limit(PASSWORD_RESET_LIMIT)
@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    flow: AuthFlow = request.app.state.auth_flow
    flow.reset_password(body.email, body.otp, body.new_password)
    return MessageResponse(message="Password has been reset. Please log in with your new password.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    """Return the caller's account."""
    return UserOut.from_user(user)


@router.get("/auth/refresh-token", response_model=SessionResponse)
def refresh_token(request: Request, user: User = Depends(get_current_user)) -> JSONResponse:
    """Issue a new session token carrying the account's current role."""
    flow: AuthFlow = request.app.state.auth_flow
    return _session_response(request, user, flow.refresh(user))


@limiter.limit(GENERAL_LIMIT)
@router.put("/auth/update-profile", response_model=UserOut)
def update_profile(request: Request, body: UpdateProfileRequest, user: User = Depends(get_current_user)) -> UserOut:
    store: UserStore = request.app.state.user_store
    fields = body.model_dump(exclude_unset=True)
    updated = store.update_user(user.id, **fields)
    return UserOut.from_user(updated)


@limiter.limit(AUTH_LIMIT)
@router.put("/auth/change-password", response_model=SessionResponse)
def change_password(
    request: Request, body: ChangePasswordRequest, user: User = Depends(get_current_user)
) -> JSONResponse:
    """Replace the password after re-checking the current one. Returns a fresh session."""
    flow: AuthFlow = request.app.state.auth_flow
    user, token = flow.change_password(user.id, body.current_password, body.new_password)
    return _session_response(request, user, token)
