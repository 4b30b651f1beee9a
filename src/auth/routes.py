"""Auth endpoints: signup, signin, refresh, signout, password and one-time token flows."""

from fastapi import APIRouter, Depends, Query
from starlette.responses import RedirectResponse

from src.auth.dependencies import CurrentUser, get_auth_service, get_current_user, require_roles
from src.auth.schemas import (
    EmailRequest,
    RefreshRequest,
    ResetPasswordRequest,
    SigninRequest,
    SignupRequest,
    TokenRequest,
    UpdatePasswordRequest,
)
from src.auth.service import AuthService
from src.db.models import ROLE_ADMIN

# Handlers are plain functions: store calls and bcrypt block, so they run in the threadpool
router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset link has been sent"


def _success(data: dict) -> dict:
    return {"status": "success", "data": data}


# --- Sessions ---

@router.post("/signup", status_code=201, summary="Register a service provider", description="Create an unverified service provider account. Admin accounts cannot be created here.")
def signup(body: SignupRequest, auth: AuthService = Depends(get_auth_service)):
    result = auth.signup(body.email, body.password, body.display_name, phone=body.phone, role=body.role)
    return _success({"message": "Account created. Please check your email to verify your account.", **result})


@router.post("/signin", summary="Sign in", description="Authenticate with email and password. Returns an access/refresh token pair and the user profile.")
def signin(body: SigninRequest, auth: AuthService = Depends(get_auth_service)):
    return _success(auth.signin(body.email, body.password))


@router.post("/refresh", summary="Rotate refresh token", description="Exchange a valid refresh token for a new token pair. The old refresh token is revoked.")
def refresh(body: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    return _success(auth.refresh(body.refresh_token))


@router.post("/signout", summary="Sign out", description="Revoke a refresh token. Always succeeds.")
def signout(body: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    auth.signout(body.refresh_token)
    return _success({"message": "Signed out"})


@router.get("/me", summary="Current user", description="Return the authenticated caller's profile.")
def me(user: CurrentUser = Depends(get_current_user), auth: AuthService = Depends(get_auth_service)):
    return _success({"user": auth.get_profile(user.id)})


# --- Passwords ---

@router.put("/update-password", summary="Change password", description="Change the password of the authenticated caller.")
def update_password(
    body: UpdatePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    auth.update_password(user.id, body.current_password, body.new_password)
    return _success({"message": "Password updated"})


@router.post("/forgot-password", summary="Request password reset", description="Email a one-time reset link. The response does not reveal whether the email exists.")
def forgot_password(body: EmailRequest, auth: AuthService = Depends(get_auth_service)):
    auth.forgot_password(body.email)
    return _success({"message": FORGOT_PASSWORD_MESSAGE})


@router.get("/validate-reset-token", summary="Check a reset token", description="Report whether a reset token can still be redeemed, without consuming it.")
def validate_reset_token(token: str = Query(..., min_length=1), auth: AuthService = Depends(get_auth_service)):
    auth.validate_reset_token(token)
    return _success({"valid": True})


@router.post("/reset-password", summary="Reset password", description="Set a new password using a one-time reset token.")
def reset_password(body: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)):
    auth.reset_password(body.token, body.new_password)
    return _success({"message": "Password reset successfully"})


@router.post("/change-password", summary="Change password with token", description="Set a new password using a one-time reset token.")
def change_password(body: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)):
    auth.reset_password(body.token, body.new_password)
    return _success({"message": "Password changed successfully"})


# --- Email verification and magic login ---

@router.post("/verify-email", status_code=302, summary="Verify email", description="Redeem an email verification token and redirect to the sign-in page.")
def verify_email(body: TokenRequest, auth: AuthService = Depends(get_auth_service)):
    return RedirectResponse(auth.verify_email(body.token), status_code=302)


@router.post("/send-magic-link", summary="Send magic link (admin)", description="Email a one-time sign-in link to a user.")
def send_magic_link(
    body: EmailRequest,
    _: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
    auth: AuthService = Depends(get_auth_service),
):
    issued = auth.issue_magic_token(body.email, send_email=True)
    data = {"message": "Magic link sent successfully"}
    if not auth.settings.is_production:
        data.update(magic_token=issued["token"], magic_url=issued["magic_url"])
    return _success(data)


@router.post("/generate-magic-token", summary="Generate magic token (admin)", description="Create a one-time sign-in token for a user without sending email.")
def generate_magic_token(
    body: EmailRequest,
    _: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
    auth: AuthService = Depends(get_auth_service),
):
    issued = auth.issue_magic_token(body.email, send_email=False)
    return _success({"message": "Magic token generated successfully", "token": issued["token"], "expires_in": issued["expires_in"]})


@router.post("/magic-login", summary="Magic login", description="Redeem a one-time magic token for an access/refresh token pair.")
def magic_login(body: TokenRequest, auth: AuthService = Depends(get_auth_service)):
    return _success(auth.magic_login(body.token))
