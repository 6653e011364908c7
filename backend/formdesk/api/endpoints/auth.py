from fastapi import APIRouter, Depends, HTTPException, Request, Response
from typing import Optional
import logging

from formdesk.api.deps import (
    clear_session_cookies,
    get_access_token,
    get_auth,
    get_current_user,
    get_refresh_token,
    public_base_url,
    set_session_cookies,
)
from formdesk.core.config import Settings, get_settings
from formdesk.db.base import AuthProvider, AuthProviderError, AuthUser
from formdesk.schemas.auth import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/signup", status_code=201)
def sign_up(
    body: SignUpRequest,
    request: Request,
    response: Response,
    auth: AuthProvider = Depends(get_auth),
    settings: Settings = Depends(get_settings),
):
    redirect_to = f"{public_base_url(request, settings)}/auth/callback"
    try:
        session = auth.sign_up(body.email, body.password, redirect_to=redirect_to)
    except AuthProviderError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if session is None:
        return {"message": "Check your inbox to confirm your email address", "confirmed": False}
    set_session_cookies(response, session, settings)
    return {"message": "Account created", "confirmed": True, "user": UserResponse(**vars(session.user))}


@router.post("/login")
def sign_in(
    body: SignInRequest,
    response: Response,
    auth: AuthProvider = Depends(get_auth),
    settings: Settings = Depends(get_settings),
):
    try:
        session = auth.sign_in(body.email, body.password)
    except AuthProviderError as e:
        logger.warning("Failed sign-in for %s: %s", body.email, e.message)
        raise HTTPException(status_code=401, detail=e.message)
    set_session_cookies(response, session, settings)
    return {"user": UserResponse(**vars(session.user))}


@router.post("/logout")
def sign_out(
    response: Response,
    access_token: Optional[str] = Depends(get_access_token),
    refresh_token: Optional[str] = Depends(get_refresh_token),
    auth: AuthProvider = Depends(get_auth),
    settings: Settings = Depends(get_settings),
):
    if access_token and refresh_token:
        try:
            auth.sign_out(access_token, refresh_token)
        except AuthProviderError as e:
            # The cookies are cleared either way
            logger.warning("Provider sign-out failed: %s", e.message)
    clear_session_cookies(response, settings)
    return {"message": "Signed out"}


@router.post("/forgot-password")
def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    auth: AuthProvider = Depends(get_auth),
    settings: Settings = Depends(get_settings),
):
    redirect_to = f"{public_base_url(request, settings)}/auth/callback?next=/auth/reset-password"
    try:
        auth.reset_password_for_email(body.email, redirect_to=redirect_to)
    except AuthProviderError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"message": "If the address exists, a reset link has been sent"}


@router.post("/reset-password")
def reset_password(
    body: ResetPasswordRequest,
    user: AuthUser = Depends(get_current_user),
    access_token: Optional[str] = Depends(get_access_token),
    refresh_token: Optional[str] = Depends(get_refresh_token),
    auth: AuthProvider = Depends(get_auth),
):
    if not refresh_token:
        raise HTTPException(status_code=401, detail="Session expired, request a new link")
    try:
        auth.update_password(access_token, refresh_token, body.password)
    except AuthProviderError as e:
        raise HTTPException(status_code=400, detail=e.message)
    logger.info("Password updated for user %s", user.id)
    return {"message": "Password updated"}


@router.get("/user", response_model=UserResponse)
def get_user(user: AuthUser = Depends(get_current_user)):
    return UserResponse(id=user.id, email=user.email)
