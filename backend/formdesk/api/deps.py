import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.responses import Response

from formdesk.core.config import Settings, get_settings
from formdesk.db.base import AuthProvider, AuthSession, AuthUser, BlobStorage, Store
from formdesk.db.supabase import (
    SupabaseAuth,
    SupabaseBlobStorage,
    SupabaseStore,
    create_supabase_client,
)
from formdesk.schemas.form import Form
from formdesk.services.form_queries import FormQueries

logger = logging.getLogger(__name__)


def get_access_token(
    request: Request, settings: Settings = Depends(get_settings)
) -> Optional[str]:
    token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def get_refresh_token(
    request: Request, settings: Settings = Depends(get_settings)
) -> Optional[str]:
    return request.cookies.get(settings.REFRESH_TOKEN_COOKIE)


# Each request gets its own backend client; nothing is shared between requests.

def get_store(
    access_token: Optional[str] = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
) -> Store:
    return SupabaseStore(create_supabase_client(settings, access_token))


def get_public_store(settings: Settings = Depends(get_settings)) -> Store:
    return SupabaseStore(create_supabase_client(settings, service_role=True))


def get_auth(settings: Settings = Depends(get_settings)) -> AuthProvider:
    return SupabaseAuth(create_supabase_client(settings))


def get_blob_storage(
    access_token: Optional[str] = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
) -> BlobStorage:
    client = create_supabase_client(settings, access_token)
    return SupabaseBlobStorage(client, settings.STORAGE_BUCKET)


def get_optional_user(
    access_token: Optional[str] = Depends(get_access_token),
    auth: AuthProvider = Depends(get_auth),
) -> Optional[AuthUser]:
    if not access_token:
        return None
    return auth.get_user(access_token)


def get_current_user(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def get_current_user_id(user: AuthUser = Depends(get_current_user)) -> str:
    return user.id


def get_owned_form(
    form_id: str,
    user: AuthUser = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> Form:
    form = FormQueries(store).get_form(form_id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    if form.user_id != user.id:
        logger.warning("User %s denied access to form %s", user.id, form_id)
        raise HTTPException(status_code=403, detail="Forbidden")
    return form


def public_base_url(request: Request, settings: Settings) -> str:
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    return str(request.base_url).rstrip("/")


def set_session_cookies(response: Response, session: AuthSession, settings: Settings) -> None:
    for name, value in (
        (settings.ACCESS_TOKEN_COOKIE, session.access_token),
        (settings.REFRESH_TOKEN_COOKIE, session.refresh_token),
    ):
        response.set_cookie(
            name,
            value,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite="lax",
            path="/",
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE, path="/")
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE, path="/")
