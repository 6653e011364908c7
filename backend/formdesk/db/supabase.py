import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from supabase import AuthError, Client, ClientOptions, PostgrestAPIError, StorageException, create_client

from formdesk.core.config import Settings
from formdesk.db.base import AuthProviderError, AuthSession, AuthUser, Filter, StoreError

logger = logging.getLogger(__name__)

FILTER_METHODS = {
    "eq": "eq",
    "gte": "gte",
    "lte": "lte",
    "in": "in_",
}


def create_supabase_client(
    settings: Settings, access_token: Optional[str] = None, service_role: bool = False
) -> Client:
    key = settings.SUPABASE_KEY
    if service_role and settings.SUPABASE_SERVICE_ROLE_KEY:
        key = settings.SUPABASE_SERVICE_ROLE_KEY

    if access_token:
        # Row-level security and storage policies evaluate against the signed-in user
        options = ClientOptions(headers={"Authorization": f"Bearer {access_token}"})
        return create_client(settings.SUPABASE_URL, key, options=options)
    return create_client(settings.SUPABASE_URL, key)


def _apply_filters(query, filters: Sequence[Filter]):
    for f in filters:
        method = FILTER_METHODS.get(f.op)
        if method is None:
            raise ValueError(f"Unsupported filter operator: {f.op}")
        query = getattr(query, method)(f.column, f.value)
    return query


class SupabaseStore:
    def __init__(self, client: Client):
        self.client = client

    def _execute(self, table: str, query):
        try:
            return query.execute()
        except PostgrestAPIError as e:
            logger.error("Query on %s failed: %s", table, e.message)
            raise StoreError(e.message or str(e), getattr(e, "code", None)) from e

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).select(columns), filters)
        if order:
            query = query.order(order, desc=desc)
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        response = self._execute(table, query)
        return response.data or []

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        query = _apply_filters(self.client.table(table).select("id", count="exact"), filters)
        response = self._execute(table, query)
        return response.count or 0

    def insert(
        self, table: str, rows: Union[Dict[str, Any], List[Dict[str, Any]]]
    ) -> List[Dict[str, Any]]:
        response = self._execute(table, self.client.table(table).insert(rows))
        return response.data or []

    def update(
        self, table: str, values: Dict[str, Any], filters: Sequence[Filter]
    ) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).update(values), filters)
        response = self._execute(table, query)
        return response.data or []

    def delete(self, table: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        query = _apply_filters(self.client.table(table).delete(), filters)
        response = self._execute(table, query)
        return response.data or []


def _to_session(session, user) -> AuthSession:
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user=AuthUser(id=str(user.id), email=user.email),
    )


class SupabaseAuth:
    def __init__(self, client: Client):
        self.client = client

    def sign_up(
        self, email: str, password: str, redirect_to: Optional[str] = None
    ) -> Optional[AuthSession]:
        credentials: Dict[str, Any] = {"email": email, "password": password}
        if redirect_to:
            credentials["options"] = {"email_redirect_to": redirect_to}
        try:
            response = self.client.auth.sign_up(credentials)
        except AuthError as e:
            raise AuthProviderError(e.message, getattr(e, "status", None)) from e
        # No session until the email address is confirmed
        if response.session is None or response.user is None:
            return None
        return _to_session(response.session, response.user)

    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as e:
            raise AuthProviderError(e.message, getattr(e, "status", None)) from e
        return _to_session(response.session, response.user)

    def sign_out(self, access_token: str, refresh_token: str) -> None:
        try:
            self.client.auth.set_session(access_token, refresh_token)
            self.client.auth.sign_out()
        except AuthError as e:
            raise AuthProviderError(e.message, getattr(e, "status", None)) from e

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as e:
            logger.warning("Rejected access token: %s", e.message)
            return None
        if response is None or response.user is None:
            return None
        return AuthUser(id=str(response.user.id), email=response.user.email)

    def verify_otp(self, token_hash: str, type: str) -> AuthSession:
        try:
            response = self.client.auth.verify_otp({"token_hash": token_hash, "type": type})
        except AuthError as e:
            raise AuthProviderError(e.message, getattr(e, "status", None)) from e
        if response.session is None or response.user is None:
            raise AuthProviderError("Verification did not return a session")
        return _to_session(response.session, response.user)

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        try:
            self.client.auth.reset_password_for_email(email, options)
        except AuthError as e:
            raise AuthProviderError(e.message, getattr(e, "status", None)) from e

    def update_password(self, access_token: str, refresh_token: str, password: str) -> None:
        try:
            self.client.auth.set_session(access_token, refresh_token)
            self.client.auth.update_user({"password": password})
        except AuthError as e:
            raise AuthProviderError(e.message, getattr(e, "status", None)) from e


class SupabaseBlobStorage:
    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            self.client.storage.from_(self.bucket).upload(
                path, data, {"content-type": content_type, "upsert": "true"}
            )
        except StorageException as e:
            logger.error("Upload of %s failed: %s", path, e)
            raise StoreError(f"Failed to upload {path}: {e}") from e
        return self.public_url(path)

    def delete(self, paths: Sequence[str]) -> None:
        try:
            self.client.storage.from_(self.bucket).remove(list(paths))
        except StorageException as e:
            logger.error("Removing %s failed: %s", list(paths), e)
            raise StoreError(f"Failed to delete {', '.join(paths)}: {e}") from e

    def public_url(self, path: str) -> str:
        return self.client.storage.from_(self.bucket).get_public_url(path)
