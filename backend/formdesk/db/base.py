"""
Capability interfaces for the managed backend.

Everything the application persists, authenticates or uploads goes through
one of these three protocols. The Supabase implementations live in
``formdesk.db.supabase``; tests substitute in-memory ones.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union


class StoreError(Exception):
    """A failed call against the data store or blob storage."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class AuthProviderError(Exception):
    """A failed call against the authentication provider."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, "in", list(values))


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    user: AuthUser


class Store(Protocol):
    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]: ...

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int: ...

    def insert(
        self, table: str, rows: Union[Dict[str, Any], List[Dict[str, Any]]]
    ) -> List[Dict[str, Any]]: ...

    def update(
        self, table: str, values: Dict[str, Any], filters: Sequence[Filter]
    ) -> List[Dict[str, Any]]: ...

    def delete(self, table: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]: ...


class AuthProvider(Protocol):
    def sign_up(
        self, email: str, password: str, redirect_to: Optional[str] = None
    ) -> Optional[AuthSession]: ...

    def sign_in(self, email: str, password: str) -> AuthSession: ...

    def sign_out(self, access_token: str, refresh_token: str) -> None: ...

    def get_user(self, access_token: str) -> Optional[AuthUser]: ...

    def verify_otp(self, token_hash: str, type: str) -> AuthSession: ...

    def reset_password_for_email(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None: ...

    def update_password(
        self, access_token: str, refresh_token: str, password: str
    ) -> None: ...


class BlobStorage(Protocol):
    def upload(self, path: str, data: bytes, content_type: str) -> str: ...

    def delete(self, paths: Sequence[str]) -> None: ...

    def public_url(self, path: str) -> str: ...
