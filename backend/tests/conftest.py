import os

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("PUBLIC_BASE_URL", "https://forms.example.com")
os.environ["VERIFY_BACKEND_ON_STARTUP"] = "false"

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from formdesk.api import deps
from formdesk.db.base import AuthProviderError, AuthSession, AuthUser, Filter, StoreError
from formdesk.main import app
from formdesk.services.form_queries import FormQueries

UNIQUE_COLUMNS = {"forms": "slug"}


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment
    return value


def _matches(row: Dict[str, Any], f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == "eq":
        return value == f.value
    if f.op == "in":
        return value in f.value
    if value is None:
        return False
    if f.op == "gte":
        return _comparable(value) >= _comparable(f.value)
    if f.op == "lte":
        return _comparable(value) <= _comparable(f.value)
    raise ValueError(f.op)


class InMemoryStore:
    """Store protocol over plain dicts; records every write."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.fail_on: Optional[tuple] = None

    def _check(self, op: str, table: str):
        if self.fail_on == (op, table):
            raise StoreError(f"{op} on {table} failed", "XX000")

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def writes(self, op: str, table: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == op and c[1] == table]

    def select(self, table, columns="*", filters=(), order=None, desc=False, limit=None, offset=0):
        self._check("select", table)
        rows = [r for r in self.rows(table) if all(_matches(r, f) for f in filters)]
        if order:
            rows.sort(key=lambda r: _comparable(r.get(order)), reverse=desc)
        if limit is not None:
            rows = rows[offset:offset + limit]
        return copy.deepcopy(rows)

    def count(self, table, filters=()):
        return len(self.select(table, filters=filters))

    def insert(self, table, rows):
        self._check("insert", table)
        batch = rows if isinstance(rows, list) else [rows]
        created = []
        for row in batch:
            unique = UNIQUE_COLUMNS.get(table)
            if unique and any(r.get(unique) == row.get(unique) for r in self.rows(table)):
                raise StoreError("duplicate key value violates unique constraint", "23505")
            record = {"id": str(uuid4()), "created_at": datetime.now(timezone.utc).isoformat()}
            record.update(row)
            self.rows(table).append(record)
            created.append(copy.deepcopy(record))
            self.calls.append(("insert", table, record["id"]))
        return created

    def update(self, table, values, filters):
        self._check("update", table)
        updated = []
        for row in self.rows(table):
            if all(_matches(row, f) for f in filters):
                row.update(values)
                updated.append(copy.deepcopy(row))
                self.calls.append(("update", table, row["id"]))
        return updated

    def delete(self, table, filters):
        self._check("delete", table)
        kept, removed = [], []
        for row in self.rows(table):
            (removed if all(_matches(row, f) for f in filters) else kept).append(row)
        self.tables[table] = kept
        for row in removed:
            self.calls.append(("delete", table, row["id"]))
        if table == "form_sections":
            ids = {r["id"] for r in removed}
            for question in self.rows("form_questions"):
                if question.get("section_id") in ids:
                    question["section_id"] = None
        if table == "forms":
            ids = {r["id"] for r in removed}
            for child in ("form_sections", "form_questions", "form_responses"):
                self.tables[child] = [r for r in self.rows(child) if r.get("form_id") not in ids]
        return removed


class FakeAuth:
    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, AuthUser] = {}
        self.otp: Dict[str, AuthUser] = {}
        self.reset_requests: List[str] = []
        self.signed_out: List[str] = []

    def add_user(self, email: str, password: str = "secret1") -> AuthUser:
        user = AuthUser(id=str(uuid4()), email=email)
        self.users[email] = {"password": password, "user": user}
        return user

    def token_for(self, user: AuthUser) -> str:
        token = f"token-{user.id}"
        self.tokens[token] = user
        return token

    def _session(self, user: AuthUser) -> AuthSession:
        return AuthSession(self.token_for(user), f"refresh-{user.id}", user)

    def sign_up(self, email, password, redirect_to=None):
        if email in self.users:
            raise AuthProviderError("User already registered", 422)
        self.add_user(email, password)
        return None

    def sign_in(self, email, password):
        entry = self.users.get(email)
        if entry is None or entry["password"] != password:
            raise AuthProviderError("Invalid login credentials", 400)
        return self._session(entry["user"])

    def sign_out(self, access_token, refresh_token):
        self.signed_out.append(access_token)
        self.tokens.pop(access_token, None)

    def get_user(self, access_token):
        return self.tokens.get(access_token)

    def verify_otp(self, token_hash, type):
        user = self.otp.pop(token_hash, None)
        if user is None:
            raise AuthProviderError("Token has expired or is invalid", 403)
        return self._session(user)

    def reset_password_for_email(self, email, redirect_to=None):
        self.reset_requests.append(email)

    def update_password(self, access_token, refresh_token, password):
        user = self.tokens[access_token]
        self.users[user.email]["password"] = password


class FakeStorage:
    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    def upload(self, path, data, content_type):
        self.objects[path] = data
        return self.public_url(path)

    def delete(self, paths: Sequence[str]):
        for path in paths:
            self.objects.pop(path, None)

    def public_url(self, path):
        return f"https://example.supabase.co/storage/v1/object/public/form-assets/{path}"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def queries(store):
    return FormQueries(store)


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(store, auth, storage):
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_public_store] = lambda: store
    app.dependency_overrides[deps.get_auth] = lambda: auth
    app.dependency_overrides[deps.get_blob_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner(auth):
    return auth.add_user("owner@example.com")


@pytest.fixture
def owner_headers(auth, owner):
    return {"Authorization": f"Bearer {auth.token_for(owner)}"}


@pytest.fixture
def make_form(queries):
    def _make(user_id, title="Customer survey", slug=None, status="draft"):
        form = queries.create_form(user_id, title=title, slug=slug or f"survey-{uuid4().hex[:8]}")
        if status != "draft":
            form = queries.update_form(form.id, status=status)
        return form
    return _make
