"""
In-memory stand-in for the Supabase client.

Covers the slice of the client the app uses: table queries (select/eq/limit,
insert, update, delete), auth sign-up/sign-in/sign-out with auth events,
session resume with token refresh, and per-client tokens. Tests reach it
through the `supabase_store` fixture, which patches
`app.studio.backend.create_client`.
"""
from __future__ import annotations

import copy
import threading
import time
import uuid
from collections import defaultdict
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError
from supabase import AuthError

from app.studio import schema as sc


class FakeAuthError(AuthError):
    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message
        self.code = None


class FakeStore:
    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.auth_users: dict[str, dict] = {}
        self.failing_tables: dict[str, str] = {}
        self.failing_ids: set[str] = set()
        self.insert_delay: dict[str, float] = {}
        self.sign_in_delay = 0.0
        self.sign_outs = 0
        self.expired_tokens: set[str] = set()
        self.refreshes = 0
        self.clients: list["FakeClient"] = []
        self.lock = threading.Lock()

    def seed(self, table: str, **row) -> dict:
        row.setdefault("id", str(uuid.uuid4()))
        with self.lock:
            self.tables[table].append(copy.deepcopy(row))
        return row

    def rows(self, table: str) -> list[dict]:
        with self.lock:
            return copy.deepcopy(self.tables[table])

    def add_account(
        self,
        email: str,
        password: str = "pw-123456",
        *,
        role: str = "Member",
        permissions: list[str] | None = None,
        approved: bool = True,
        with_row: bool = True,
        confirmed: bool = True,
    ) -> str:
        uid = str(uuid.uuid4())
        self.auth_users[email] = {"id": uid, "email": email, "password": password, "confirmed": confirmed, "metadata": {}}
        if with_row:
            self.seed(
                "users",
                id=uid,
                email=email,
                password_hash="",
                full_name=email.split("@")[0],
                role=role,
                permissions=list(permissions or []),
                is_approved=approved,
            )
        return uid

    def user_for_token(self, token: str, kind: str = "access") -> dict | None:
        for rec in self.auth_users.values():
            prefix = f"{kind}-{rec['id']}"
            if token == prefix or token.startswith(prefix + "-"):
                return rec
        return None


def _session_for(rec: dict, generation: int = 0) -> SimpleNamespace:
    user = SimpleNamespace(id=rec["id"], email=rec["email"])
    suffix = f"-{generation}" if generation else ""
    return SimpleNamespace(
        access_token=f"access-{rec['id']}{suffix}",
        refresh_token=f"refresh-{rec['id']}{suffix}",
        user=user,
    )


class FakeQuery:
    def __init__(self, store: FakeStore, table: str):
        self.store = store
        self.table = table
        self.op = "select"
        self.payload: dict | None = None
        self.filters: list[tuple[str, object]] = []
        self.row_limit: int | None = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, row):
        self.op, self.payload = "update", row
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row: dict) -> bool:
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        store = self.store
        if self.table in store.failing_tables:
            raise APIError({"message": store.failing_tables[self.table], "code": "XX000", "hint": None, "details": None})

        if self.op == "insert":
            delay = store.insert_delay.get(self.table)
            if delay:
                time.sleep(delay)
            row = copy.deepcopy(self.payload)
            if not row.get("id"):
                row["id"] = str(uuid.uuid4())
            with store.lock:
                store.tables[self.table].append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)])

        with store.lock:
            rows = store.tables[self.table]
            matched = [r for r in rows if self._matches(r)]
            if self.op == "update":
                for r in matched:
                    if r.get("id") in store.failing_ids:
                        raise APIError({"message": f"update of {r['id']} rejected", "code": "XX000", "hint": None, "details": None})
                for r in matched:
                    r.update(copy.deepcopy(self.payload))
                return SimpleNamespace(data=copy.deepcopy(matched))
            if self.op == "delete":
                store.tables[self.table] = [r for r in rows if not self._matches(r)]
                return SimpleNamespace(data=copy.deepcopy(matched))
            if self.row_limit is not None:
                matched = matched[: self.row_limit]
            return SimpleNamespace(data=copy.deepcopy(matched))


class FakeSubscription:
    def __init__(self, listeners: list, callback):
        self._listeners = listeners
        self._callback = callback

    def unsubscribe(self):
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


class FakeAuth:
    def __init__(self, store: FakeStore):
        self.store = store
        self.session = None
        self.listeners: list = []

    def _emit(self, event: str, session) -> None:
        for cb in list(self.listeners):
            cb(event, session)

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.store.auth_users:
            raise FakeAuthError("User already registered")
        uid = str(uuid.uuid4())
        self.store.auth_users[email] = {
            "id": uid,
            "email": email,
            "password": credentials["password"],
            "confirmed": True,
            "metadata": credentials.get("options", {}).get("data", {}),
        }
        return SimpleNamespace(user=SimpleNamespace(id=uid, email=email), session=None)

    def sign_in_with_password(self, credentials):
        if self.store.sign_in_delay:
            time.sleep(self.store.sign_in_delay)
        rec = self.store.auth_users.get(credentials["email"])
        if rec is None or rec["password"] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        if not rec["confirmed"]:
            raise FakeAuthError("Email not confirmed")
        self.session = _session_for(rec)
        self._emit("SIGNED_IN", self.session)
        return SimpleNamespace(user=self.session.user, session=self.session)

    def sign_out(self):
        self.store.sign_outs += 1
        self.session = None
        self._emit("SIGNED_OUT", None)

    def get_session(self):
        return self.session

    def get_user(self):
        if self.session is None:
            return None
        return SimpleNamespace(user=self.session.user)

    def set_session(self, access_token, refresh_token):
        store = self.store
        if access_token in store.expired_tokens:
            rec = store.user_for_token(refresh_token, "refresh")
            if rec is None:
                raise FakeAuthError("Invalid Refresh Token: Refresh Token Not Found")
            store.refreshes += 1
            self.session = _session_for(rec, store.refreshes)
        else:
            rec = store.user_for_token(access_token)
            if rec is None:
                raise FakeAuthError("invalid JWT")
            self.session = _session_for(rec)
            self.session.access_token = access_token
            self.session.refresh_token = refresh_token
        self._emit("TOKEN_REFRESHED", self.session)
        return SimpleNamespace(user=self.session.user, session=self.session)

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return FakeSubscription(self.listeners, callback)


class FakePostgrest:
    def __init__(self):
        self.token = None

    def auth(self, token):
        self.token = token


class FakeClient:
    def __init__(self, store: FakeStore, url: str, key: str, options=None):
        self.store = store
        self.url = url
        self.key = key
        self.options = options
        self.auth = FakeAuth(store)
        self.postgrest = FakePostgrest()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.store, name)


def _sample(fl: sc.Field):
    kind = fl.default() if fl.default is not None else None
    if isinstance(kind, list):
        return [f"{fl.app}-item"]
    if isinstance(kind, dict):
        return {"key": fl.app}
    return f"{fl.app}-value"


def sample_record(schema: sc.EntitySchema) -> dict:
    """A record holding a distinct value for every field that is both written and read."""
    record: dict = {}
    for fl in schema.fields:
        if fl.write and fl.read:
            sc._assign(record, fl.app, _sample(fl))
    return record


def round_tripped(schema: sc.EntitySchema, record: dict) -> dict:
    return {fl.app: sc._lookup(record, fl.app)[1] for fl in schema.fields if fl.write and fl.read}


@pytest.fixture()
def supabase_store(monkeypatch):
    store = FakeStore()

    def _create_client(url, key, options=None):
        c = FakeClient(store, url, key, options)
        store.clients.append(c)
        return c

    monkeypatch.setattr("app.studio.backend.create_client", _create_client)
    return store


@pytest.fixture()
def fake_client(supabase_store):
    return FakeClient(supabase_store, "https://test.supabase.co", "anon-key")


def studio_env(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    for k in ("VITE_SUPABASE_URL", "VITE_SUPABASE_ANON_KEY", "RATE_LIMIT_MAX_REQUESTS", "RATE_LIMIT_WINDOW_SECONDS"):
        monkeypatch.delenv(k, raising=False)


def login(client, email: str, password: str = "pw-123456"):
    return client.post("/auth/login", json={"email": email, "password": password})


def csrf_headers(client) -> dict:
    token = client.get("/api/session").json["csrf_token"]
    return {"X-CSRF-Token": token}
