from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flask import Flask, current_app
from supabase import Client, ClientOptions, create_client


class BackendConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Backend:
    """
    Process-wide handle on the hosted database service.

    `client` is the shared anonymous client. Anything that carries per-user auth
    state gets its own short-lived client so one visitor's session never leaks
    into another request.
    """

    url: str
    api_key: str
    client: Client

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Backend":
        url = (config.get("SUPABASE_URL") or "").strip()
        api_key = (config.get("SUPABASE_ANON_KEY") or "").strip()
        missing = [name for name, value in (("SUPABASE_URL", url), ("SUPABASE_ANON_KEY", api_key)) if not value]
        if missing:
            raise BackendConfigError(f"Missing Supabase environment variables: {', '.join(missing)}")
        return cls(url=url, api_key=api_key, client=create_client(url, api_key))

    def new_client(self) -> Client:
        options = ClientOptions(persist_session=False, auto_refresh_token=False)
        return create_client(self.url, self.api_key, options=options)

    def client_for(self, access_token: str | None) -> Client:
        if not access_token:
            return self.client
        c = self.new_client()
        c.postgrest.auth(access_token)
        return c


def init_backend(app: Flask) -> Backend:
    backend = Backend.from_config(app.config)
    app.extensions["backend"] = backend
    app.logger.info("Supabase backend initialised (url=%s)", backend.url)
    return backend


def current_backend() -> Backend:
    backend = current_app.extensions.get("backend")
    if backend is None:
        raise BackendConfigError("Backend not initialised; call init_backend(app) first.")
    return backend
