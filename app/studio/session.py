from __future__ import annotations

import logging
from collections.abc import MutableMapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from app.studio.auth_service import AuthService
from app.studio.backend import Backend
from app.studio.service import DataService

logger = logging.getLogger(__name__)

SESSION_KEYS = ("user_id", "access_token", "refresh_token")


@dataclass
class SessionContext:
    """
    Everything known about the signed-in visitor for the lifetime of a request.

    Built from the signed session cookie by `from_cookie()`, populated by
    `restore()`, and torn down by `close()`. Nothing here is shared between
    visitors.
    """

    backend: Backend
    user_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] | None = None
    profile: dict[str, Any] | None = None
    notifications: list[dict[str, Any]] = field(default_factory=list)
    auth: AuthService | None = field(default=None, repr=False)
    _subscription: Any = field(default=None, repr=False)

    @classmethod
    def from_cookie(cls, backend: Backend, cookie: MutableMapping[str, Any]) -> "SessionContext":
        return cls(
            backend=backend,
            user_id=cookie.get("user_id"),
            access_token=cookie.get("access_token"),
            refresh_token=cookie.get("refresh_token"),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def data(self) -> DataService:
        return DataService(self.backend.client_for(self.access_token))

    def restore(self) -> "SessionContext":
        """
        Resume the remote auth session, then load user, primary profile and
        notifications concurrently.

        Resuming subscribes this context to the session's auth events, so an
        expired access token is refreshed on the way and the new tokens land
        here. Missing tokens or a missing or unapproved user record leave the
        context anonymous.
        """
        if not self.user_id:
            return self
        if not (self.access_token and self.refresh_token):
            self.clear()
            return self

        auth = AuthService(self.backend.new_client())
        self.attach(auth)
        auth.resume_session(self.access_token, self.refresh_token)
        if auth.get_current_session() is None:
            logger.info("No remote session for %s; treating as anonymous", self.user_id)
            self.clear()
            return self

        data = self.data()
        with ThreadPoolExecutor(max_workers=3) as pool:
            user_f = pool.submit(data.get_user, self.user_id)
            profile_f = pool.submit(data.get_primary_profile)
            notif_f = pool.submit(data.get_notifications)
            user = user_f.result()
            profile = profile_f.result()
            notifications = notif_f.result()

        if user is None or not user.get("isApproved"):
            logger.info("Session for %s no longer valid; treating as anonymous", self.user_id)
            self.clear()
            return self

        self.user = user
        self.profile = profile
        self.notifications = sorted(notifications, key=lambda n: n.get("timestamp") or "", reverse=True)
        return self

    def attach(self, auth: AuthService) -> None:
        """Follow auth events from `auth` until `close()`."""
        self.close()
        self.auth = auth
        self._subscription = auth.on_auth_state_change(self._on_auth_event)

    def _on_auth_event(self, event: str, session: Any) -> None:
        if event == "SIGNED_OUT":
            self.clear()
            return
        if event not in ("SIGNED_IN", "TOKEN_REFRESHED") or session is None:
            return
        self.access_token = session.access_token
        self.refresh_token = session.refresh_token
        if session.user is not None:
            self.user_id = session.user.id
        if event == "SIGNED_IN":
            data = self.data()
            self.user = data.get_user(self.user_id) if self.user_id else None
            self.profile = data.get_primary_profile()

    def sign_out(self) -> None:
        """Sign the resumed remote session out; SIGNED_OUT clears this context."""
        if self.auth is not None:
            self.auth.sign_out()
        self.clear()

    def store(self, cookie: MutableMapping[str, Any]) -> None:
        for key in SESSION_KEYS:
            value = getattr(self, key)
            if value:
                cookie[key] = value
            else:
                cookie.pop(key, None)

    def clear(self) -> None:
        self.user_id = None
        self.access_token = None
        self.refresh_token = None
        self.user = None
        self.profile = None
        self.notifications = []

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.auth = None
