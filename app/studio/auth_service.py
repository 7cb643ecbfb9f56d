from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from postgrest.exceptions import APIError
from supabase import AuthError, Client

from app.studio.constants import (
    DEFAULT_MEMBER_PERMISSIONS,
    MSG_APPROVAL_PENDING,
    MSG_EMAIL_NOT_CONFIRMED,
    MSG_INVALID_CREDENTIALS,
    MSG_SIGN_IN_TIMEOUT,
    MSG_USER_RECORD_NOT_FOUND,
    ROLE_MEMBER,
)
from app.studio.service import DataService, RemoteTimeout, call_with_timeout

logger = logging.getLogger(__name__)


class AuthFlowError(RuntimeError):
    pass


class InvalidCredentials(AuthFlowError):
    pass


class ApprovalPending(AuthFlowError):
    pass


class UserRecordNotFound(AuthFlowError):
    pass


class SignInTimeout(AuthFlowError):
    pass


# Remote auth messages shown to users in their localized form.
_AUTH_MESSAGES = {
    "Invalid login credentials": MSG_INVALID_CREDENTIALS,
    "Email not confirmed": MSG_EMAIL_NOT_CONFIRMED,
}


@dataclass(frozen=True)
class SignInResult:
    session: Any
    user: dict[str, Any]


class AuthService:
    """
    Remote sign-up/sign-in plus the mirrored `users` row that carries role,
    permissions and the approval flag.

    One instance wraps one client; its auth state belongs to a single visitor.
    """

    def __init__(self, client: Client, *, sign_in_timeout: float = 30.0) -> None:
        self.client = client
        self.sign_in_timeout = sign_in_timeout
        self.data = DataService(client)

    def sign_up(self, email: str, password: str, full_name: str) -> dict[str, Any]:
        res = self.client.auth.sign_up(
            {
                "email": email,
                "password": password,
                "options": {"data": {"full_name": full_name, "role": ROLE_MEMBER, "is_approved": False}},
            }
        )
        if res.user is None:
            raise AuthFlowError("Sign-up returned no user")

        user = self.data.create_user(
            {
                "id": res.user.id,
                "email": email,
                "password": "",
                "fullName": full_name,
                "role": ROLE_MEMBER,
                "permissions": [v.value for v in DEFAULT_MEMBER_PERMISSIONS],
                "isApproved": False,
            }
        )
        logger.info("Sign-up: created user record %s for %s", user["id"], email)
        return user

    def sign_in(self, email: str, password: str) -> SignInResult:
        def _auth():
            return self.client.auth.sign_in_with_password({"email": email, "password": password})

        try:
            res = call_with_timeout(_auth, self.sign_in_timeout, MSG_SIGN_IN_TIMEOUT)
        except RemoteTimeout as e:
            raise SignInTimeout(str(e)) from None
        except AuthError as e:
            logger.info("Sign-in rejected for %s: %s", email, e.message)
            raise InvalidCredentials(_AUTH_MESSAGES.get(e.message, e.message)) from e

        if res.user is None:
            raise InvalidCredentials(MSG_INVALID_CREDENTIALS)

        try:
            user = self.data.get_user(res.user.id)
        except APIError as e:
            logger.warning("Sign-in: user record lookup failed for %s: %s", email, e.message)
            self.sign_out()
            raise UserRecordNotFound(MSG_USER_RECORD_NOT_FOUND) from e
        if user is None:
            self.sign_out()
            raise UserRecordNotFound(MSG_USER_RECORD_NOT_FOUND)
        if not user.get("isApproved"):
            self.sign_out()
            raise ApprovalPending(MSG_APPROVAL_PENDING)

        return SignInResult(session=res.session, user=user)

    def sign_out(self) -> None:
        self.client.auth.sign_out()

    def resume_session(self, access_token: str, refresh_token: str) -> Any:
        """Restore a stored session on this client; an expired access token is refreshed (TOKEN_REFRESHED)."""
        return self.client.auth.set_session(access_token, refresh_token)

    def get_current_session(self) -> Any:
        return self.client.auth.get_session()

    def on_auth_state_change(self, callback: Callable[[str, Any], None]) -> Any:
        """Subscribe to auth events; the returned subscription has `unsubscribe()`."""
        return self.client.auth.on_auth_state_change(callback)
