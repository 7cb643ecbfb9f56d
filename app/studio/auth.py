from __future__ import annotations

import uuid

from flask import Blueprint, current_app, flash, g, jsonify, redirect, render_template, request, session, url_for
from postgrest.exceptions import APIError
from supabase import AuthError

from app.studio.auth_service import AuthFlowError, AuthService
from app.studio.backend import current_backend
from app.studio.constants import MSG_RATE_LIMITED, MSG_SIGN_UP_OK, MSG_SIGNED_OUT
from app.studio.routing import DASHBOARD_ROUTE, HOME_ROUTE
from app.studio.security import RateLimiter, validate_form_data
from app.studio.service import remote_error_message
from app.studio.session import SessionContext

bp = Blueprint("auth", __name__)

_SIGNUP_RULES = {
    "email": {"type": "email", "required": True},
    "full_name": {"type": "text", "required": True, "maxLength": 100},
    "password": {"required": True},
}


def _shell_url(route: str) -> str:
    return url_for("routes.index") + route


def _wants_json() -> bool:
    return request.is_json or request.accept_mimetypes.best == "application/json"


def _payload() -> dict:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _fail(message: str, endpoint: str, status: int = 400):
    if _wants_json():
        return jsonify({"error": message}), status
    flash(message, "danger")
    return redirect(url_for(endpoint))


def rate_limiter() -> RateLimiter:
    return current_app.extensions["rate_limiter"]


def load_current_user() -> None:
    """
    Restore the visitor's SessionContext from the signed session cookie and
    expose it as g.session_ctx (user as g.current_user).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex

    ctx = SessionContext.from_cookie(current_backend(), session)
    g.session_ctx = ctx
    g.current_user = None
    if not ctx.user_id:
        return

    try:
        ctx.restore()
    except Exception as e:
        current_app.logger.error("load_current_user backend error (clearing session): %s", remote_error_message(e))
        ctx.clear()

    if not ctx.is_authenticated or session.get("access_token") != ctx.access_token:
        # Dropped or refreshed tokens go back into the cookie.
        ctx.store(session)
    g.current_user = ctx.user


def close_session_context(exc: BaseException | None = None) -> None:
    ctx = g.pop("session_ctx", None)
    if ctx is not None:
        ctx.close()


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    data = _payload()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    nxt = (data.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if not rate_limiter().check(f"login:{ip}"):
        current_app.logger.warning("Login rate limit hit (ip=%s)", ip)
        return _fail(MSG_RATE_LIMITED, "auth.login_get", 429)

    backend = current_backend()
    auth = AuthService(backend.new_client(), sign_in_timeout=current_app.config["SIGN_IN_TIMEOUT_SECONDS"])
    try:
        result = auth.sign_in(email, password)
    except AuthFlowError as e:
        current_app.logger.info("Login failed (email=%s): %s", email, e.__class__.__name__)
        return _fail(str(e), "auth.login_get", 401)

    ctx: SessionContext = g.session_ctx
    ctx.user_id = result.user["id"]
    ctx.access_token = result.session.access_token if result.session else None
    ctx.refresh_token = result.session.refresh_token if result.session else None
    ctx.user = result.user
    ctx.store(session)
    rate_limiter().reset(f"login:{ip}")
    current_app.logger.info("Login ok (user_id=%s request_id=%s)", ctx.user_id, g.request_id)

    if _wants_json():
        return jsonify({"user": result.user, "route": DASHBOARD_ROUTE})
    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(_shell_url(DASHBOARD_ROUTE))


@bp.get("/signup")
def signup_get():
    return render_template("auth/signup.html")


@bp.post("/signup")
def signup_post():
    data = _payload()
    checked = validate_form_data(data, _SIGNUP_RULES)
    if not checked.is_valid:
        return _fail("; ".join(checked.errors), "auth.signup_get")

    email = checked.clean_data["email"].lower()
    auth = AuthService(current_backend().new_client())
    try:
        user = auth.sign_up(email, checked.clean_data["password"], checked.clean_data["full_name"])
    except (AuthError, AuthFlowError, APIError) as e:
        current_app.logger.warning("Sign-up failed (email=%s): %s", email, remote_error_message(e))
        return _fail(remote_error_message(e), "auth.signup_get")

    if _wants_json():
        return jsonify({"user": user, "message": MSG_SIGN_UP_OK}), 201
    flash(MSG_SIGN_UP_OK, "success")
    return redirect(url_for("auth.login_get"))


@bp.post("/logout")
def logout():
    ctx: SessionContext = g.session_ctx
    user_id = ctx.user_id
    try:
        ctx.sign_out()
    except AuthError as e:
        # The local session is dropped either way.
        current_app.logger.warning("Remote sign-out failed (user_id=%s): %s", user_id, remote_error_message(e))
        ctx.clear()
    current_app.logger.info("Logout (user_id=%s)", user_id)
    ctx.store(session)
    ctx.close()

    if _wants_json():
        return jsonify({"ok": True, "route": HOME_ROUTE})
    flash(MSG_SIGNED_OUT, "info")
    return redirect(_shell_url(HOME_ROUTE))
