from collections.abc import Callable, Mapping
from functools import wraps
from typing import Any

from flask import abort, g, jsonify, redirect, request, url_for

from app.studio.constants import ROLE_ADMIN, View


def user_has_view(user: Mapping[str, Any] | None, view: View | str) -> bool:
    if not user:
        return False
    if user.get("role") == ROLE_ADMIN:
        return True
    name = view.value if isinstance(view, View) else view
    return name in (user.get("permissions") or [])


def require_view(view: View | str | None = None, *, admin_only: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Gate an endpoint on the signed-in user's view permissions.

    `view=None` only requires a signed-in user.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = getattr(g, "current_user", None)
            if not user:
                if request.path.startswith("/api/"):
                    return jsonify({"error": "Authentication required."}), 401
                nxt = request.full_path or request.path
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            if admin_only and user.get("role") != ROLE_ADMIN:
                g.missing_permission = ROLE_ADMIN
                abort(403)
            if view is not None and not user_has_view(user, view):
                g.missing_permission = view.value if isinstance(view, View) else view
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
