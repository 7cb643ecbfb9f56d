from flask import Blueprint, g, render_template

from app.studio.constants import View
from app.studio.rbac import user_has_view
from app.studio.routing import path_for_view

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    """Single-page shell; the client router takes over from the URL fragment."""
    user = getattr(g, "current_user", None)
    nav = [
        {"label": v.value, "href": path_for_view(v)}
        for v in View
        if v is not View.HOMEPAGE and user_has_view(user, v)
    ]
    return render_template("index.html", nav=nav)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Liveness check for the platform; plain text, no backend access.
    """
    return "ok", 200
