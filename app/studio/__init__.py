import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, render_template, request, session
from werkzeug.exceptions import HTTPException

from app.studio.api import bp as api_bp
from app.studio.auth import bp as auth_bp, close_session_context, load_current_user
from app.studio.backend import init_backend
from app.studio.config import load_config
from app.studio.constants import MSG_ACCESS_DENIED, MSG_ACCESS_DENIED_TITLE, MSG_BACK_TO_DASHBOARD
from app.studio.public import bp as public_bp
from app.studio.routes import bp as routes_bp
from app.studio.routing import DASHBOARD_ROUTE
from app.studio.security import SECURITY_HEADERS, RateLimiter, content_security_policy, ensure_csrf_token, validate_csrf

_UNGUARDED_PREFIXES = ("/static/", "/health", "/healthz")


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO"), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("app.studio").setLevel(level)
    app.logger.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    _configure_logging(app)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    # Missing SUPABASE_URL / SUPABASE_ANON_KEY stops startup here.
    init_backend(app)
    app.extensions["rate_limiter"] = RateLimiter(
        app.config["RATE_LIMIT_MAX_REQUESTS"],
        app.config["RATE_LIMIT_WINDOW_SECONDS"],
        max_keys=app.config["RATE_LIMIT_MAX_KEYS"],
    )
    csp = content_security_policy(app.config.get("SUPABASE_URL"))

    @app.context_processor
    def _inject_template_helpers() -> dict:
        return {"csrf_token": ensure_csrf_token(), "current_user": getattr(g, "current_user", None)}

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/signup/logout and the anonymous public forms carry no session to ride on.
            if (request.endpoint or "").startswith(("auth.", "public.")):
                return None
            if not validate_csrf(request):
                if request.path.startswith("/api/"):
                    return jsonify({"error": "CSRF token missing or invalid."}), 400
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    def _load_user_wrapper():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_request(close_session_context)

    @app.after_request
    def _security_headers(response):
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers.setdefault("Content-Security-Policy", csp)
        return response

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(public_bp, url_prefix="/public")

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if request.path.startswith(("/api/", "/public/")):
            return jsonify({"error": "Internal server error."}), 500
        return render_template("errors/500.html"), 500

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        if request.path.startswith("/api/"):
            return (
                jsonify(
                    {
                        "error": MSG_ACCESS_DENIED,
                        "title": MSG_ACCESS_DENIED_TITLE,
                        "action": {"label": MSG_BACK_TO_DASHBOARD, "route": DASHBOARD_ROUTE},
                        "missing_permission": missing,
                    }
                ),
                403,
            )
        return render_template("errors/403.html", missing_permission=missing), 403

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        if request.path.startswith(("/api/", "/public/")):
            return jsonify({"error": e.description}), e.code
        return e

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
