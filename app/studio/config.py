import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    log_level: str

    supabase_url: str
    supabase_anon_key: str

    create_timeout_seconds: float
    sign_in_timeout_seconds: float

    rate_limit_max_requests: int
    rate_limit_window_seconds: int
    rate_limit_max_keys: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_any(*names: str) -> str:
    for name in names:
        value = _getenv(name)
        if value:
            return value
    return ""


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        # The VITE_ names are what the browser build injects; accept either.
        supabase_url=_getenv_any("SUPABASE_URL", "VITE_SUPABASE_URL"),
        supabase_anon_key=_getenv_any("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"),
        create_timeout_seconds=float(_getenv("CREATE_TIMEOUT_SECONDS", "10")),
        sign_in_timeout_seconds=float(_getenv("SIGN_IN_TIMEOUT_SECONDS", "30")),
        rate_limit_max_requests=int(_getenv("RATE_LIMIT_MAX_REQUESTS", "5")),
        rate_limit_window_seconds=int(_getenv("RATE_LIMIT_WINDOW_SECONDS", "300")),
        rate_limit_max_keys=int(_getenv("RATE_LIMIT_MAX_KEYS", "10000")),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "LOG_LEVEL": s.log_level,
        "SUPABASE_URL": s.supabase_url,
        "SUPABASE_ANON_KEY": s.supabase_anon_key,
        "CREATE_TIMEOUT_SECONDS": s.create_timeout_seconds,
        "SIGN_IN_TIMEOUT_SECONDS": s.sign_in_timeout_seconds,
        "RATE_LIMIT_MAX_REQUESTS": s.rate_limit_max_requests,
        "RATE_LIMIT_WINDOW_SECONDS": s.rate_limit_window_seconds,
        "RATE_LIMIT_MAX_KEYS": s.rate_limit_max_keys,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # public forms post small JSON/form bodies only
        "MAX_CONTENT_LENGTH": 5 * 1024 * 1024,
    }
