from __future__ import annotations

import math
import re
import secrets
import string
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import bleach
from flask import Request, session

# ---------- CSRF ----------


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate CSRF token from form, header, or JSON body."""
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")

    # Also check JSON body for API-style requests
    if not token and req.is_json:
        json_data = req.get_json(silent=True) or {}
        token = json_data.get("csrf_token") if isinstance(json_data, dict) else None

    return bool(token and token == session.get("csrf_token"))


# ---------- Sanitizers & validators ----------

ALLOWED_TAGS = frozenset({"p", "br", "strong", "em", "u", "ol", "ul", "li", "h1", "h2", "h3", "h4", "h5", "h6"})
ALLOWED_ATTRIBUTES = ["href", "target"]

_TAG_RE = re.compile(r"<[^>]*>")
_DANGEROUS_CHARS_RE = re.compile(r"[<>\"'&]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{1,50}$")
_TOKEN_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

MAX_CURRENCY_AMOUNT = 999_999_999_999


def sanitize_html(value: Any) -> str:
    if not value or not isinstance(value, str):
        return ""
    return bleach.clean(value, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def sanitize_text(value: Any, max_length: int = 255) -> str:
    """Strip markup and quote/ampersand characters, trim, and cap the length."""
    if not value or not isinstance(value, str):
        return ""
    cleaned = _TAG_RE.sub("", value)
    cleaned = _DANGEROUS_CHARS_RE.sub("", cleaned)
    return cleaned.strip()[:max_length]


def validate_email(email: Any) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(_EMAIL_RE.match(email)) and len(email) <= 254


def validate_phone(phone: Any) -> bool:
    if not phone or not isinstance(phone, str):
        return False
    digits = re.sub(r"\D", "", phone)
    return 10 <= len(digits) <= 15


def sanitize_phone(phone: Any) -> str:
    if not phone or not isinstance(phone, str):
        return ""
    cleaned = re.sub(r"[^\d+]", "", phone)
    # "+" is only meaningful as the leading character
    if "+" in cleaned and not cleaned.startswith("+"):
        cleaned = cleaned.replace("+", "")
    return cleaned


def validate_currency(amount: Any) -> bool:
    if isinstance(amount, bool):
        return False
    try:
        num = float(amount)
    except (TypeError, ValueError):
        return False
    return not math.isnan(num) and 0 <= num <= MAX_CURRENCY_AMOUNT


def sanitize_filename(filename: Any) -> str:
    if not filename or not isinstance(filename, str):
        return ""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
    cleaned = re.sub(r"_{2,}", "_", cleaned)
    return cleaned[:255]


def validate_file_extension(filename: Any, allowed_extensions: list[str] | tuple[str, ...]) -> bool:
    if not filename or not isinstance(filename, str):
        return False
    extension = filename.lower().rsplit(".", 1)[-1]
    return extension in allowed_extensions


def validate_id(value: Any) -> bool:
    if not value or not isinstance(value, str):
        return False
    return bool(_ID_RE.match(value))


def generate_secure_token(length: int = 32) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


@dataclass
class FormValidation:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    clean_data: dict[str, Any] = field(default_factory=dict)


def validate_form_data(data: Mapping[str, Any], rules: Mapping[str, Mapping[str, Any]]) -> FormValidation:
    """
    Validate and clean form fields against per-field rules.

    A rule is a mapping with `type` (email, phone, text, currency, html) and
    optional `required`, `maxLength`, `minLength`. Fields without a rule are dropped.
    """
    errors: list[str] = []
    clean: dict[str, Any] = {}

    for name, value in data.items():
        rule = rules.get(name)
        if not rule:
            continue

        if rule.get("required") and (not value or str(value).strip() == ""):
            errors.append(f"{name} wajib diisi")
            continue

        clean_value = value
        kind = rule.get("type")
        if kind == "email":
            if value and not validate_email(value):
                errors.append(f"{name} harus berupa email yang valid")
            else:
                clean_value = sanitize_text(value, 254)
        elif kind == "phone":
            if value and not validate_phone(value):
                errors.append(f"{name} harus berupa nomor telepon yang valid")
            else:
                clean_value = sanitize_phone(value)
        elif kind == "text":
            clean_value = sanitize_text(value, rule.get("maxLength") or 255)
            min_length = rule.get("minLength")
            if min_length and len(clean_value) < min_length:
                errors.append(f"{name} minimal {min_length} karakter")
        elif kind == "currency":
            if value and not validate_currency(value):
                errors.append(f"{name} harus berupa jumlah yang valid")
            else:
                clean_value = float(value) if value else 0
        elif kind == "html":
            clean_value = sanitize_html(value)

        clean[name] = clean_value

    return FormValidation(is_valid=not errors, errors=errors, clean_data=clean)


# ---------- Rate limiting ----------


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window request counter per key.

    The table holds at most `max_keys` windows. A new key arriving at a full
    table first drops expired windows; if every window is still live the new
    key is refused, so flooding distinct keys never resets a live budget.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 300,
        *,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str, max_requests: int | None = None, window_seconds: float | None = None) -> bool:
        """Count one request for `key`; False once the window's budget is spent."""
        limit = self.max_requests if max_requests is None else max_requests
        window = self.window_seconds if window_seconds is None else window_seconds
        now = self._clock()
        with self._lock:
            current = self._windows.get(key)
            if current is None or now > current.reset_at:
                if current is None and not self._has_room(now):
                    return False
                self._windows[key] = _Window(count=1, reset_at=now + window)
                return True
            if current.count >= limit:
                return False
            current.count += 1
            return True

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)

    def _has_room(self, now: float) -> bool:
        if len(self._windows) < self.max_keys:
            return True
        for key in [k for k, w in self._windows.items() if now > w.reset_at]:
            del self._windows[key]
        return len(self._windows) < self.max_keys


# ---------- Response headers ----------


def content_security_policy(supabase_url: str | None = None) -> str:
    connect = ["'self'", "https://*.supabase.co", "wss://*.supabase.co"]
    if supabase_url and not supabase_url.endswith(".supabase.co"):
        connect.append(supabase_url.rstrip("/"))
    return "; ".join(
        [
            "default-src 'self'",
            "script-src 'self'",
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
            "font-src 'self' https://fonts.gstatic.com",
            "img-src 'self' data: https:",
            f"connect-src {' '.join(connect)}",
            "frame-src 'none'",
            "object-src 'none'",
            "base-uri 'self'",
        ]
    )


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}
