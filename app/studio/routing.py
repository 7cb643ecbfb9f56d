"""
Fragment router for the single-page shell.

The browser owns the `#/...` fragment; the server only decides which view a
fragment resolves to for a given user, and whether it has to redirect first.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from app.studio.constants import View
from app.studio.rbac import user_has_view

HOME_ROUTE = "#/home"
DASHBOARD_ROUTE = "#/dashboard"

_VIEWS_BY_SLUG = {v.slug: v for v in View}

_PUBLIC_PREFIXES = (
    "#/public",
    "#/feedback",
    "#/suggestion",
    "#/revision",
    "#/portal",
    "#/freelancer-portal",
    "#/login",
    "#/signup",
)
_PUBLIC_EXACT = ("#/home", "#")

# Routes an authenticated user is bounced away from.
_PUBLIC_ONLY = ("#/home", "#/login", "#/signup", "#/", "#")

_PUBLIC_PAGES = (
    "public-packages",
    "public-booking",
    "public-lead-form",
    "feedback",
    "suggestion-form",
    "revision-form",
    "portal",
    "freelancer-portal",
    "login",
    "signup",
)
_PORTAL_PAGES = ("portal", "freelancer-portal")


@dataclass(frozen=True)
class Resolution:
    route: str
    view: View
    page: str
    access_id: str | None = None
    access_denied: bool = False
    redirected: bool = False

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["view"] = self.view.value
        return out


def path_for_view(view: View) -> str:
    if view is View.HOMEPAGE:
        return HOME_ROUTE
    return f"#/{view.slug}"


def _normalize(fragment: str | None) -> str:
    route = (fragment or "").strip() or HOME_ROUTE
    if not route.startswith("#"):
        route = "#" + (route if route.startswith("/") else "/" + route)
    return route


def _path(route: str) -> str:
    return route.split("?", 1)[0]


def is_public_route(route: str) -> bool:
    path = _path(route)
    return path in _PUBLIC_EXACT or path.startswith(_PUBLIC_PREFIXES)


def is_public_only_route(route: str) -> bool:
    return _path(route).lower() in _PUBLIC_ONLY


def view_for_route(route: str) -> View:
    segments = _path(route).split("/")
    slug = segments[1].lower() if len(segments) > 1 else ""
    return _VIEWS_BY_SLUG.get(slug, View.HOMEPAGE)


def resolve_route(fragment: str | None, user: Mapping[str, Any] | None) -> Resolution:
    """
    Apply the transition rule to `fragment` for `user` (None when anonymous).

    Signed-in users are sent from home/login/signup to the dashboard; anonymous
    users are sent from private views to home. A private view the user lacks
    permission for resolves with `access_denied` set.
    """
    route = _normalize(fragment)
    redirected = False
    if user and is_public_only_route(route):
        route, redirected = DASHBOARD_ROUTE, True
    elif not user and not is_public_route(route):
        route, redirected = HOME_ROUTE, True

    segments = _path(route).split("/")
    page_slug = segments[1].lower() if len(segments) > 1 else ""

    if page_slug in _PUBLIC_PAGES:
        access_id = None
        if page_slug in _PORTAL_PAGES and len(segments) > 2 and segments[2]:
            access_id = segments[2]
        return Resolution(route=route, view=View.HOMEPAGE, page=page_slug, access_id=access_id, redirected=redirected)

    view = view_for_route(route)
    if view is View.HOMEPAGE:
        return Resolution(route=route, view=view, page="home", redirected=redirected)

    return Resolution(
        route=route,
        view=view,
        page="app",
        access_denied=not user_has_view(user, view),
        redirected=redirected,
    )


class Router:
    """Current-view state for one visitor; `navigate()` is the only transition."""

    def __init__(self, user: Mapping[str, Any] | None = None, fragment: str | None = None) -> None:
        self.user = user
        self.current = resolve_route(fragment, user)

    def navigate(self, fragment: str | None) -> Resolution:
        self.current = resolve_route(fragment, self.user)
        return self.current

    def set_user(self, user: Mapping[str, Any] | None) -> Resolution:
        """Re-resolve the current route after sign-in or sign-out."""
        self.user = user
        return self.navigate(self.current.route)

    @property
    def view(self) -> View:
        return self.current.view
