"""
Tests for fragment resolution and the view permission gate.
"""
import pytest

from app.studio.constants import View
from app.studio.rbac import user_has_view
from app.studio.routing import Router, is_public_route, path_for_view, resolve_route

ADMIN = {"id": "a", "role": "Admin", "permissions": []}
MEMBER = {"id": "m", "role": "Member", "permissions": ["Dashboard", "Clients", "Projects", "Calendar"]}


class TestUserHasView:
    def test_admin_always(self):
        assert user_has_view(ADMIN, View.FINANCE)
        assert user_has_view(ADMIN, "Settings")

    def test_member_needs_listed_view(self):
        assert user_has_view(MEMBER, View.CLIENTS)
        assert not user_has_view(MEMBER, View.FINANCE)

    def test_anonymous_never(self):
        assert not user_has_view(None, View.DASHBOARD)


class TestResolveRoute:
    def test_signed_in_user_bounced_from_login(self):
        r = resolve_route("#/login", MEMBER)
        assert r.route == "#/dashboard"
        assert r.redirected
        assert r.view is View.DASHBOARD

    @pytest.mark.parametrize("fragment", ["#/home", "#/signup", "#", ""])
    def test_signed_in_user_bounced_from_public_only(self, fragment):
        assert resolve_route(fragment, MEMBER).route == "#/dashboard"

    def test_anonymous_user_bounced_from_private(self):
        r = resolve_route("#/projects", None)
        assert r.route == "#/home"
        assert r.redirected
        assert r.page == "home"

    def test_empty_fragment_is_home(self):
        r = resolve_route(None, None)
        assert r.route == "#/home"
        assert not r.redirected

    def test_finance_denied_without_permission(self):
        r = resolve_route("#/finance", MEMBER)
        assert r.view is View.FINANCE
        assert r.access_denied
        assert not r.redirected

    def test_finance_denied_even_with_query_string(self):
        assert resolve_route("#/Finance?tab=cards", MEMBER).access_denied

    def test_allowed_view(self):
        r = resolve_route("#/clients", MEMBER)
        assert r.page == "app"
        assert r.view is View.CLIENTS
        assert not r.access_denied

    def test_multi_word_view(self):
        assert resolve_route("#/social-media-planner", ADMIN).view is View.SOCIAL_MEDIA_PLANNER

    def test_portal_keeps_access_id(self):
        r = resolve_route("#/portal/abc123", None)
        assert r.page == "portal"
        assert r.access_id == "abc123"
        assert not r.redirected

    def test_freelancer_portal(self):
        r = resolve_route("#/freelancer-portal/xyz", None)
        assert r.page == "freelancer-portal"
        assert r.access_id == "xyz"

    def test_public_forms_stay_reachable_when_signed_in(self):
        r = resolve_route("#/public-lead-form", MEMBER)
        assert r.page == "public-lead-form"
        assert not r.redirected


class TestHelpers:
    def test_path_for_view(self):
        assert path_for_view(View.PROMO_CODES) == "#/promo-codes"
        assert path_for_view(View.CLIENT_REPORTS) == "#/client-reports"
        assert path_for_view(View.HOMEPAGE) == "#/home"

    def test_is_public_route(self):
        assert is_public_route("#/suggestion-form")
        assert is_public_route("#/revision-form")
        assert is_public_route("#")
        assert not is_public_route("#/dashboard")

    def test_router_reresolves_on_sign_out(self):
        router = Router(MEMBER, "#/clients")
        assert router.view is View.CLIENTS
        r = router.set_user(None)
        assert r.route == "#/home"
        assert router.navigate("#/feedback").page == "feedback"
