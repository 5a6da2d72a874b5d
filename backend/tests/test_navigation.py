"""
Route guard: role dashboards, public paths, allow-lists and the
company-scoped redirect.
"""
import pytest

from qanoon.models.roles import UserRole, ROLE_DASHBOARDS
from qanoon.services.navigation import (
    get_primary_role,
    dashboard_for,
    normalize_path,
    path_matches,
    is_public_path,
    resolve_navigation,
    ACCESS_DENIED_TOAST,
    REASON_UNAUTHENTICATED,
    REASON_ROLE_NOT_ALLOWED,
    REASON_AUTHENTICATED_HOME,
    REASON_NO_COMPANY,
)


class TestPrimaryRole:

    def test_first_role_row_wins(self):
        rows = [{"role": "company_manager"}, {"role": "super_admin"}]
        assert get_primary_role({"user_role": "individual"}, rows) == UserRole.COMPANY_MANAGER

    def test_unknown_role_rows_are_skipped(self):
        rows = [{"role": "ghost"}, {"role": "company_staff"}]
        assert get_primary_role(None, rows) == UserRole.COMPANY_STAFF

    def test_falls_back_to_profile_role(self):
        assert get_primary_role({"user_role": "company_admin"}, []) == UserRole.COMPANY_ADMIN

    def test_defaults_to_individual(self):
        assert get_primary_role(None, None) == UserRole.INDIVIDUAL
        assert get_primary_role({}, []) == UserRole.INDIVIDUAL

    def test_accepts_plain_role_strings(self):
        assert get_primary_role({}, ["super_admin"]) == UserRole.SUPER_ADMIN


class TestDashboards:

    @pytest.mark.parametrize("role,path", [
        ("super_admin", "/admin"),
        ("company_admin", "/company-admin"),
        ("company_manager", "/company-user"),
        ("company_staff", "/company-user"),
        ("individual", "/dashboard"),
    ])
    def test_dashboard_for_each_role(self, role, path):
        assert dashboard_for(role) == path

    def test_unknown_role_gets_default_dashboard(self):
        assert dashboard_for("nobody") == "/dashboard"
        assert dashboard_for(None) == "/dashboard"

    def test_every_role_has_a_dashboard(self):
        assert set(ROLE_DASHBOARDS) == set(UserRole)


class TestPaths:

    def test_normalize_strips_query_fragment_and_trailing_slash(self):
        assert normalize_path("/admin/?tab=users#top") == "/admin"
        assert normalize_path("dashboard") == "/dashboard"
        assert normalize_path("") == "/"
        assert normalize_path("//") == "/"
        assert normalize_path("///?next=x") == "/"

    def test_wildcard_matches_sub_paths_only(self):
        assert path_matches("/invite/abc", "/invite/*")
        assert not path_matches("/invite", "/invite/*")
        assert not path_matches("/invitee", "/invite/*")

    def test_public_paths(self):
        assert is_public_path("/")
        assert is_public_path("/pricing")
        assert is_public_path("/view-letter/0123abcd")
        assert is_public_path("/sign/Zx9-token")
        assert not is_public_path("/dashboard")


class TestResolveNavigation:

    def test_public_path_allowed_without_login(self):
        decision = resolve_navigation("/features", authenticated=False)
        assert decision.action == "allow"

    def test_unauthenticated_user_sent_to_login(self):
        decision = resolve_navigation("/dashboard", authenticated=False)
        assert decision.action == "redirect"
        assert decision.redirect_to == "/auth"
        assert decision.reason == REASON_UNAUTHENTICATED
        assert decision.toast is None

    @pytest.mark.parametrize("path", ["/", "//", "/auth", "/auth/"])
    def test_authenticated_user_on_landing_goes_home(self, path):
        decision = resolve_navigation(path, authenticated=True, primary_role=UserRole.COMPANY_ADMIN)
        assert decision.action == "redirect"
        assert decision.redirect_to == "/company-admin"
        assert decision.reason == REASON_AUTHENTICATED_HOME
        assert decision.toast is None

    def test_authenticated_user_may_view_other_public_pages(self):
        decision = resolve_navigation("/pricing", authenticated=True, primary_role=UserRole.INDIVIDUAL)
        assert decision.action == "allow"

    def test_individual_denied_admin_area(self):
        decision = resolve_navigation("/admin", authenticated=True, primary_role=UserRole.INDIVIDUAL)
        assert decision.action == "redirect"
        assert decision.redirect_to == "/dashboard"
        assert decision.toast == ACCESS_DENIED_TOAST
        assert decision.reason == REASON_ROLE_NOT_ALLOWED

    def test_company_staff_denied_company_admin_sub_page(self):
        decision = resolve_navigation(
            "/company-admin/billing", authenticated=True,
            primary_role=UserRole.COMPANY_STAFF, current_company_id="c1",
        )
        assert decision.redirect_to == "/company-user"
        assert decision.toast == ACCESS_DENIED_TOAST

    def test_super_admin_allowed_in_company_admin(self):
        decision = resolve_navigation("/company-admin", authenticated=True, primary_role=UserRole.SUPER_ADMIN)
        assert decision.action == "allow"

    @pytest.mark.parametrize("role", list(UserRole))
    def test_denied_redirect_always_targets_own_dashboard(self, role):
        for path in ["/admin", "/company-admin", "/company-user", "/team-workspace"]:
            decision = resolve_navigation(path, authenticated=True, primary_role=role, current_company_id="c1")
            if decision.action == "redirect":
                assert decision.redirect_to == dashboard_for(role)

    def test_any_role_may_open_shared_pages(self):
        for role in UserRole:
            assert resolve_navigation("/templates", authenticated=True, primary_role=role).action == "allow"

    def test_unknown_route_is_not_restricted(self):
        decision = resolve_navigation("/settings", authenticated=True, primary_role=UserRole.COMPANY_STAFF)
        assert decision.action == "allow"

    def test_company_route_without_company_goes_to_personal_dashboard(self):
        decision = resolve_navigation("/team-workspace", authenticated=True, primary_role=UserRole.COMPANY_MANAGER)
        assert decision.action == "redirect"
        assert decision.redirect_to == "/personal-dashboard"
        assert decision.reason == REASON_NO_COMPANY

    def test_company_route_with_company_allowed(self):
        decision = resolve_navigation(
            "/team-workspace", authenticated=True,
            primary_role=UserRole.COMPANY_MANAGER, current_company_id="c1",
        )
        assert decision.action == "allow"

    def test_missing_role_is_treated_as_individual(self):
        decision = resolve_navigation("/admin", authenticated=True)
        assert decision.redirect_to == "/dashboard"
