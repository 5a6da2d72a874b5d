"""Roles and role-based navigation tables."""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Platform roles, stored in user_roles and mirrored on the profile."""
    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    COMPANY_MANAGER = "company_manager"
    COMPANY_STAFF = "company_staff"
    INDIVIDUAL = "individual"


# Roles a company admin may assign inside a tenant
COMPANY_ROLES = (
    UserRole.COMPANY_ADMIN,
    UserRole.COMPANY_MANAGER,
    UserRole.COMPANY_STAFF,
)

DEFAULT_DASHBOARD = "/dashboard"
LOGIN_PATH = "/auth"
PERSONAL_DASHBOARD = "/personal-dashboard"

ROLE_DASHBOARDS: Dict[UserRole, str] = {
    UserRole.SUPER_ADMIN: "/admin",
    UserRole.COMPANY_ADMIN: "/company-admin",
    UserRole.COMPANY_MANAGER: "/company-user",
    UserRole.COMPANY_STAFF: "/company-user",
    UserRole.INDIVIDUAL: DEFAULT_DASHBOARD,
}

# Reachable without logging in. Trailing "/*" matches any sub-path.
PUBLIC_PATHS: Tuple[str, ...] = (
    "/",
    LOGIN_PATH,
    "/pricing",
    "/features",
    "/use-cases",
    "/about",
    "/resources",
    "/invite/*",
    "/view-letter/*",
    "/sign/*",
)

# Authenticated routes and the roles allowed on them; None = any role.
# First match wins, so more specific patterns come first.
ROUTE_ACCESS: List[Tuple[str, Optional[Tuple[UserRole, ...]]]] = [
    ("/admin", (UserRole.SUPER_ADMIN,)),
    ("/admin/*", (UserRole.SUPER_ADMIN,)),
    ("/company-admin", (UserRole.COMPANY_ADMIN, UserRole.SUPER_ADMIN)),
    ("/company-admin/*", (UserRole.COMPANY_ADMIN, UserRole.SUPER_ADMIN)),
    ("/company-user", COMPANY_ROLES),
    ("/team-workspace", COMPANY_ROLES),
    ("/personal-dashboard", None),
    ("/dashboard", None),
    ("/templates", None),
    ("/upload", None),
    ("/subscription", None),
    ("/letters", None),
    ("/letters/*", None),
    ("/creator-portal", None),
]

# Routes that only make sense for a profile attached to a company
COMPANY_SCOPED_PATHS: Tuple[str, ...] = ("/company-user", "/team-workspace")


class NavigationDecision(BaseModel):
    """Outcome of the route guard for one navigation."""
    action: str  # allow, redirect
    redirect_to: Optional[str] = None
    toast: Optional[str] = None
    reason: Optional[str] = None


class NavigationRequest(BaseModel):
    path: str = Field(min_length=1)
