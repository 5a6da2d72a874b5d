"""Role-based route guard.

A lookup of role to home dashboard plus an ordered allow-list of routes.
Every decision is recomputed from the current path and role; nothing is
remembered between navigations.
"""

from typing import Iterable, Optional, Sequence, Tuple
import logging

from qanoon.models.roles import (
    UserRole,
    NavigationDecision,
    ROLE_DASHBOARDS,
    ROUTE_ACCESS,
    PUBLIC_PATHS,
    COMPANY_SCOPED_PATHS,
    DEFAULT_DASHBOARD,
    LOGIN_PATH,
    PERSONAL_DASHBOARD,
)

logger = logging.getLogger(__name__)

ACCESS_DENIED_TOAST = "Access denied"

REASON_UNAUTHENTICATED = "UNAUTHENTICATED"
REASON_ROLE_NOT_ALLOWED = "ROLE_NOT_ALLOWED"
REASON_AUTHENTICATED_HOME = "AUTHENTICATED_HOME"
REASON_NO_COMPANY = "NO_COMPANY"


def _coerce_role(value) -> Optional[UserRole]:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        return None


def get_primary_role(profile: Optional[dict], roles: Optional[Sequence] = None) -> UserRole:
    """First recognised role row, then the profile role, then individual."""
    for row in roles or []:
        value = row.get("role") if isinstance(row, dict) else row
        role = _coerce_role(value)
        if role:
            return role
    
    if profile and profile.get("user_role"):
        role = _coerce_role(profile["user_role"])
        if role:
            return role
    
    return UserRole.INDIVIDUAL


def dashboard_for(role) -> str:
    role = _coerce_role(role) if role is not None else None
    return ROLE_DASHBOARDS.get(role, DEFAULT_DASHBOARD)


def normalize_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0] or "/"
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or "/"


def path_matches(path: str, pattern: str) -> bool:
    if pattern.endswith("/*"):
        prefix = pattern[:-2]
        return path.startswith(prefix + "/")
    return path == pattern


def _first_match(path: str, patterns: Iterable[str]) -> Optional[str]:
    for pattern in patterns:
        if path_matches(path, pattern):
            return pattern
    return None


def is_public_path(path: str) -> bool:
    return _first_match(normalize_path(path), PUBLIC_PATHS) is not None


def allowed_roles_for(path: str) -> Tuple[bool, Optional[Tuple[UserRole, ...]]]:
    """(known route, allowed roles). Unknown routes have no restriction."""
    path = normalize_path(path)
    for pattern, roles in ROUTE_ACCESS:
        if path_matches(path, pattern):
            return True, roles
    return False, None


def resolve_navigation(
    path: str,
    authenticated: bool,
    primary_role=None,
    current_company_id: Optional[str] = None,
) -> NavigationDecision:
    """Decide whether a navigation may proceed or where to send the user."""
    path = normalize_path(path)
    role = _coerce_role(primary_role) if primary_role is not None else None
    if authenticated and role is None:
        role = UserRole.INDIVIDUAL
    
    if is_public_path(path):
        if authenticated and path in ("/", LOGIN_PATH):
            return NavigationDecision(
                action="redirect",
                redirect_to=dashboard_for(role),
                reason=REASON_AUTHENTICATED_HOME,
            )
        return NavigationDecision(action="allow")
    
    if not authenticated:
        return NavigationDecision(
            action="redirect",
            redirect_to=LOGIN_PATH,
            reason=REASON_UNAUTHENTICATED,
        )
    
    _, allowed = allowed_roles_for(path)
    if allowed is not None and role not in allowed:
        logger.info(f"Route guard: {role.value} not allowed on {path}")
        return NavigationDecision(
            action="redirect",
            redirect_to=dashboard_for(role),
            toast=ACCESS_DENIED_TOAST,
            reason=REASON_ROLE_NOT_ALLOWED,
        )
    
    if path in COMPANY_SCOPED_PATHS and not current_company_id:
        return NavigationDecision(
            action="redirect",
            redirect_to=PERSONAL_DASHBOARD,
            reason=REASON_NO_COMPANY,
        )
    
    return NavigationDecision(action="allow")
