"""Route guard endpoints.

The front end asks before rendering a route; the answer is either allow
or a redirect target with an optional toast.
"""

from fastapi import APIRouter, Depends
from typing import Optional

from middleware import AuthContext, get_optional_auth, require_auth
from qanoon.models.roles import NavigationDecision, NavigationRequest
from qanoon.services.navigation import resolve_navigation, dashboard_for

router = APIRouter(prefix="/api/navigation", tags=["Navigation"])


@router.post("/resolve", response_model=NavigationDecision)
async def resolve(data: NavigationRequest, user: Optional[AuthContext] = Depends(get_optional_auth)):
    if user is None:
        return resolve_navigation(data.path, authenticated=False)
    return resolve_navigation(
        data.path,
        authenticated=True,
        primary_role=user.primary_role,
        current_company_id=user.current_company_id,
    )


@router.get("/home")
async def home(user: AuthContext = Depends(require_auth)):
    return {
        "role": user.primary_role.value,
        "home_path": dashboard_for(user.primary_role),
    }
