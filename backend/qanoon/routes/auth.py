"""Qanoon Authentication Routes

Endpoints:
- POST /api/auth/register - Register and provision a new user
- POST /api/auth/login - User login
- GET /api/auth/me - Current profile, roles and home dashboard
"""

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional, List
import logging

from auth import create_access_token
from middleware import AuthContext, require_auth
from qanoon.models.profiles import (
    RegisterRequest,
    LoginRequest,
    ProfileResponse,
    TokenResponse,
)
from qanoon.services.account_service import account_service
from qanoon.services.errors import FunctionError, to_http_exception
from qanoon.services.navigation import get_primary_role, dashboard_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def build_profile_response(user_id: str, email: Optional[str], profile: Optional[dict], roles: List[str]) -> ProfileResponse:
    profile = profile or {}
    primary = get_primary_role(profile, roles)
    return ProfileResponse(
        user_id=user_id,
        email=email or profile.get("email"),
        full_name=profile.get("full_name"),
        roles=roles,
        primary_role=primary.value,
        home_path=dashboard_for(primary),
        current_company_id=profile.get("current_company_id"),
        subscription_tier=profile.get("subscription_tier", "free"),
        queries_used=profile.get("queries_used", 0),
    )


async def _issue_token(user_id: str, email: str) -> TokenResponse:
    profile = await account_service.get_profile(user_id)
    roles = await account_service.get_roles(user_id)
    token = create_access_token({"sub": user_id, "email": email})
    return TokenResponse(
        access_token=token,
        user=build_profile_response(user_id, email, profile, roles),
    )


@router.post("/register", response_model=TokenResponse)
async def register(data: RegisterRequest):
    """Register a new user.
    
    Individual signups start on the free tier. Company signups also create
    the company and make the user its admin.
    """
    try:
        profile = await account_service.register(data)
        return await _issue_token(profile["user_id"], profile["email"])
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Registration failed: {e}")
        raise HTTPException(status_code=500, detail="Registration failed")


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest):
    try:
        auth_user = await account_service.authenticate(data.email, data.password)
        return await _issue_token(auth_user["user_id"], auth_user["email"])
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Login failed: {e}")
        raise HTTPException(status_code=500, detail="Login failed")


@router.get("/me", response_model=ProfileResponse)
async def get_me(user: AuthContext = Depends(require_auth)):
    if not user.profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return build_profile_response(user.user_id, user.email, user.profile, user.roles)
