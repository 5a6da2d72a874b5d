from fastapi import Request, HTTPException, Depends, status
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
import logging
from auth import decode_access_token
from database import database
from qanoon.models.roles import UserRole
from qanoon.services.navigation import get_primary_role

logger = logging.getLogger(__name__)


class AuthContext(BaseModel):
    """Authenticated caller with profile and roles resolved."""
    user_id: str
    email: Optional[str] = None
    profile: Optional[Dict[str, Any]] = None
    roles: List[str] = Field(default_factory=list)
    primary_role: UserRole = UserRole.INDIVIDUAL
    
    @property
    def current_company_id(self) -> Optional[str]:
        return (self.profile or {}).get("current_company_id")


async def get_current_user(request: Request) -> Optional[dict]:
    """Extract and validate current user from JWT token."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    
    token = auth_header.split(" ")[1]
    payload = decode_access_token(token)
    
    if not payload or not payload.get("sub"):
        return None
    
    return payload


async def load_auth_context(payload: dict) -> AuthContext:
    db = database.get_db()
    user_id = payload["sub"]
    
    profile = await db.profiles.find_one({"user_id": user_id}, {"_id": 0})
    rows = await db.user_roles.find({"user_id": user_id}, {"_id": 0}).sort("created_at", 1).to_list(20)
    roles = [row["role"] for row in rows]
    
    return AuthContext(
        user_id=user_id,
        email=payload.get("email") or (profile or {}).get("email"),
        profile=profile,
        roles=roles,
        primary_role=get_primary_role(profile, roles),
    )


async def get_optional_auth(request: Request) -> Optional[AuthContext]:
    payload = await get_current_user(request)
    if not payload:
        return None
    return await load_auth_context(payload)


async def require_auth(request: Request) -> AuthContext:
    """Require valid authentication."""
    payload = await get_current_user(request)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return await load_auth_context(payload)


def require_roles(*allowed: UserRole):
    """Dependency factory: the caller's primary role must be one of `allowed`."""
    async def checker(user: AuthContext = Depends(require_auth)) -> AuthContext:
        if user.primary_role not in allowed:
            logger.info(f"Role guard: {user.primary_role.value} denied for user {user.user_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        return user
    return checker
