"""Account, profile and tenant models.

An auth user holds credentials only. The profile carries identity, role,
subscription tier and credit counters. A company owns a pooled credit
allocation shared by its members.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from enum import Enum
import uuid

from qanoon.models.roles import UserRole


class SignupType(str, Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


class AuthUser(BaseModel):
    """Credential record, the equivalent of the managed auth user."""
    user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: EmailStr
    password_hash: str
    email_confirmed: bool = False
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_sign_in_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}


class Profile(BaseModel):
    """User profile with role, tier and usage counters."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    
    user_role: UserRole = UserRole.INDIVIDUAL
    current_company_id: Optional[str] = None
    
    subscription_tier: str = "free"
    subscription_status: str = "active"
    queries_used: int = 0
    max_credits_per_period: Optional[int] = None
    queries_reset_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    stripe_customer_id: Optional[str] = None
    
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class Company(BaseModel):
    """Tenant with its own credit pool."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    email: Optional[str] = None
    subscription_tier: str = "sme"
    total_credits: int = 1000
    used_credits: int = 0
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore"}


class UserCompanyRole(BaseModel):
    """Membership of a user in a company, with a personal allocation."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    company_id: str
    role: UserRole
    max_credits_per_period: int = 50
    used_credits: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class Invitation(BaseModel):
    """Pending invitation to join a company, redeemed through /invite/<token>."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    company_id: str
    invited_by: str
    email: str
    role: UserRole
    max_credits_per_period: int = 50
    token: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


# ============================================================================
# Request / response models
# ============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    signup_type: SignupType = SignupType.INDIVIDUAL
    company_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    primary_role: str
    home_path: str
    current_company_id: Optional[str] = None
    subscription_tier: str
    queries_used: int = 0


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: ProfileResponse
