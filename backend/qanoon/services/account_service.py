"""Qanoon Account Service

Handles accounts and tenant membership:
- Registration, login and provisioning of new users
- Company admin creation
- Cleanup of auth users that never got a profile
- Role and credit changes inside a company
- Joining a company from an accepted invitation
- Removing a user from their company
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
import logging

from database import database
from auth import hash_password, verify_password, validate_password_strength
from qanoon.models.roles import UserRole, COMPANY_ROLES
from qanoon.models.profiles import (
    AuthUser,
    Profile,
    Company,
    UserCompanyRole,
    SignupType,
    RegisterRequest,
)
from qanoon.models.notifications import NotificationType, ActivityType
from qanoon.services.errors import UnauthorizedError, ForbiddenError, NotFoundError
from qanoon.services.notification_service import notification_service

logger = logging.getLogger(__name__)

TEAM_TAB_URL = "/dashboard?tab=team"


def _display_name(profile: Optional[Dict[str, Any]]) -> str:
    profile = profile or {}
    return profile.get("full_name") or profile.get("email") or "user"


class AccountService:
    """User, profile and company membership management."""
    
    def _get_db(self):
        return database.get_db()
    
    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------
    
    async def create_auth_user(
        self,
        email: str,
        password: str,
        email_confirmed: bool,
        user_metadata: Dict[str, Any],
    ) -> AuthUser:
        db = self._get_db()
        email = email.lower().strip()
        
        existing = await db.auth_users.find_one({"email": email}, {"_id": 0})
        if existing:
            raise ValueError("A user with this email address has already been registered")
        
        auth_user = AuthUser(
            email=email,
            password_hash=hash_password(password),
            email_confirmed=email_confirmed,
            user_metadata=user_metadata,
        )
        await db.auth_users.insert_one(auth_user.model_dump())
        logger.info(f"Auth user created: {auth_user.user_id}")
        return auth_user
    
    async def provision_user(self, auth_user: AuthUser) -> Dict[str, Any]:
        """Create the profile, role rows and, for company signups, the company.
        
        Runs right after the auth user is stored, so callers can read the
        profile back immediately.
        """
        db = self._get_db()
        metadata = auth_user.user_metadata or {}
        full_name = metadata.get("full_name") or auth_user.email.split("@")[0]
        
        if metadata.get("signup_type") == SignupType.COMPANY.value and metadata.get("company_name"):
            company = Company(
                name=metadata["company_name"],
                email=auth_user.email,
                created_by=auth_user.user_id,
            )
            profile = Profile(
                user_id=auth_user.user_id,
                email=auth_user.email,
                full_name=full_name,
                user_role=UserRole.COMPANY_ADMIN,
                current_company_id=company.id,
                subscription_tier=company.subscription_tier,
            )
            membership = UserCompanyRole(
                user_id=auth_user.user_id,
                company_id=company.id,
                role=UserRole.COMPANY_ADMIN,
            )
            await db.companies.insert_one(company.model_dump())
            await db.user_company_roles.insert_one(membership.model_dump())
            role = UserRole.COMPANY_ADMIN
            logger.info(f"Company {company.id} provisioned for {auth_user.email}")
        else:
            profile = Profile(
                user_id=auth_user.user_id,
                email=auth_user.email,
                full_name=full_name,
            )
            role = UserRole.INDIVIDUAL
        
        await db.profiles.insert_one(profile.model_dump())
        await db.user_roles.insert_one({
            "user_id": auth_user.user_id,
            "role": role.value,
            "created_at": datetime.now(timezone.utc),
        })
        
        return await db.profiles.find_one({"user_id": auth_user.user_id}, {"_id": 0})
    
    async def register(self, request: RegisterRequest) -> Dict[str, Any]:
        is_valid, message = validate_password_strength(request.password)
        if not is_valid:
            raise ValueError(message)
        
        if request.signup_type == SignupType.COMPANY and not request.company_name:
            raise ValueError("Company name is required for company signups")
        
        auth_user = await self.create_auth_user(
            email=request.email,
            password=request.password,
            email_confirmed=False,
            user_metadata={
                "full_name": request.full_name,
                "signup_type": request.signup_type.value,
                "company_name": request.company_name,
            },
        )
        return await self.provision_user(auth_user)
    
    async def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        db = self._get_db()
        auth_user = await db.auth_users.find_one({"email": email.lower().strip()}, {"_id": 0})
        if not auth_user or not verify_password(password, auth_user["password_hash"]):
            raise UnauthorizedError("Invalid email or password")
        
        await db.auth_users.update_one(
            {"user_id": auth_user["user_id"]},
            {"$set": {"last_sign_in_at": datetime.now(timezone.utc)}}
        )
        return auth_user
    
    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._get_db().profiles.find_one({"user_id": user_id}, {"_id": 0})
    
    async def get_roles(self, user_id: str) -> List[str]:
        """Role rows for a user, oldest first."""
        cursor = self._get_db().user_roles.find({"user_id": user_id}, {"_id": 0}).sort("created_at", 1)
        rows = await cursor.to_list(20)
        return [row["role"] for row in rows]
    
    # ------------------------------------------------------------------
    # Administrative functions
    # ------------------------------------------------------------------
    
    async def create_company_admin(self, email: Optional[str], password: Optional[str], company_name: Optional[str]) -> Dict[str, Any]:
        if not email or not password or not company_name:
            raise ValueError("Email, password, and company name are required")
        
        auth_user = await self.create_auth_user(
            email=email,
            password=password,
            email_confirmed=True,
            user_metadata={
                "full_name": email.split("@")[0],
                "signup_type": SignupType.COMPANY.value,
                "company_name": company_name,
            },
        )
        profile = await self.provision_user(auth_user) or {}
        
        return {
            "message": "Company admin account created successfully",
            "user": {
                "id": auth_user.user_id,
                "email": auth_user.email,
                "role": profile.get("user_role"),
                "company_id": profile.get("current_company_id"),
            },
        }
    
    async def cleanup_orphaned_users(self) -> Dict[str, Any]:
        """Delete auth users that have no profile."""
        db = self._get_db()
        
        auth_users = await db.auth_users.find({}, {"_id": 0, "user_id": 1, "email": 1}).to_list(None)
        profile_user_ids = set(await db.profiles.distinct("user_id"))
        orphaned = [u for u in auth_users if u["user_id"] not in profile_user_ids]
        logger.info(f"Found {len(orphaned)} orphaned auth users out of {len(auth_users)}")
        
        cleaned = []
        for user in orphaned:
            try:
                await db.auth_users.delete_one({"user_id": user["user_id"]})
            except Exception as e:
                logger.error(f"Failed to delete user {user.get('email')}: {e}")
                continue
            cleaned.append({"email": user.get("email"), "id": user["user_id"]})
        
        return {
            "message": f"Cleaned up {len(cleaned)} orphaned auth users",
            "cleanedUsers": cleaned,
        }
    
    async def require_company_admin(self, requester_id: str, company_id: str, action: str) -> None:
        """Allow super admins, and company admins acting on their own company."""
        profile = await self.get_profile(requester_id)
        role = (profile or {}).get("user_role")
        if role not in (UserRole.COMPANY_ADMIN.value, UserRole.SUPER_ADMIN.value):
            raise ForbiddenError(f"Only company admins can {action}")
        if role == UserRole.COMPANY_ADMIN.value and profile.get("current_company_id") != company_id:
            raise ForbiddenError(f"You can only {action} for your own company")

    async def join_company(
        self,
        user_id: str,
        company_id: str,
        role: str,
        max_credits_per_period: int = 50,
    ) -> UserCompanyRole:
        """Add a membership and make the company role the user's primary role."""
        db = self._get_db()
        now = datetime.now(timezone.utc)
        membership = UserCompanyRole(
            user_id=user_id,
            company_id=company_id,
            role=role,
            max_credits_per_period=max_credits_per_period,
        )
        await db.user_company_roles.insert_one(membership.model_dump())
        # Platform roles such as super_admin are left alone
        await db.user_roles.delete_many({
            "user_id": user_id,
            "role": {"$in": [UserRole.INDIVIDUAL.value] + [r.value for r in COMPANY_ROLES]},
        })
        await db.user_roles.insert_one({"user_id": user_id, "role": membership.role, "created_at": now})
        await db.profiles.update_one(
            {"user_id": user_id},
            {"$set": {"user_role": membership.role, "current_company_id": company_id, "updated_at": now}}
        )
        logger.info(f"User {user_id} joined company {company_id} as {membership.role}")
        return membership

    async def _get_membership(self, user_role_id: str, user_id: str, company_id: str) -> Dict[str, Any]:
        """The company role row, only when it ties `user_id` to `company_id`."""
        membership = await self._get_db().user_company_roles.find_one(
            {"id": user_role_id, "company_id": company_id, "user_id": user_id},
            {"_id": 0}
        )
        if not membership:
            raise NotFoundError("User is not a member of this company")
        return membership

    async def update_user_role(
        self,
        requester_id: str,
        user_role_id: Optional[str],
        user_id: Optional[str],
        company_id: Optional[str],
        new_role: Optional[str],
    ) -> Dict[str, Any]:
        if not user_role_id or not user_id or not company_id or not new_role:
            raise ValueError("User role ID, user ID, company ID, and new role are required")
        
        valid_roles = [r.value for r in COMPANY_ROLES]
        if new_role not in valid_roles:
            raise ValueError(f"Invalid role. Must be one of: {', '.join(valid_roles)}")
        
        await self.require_company_admin(requester_id, company_id, "update user roles")
        
        db = self._get_db()
        current = await self._get_membership(user_role_id, user_id, company_id)
        target = await self.get_profile(user_id)
        old_role = current.get("role", "unknown")

        await db.user_company_roles.update_one(
            {"id": user_role_id, "company_id": company_id, "user_id": user_id},
            {"$set": {"role": new_role}}
        )
        await db.profiles.update_one(
            {"user_id": user_id, "current_company_id": company_id},
            {"$set": {"user_role": new_role, "updated_at": datetime.now(timezone.utc)}}
        )
        # Platform roles such as super_admin are left alone
        await db.user_roles.delete_many({
            "user_id": user_id,
            "role": {"$in": [r.value for r in COMPANY_ROLES]},
        })
        await db.user_roles.insert_one({
            "user_id": user_id,
            "role": new_role,
            "created_at": datetime.now(timezone.utc),
        })
        
        name = _display_name(target)
        await notification_service.log_activity(
            performed_by=requester_id,
            activity_type=ActivityType.ROLE_CHANGED,
            description=f"Changed {name}'s role from {old_role} to {new_role}",
            company_id=company_id,
            target_user_id=user_id,
            target_entity_type="user_role",
            target_entity_id=user_role_id,
            metadata={
                "target_user_email": (target or {}).get("email"),
                "target_user_name": (target or {}).get("full_name"),
                "old_role": old_role,
                "new_role": new_role,
            },
        )
        await notification_service.notify(
            user_id=requester_id,
            title="Role Updated",
            message=f"Successfully changed {name}'s role to {new_role}",
            type=NotificationType.SUCCESS,
            action_url=TEAM_TAB_URL,
        )
        
        logger.info(f"User {user_id} role changed from {old_role} to {new_role} by {requester_id}")
        return {"message": "User role updated successfully"}
    
    async def update_user_credits(
        self,
        requester_id: str,
        user_role_id: Optional[str],
        user_id: Optional[str],
        company_id: Optional[str],
        new_max_credits: Optional[int],
    ) -> Dict[str, Any]:
        if not user_role_id or not user_id or not company_id or new_max_credits is None:
            raise ValueError("User role ID, user ID, company ID, and new max credits are required")
        if new_max_credits < 0:
            raise ValueError("Credits must be a positive number")
        
        await self.require_company_admin(requester_id, company_id, "update user credits")
        
        db = self._get_db()
        current = await self._get_membership(user_role_id, user_id, company_id)
        target = await self.get_profile(user_id)
        old_credits = current.get("max_credits_per_period") or 0

        await db.user_company_roles.update_one(
            {"id": user_role_id, "company_id": company_id, "user_id": user_id},
            {"$set": {"max_credits_per_period": new_max_credits}}
        )
        
        name = _display_name(target)
        await notification_service.log_activity(
            performed_by=requester_id,
            activity_type=ActivityType.CREDITS_ALLOCATED,
            description=f"Updated {name}'s credit limit from {old_credits} to {new_max_credits}",
            company_id=company_id,
            target_user_id=user_id,
            target_entity_type="user_credits",
            target_entity_id=user_role_id,
            metadata={
                "target_user_email": (target or {}).get("email"),
                "target_user_name": (target or {}).get("full_name"),
                "old_credits": old_credits,
                "new_credits": new_max_credits,
            },
        )
        await notification_service.notify(
            user_id=requester_id,
            title="Credits Updated",
            message=f"Successfully updated credit limit for {name} to {new_max_credits} credits per month",
            type=NotificationType.SUCCESS,
            action_url=TEAM_TAB_URL,
        )
        
        return {"message": "User credits updated successfully"}
    
    async def remove_company_user(self, requester_id: str, email: Optional[str]) -> Dict[str, Any]:
        """Detach a user from their company and make them an individual. Super admin only."""
        db = self._get_db()
        
        is_super_admin = await db.user_roles.find_one(
            {"user_id": requester_id, "role": UserRole.SUPER_ADMIN.value},
            {"_id": 0}
        )
        if not is_super_admin:
            raise ForbiddenError("Unauthorized - Super admin access required")
        
        if not email:
            raise ValueError("Email is required")
        
        profile = await db.profiles.find_one({"email": email}, {"_id": 0})
        if not profile:
            raise NotFoundError("User not found")
        user_id = profile["user_id"]
        
        await db.user_company_roles.delete_many({"user_id": user_id})
        await db.user_roles.delete_many({
            "user_id": user_id,
            "role": {"$in": [r.value for r in COMPANY_ROLES]},
        })
        await db.user_roles.update_one(
            {"user_id": user_id, "role": UserRole.INDIVIDUAL.value},
            {"$setOnInsert": {"created_at": datetime.now(timezone.utc)}},
            upsert=True
        )
        await db.profiles.update_one(
            {"user_id": user_id},
            {"$set": {
                "current_company_id": None,
                "user_role": UserRole.INDIVIDUAL.value,
                "updated_at": datetime.now(timezone.utc),
            }}
        )
        
        await notification_service.log_activity(
            performed_by=requester_id,
            activity_type=ActivityType.MEMBER_REMOVED,
            description=f"Removed {_display_name(profile)} from the company",
            company_id=profile.get("current_company_id"),
            target_user_id=user_id,
            target_entity_type="user",
            target_entity_id=user_id,
            metadata={"target_user_email": email},
        )
        logger.info(f"User {email} removed from company {profile.get('current_company_id')}")
        return {
            "message": f"User {email} removed from company successfully",
            "userId": user_id,
        }


account_service = AccountService()
