"""Qanoon Invitation Service

Company admins invite people by email. The invite link /invite/<token>
is redeemed either by creating a new account or, for someone who already
has one, by joining the company from their session.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any
import logging
import os
import re

from database import database
from auth import generate_secure_token, validate_password_strength
from qanoon.models.notifications import NotificationType, ActivityType
from qanoon.models.profiles import Invitation
from qanoon.models.roles import COMPANY_ROLES
from qanoon.services.account_service import account_service, TEAM_TAB_URL
from qanoon.services.errors import ForbiddenError, NotFoundError
from qanoon.services.notification_service import notification_service

logger = logging.getLogger(__name__)

INVITATION_EXPIRY_DAYS = 7
DEFAULT_INVITE_CREDITS = 50
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def invite_path(token: str) -> str:
    return f"/invite/{token}"


def invite_url(token: str) -> str:
    app_url = os.getenv("PUBLIC_APP_URL", "http://localhost:3000").rstrip("/")
    return f"{app_url}{invite_path(token)}"


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InvitationService:

    def _get_db(self):
        return database.get_db()

    async def _company_name(self, company_id: str) -> Optional[str]:
        company = await self._get_db().companies.find_one({"id": company_id}, {"_id": 0, "name": 1})
        return (company or {}).get("name")

    async def _open_invitation(self, token: Optional[str], missing: str, expired: str) -> Invitation:
        """The unaccepted invitation behind `token`, if it has not expired."""
        doc = await self._get_db().invitation_tokens.find_one(
            {"token": token, "accepted_at": None}, {"_id": 0}
        ) if token else None
        if not doc:
            raise NotFoundError(missing)
        invitation = Invitation(**doc)
        if _as_aware(invitation.expires_at) < datetime.now(timezone.utc):
            raise ValueError(expired)
        return invitation

    async def _claim(self, invitation: Invitation, missing: str) -> None:
        result = await self._get_db().invitation_tokens.update_one(
            {"id": invitation.id, "accepted_at": None},
            {"$set": {"accepted_at": datetime.now(timezone.utc)}}
        )
        if result.matched_count == 0:
            raise NotFoundError(missing)

    async def send_invitation(
        self,
        requester_id: str,
        email: Optional[str],
        role: Optional[str],
        company_id: Optional[str],
        max_credits: Optional[int] = None,
    ) -> Dict[str, Any]:
        if not email or not role or not company_id:
            raise ValueError("Email, role, and company ID are required")

        email = email.strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValueError("Invalid email format")

        valid_roles = [r.value for r in COMPANY_ROLES]
        if role not in valid_roles:
            raise ValueError(f"Invalid role. Must be one of: {', '.join(valid_roles)}")
        if max_credits is not None and max_credits < 0:
            raise ValueError("Credits must be a positive number")

        await account_service.require_company_admin(requester_id, company_id, "send invitations")

        db = self._get_db()
        now = datetime.now(timezone.utc)

        pending = await db.invitation_tokens.find_one(
            {"email": email, "company_id": company_id, "accepted_at": None, "expires_at": {"$gt": now}},
            {"_id": 0, "id": 1}
        )
        if pending:
            raise ValueError("An active invitation already exists for this email")

        invitee = await db.profiles.find_one({"email": email}, {"_id": 0, "user_id": 1})
        if invitee:
            member = await db.user_company_roles.find_one(
                {"user_id": invitee["user_id"], "company_id": company_id}, {"_id": 0, "id": 1}
            )
            if member:
                raise ValueError("A user with this email is already part of this company")

        invitation = Invitation(
            company_id=company_id,
            invited_by=requester_id,
            email=email,
            role=role,
            max_credits_per_period=DEFAULT_INVITE_CREDITS if max_credits is None else max_credits,
            token=generate_secure_token(),
            expires_at=now + timedelta(days=INVITATION_EXPIRY_DAYS),
        )
        await db.invitation_tokens.insert_one(invitation.model_dump())

        company_name = await self._company_name(company_id)
        url = invite_url(invitation.token)

        await notification_service.log_activity(
            performed_by=requester_id,
            activity_type=ActivityType.USER_INVITED,
            description=f"Invited {email} to join as {role}",
            company_id=company_id,
            target_entity_type="invitation",
            target_entity_id=invitation.id,
            metadata={
                "invited_email": email,
                "role": role,
                "max_credits": invitation.max_credits_per_period,
                "invite_url": url,
            },
        )
        await notification_service.notify(
            user_id=requester_id,
            title="Invitation Sent",
            message=f"Successfully sent invitation to {email} to join {company_name or 'your company'} as {role}",
            type=NotificationType.SUCCESS,
            action_url=TEAM_TAB_URL,
        )
        if invitee:
            await notification_service.notify(
                user_id=invitee["user_id"],
                title="Company Invitation",
                message=f"You've been invited to join {company_name or 'a company'} as {role}. Click to accept.",
                type=NotificationType.INFO,
                action_url=invite_path(invitation.token),
            )

        logger.info(f"Invitation {invitation.id} sent to {email} for company {company_id}")
        return {
            "message": "Invitation sent successfully",
            "invitation": {
                "id": invitation.id,
                "email": email,
                "role": role,
                "inviteUrl": url,
                "expiresAt": invitation.expires_at,
                "companyName": company_name or "Unknown Company",
            },
        }

    async def get_invitation(self, token: Optional[str]) -> Dict[str, Any]:
        """What the /invite page shows before the user accepts."""
        invitation = await self._open_invitation(token, "Invalid or expired invitation", "Invitation has expired")
        account = await self._get_db().auth_users.find_one({"email": invitation.email}, {"_id": 0, "user_id": 1})
        return {
            "invitation": {
                "email": invitation.email,
                "role": invitation.role,
                "companyName": await self._company_name(invitation.company_id),
                "expiresAt": invitation.expires_at,
            },
            "accountExists": account is not None,
        }

    async def accept_invitation(
        self,
        token: Optional[str],
        password: Optional[str],
        full_name: Optional[str],
    ) -> Dict[str, Any]:
        """Create an account for the invited email and join the company."""
        if not token or not password or not full_name:
            raise ValueError("Token, password, and full name are required")

        is_valid, message = validate_password_strength(password)
        if not is_valid:
            raise ValueError(message)

        missing = "Invalid or expired invitation"
        invitation = await self._open_invitation(token, missing, "Invitation has expired")

        existing = await self._get_db().auth_users.find_one({"email": invitation.email}, {"_id": 0, "user_id": 1})
        if existing:
            raise ValueError("User with this email already exists")

        await self._claim(invitation, missing)
        auth_user = await account_service.create_auth_user(
            email=invitation.email,
            password=password,
            email_confirmed=True,
            user_metadata={"full_name": full_name},
        )
        await account_service.provision_user(auth_user)
        await account_service.join_company(
            auth_user.user_id, invitation.company_id, invitation.role, invitation.max_credits_per_period
        )
        await self._announce_acceptance(invitation, auth_user.user_id)

        return {
            "message": "Account created successfully",
            "user": {"id": auth_user.user_id, "email": auth_user.email},
        }

    async def accept_existing_user_invitation(self, user_id: str, token: Optional[str]) -> Dict[str, Any]:
        """Join the company from an existing, signed-in account."""
        if not token:
            raise ValueError("Invitation token is required")

        missing = "Invalid or already accepted invitation"
        invitation = await self._open_invitation(token, missing, "This invitation has expired")

        profile = await account_service.get_profile(user_id)
        if not profile:
            raise NotFoundError("User profile not found")
        if (profile.get("email") or "").lower() != invitation.email.lower():
            raise ForbiddenError("This invitation was sent to a different email address")

        member = await self._get_db().user_company_roles.find_one(
            {"user_id": user_id, "company_id": invitation.company_id}, {"_id": 0, "id": 1}
        )
        if member:
            raise ValueError("You are already a member of this company")

        await self._claim(invitation, missing)
        await account_service.join_company(
            user_id, invitation.company_id, invitation.role, invitation.max_credits_per_period
        )
        company_name = await self._announce_acceptance(invitation, user_id)

        return {
            "message": "Successfully joined the company",
            "companyId": invitation.company_id,
            "companyName": company_name,
        }

    async def _announce_acceptance(self, invitation: Invitation, user_id: str) -> Optional[str]:
        company_name = await self._company_name(invitation.company_id)
        await notification_service.log_activity(
            performed_by=user_id,
            activity_type=ActivityType.INVITATION_ACCEPTED,
            description=f"{invitation.email} accepted invitation and joined as {invitation.role}",
            company_id=invitation.company_id,
            target_user_id=user_id,
            target_entity_type="invitation",
            target_entity_id=invitation.id,
            metadata={"email": invitation.email, "role": invitation.role},
        )
        await notification_service.notify(
            user_id=invitation.invited_by,
            title="Invitation Accepted",
            message=f"{invitation.email} has joined {company_name or 'your company'}",
            type=NotificationType.SUCCESS,
            action_url=TEAM_TAB_URL,
        )
        logger.info(f"Invitation {invitation.id} accepted by {user_id}")
        return company_name


invitation_service = InvitationService()
