"""Share links for legal letters.

A share link gives one recipient read access to a letter through a random
token, optionally limited by expiry, view count and a password.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any
import logging
import os

from database import database
from auth import generate_share_token, hash_token
from qanoon.models.documents import ShareLink, CreateShareLinkRequest
from qanoon.services.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo hands back naive UTC datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def share_url(token: str) -> str:
    app_url = os.getenv("PUBLIC_APP_URL", "http://localhost:3000").rstrip("/")
    return f"{app_url}/view-letter/{token}"


class ShareLinkService:
    
    def _get_db(self):
        return database.get_db()
    
    async def create_share_link(self, user_id: str, request: CreateShareLinkRequest) -> Dict[str, Any]:
        db = self._get_db()
        
        letter = await db.legal_letters.find_one(
            {"id": request.letterId, "user_id": user_id},
            {"_id": 0, "id": 1, "user_id": 1, "title": 1}
        )
        if not letter:
            raise NotFoundError("Letter not found or access denied")
        
        expires_at = None
        if request.expiresInDays:
            expires_at = datetime.now(timezone.utc) + timedelta(days=request.expiresInDays)
        
        password_hash = None
        if request.requirePassword and request.password:
            password_hash = hash_token(request.password)
        
        link = ShareLink(
            letter_id=request.letterId,
            created_by=user_id,
            token=generate_share_token(),
            recipient_email=request.recipientEmail,
            recipient_name=request.recipientName,
            expires_at=expires_at,
            max_views=request.maxViews,
            is_password_protected=bool(request.requirePassword),
            password_hash=password_hash,
            metadata={"letter_title": letter.get("title"), "created_via": "api"},
        )
        doc = link.model_dump()
        await db.letter_share_links.insert_one(doc)
        doc.pop("_id", None)
        
        logger.info(f"Share link {link.id} created for letter {request.letterId}")
        doc.pop("password_hash", None)
        return {**doc, "url": share_url(link.token)}
    
    async def revoke_share_link(self, user_id: str, share_link_id: Optional[str]) -> Dict[str, Any]:
        """Revoke a link. Revoking twice reports the original revocation."""
        db = self._get_db()
        
        link = await db.letter_share_links.find_one(
            {"id": share_link_id, "created_by": user_id},
            {"_id": 0, "password_hash": 0}
        )
        if not share_link_id or not link:
            raise NotFoundError("Share link not found or access denied")
        
        if link.get("revoked_at"):
            return {"message": "Link was already revoked", "revokedAt": link["revoked_at"]}
        
        revoked_at = datetime.now(timezone.utc)
        await db.letter_share_links.update_one({"id": share_link_id}, {"$set": {"revoked_at": revoked_at}})
        link["revoked_at"] = revoked_at
        
        logger.info(f"Share link {share_link_id} revoked")
        return {"shareLink": link}
    
    async def track_view(self, token: Optional[str], password: Optional[str] = None) -> Dict[str, Any]:
        """Validate a share link and count one view of the letter."""
        db = self._get_db()
        
        link = await db.letter_share_links.find_one({"token": token}, {"_id": 0}) if token else None
        if not link:
            raise NotFoundError("Invalid or expired link")
        
        if link.get("revoked_at"):
            raise ForbiddenError("This link has been revoked")
        
        expires_at = _as_aware(link.get("expires_at"))
        if expires_at and expires_at < datetime.now(timezone.utc):
            raise ForbiddenError("This link has expired")
        
        view_count = link.get("view_count", 0)
        if link.get("max_views") and view_count >= link["max_views"]:
            raise ForbiddenError("Maximum view limit reached")
        
        if link.get("is_password_protected"):
            if not password:
                raise ForbiddenError("Password required", details={"requiresPassword": True})
            if hash_token(password) != link.get("password_hash"):
                raise ForbiddenError("Incorrect password")
        
        await db.letter_share_links.update_one({"id": link["id"]}, {"$inc": {"view_count": 1}})
        
        letter = await db.legal_letters.find_one(
            {"id": link["letter_id"]},
            {"_id": 0, "id": 1, "title": 1, "content": 1, "status": 1}
        )
        return {
            "letter": letter,
            "recipientName": link.get("recipient_name"),
            "viewCount": view_count + 1,
        }


share_link_service = ShareLinkService()
