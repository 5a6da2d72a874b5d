"""In-app notifications and the company activity log.

Writing either one is a side effect of another action. A failure there is
logged and never fails the action that triggered it. Reading and marking
notifications read backs the notification center and raises as usual.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging

from database import database
from qanoon.models.notifications import (
    Notification,
    NotificationType,
    CompanyActivityLog,
    ActivityType,
)
from qanoon.services.errors import NotFoundError

logger = logging.getLogger(__name__)

NOTIFICATION_PAGE_SIZE = 20


class NotificationService:
    
    def _get_db(self):
        return database.get_db()
    
    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        action_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """Create a notification for a user. Returns None if it could not be stored."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            action_url=action_url,
            metadata=metadata or {},
        )
        try:
            await self._get_db().notifications.insert_one(notification.model_dump())
        except Exception as e:
            logger.error(f"Failed to create notification (non-critical): {e}")
            return None
        return notification
    
    async def log_activity(
        self,
        performed_by: str,
        activity_type: ActivityType,
        description: str,
        company_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        target_entity_type: Optional[str] = None,
        target_entity_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[CompanyActivityLog]:
        entry = CompanyActivityLog(
            company_id=company_id,
            performed_by=performed_by,
            activity_type=activity_type,
            target_user_id=target_user_id,
            target_entity_type=target_entity_type,
            target_entity_id=target_entity_id,
            description=description,
            metadata=metadata or {},
        )
        try:
            await self._get_db().company_activity_logs.insert_one(entry.model_dump())
        except Exception as e:
            logger.error(f"Failed to log activity (non-critical): {e}")
            return None
        logger.info(f"[ACTIVITY] {entry.activity_type}: {description}")
        return entry
    
    async def list_notifications(
        self,
        user_id: str,
        limit: int = NOTIFICATION_PAGE_SIZE,
        unread_only: bool = False,
    ) -> Dict[str, Any]:
        """Newest notifications first, with the unread total for the badge."""
        db = self._get_db()
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["read_at"] = None
        
        notifications = await db.notifications.find(query, {"_id": 0}).sort("created_at", -1).limit(limit).to_list(limit)
        unread_count = await db.notifications.count_documents({"user_id": user_id, "read_at": None})
        return {"notifications": notifications, "unread_count": unread_count}
    
    async def mark_read(self, user_id: str, notification_id: str) -> Dict[str, Any]:
        db = self._get_db()
        notification = await db.notifications.find_one({"id": notification_id, "user_id": user_id}, {"_id": 0})
        if not notification:
            raise NotFoundError("Notification not found")
        
        if not notification.get("read_at"):
            notification["read_at"] = datetime.now(timezone.utc)
            await db.notifications.update_one(
                {"id": notification_id, "user_id": user_id},
                {"$set": {"read_at": notification["read_at"]}}
            )
        return notification
    
    async def mark_all_read(self, user_id: str) -> int:
        result = await self._get_db().notifications.update_many(
            {"user_id": user_id, "read_at": None},
            {"$set": {"read_at": datetime.now(timezone.utc)}}
        )
        return result.modified_count


notification_service = NotificationService()
