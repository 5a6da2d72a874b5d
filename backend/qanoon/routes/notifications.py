"""Qanoon Notification Routes

Endpoints:
- GET /api/notifications - Newest notifications and the unread count
- POST /api/notifications/read-all - Mark every unread notification read
- POST /api/notifications/{id}/read - Mark one notification read
"""

from fastapi import APIRouter, Depends, Query
import logging

from middleware import AuthContext, require_auth
from qanoon.services.errors import FunctionError, to_http_exception
from qanoon.services.notification_service import notification_service, NOTIFICATION_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(NOTIFICATION_PAGE_SIZE, ge=1, le=100),
    user: AuthContext = Depends(require_auth),
):
    return await notification_service.list_notifications(user.user_id, limit=limit, unread_only=unread_only)


@router.post("/read-all")
async def mark_all_read(user: AuthContext = Depends(require_auth)):
    updated = await notification_service.mark_all_read(user.user_id)
    logger.info(f"Marked {updated} notifications read for {user.user_id}")
    return {"updated": updated}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, user: AuthContext = Depends(require_auth)):
    try:
        return await notification_service.mark_read(user.user_id, notification_id)
    except FunctionError as e:
        raise to_http_exception(e)
