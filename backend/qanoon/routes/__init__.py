"""Qanoon Routes"""

from .auth import router as auth_router
from .navigation import router as navigation_router
from .credits import router as credits_router
from .conversations import router as conversations_router
from .conversations import folders_router
from .functions import router as functions_router
from .marketing import router as marketing_router
from .webhooks import router as webhooks_router
from .notifications import router as notifications_router

__all__ = [
    "auth_router",
    "navigation_router",
    "credits_router",
    "conversations_router",
    "folders_router",
    "functions_router",
    "marketing_router",
    "webhooks_router",
    "notifications_router",
]
