"""In-app notifications and company activity log entries."""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum
import uuid


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    action_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class ActivityType(str, Enum):
    CREDITS_ALLOCATED = "credits_allocated"
    ROLE_CHANGED = "role_changed"
    MEMBER_REMOVED = "member_removed"
    USER_INVITED = "user_invited"
    INVITATION_ACCEPTED = "invitation_accepted"


class CompanyActivityLog(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    company_id: Optional[str] = None
    performed_by: str
    activity_type: ActivityType
    target_user_id: Optional[str] = None
    target_entity_type: Optional[str] = None
    target_entity_id: Optional[str] = None
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class EmailTemplateAlias(str, Enum):
    SIGNATURE_REQUEST = "signature-request"
    SIGNATURE_REMINDER = "signature-reminder"
    PAYMENT_FAILED = "payment-failed"


class MessageLog(BaseModel):
    """Outbound email record."""
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    recipient: str
    template_alias: str
    subject: str
    status: str = "queued"  # queued, sent, failed
    postmark_message_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sent_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}
