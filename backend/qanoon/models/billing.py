"""Billing models: subscription tiers and pauses, payment failures, templates."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

# One credit costs one dirham
CREDIT_PRICE_AED = 1
CURRENCY = "aed"
PAUSE_DAYS = 30

# Dunning: give up after this many failed attempts
MAX_PAYMENT_RETRIES = 3


class SubscriptionAction(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    PAUSE = "pause"
    RESUME = "resume"


class PaymentFailureStatus(str, Enum):
    PENDING = "pending"
    RECOVERED = "recovered"
    FAILED = "failed"


class SubscriptionTierRecord(BaseModel):
    """Purchasable tier as stored in subscription_tiers."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tier_name: str
    display_name: Optional[str] = None
    price_aed: float = 0
    monthly_credits: Optional[int] = None
    is_active: bool = True
    
    model_config = {"extra": "ignore"}


class SubscriptionPause(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    reason: Optional[str] = None
    paused_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resume_at: datetime
    ended_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}


class PaymentFailure(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    stripe_invoice_id: str
    status: PaymentFailureStatus = PaymentFailureStatus.PENDING
    failure_count: int = 1
    next_retry_at: Optional[datetime] = None
    last_attempt: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class Template(BaseModel):
    """Marketplace legal template sold as a one-off purchase."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: Optional[str] = None
    price_aed: float = 0
    is_active: bool = True
    created_by: Optional[str] = None
    
    model_config = {"extra": "ignore"}
