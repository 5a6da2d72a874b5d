"""Credit and quota models.

Remaining credits are never stored. They are re-derived on every read as
limit + rollover - used, floored at zero.
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from enum import Enum
import uuid


class SubscriptionTier(str, Enum):
    FREE = "free"
    ESSENTIAL = "essential"
    PREMIUM = "premium"
    SME = "sme"
    ENTERPRISE = "enterprise"


# Sentinel limit for unlimited tiers. Displayed as an infinity glyph.
UNLIMITED_CREDITS = 999999
UNLIMITED_GLYPH = "∞"

TIER_CREDIT_LIMITS: Dict[str, int] = {
    SubscriptionTier.FREE.value: 10,
    SubscriptionTier.ESSENTIAL.value: 50,
    SubscriptionTier.PREMIUM.value: 200,
    SubscriptionTier.SME.value: UNLIMITED_CREDITS,
    SubscriptionTier.ENTERPRISE.value: UNLIMITED_CREDITS,
}
DEFAULT_CREDIT_LIMIT = 10

NEAR_LIMIT_PERCENTAGE = 80
MEDIUM_USAGE_PERCENTAGE = 60

# Usage alert thresholds, highest first
USAGE_ALERT_THRESHOLDS = [
    (90, "critical"),
    (75, "warning"),
    (50, "info"),
]

ROLLOVER_POLICY_KEY = "credit_rollover_policy"


class CreditTransactionType(str, Enum):
    PURCHASE = "purchase"
    ROLLOVER = "rollover"
    CONSUMPTION = "consumption"
    ADJUSTMENT = "adjustment"


# Ledger types that add to the period allocation while unexpired
BONUS_TRANSACTION_TYPES = (CreditTransactionType.PURCHASE, CreditTransactionType.ROLLOVER)


class UsageLevel(str, Enum):
    """Progress bar colour band."""
    PRIMARY = "primary"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


class CreditTransaction(BaseModel):
    """Ledger entry. Every credit movement is recorded."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    transaction_type: CreditTransactionType
    credits_amount: int
    balance_before: Optional[int] = None
    balance_after: Optional[int] = None
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class CreditPurchase(BaseModel):
    """Pending or completed credit pack purchase."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    credits_amount: int
    price_aed: float
    status: str = "pending"  # pending, completed, failed
    stripe_checkout_session_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}


class RolloverPolicy(BaseModel):
    enabled: bool = False
    max_rollover_percentage: float = 0
    rollover_expiry_months: int = 3
    
    model_config = {"extra": "ignore"}


class CreditUsage(BaseModel):
    """Display state of one credit allocation."""
    used: int
    limit: int
    rollover: int = 0
    total: int
    remaining: int
    percentage: float
    is_unlimited: bool = False
    is_near_limit: bool = False
    level: UsageLevel = UsageLevel.PRIMARY
    limit_display: str
    remaining_display: str
    message: Optional[str] = None
    show_upgrade: bool = False


class CompanyCreditUsage(BaseModel):
    """Personal allocation alongside the pooled company allocation."""
    personal: CreditUsage
    company: CreditUsage
    warning_message: Optional[str] = None


class UsageAlert(BaseModel):
    level: str
    message: str
    percentage: float


class CreditSummary(BaseModel):
    """Everything the dashboard credit widgets render for one user."""
    user_id: str
    subscription_tier: str
    personal: CreditUsage
    company: Optional[CompanyCreditUsage] = None
    alerts: List[UsageAlert] = Field(default_factory=list)


class CreditDisplayRequest(BaseModel):
    used: int = Field(ge=0)
    limit: Optional[int] = Field(default=None, ge=0)
    tier: Optional[str] = None
    rollover: int = Field(default=0, ge=0)
    company_used: Optional[int] = Field(default=None, ge=0)
    company_total: Optional[int] = Field(default=None, ge=0)
