"""Credit usage display rules.

Pure functions that turn (used, limit, tier) into what the dashboard shows:
percentage, warning band, remaining text and upgrade prompt. No database
access here; CreditService feeds these with stored counters.
"""

from typing import List, Optional

from qanoon.models.credits import (
    CreditUsage,
    CompanyCreditUsage,
    UsageAlert,
    UsageLevel,
    SubscriptionTier,
    TIER_CREDIT_LIMITS,
    DEFAULT_CREDIT_LIMIT,
    UNLIMITED_CREDITS,
    UNLIMITED_GLYPH,
    NEAR_LIMIT_PERCENTAGE,
    MEDIUM_USAGE_PERCENTAGE,
    USAGE_ALERT_THRESHOLDS,
)

UPGRADE_MESSAGE = "You're running low on credits. Consider upgrading for more capacity."
APPROACHING_LIMIT_MESSAGE = "You're approaching your credit limit for this period."
BOTH_LOW_MESSAGE = "Both your personal and company credits are running low."
PERSONAL_LOW_MESSAGE = "Your personal credit allocation is running low. Contact your admin."
COMPANY_LOW_MESSAGE = "Company credit pool is running low. Consider upgrading your plan."


def is_unlimited(limit: Optional[int]) -> bool:
    return limit is not None and limit >= UNLIMITED_CREDITS


def get_credit_limit(tier: Optional[str], max_credits: Optional[int] = None) -> int:
    """Period allocation for a user.
    
    An explicit positive per-user allocation wins over the tier table.
    Unknown tiers fall back to the free allowance.
    """
    if max_credits is not None and max_credits > 0:
        return max_credits
    return TIER_CREDIT_LIMITS.get(tier or "", DEFAULT_CREDIT_LIMIT)


def usage_percentage(used: int, total: int) -> float:
    if total <= 0:
        return 100.0 if used > 0 else 0.0
    return min(100.0, used / total * 100)


def usage_level(percentage: float) -> UsageLevel:
    if percentage >= NEAR_LIMIT_PERCENTAGE:
        return UsageLevel.DESTRUCTIVE
    if percentage > MEDIUM_USAGE_PERCENTAGE:
        return UsageLevel.WARNING
    return UsageLevel.PRIMARY


def compute_credit_usage(
    used: int,
    limit: int,
    rollover: int = 0,
    tier: Optional[str] = None,
) -> CreditUsage:
    """Display state for one allocation."""
    used = max(0, used)
    rollover = max(0, rollover)
    
    total = limit + rollover
    remaining = max(0, total - used)
    percentage = usage_percentage(used, total)
    
    if is_unlimited(limit):
        return CreditUsage(
            used=used,
            limit=limit,
            rollover=rollover,
            total=total,
            remaining=remaining,
            percentage=percentage,
            is_unlimited=True,
            limit_display=UNLIMITED_GLYPH,
            remaining_display="Unlimited",
        )
    
    near_limit = percentage >= NEAR_LIMIT_PERCENTAGE
    
    message = None
    show_upgrade = False
    if near_limit:
        if tier == SubscriptionTier.FREE.value:
            message = UPGRADE_MESSAGE
            show_upgrade = True
        else:
            message = APPROACHING_LIMIT_MESSAGE
    
    return CreditUsage(
        used=used,
        limit=limit,
        rollover=rollover,
        total=total,
        remaining=remaining,
        percentage=percentage,
        is_near_limit=near_limit,
        level=usage_level(percentage),
        limit_display=str(total),
        remaining_display=f"{remaining} credits remaining",
        message=message,
        show_upgrade=show_upgrade,
    )


def compute_company_credit_usage(
    personal_used: int,
    personal_limit: int,
    company_used: int,
    company_total: int,
    rollover: int = 0,
) -> CompanyCreditUsage:
    """Personal allocation next to the pooled company allocation.
    
    When both are near their limit a single combined warning replaces the
    two specific ones.
    """
    personal = compute_credit_usage(personal_used, personal_limit, rollover)
    company = compute_credit_usage(company_used, company_total)
    
    if personal.is_near_limit and company.is_near_limit:
        warning = BOTH_LOW_MESSAGE
    elif personal.is_near_limit:
        warning = PERSONAL_LOW_MESSAGE
    elif company.is_near_limit:
        warning = COMPANY_LOW_MESSAGE
    else:
        warning = None
    
    return CompanyCreditUsage(personal=personal, company=company, warning_message=warning)


def evaluate_usage_alerts(used: int, total: int) -> List[UsageAlert]:
    """Highest usage alert reached, if any. Unlimited allocations never alert."""
    if total <= 0 or is_unlimited(total):
        return []
    
    percentage = used / total * 100
    for threshold, level in USAGE_ALERT_THRESHOLDS:
        if percentage >= threshold:
            return [UsageAlert(
                level=level,
                message=f"{threshold}% of credits used",
                percentage=round(percentage, 2),
            )]
    return []
