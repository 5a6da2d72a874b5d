"""Qanoon Credit Service

Handles credit accounting:
- Credit summary for the dashboard widgets (personal and company pool)
- Consumption recording
- Monthly rollover of unused credits
- Ledger history

Remaining credits are re-derived from stored counters on every read.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any, List, Tuple
import logging
import math

from database import database
from qanoon.models.credits import (
    CreditTransaction,
    CreditTransactionType,
    CreditSummary,
    RolloverPolicy,
    BONUS_TRANSACTION_TYPES,
    ROLLOVER_POLICY_KEY,
)
from qanoon.services.credit_display import (
    get_credit_limit,
    compute_credit_usage,
    compute_company_credit_usage,
    evaluate_usage_alerts,
    is_unlimited,
)
from qanoon.services.errors import NotFoundError

logger = logging.getLogger(__name__)


class CreditService:
    """Credit and quota accounting service."""
    
    def _get_db(self):
        return database.get_db()
    
    async def _get_profile(self, user_id: str) -> Dict[str, Any]:
        profile = await self._get_db().profiles.find_one({"user_id": user_id}, {"_id": 0})
        if not profile:
            raise NotFoundError("Profile not found")
        return profile
    
    async def _get_membership(self, profile: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        company_id = profile.get("current_company_id")
        if not company_id:
            return None
        return await self._get_db().user_company_roles.find_one(
            {"user_id": profile["user_id"], "company_id": company_id},
            {"_id": 0}
        )
    
    async def get_active_bonus_credits(self, user_id: str) -> int:
        """Unexpired purchased and rolled-over credits."""
        db = self._get_db()
        now = datetime.now(timezone.utc)
        
        result = await db.credit_transactions.aggregate([
            {
                "$match": {
                    "user_id": user_id,
                    "transaction_type": {"$in": [t.value for t in BONUS_TRANSACTION_TYPES]},
                    "$or": [
                        {"expires_at": None},
                        {"expires_at": {"$gt": now}},
                    ],
                }
            },
            {"$group": {"_id": None, "total": {"$sum": "$credits_amount"}}}
        ]).to_list(1)
        
        return result[0]["total"] if result else 0
    
    async def _personal_allocation(self, profile: Dict[str, Any]) -> Tuple[int, int]:
        """(limit, rollover) for the profile's own allocation."""
        membership = await self._get_membership(profile)
        max_credits = (membership or {}).get("max_credits_per_period") or profile.get("max_credits_per_period")
        limit = get_credit_limit(profile.get("subscription_tier"), max_credits)
        rollover = await self.get_active_bonus_credits(profile["user_id"])
        return limit, rollover
    
    async def get_credit_summary(self, user_id: str) -> CreditSummary:
        db = self._get_db()
        profile = await self._get_profile(user_id)
        tier = profile.get("subscription_tier", "free")
        used = profile.get("queries_used", 0)
        
        limit, rollover = await self._personal_allocation(profile)
        personal = compute_credit_usage(used, limit, rollover, tier)
        
        company_usage = None
        if profile.get("current_company_id"):
            company = await db.companies.find_one({"id": profile["current_company_id"]}, {"_id": 0})
            if company:
                company_usage = compute_company_credit_usage(
                    personal_used=used,
                    personal_limit=limit,
                    company_used=company.get("used_credits", 0),
                    company_total=company.get("total_credits", 0),
                    rollover=rollover,
                )
        
        return CreditSummary(
            user_id=user_id,
            subscription_tier=tier,
            personal=personal,
            company=company_usage,
            alerts=evaluate_usage_alerts(used, personal.total),
        )
    
    async def record_consumption(self, user_id: str, amount: int = 1, metadata: Optional[Dict[str, Any]] = None) -> CreditTransaction:
        """Charge credits for a query against the user and their company pool."""
        if amount <= 0:
            raise ValueError("Amount must be positive")
        
        db = self._get_db()
        profile = await self._get_profile(user_id)
        used = profile.get("queries_used", 0)
        limit, rollover = await self._personal_allocation(profile)
        
        if is_unlimited(limit):
            balance_before = limit
        else:
            balance_before = max(0, limit + rollover - used)
            if balance_before < amount:
                logger.warning(f"Insufficient credits for user {user_id}. Has {balance_before}, needs {amount}")
                raise ValueError("Insufficient credits")
        
        now = datetime.now(timezone.utc)
        await db.profiles.update_one(
            {"user_id": user_id},
            {"$inc": {"queries_used": amount}, "$set": {"updated_at": now}}
        )
        
        company_id = profile.get("current_company_id")
        if company_id:
            await db.companies.update_one({"id": company_id}, {"$inc": {"used_credits": amount}})
            await db.user_company_roles.update_one(
                {"user_id": user_id, "company_id": company_id},
                {"$inc": {"used_credits": amount}}
            )
        
        transaction = CreditTransaction(
            user_id=user_id,
            transaction_type=CreditTransactionType.CONSUMPTION,
            credits_amount=-amount,
            balance_before=balance_before,
            balance_after=balance_before if is_unlimited(limit) else balance_before - amount,
            metadata=metadata or {},
        )
        await db.credit_transactions.insert_one(transaction.model_dump())
        
        logger.info(f"Consumed {amount} credits for user {user_id}")
        return transaction
    
    async def get_rollover_policy(self) -> RolloverPolicy:
        config = await self._get_db().system_config.find_one({"config_key": ROLLOVER_POLICY_KEY}, {"_id": 0})
        if not config:
            return RolloverPolicy()
        return RolloverPolicy(**(config.get("config_value") or {}))
    
    async def process_credit_rollover(self) -> Dict[str, Any]:
        """Carry part of each user's unused allocation into the next period.
        
        Runs monthly from the scheduler and on demand through the
        process-credit-rollover function.
        """
        policy = await self.get_rollover_policy()
        if not policy.enabled:
            logger.info("Credit rollover skipped: policy disabled")
            return {"message": "Rollover disabled"}
        
        db = self._get_db()
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(days=policy.rollover_expiry_months * 30)
        rolled_over = 0
        
        async for profile in db.profiles.find({}, {"_id": 0}):
            limit = get_credit_limit(profile.get("subscription_tier"), profile.get("max_credits_per_period"))
            if is_unlimited(limit):
                continue
            
            remaining = limit - profile.get("queries_used", 0)
            if remaining <= 0:
                continue
            
            amount = math.floor(remaining * policy.max_rollover_percentage / 100)
            if amount <= 0:
                continue
            
            transaction = CreditTransaction(
                user_id=profile["user_id"],
                transaction_type=CreditTransactionType.ROLLOVER,
                credits_amount=amount,
                balance_before=remaining,
                balance_after=remaining + amount,
                expires_at=expires_at,
                metadata={"expiry_months": policy.rollover_expiry_months},
            )
            await db.credit_transactions.insert_one(transaction.model_dump())
            rolled_over += 1
        
        logger.info(f"Credit rollover complete: {rolled_over} users")
        return {"users_processed": rolled_over}
    
    async def get_transaction_history(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        transaction_type: Optional[CreditTransactionType] = None,
    ) -> List[Dict[str, Any]]:
        """Get credit transaction history for a user."""
        db = self._get_db()
        
        query = {"user_id": user_id}
        if transaction_type:
            query["transaction_type"] = transaction_type.value
        
        cursor = db.credit_transactions.find(
            query,
            {"_id": 0}
        ).sort("created_at", -1).skip(offset).limit(limit)
        
        return await cursor.to_list(limit)


# Global service instance
credit_service = CreditService()
