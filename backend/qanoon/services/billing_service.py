"""Qanoon Billing Service

Stripe glue for:
- Credit pack checkouts and their completion from the webhook
- One-off template purchases
- Subscription tier changes, pauses and resumes
- Dunning retries for failed invoices
"""

from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any
import logging
import os

import stripe

from database import database
from qanoon.models.billing import (
    SubscriptionAction,
    SubscriptionPause,
    SubscriptionTierRecord,
    Template,
    PaymentFailure,
    PaymentFailureStatus,
    CREDIT_PRICE_AED,
    CURRENCY,
    PAUSE_DAYS,
    MAX_PAYMENT_RETRIES,
)
from qanoon.models.credits import CreditPurchase, CreditTransaction, CreditTransactionType
from qanoon.models.notifications import NotificationType
from qanoon.services.email_service import email_service
from qanoon.services.errors import NotFoundError
from qanoon.services.notification_service import notification_service

logger = logging.getLogger(__name__)

CREDIT_PURCHASE_TYPE = "credit_purchase"
TEMPLATE_PURCHASE_TYPE = "template_purchase"


def _stripe_key() -> Optional[str]:
    return os.getenv("STRIPE_API_KEY") or os.getenv("STRIPE_SECRET_KEY")


def _frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")


class BillingService:
    
    def _get_db(self):
        return database.get_db()
    
    # ------------------------------------------------------------------
    # Credit packs
    # ------------------------------------------------------------------
    
    async def create_credit_purchase(self, user_id: str, email: Optional[str], credits_amount: Any) -> Dict[str, Any]:
        if isinstance(credits_amount, bool) or not isinstance(credits_amount, int) or credits_amount <= 0:
            raise ValueError("credits_amount must be a positive integer")
        
        db = self._get_db()
        purchase = CreditPurchase(
            user_id=user_id,
            credits_amount=credits_amount,
            price_aed=credits_amount * CREDIT_PRICE_AED,
        )
        await db.credit_purchases.insert_one(purchase.model_dump())
        
        stripe.api_key = _stripe_key()
        session = stripe.checkout.Session.create(
            mode="payment",
            customer_email=email,
            line_items=[{
                "price_data": {
                    "currency": CURRENCY,
                    "product_data": {
                        "name": f"Qanoon AI - {credits_amount} credits",
                    },
                    "unit_amount": int(round(purchase.price_aed * 100)),
                },
                "quantity": 1,
            }],
            success_url=f"{_frontend_url()}/subscription?purchase=success&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{_frontend_url()}/subscription?purchase=canceled",
            metadata={
                "user_id": user_id,
                "purchase_id": purchase.id,
                "credits_amount": str(credits_amount),
                "type": CREDIT_PURCHASE_TYPE,
            },
        )
        
        await db.credit_purchases.update_one(
            {"id": purchase.id},
            {"$set": {"stripe_checkout_session_id": session.id}}
        )
        
        logger.info(f"Credit checkout {session.id} created for user {user_id}: {credits_amount} credits")
        return {
            "checkout_url": session.url,
            "session_id": session.id,
            "purchase_id": purchase.id,
        }
    
    async def complete_credit_purchase(self, session: Dict[str, Any]) -> Optional[CreditTransaction]:
        """Mark a purchase completed and credit the ledger. Safe to replay."""
        db = self._get_db()
        metadata = session.get("metadata") or {}
        purchase_id = metadata.get("purchase_id")
        user_id = metadata.get("user_id")
        
        if not purchase_id or not user_id:
            logger.error("Credit purchase session without purchase_id or user_id")
            return None
        
        purchase = await db.credit_purchases.find_one({"id": purchase_id}, {"_id": 0})
        if not purchase:
            logger.error(f"Credit purchase {purchase_id} not found")
            return None
        if purchase.get("status") == "completed":
            logger.info(f"Credit purchase {purchase_id} already completed")
            return None
        
        now = datetime.now(timezone.utc)
        await db.credit_purchases.update_one(
            {"id": purchase_id},
            {"$set": {
                "status": "completed",
                "completed_at": now,
                "stripe_checkout_session_id": session.get("id"),
            }}
        )
        
        transaction = CreditTransaction(
            user_id=user_id,
            transaction_type=CreditTransactionType.PURCHASE,
            credits_amount=purchase["credits_amount"],
            metadata={"purchase_id": purchase_id, "stripe_checkout_session_id": session.get("id")},
        )
        await db.credit_transactions.insert_one(transaction.model_dump())
        
        logger.info(f"Added {purchase['credits_amount']} purchased credits to user {user_id}")
        return transaction
    
    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    
    async def create_template_payment(
        self,
        user_id: str,
        email: Optional[str],
        template_id: Optional[str],
        price_aed: Any,
    ) -> Dict[str, Any]:
        if not email:
            raise ValueError("User not authenticated or email not available")
        
        db = self._get_db()
        doc = await db.templates.find_one({"id": template_id, "is_active": True}, {"_id": 0}) if template_id else None
        if not doc:
            raise NotFoundError("Template not found or inactive")
        template = Template(**doc)
        
        if price_aed is None:
            price_aed = template.price_aed
        if isinstance(price_aed, bool) or not isinstance(price_aed, (int, float)) or price_aed <= 0:
            raise ValueError("priceAed must be a positive number")
        
        stripe.api_key = _stripe_key()
        customers = stripe.Customer.list(email=email, limit=1)
        customer_id = customers.data[0].id if customers.data else None
        
        session = stripe.checkout.Session.create(
            customer=customer_id,
            customer_email=None if customer_id else email,
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": CURRENCY,
                    "product_data": {
                        "name": template.title,
                        "description": template.description or template.title,
                    },
                    "unit_amount": int(round(price_aed * 100)),
                },
                "quantity": 1,
            }],
            success_url=f"{_frontend_url()}/templates?success=true&template={template_id}",
            cancel_url=f"{_frontend_url()}/templates?canceled=true",
            metadata={
                "templateId": template_id,
                "userId": user_id,
                "type": TEMPLATE_PURCHASE_TYPE,
            },
        )
        
        logger.info(f"Template checkout {session.id} created for user {user_id}")
        return {"url": session.url}
    
    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    
    async def manage_subscription(
        self,
        user_id: str,
        action: Optional[str],
        tier_id: Optional[str] = None,
        pause_reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        db = self._get_db()
        now = datetime.now(timezone.utc)
        
        try:
            action = SubscriptionAction(action)
        except ValueError:
            raise ValueError("Invalid action")
        
        if action in (SubscriptionAction.UPGRADE, SubscriptionAction.DOWNGRADE):
            doc = await db.subscription_tiers.find_one({"id": tier_id}, {"_id": 0}) if tier_id else None
            if not doc:
                raise NotFoundError("Tier not found")
            tier = SubscriptionTierRecord(**doc)
            
            await db.profiles.update_one(
                {"user_id": user_id},
                {"$set": {"subscription_tier": tier.tier_name, "updated_at": now}}
            )
            profile = await db.profiles.find_one({"user_id": user_id}, {"_id": 0})
            logger.info(f"User {user_id} {action.value}d to {tier.tier_name}")
            return {"tier": tier.model_dump(), "profile": profile}
        
        if action == SubscriptionAction.PAUSE:
            pause = SubscriptionPause(
                user_id=user_id,
                reason=pause_reason,
                resume_at=now + timedelta(days=PAUSE_DAYS),
            )
            doc = pause.model_dump()
            await db.subscription_pauses.insert_one(doc)
            doc.pop("_id", None)
            return {"pause": doc}
        
        pause = await db.subscription_pauses.find_one({"user_id": user_id, "ended_at": None}, {"_id": 0})
        if not pause:
            raise NotFoundError("No active pause found")
        await db.subscription_pauses.update_one({"id": pause["id"]}, {"$set": {"ended_at": now}})
        pause["ended_at"] = now
        return {"pause": pause}
    
    # ------------------------------------------------------------------
    # Dunning
    # ------------------------------------------------------------------
    
    async def record_payment_failure(self, invoice: Dict[str, Any]) -> None:
        """Open or bump the dunning record for a failed invoice."""
        db = self._get_db()
        invoice_id = invoice.get("id")
        if not invoice_id:
            return
        
        now = datetime.now(timezone.utc)
        existing = await db.payment_failures.find_one({"stripe_invoice_id": invoice_id}, {"_id": 0})
        if existing:
            return
        
        profile = None
        if invoice.get("customer"):
            profile = await db.profiles.find_one({"stripe_customer_id": invoice["customer"]}, {"_id": 0, "user_id": 1})
        
        failure = PaymentFailure(
            user_id=(profile or {}).get("user_id"),
            stripe_invoice_id=invoice_id,
            next_retry_at=now + timedelta(days=1),
            last_attempt=now,
        )
        await db.payment_failures.insert_one(failure.model_dump())
        logger.warning(f"Payment failure recorded for invoice {invoice_id}")
    
    async def run_dunning(self) -> Dict[str, Any]:
        """Retry due payment failures against Stripe.
        
        Paid invoices are marked recovered. After the last retry the failure
        is marked failed and the user is told. Otherwise the next retry is
        scheduled further out with each attempt.
        """
        db = self._get_db()
        now = datetime.now(timezone.utc)
        stripe.api_key = _stripe_key()
        
        failures = await db.payment_failures.find(
            {"status": PaymentFailureStatus.PENDING.value, "next_retry_at": {"$lte": now}},
            {"_id": 0}
        ).to_list(None)
        
        for failure in failures:
            try:
                invoice = stripe.Invoice.retrieve(failure["stripe_invoice_id"])
                
                if invoice.status == "paid":
                    await db.payment_failures.update_one(
                        {"id": failure["id"]},
                        {"$set": {"status": PaymentFailureStatus.RECOVERED.value, "last_attempt": now}}
                    )
                    logger.info(f"Payment failure {failure['id']} recovered")
                elif failure.get("failure_count", 0) >= MAX_PAYMENT_RETRIES:
                    await db.payment_failures.update_one(
                        {"id": failure["id"]},
                        {"$set": {"status": PaymentFailureStatus.FAILED.value, "last_attempt": now}}
                    )
                    await self._notify_payment_failed(failure)
                else:
                    count = failure.get("failure_count", 0)
                    await db.payment_failures.update_one(
                        {"id": failure["id"]},
                        {"$set": {
                            "failure_count": count + 1,
                            "next_retry_at": now + timedelta(days=count * 2),
                            "last_attempt": now,
                        }}
                    )
            except Exception as e:
                logger.error(f"Error processing payment failure {failure.get('id')}: {e}")
        
        return {"processed": len(failures)}
    
    async def _notify_payment_failed(self, failure: Dict[str, Any]) -> None:
        user_id = failure.get("user_id")
        if not user_id:
            return
        
        await notification_service.notify(
            user_id=user_id,
            title="Payment Failed",
            message="We could not collect your subscription payment. Please update your payment method.",
            type=NotificationType.ERROR,
            action_url="/subscription",
        )
        profile = await self._get_db().profiles.find_one({"user_id": user_id}, {"_id": 0, "email": 1})
        if profile and profile.get("email"):
            await email_service.send_payment_failed_email(profile["email"])


billing_service = BillingService()
