"""Qanoon Stripe Webhook Handler

Handles:
- checkout.session.completed for credit purchases
- invoice.payment_failed, opening a dunning record

Other event types are acknowledged and ignored.
"""

from fastapi import APIRouter, Request, HTTPException
import json
import logging
import os
import stripe

from qanoon.services.billing_service import billing_service, CREDIT_PURCHASE_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def handle_stripe_webhook(request: Request):
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    
    try:
        if webhook_secret:
            event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        else:
            # Development mode - parse without verification
            event = json.loads(payload)
            logger.warning("STRIPE_WEBHOOK_SECRET not set - skipping signature verification")
    except ValueError:
        logger.error("Invalid payload")
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.error("Invalid signature")
        raise HTTPException(status_code=400, detail="Invalid signature")
    
    event_type = event["type"]
    data_object = event["data"]["object"]
    logger.info(f"Stripe webhook: {event_type}")
    
    try:
        if event_type == "checkout.session.completed":
            metadata = data_object.get("metadata") or {}
            if metadata.get("type") == CREDIT_PURCHASE_TYPE:
                await billing_service.complete_credit_purchase(data_object)
            else:
                logger.info(f"Checkout completed for type {metadata.get('type')}, nothing to do")
        elif event_type == "invoice.payment_failed":
            await billing_service.record_payment_failure(data_object)
        else:
            logger.info(f"Unhandled event type: {event_type}")
        
        return {"status": "success", "event_type": event_type}
    
    except Exception as e:
        logger.error(f"Webhook handler error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
