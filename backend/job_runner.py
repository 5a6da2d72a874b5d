"""
Shared job runner for scheduled background jobs.
Used by the server scheduler and the maintenance scripts.
Each run_* returns a dict with "message" (and optionally "count").
"""
import logging

logger = logging.getLogger(__name__)


async def run_credit_rollover():
    try:
        from qanoon.services.credit_service import credit_service
        result = await credit_service.process_credit_rollover()
        count = result.get("users_processed", 0)
        logger.info(f"Credit rollover job completed: {count} users")
        return {"message": result.get("message") or f"Credits rolled over for {count} users", "count": count}
    except Exception as e:
        logger.error(f"Credit rollover job failed: {e}")
        raise


async def run_document_expiry_monitor():
    try:
        from qanoon.services.document_service import document_service
        result = await document_service.monitor_document_expiry()
        count = result["notifications_sent"]
        logger.info(
            f"Document expiry job completed: {count} notifications, "
            f"{result['documents_archived']} archived"
        )
        return {"message": f"Expiry notifications sent: {count}", "count": count}
    except Exception as e:
        logger.error(f"Document expiry job failed: {e}")
        raise


async def run_dunning():
    try:
        from qanoon.services.billing_service import billing_service
        result = await billing_service.run_dunning()
        count = result["processed"]
        logger.info(f"Dunning job completed: {count} payment failures processed")
        return {"message": f"Payment failures processed: {count}", "count": count}
    except Exception as e:
        logger.error(f"Dunning job failed: {e}")
        raise
