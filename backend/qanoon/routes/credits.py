"""Qanoon Credit Routes

Endpoints:
- GET /api/credits/summary - Personal and company usage for the dashboard
- GET /api/credits/usage-alerts - Current usage alert, if any
- GET /api/credits/history - Ledger history
- POST /api/credits/display - Display state for arbitrary counters (no auth)
- POST /api/credits/consume - Charge credits for a query
"""

from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field
from typing import Optional
import logging

from middleware import AuthContext, require_auth
from qanoon.models.credits import (
    CreditSummary,
    CreditDisplayRequest,
    CreditTransactionType,
)
from qanoon.services.credit_display import (
    get_credit_limit,
    compute_credit_usage,
    compute_company_credit_usage,
    evaluate_usage_alerts,
)
from qanoon.services.credit_service import credit_service
from qanoon.services.errors import FunctionError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/credits", tags=["Credits"])


class ConsumeRequest(BaseModel):
    amount: int = Field(default=1, ge=1)


@router.get("/summary", response_model=CreditSummary)
async def get_summary(user: AuthContext = Depends(require_auth)):
    try:
        return await credit_service.get_credit_summary(user.user_id)
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get credit summary: {e}")
        raise HTTPException(status_code=500, detail="Failed to get credit summary")


@router.get("/usage-alerts")
async def get_usage_alerts(user: AuthContext = Depends(require_auth)):
    try:
        summary = await credit_service.get_credit_summary(user.user_id)
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)
    return {
        "alerts": summary.alerts,
        "credits_remaining": summary.personal.remaining,
        "total_credits": summary.personal.total,
        "usage_percentage": summary.personal.percentage,
    }


@router.get("/history")
async def get_history(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    transaction_type: Optional[str] = None,
    user: AuthContext = Depends(require_auth),
):
    """Get credit transaction history."""
    tx_type = None
    if transaction_type:
        try:
            tx_type = CreditTransactionType(transaction_type)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid transaction type: {transaction_type}")
    
    try:
        transactions = await credit_service.get_transaction_history(
            user_id=user.user_id,
            limit=limit,
            offset=offset,
            transaction_type=tx_type,
        )
    except Exception as e:
        logger.error(f"Failed to get history: {e}")
        raise HTTPException(status_code=500, detail="Failed to get history")
    
    return {
        "transactions": transactions,
        "limit": limit,
        "offset": offset,
    }


@router.post("/display")
async def display(data: CreditDisplayRequest):
    """Pure computation of what a credit widget shows."""
    limit = data.limit if data.limit is not None else get_credit_limit(data.tier)
    personal = compute_credit_usage(data.used, limit, data.rollover, data.tier)
    
    company = None
    if data.company_used is not None and data.company_total is not None:
        company = compute_company_credit_usage(
            personal_used=data.used,
            personal_limit=limit,
            company_used=data.company_used,
            company_total=data.company_total,
            rollover=data.rollover,
        )
    
    return {
        "personal": personal,
        "company": company,
        "alerts": evaluate_usage_alerts(data.used, personal.total),
    }


@router.post("/consume")
async def consume(data: ConsumeRequest, user: AuthContext = Depends(require_auth)):
    try:
        transaction = await credit_service.record_consumption(user.user_id, data.amount)
    except (FunctionError, ValueError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to record consumption: {e}")
        raise HTTPException(status_code=500, detail="Failed to record consumption")
    return transaction.model_dump()
