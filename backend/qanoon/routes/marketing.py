"""Public landing page content."""

from fastapi import APIRouter
from typing import List

from qanoon.models.marketing import LandingPage, PricingTier
from qanoon.services.marketing_service import get_landing_page, get_pricing_tiers

router = APIRouter(prefix="/api/marketing", tags=["Marketing"])


@router.get("/landing", response_model=LandingPage)
async def landing():
    return get_landing_page()


@router.get("/pricing", response_model=List[PricingTier])
async def pricing():
    return get_pricing_tiers()
