"""Landing page content models."""

from pydantic import BaseModel, Field
from typing import Optional, List


class HeroSection(BaseModel):
    badge: str
    title: str
    highlight: str
    subtitle: str
    primary_cta: str
    primary_cta_path: str
    secondary_cta: str
    secondary_cta_path: str


class Feature(BaseModel):
    icon: str
    title: str
    description: str


class PricingTier(BaseModel):
    name: str
    price: str
    period: Optional[str] = None
    description: str
    queries: str
    features: List[str] = Field(default_factory=list)
    cta: str
    popular: bool = False


class Testimonial(BaseModel):
    name: str
    role: str
    company: str
    content: str
    rating: int = Field(default=5, ge=1, le=5)


class FAQ(BaseModel):
    question: str
    answer: str


class LandingPage(BaseModel):
    hero: HeroSection
    features: List[Feature]
    pricing: List[PricingTier]
    testimonials: List[Testimonial]
    faqs: List[FAQ]
