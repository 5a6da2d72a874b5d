"""Landing page content.

Static sections served as JSON. Query allowances come from the credit tier
table so the pricing page and the dashboard never disagree.
"""

from typing import List

from qanoon.models.credits import SubscriptionTier, TIER_CREDIT_LIMITS
from qanoon.models.marketing import (
    HeroSection,
    Feature,
    PricingTier,
    Testimonial,
    FAQ,
    LandingPage,
)
from qanoon.services.credit_display import is_unlimited


def queries_label(tier: SubscriptionTier) -> str:
    limit = TIER_CREDIT_LIMITS[tier.value]
    if is_unlimited(limit):
        return "Unlimited queries"
    return f"{limit:,} AI queries/month"


FREE_QUERIES = TIER_CREDIT_LIMITS[SubscriptionTier.FREE.value]

HERO = HeroSection(
    badge=f"{FREE_QUERIES} Free Queries Every Month",
    title="Get UAE Legal Answers",
    highlight="with verified citations",
    subtitle=(
        "Ask any UAE legal question, from employment and business to family law. "
        "Get instant answers with verified citations from our comprehensive legal database."
    ),
    primary_cta=f"Try {FREE_QUERIES} Free Queries",
    primary_cta_path="/auth",
    secondary_cta="See Pricing Plans",
    secondary_cta_path="/pricing",
)

FEATURES = [
    Feature(icon="scale", title="UAE Legal Research",
            description="Federal laws, all seven emirates, DIFC, ADGM and the major free zones in one search."),
    Feature(icon="quote", title="Verified Citations",
            description="Every answer links back to the article and law it relies on."),
    Feature(icon="file-text", title="Legal Letters",
            description="Draft letters, share them with a secure link and collect signatures."),
    Feature(icon="folder", title="Organised Conversations",
            description="File research threads into folders and pick up where you left off."),
    Feature(icon="users", title="Team Workspaces",
            description="Pool credits across your firm and set a personal allowance for each member."),
    Feature(icon="bell", title="Expiry Alerts",
            description="Get told before a document expires and archive it automatically when it does."),
]

PRICING_COPY = {
    SubscriptionTier.FREE: ("Free", None, "Try the platform at no cost", "Start Free",
                            ["Basic legal search", "Citation tracking", "Email support"]),
    SubscriptionTier.ESSENTIAL: ("$49", "/month", "Perfect for solo practitioners and small firms", "Choose Essential",
                                 ["Basic document search", "Standard export formats", "UAE federal laws access"]),
    SubscriptionTier.PREMIUM: ("$199", "/month", "Most popular choice for growing law firms", "Choose Premium",
                               ["Advanced legal research", "All UAE jurisdictions", "Priority processing", "Custom reports"]),
    SubscriptionTier.SME: ("$999", "/month", "For firms and corporate legal teams", "Choose SME",
                           ["Shared company credit pool", "Per-member allowances", "Team workspace", "Dedicated support"]),
    SubscriptionTier.ENTERPRISE: ("Contact Us", None, "Tailored solutions for government and institutions", "Contact Sales",
                                  ["Custom integrations", "On-premise deployment", "Government compliance", "24/7 phone support"]),
}

TESTIMONIALS = [
    Testimonial(name="Layla Hassan", role="Partner", company="Hassan & Co. Advocates",
                content="Research that took an afternoon now takes minutes, and every answer comes with the article number."),
    Testimonial(name="Omar Al Mansoori", role="Legal Counsel", company="Gulf Logistics LLC",
                content="The shared credit pool lets our whole legal team use it without anyone tracking spreadsheets."),
    Testimonial(name="Priya Nair", role="HR Director", company="Emirates Retail Group",
                content="Employment questions get a clear answer with the relevant labour law provision attached."),
]

FAQS = [
    FAQ(question="What happens if I run out of queries?",
        answer="You can upgrade your plan or purchase additional credit packs. No service interruption."),
    FAQ(question="Can I change plans anytime?",
        answer="Yes, upgrades are instant. Downgrades take effect at your next billing cycle."),
    FAQ(question="Do unused queries roll over?",
        answer="When rollover is enabled, part of your unused credits carries into the next period and expires after a few months."),
    FAQ(question="Do you cover all UAE jurisdictions?",
        answer="Yes, we cover federal laws, all seven emirates, DIFC, ADGM, and major free zones."),
    FAQ(question="Can my whole firm share credits?",
        answer="Company plans include a pooled credit allocation, and admins can set an allowance for each member."),
]


def get_pricing_tiers() -> List[PricingTier]:
    tiers = []
    for tier, (price, period, description, cta, extras) in PRICING_COPY.items():
        label = queries_label(tier)
        tiers.append(PricingTier(
            name=tier.value.upper() if tier == SubscriptionTier.SME else tier.value.capitalize(),
            price=price,
            period=period,
            description=description,
            queries=label,
            features=[label] + extras,
            cta=cta,
            popular=tier == SubscriptionTier.PREMIUM,
        ))
    return tiers


def get_landing_page() -> LandingPage:
    return LandingPage(
        hero=HERO,
        features=FEATURES,
        pricing=get_pricing_tiers(),
        testimonials=TESTIMONIALS,
        faqs=FAQS,
    )
