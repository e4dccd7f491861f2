"""Subscription plan catalog and plan-purchase cart lines"""

from typing import Dict, Optional
from marketplace_ledger.domain.models import Listing, ListingCategory, Plan, PlanType

UNLIMITED = -1

# Cart lines for plan purchases carry a synthetic listing id: "plan:<plan type>"
PLAN_LISTING_PREFIX = "plan:"

PLAN_CATALOG: Dict[PlanType, Plan] = {
    PlanType.FREE: Plan(
        type=PlanType.FREE,
        monthly_price_cents=0,
        max_listings=2,
        max_highlights=0,
        features=("2 listings", "0 highlights", "Basic support"),
    ),
    PlanType.BASIC: Plan(
        type=PlanType.BASIC,
        monthly_price_cents=200_000,
        max_listings=30,
        max_highlights=10,
        features=("30 listings", "10 highlights", "Basic support"),
    ),
    PlanType.PROFESSIONAL: Plan(
        type=PlanType.PROFESSIONAL,
        monthly_price_cents=1_000_000,
        max_listings=100,
        max_highlights=50,
        features=("100 listings", "50 highlights", "Basic statistics"),
    ),
    PlanType.PREMIUM: Plan(
        type=PlanType.PREMIUM,
        monthly_price_cents=2_500_000,
        max_listings=UNLIMITED,
        max_highlights=UNLIMITED,
        features=("Unlimited listings", "Unlimited highlights", "VIP support", "Account manager"),
    ),
}


def get_plan(plan_type: PlanType) -> Plan:
    """Catalog entry for a plan type"""
    return PLAN_CATALOG[plan_type]


def plan_listing(plan_type: PlanType) -> Listing:
    """
    Build the synthetic listing used to put a plan subscription in a cart.

    The listing has no owner: the platform, not a seller, is paid.
    """
    plan = get_plan(plan_type)
    return Listing(
        id=f"{PLAN_LISTING_PREFIX}{plan_type.value}",
        owner_display_name="Platform",
        price_cents=plan.monthly_price_cents,
        title=f"{plan_type.value.title()} plan",
        category=ListingCategory.SERVICE,
    )


def plan_type_for_listing(listing_id: str) -> Optional[PlanType]:
    """Return the plan a cart listing id denotes, or None for ordinary listings"""
    if not listing_id.startswith(PLAN_LISTING_PREFIX):
        return None
    try:
        return PlanType(listing_id[len(PLAN_LISTING_PREFIX):])
    except ValueError:
        return None
