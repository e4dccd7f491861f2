"""Quota engine - plan limits, scope-wide usage and upgrade reconciliation"""

from typing import AbstractSet, Iterable, Optional
from marketplace_ledger.domain.models import Account, CustomLimits, Listing, PlanType, QuotaUsage
from marketplace_ledger.domain.exceptions import QuotaExceededError
from marketplace_ledger.domain.hierarchy import Scope, listing_in_scope
from marketplace_ledger.domain.plans import UNLIMITED, get_plan


def resolve_effective_limits(account: Account) -> CustomLimits:
    """Custom limits when the account has them, otherwise the plan catalog defaults"""
    if account.custom_limits is not None:
        return account.custom_limits
    plan = get_plan(account.plan)
    return CustomLimits(max_listings=plan.max_listings, max_highlights=plan.max_highlights)


def compute_usage(
    scope: Scope,
    listings: Iterable[Listing],
    known_owner_ids: AbstractSet[str],
    exclude_listing_id: Optional[str] = None,
) -> tuple[int, int]:
    """
    Count listings and highlighted listings across the whole scope.

    Usage is always account-wide (HQ + every branch), even when the caller
    is working on a single branch.

    Args:
        exclude_listing_id: Listing left out of the count (the one being edited)

    Returns: (listing_count, highlighted_count)
    """
    matched = [
        listing
        for listing in listings
        if listing.id != exclude_listing_id and listing_in_scope(listing, scope, known_owner_ids)
    ]
    return len(matched), sum(1 for listing in matched if listing.highlighted)


def usage_snapshot(limits: CustomLimits, listing_count: int, highlighted_count: int) -> QuotaUsage:
    return QuotaUsage(
        listing_count=listing_count,
        highlighted_count=highlighted_count,
        max_listings=limits.max_listings,
        max_highlights=limits.max_highlights,
    )


def _within(maximum: int, used: int) -> bool:
    return maximum == UNLIMITED or used < maximum


def can_create_listing(usage: QuotaUsage) -> bool:
    return _within(usage.max_listings, usage.listing_count)


def can_promote(usage: QuotaUsage) -> bool:
    return _within(usage.max_highlights, usage.highlighted_count)


def ensure_can_create_listing(usage: QuotaUsage) -> None:
    """Raise QuotaExceededError when one more listing would break the listing limit"""
    if not can_create_listing(usage):
        raise QuotaExceededError("listings", usage.max_listings)


def ensure_can_promote(usage: QuotaUsage) -> None:
    """Raise QuotaExceededError when one more highlight would break the highlight limit"""
    if not can_promote(usage):
        raise QuotaExceededError("highlights", usage.max_highlights)


def _carry_over(old_max: int, used: int, new_max: int) -> int:
    # Unused headroom of a bounded quota is added to a bounded new quota
    remaining = 0 if old_max == UNLIMITED else max(0, old_max - used)
    if new_max == UNLIMITED:
        return UNLIMITED
    return new_max + remaining


def reconcile_on_plan_change(
    account: Account,
    new_plan_type: PlanType,
    listing_count: int,
    highlighted_count: int,
) -> CustomLimits:
    """
    Compute the limits an account gets when it moves to a new plan.

    Rules (applied independently to listings and highlights):
    - old max is the *current* effective max (custom or plan)
    - remaining = 0 if old max is unlimited, else max(0, old_max - used)
    - new max = new plan default + remaining, or unlimited if the new plan is

    Example:
        Basic (30 listings, 10 used) -> Professional (100) = 120 listings
    """
    current = resolve_effective_limits(account)
    new_plan = get_plan(new_plan_type)
    return CustomLimits(
        max_listings=_carry_over(current.max_listings, listing_count, new_plan.max_listings),
        max_highlights=_carry_over(current.max_highlights, highlighted_count, new_plan.max_highlights),
    )
