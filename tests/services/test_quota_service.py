"""Tests for quota-checked listing writes and plan changes"""

import asyncio
import pytest
from marketplace_ledger.domain.exceptions import AccountBlockedError, NotFoundError, QuotaExceededError, ValidationError
from marketplace_ledger.domain.models import Account, AccountKind, Branch, Listing, PlanType
from marketplace_ledger.services.quota import QuotaService
from tests.conftest import BLOCKED_ID, BRANCH_A_ID, BUYER_ID, SELLER_A_ID, SELLER_B_ID


def _draft(owner_id=None, highlighted=False, title="Item") -> Listing:
    return Listing(id="", owner_display_name="", price_cents=1_000, owner_id=owner_id, title=title, highlighted=highlighted)


async def _seed_business(store, listing_count: int) -> None:
    """Business account on a 30-listing plan with usage spread over HQ and two branches"""
    await store.accounts.create(Account(id="acc-biz", name="Biz", kind=AccountKind.BUSINESS, plan=PlanType.BASIC))
    await store.branches.create(Branch(id="br-biz-1", parent_account_id="acc-biz", name="Biz One"))
    await store.branches.create(Branch(id="br-biz-2", parent_account_id="acc-biz", name="Biz Two"))
    owners = ["acc-biz", "br-biz-1", "br-biz-2"]
    for i in range(listing_count):
        owner = owners[i % 3]
        await store.listings.create(
            Listing(id=f"biz-{i}", owner_id=owner, owner_display_name=owner, price_cents=100)
        )


async def test_usage_for_pools_branches(store, quota: QuotaService):
    """Test usage counts HQ and branch listings against the account's plan"""
    usage = await quota.usage_for(SELLER_A_ID)

    assert usage.listing_count == 2
    assert usage.max_listings == 30
    assert usage.remaining_listings == 28


async def test_thirtieth_listing_allowed_thirty_first_refused(store, quota: QuotaService):
    """Test the boundary of a 30-listing plan with 29 listings across HQ and branches"""
    await _seed_business(store, 29)

    listing, usage = await quota.create_listing("acc-biz", _draft(owner_id="br-biz-2"))

    assert listing.owner_display_name == "Biz Two"
    assert usage.listing_count == 30
    with pytest.raises(QuotaExceededError) as exc_info:
        await quota.create_listing("acc-biz", _draft())
    assert isinstance(exc_info.value, ValidationError)
    assert (await quota.usage_for("acc-biz")).listing_count == 30


async def test_create_listing_defaults_owner_to_account(store, quota: QuotaService):
    """Test drafts without owner_id are published as the account itself with a fresh id"""
    listing, _ = await quota.create_listing(SELLER_A_ID, _draft())

    assert listing.id
    assert listing.owner_id == SELLER_A_ID
    assert listing.owner_display_name == "Seller A"


async def test_create_listing_for_foreign_branch_refused(store, quota: QuotaService):
    """Test an account cannot publish as a branch it does not own"""
    with pytest.raises(ValidationError):
        await quota.create_listing(SELLER_B_ID, _draft(owner_id=BRANCH_A_ID))


async def test_free_plan_limit_and_highlight(store, quota: QuotaService):
    """Test a Free account at 2 listings is refused, and cannot highlight"""
    with pytest.raises(QuotaExceededError) as exc_info:
        await quota.create_listing(SELLER_B_ID, _draft())
    assert exc_info.value.limit_name == "listings"

    with pytest.raises(QuotaExceededError) as exc_info:
        await quota.create_listing(BUYER_ID, _draft(highlighted=True))
    assert exc_info.value.limit_name == "highlights"


async def test_blocked_account_cannot_publish(store, quota: QuotaService):
    """Test blocked accounts are refused before any quota check"""
    with pytest.raises(AccountBlockedError):
        await quota.create_listing(BLOCKED_ID, _draft())


async def test_highlight_edit_excludes_listing_itself(store, quota: QuotaService):
    """Test re-saving an already highlighted listing at the highlight limit is allowed"""
    await store.accounts.create(Account(id="acc-hl", name="HL", plan=PlanType.BASIC))
    for i in range(10):
        await store.listings.create(
            Listing(id=f"hl-{i}", owner_id="acc-hl", owner_display_name="HL", price_cents=100, highlighted=True)
        )
    await store.listings.create(Listing(id="hl-plain", owner_id="acc-hl", owner_display_name="HL", price_cents=100))

    updated, usage = await quota.update_listing("acc-hl", "hl-3", highlighted=True, title="Renamed")
    assert updated.title == "Renamed"
    assert usage.highlighted_count == 10

    with pytest.raises(QuotaExceededError):
        await quota.update_listing("acc-hl", "hl-plain", highlighted=True)


async def test_update_listing_outside_scope_not_found(store, quota: QuotaService):
    """Test a listing of another account cannot be edited or deleted"""
    with pytest.raises(NotFoundError):
        await quota.update_listing(SELLER_B_ID, "lst-a", title="Mine now")
    with pytest.raises(NotFoundError):
        await quota.delete_listing(SELLER_B_ID, "lst-a")


async def test_delete_listing_frees_quota(store, quota: QuotaService):
    """Test deletion returns the reduced usage and makes room for a new listing"""
    usage = await quota.delete_listing(SELLER_B_ID, "lst-legacy")
    assert usage.listing_count == 1

    listing, usage = await quota.create_listing(SELLER_B_ID, _draft())
    assert usage.listing_count == 2


async def test_change_plan_carries_headroom(store, quota: QuotaService):
    """Test upgrading from 30 (10 used) to 100 gives 120 listings"""
    await _seed_business(store, 10)

    account = await quota.change_plan("acc-biz", PlanType.PROFESSIONAL)

    assert account.plan is PlanType.PROFESSIONAL
    assert account.custom_limits.max_listings == 120
    usage = await quota.usage_for("acc-biz")
    assert usage.max_listings == 120


async def test_concurrent_publishers_cannot_overshoot(store, quota: QuotaService):
    """Test parallel creations on one scope stop exactly at the limit"""
    await _seed_business(store, 25)

    results = await asyncio.gather(
        *(quota.create_listing("acc-biz", _draft(title=f"New {i}")) for i in range(10)),
        return_exceptions=True,
    )

    assert sum(not isinstance(r, Exception) for r in results) == 5
    assert all(isinstance(r, QuotaExceededError) for r in results if isinstance(r, Exception))
    assert (await quota.usage_for("acc-biz")).listing_count == 30


async def test_branch_publishes_against_parent_quota(store, quota: QuotaService):
    """Test a branch id publishes as the branch but counts against the parent's usage"""
    listing, usage = await quota.create_listing(BRANCH_A_ID, _draft(title="Branch special"))

    assert listing.owner_id == BRANCH_A_ID
    assert listing.owner_display_name == "Seller A Downtown"
    assert usage.listing_count == 3
    assert (await quota.usage_for(BRANCH_A_ID)) == (await quota.usage_for(SELLER_A_ID))
