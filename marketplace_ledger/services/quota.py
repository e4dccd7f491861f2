"""Quota service - enforces plan limits on listing writes and applies plan changes"""

import dataclasses
import logging
from typing import Any, Optional
from marketplace_ledger.domain.exceptions import NotFoundError, QuotaExceededError, ValidationError
from marketplace_ledger.domain.hierarchy import Scope, listing_in_scope
from marketplace_ledger.domain.models import Account, Listing, PlanType, QuotaUsage
from marketplace_ledger.domain.quota import (
    compute_usage,
    ensure_can_create_listing,
    ensure_can_promote,
    reconcile_on_plan_change,
    resolve_effective_limits,
    usage_snapshot,
)
from marketplace_ledger.infrastructure.observability.logging import log_quota_rejection
from marketplace_ledger.infrastructure.observability.metrics import plan_change_counter, quota_rejection_counter
from marketplace_ledger.infrastructure.store.base import DataStore
from marketplace_ledger.services.hierarchy import HierarchyResolver
from marketplace_ledger.services.locks import AccountLocks
from marketplace_ledger.utils.references import new_id

logger = logging.getLogger(__name__)


class QuotaService:
    """
    Listing writes that count against an account's plan.

    The quota check and the write it guards run under the account's lock,
    so concurrent publishers on the same scope cannot overshoot a limit.
    """

    def __init__(self, store: DataStore, locks: AccountLocks | None = None, resolver: HierarchyResolver | None = None):
        self.store = store
        self.locks = locks or AccountLocks()
        self.resolver = resolver or HierarchyResolver(store)

    async def usage_for(self, account_id: str) -> QuotaUsage:
        """Usage of the whole scope; a branch id reports its parent account's usage"""
        account = await self.store.accounts.get(await self.resolver.root_account_id(account_id))
        scope = await self.resolver.scope_for(account)
        return await self._usage(scope)

    async def _usage(self, scope: Scope, exclude_listing_id: Optional[str] = None) -> QuotaUsage:
        listings = await self.store.listings.get_all()
        known_ids = await self.resolver.known_owner_ids()
        listing_count, highlighted_count = compute_usage(scope, listings, known_ids, exclude_listing_id)
        return usage_snapshot(resolve_effective_limits(scope.account), listing_count, highlighted_count)

    def _owner_name(self, scope: Scope, owner_id: str) -> str:
        if owner_id == scope.account.id:
            return scope.account.name
        for branch in scope.branches:
            if branch.id == owner_id:
                return branch.name
        raise ValidationError(f"{owner_id} is not this account or one of its branches")

    async def _owned_listing(self, scope: Scope, listing_id: str) -> Listing:
        listing = await self.store.listings.get(listing_id)
        known_ids = await self.resolver.known_owner_ids()
        if not listing_in_scope(listing, scope, known_ids):
            raise NotFoundError("Listing", listing_id)
        return listing

    def _reject(self, account_id: str, error: QuotaExceededError) -> None:
        quota_rejection_counter.labels(limit=error.limit_name).inc()
        log_quota_rejection(account_id, error.limit_name, error.limit)

    async def create_listing(self, account_id: str, draft: Listing) -> tuple[Listing, QuotaUsage]:
        """
        Publish a listing for the account or one of its branches.

        account_id may be a branch id; the quota and the lock are always the
        parent account's. The draft's owner_id selects the publishing entity
        (the caller when absent); owner_display_name is set from that entity.
        A fresh id is assigned when the draft has none.

        Raises:
            QuotaExceededError: Listing (or highlight) limit already reached
        """
        root_id = await self.resolver.root_account_id(account_id)
        async with self.locks.hold(root_id):
            account = await self.store.accounts.get(root_id)
            account.ensure_active()
            scope = await self.resolver.scope_for(account)
            owner_id = draft.owner_id or account_id
            listing = dataclasses.replace(
                draft,
                id=draft.id or new_id(),
                owner_id=owner_id,
                owner_display_name=self._owner_name(scope, owner_id),
            )

            usage = await self._usage(scope)
            try:
                ensure_can_create_listing(usage)
                if listing.highlighted:
                    ensure_can_promote(usage)
            except QuotaExceededError as e:
                self._reject(root_id, e)
                raise

            created = await self.store.listings.create(listing)
            return created, await self._usage(scope)

    async def update_listing(self, account_id: str, listing_id: str, **changes: Any) -> tuple[Listing, QuotaUsage]:
        """
        Edit a listing in the account's scope.

        Turning the highlight on is checked against the highlight limit with
        the listing itself left out of the count.
        """
        account_id = await self.resolver.root_account_id(account_id)
        async with self.locks.hold(account_id):
            account = await self.store.accounts.get(account_id)
            account.ensure_active()
            scope = await self.resolver.scope_for(account)
            listing = await self._owned_listing(scope, listing_id)

            if "owner_id" in changes:
                changes["owner_display_name"] = self._owner_name(scope, changes["owner_id"])

            if changes.get("highlighted") and not listing.highlighted:
                usage = await self._usage(scope, exclude_listing_id=listing.id)
                try:
                    ensure_can_promote(usage)
                except QuotaExceededError as e:
                    self._reject(account_id, e)
                    raise

            updated = await self.store.listings.update(listing_id, **changes)
            return updated, await self._usage(scope)

    async def delete_listing(self, account_id: str, listing_id: str) -> QuotaUsage:
        account_id = await self.resolver.root_account_id(account_id)
        async with self.locks.hold(account_id):
            scope = await self.resolver.scope_for(account_id)
            await self._owned_listing(scope, listing_id)
            await self.store.listings.delete(listing_id)
            return await self._usage(scope)

    async def change_plan(self, account_id: str, new_plan: PlanType) -> Account:
        """
        Move an account to a new plan, carrying unused headroom into custom limits.

        This is the single plan-change path: standalone upgrades and plan
        purchases at checkout both end up here.
        """
        async with self.locks.hold(account_id):
            return await self.apply_plan_change(account_id, new_plan)

    async def apply_plan_change(self, account_id: str, new_plan: PlanType) -> Account:
        """change_plan for callers already holding the account's lock"""
        account = await self.store.accounts.get(account_id)
        scope = await self.resolver.scope_for(account)
        usage = await self._usage(scope)
        limits = reconcile_on_plan_change(account, new_plan, usage.listing_count, usage.highlighted_count)
        updated = await self.store.accounts.update(account_id, plan=new_plan, custom_limits=limits)

        plan_change_counter.labels(plan=new_plan.value).inc()
        logger.info(
            "Plan changed",
            extra={
                "account_id": account_id,
                "from_plan": account.plan.value,
                "to_plan": new_plan.value,
                "max_listings": limits.max_listings,
                "max_highlights": limits.max_highlights,
            },
        )
        return updated
