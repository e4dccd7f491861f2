"""Hierarchy resolver service: scopes and quota roots read through the data store"""

from typing import Union
from marketplace_ledger.domain.hierarchy import Scope, scope_of
from marketplace_ledger.domain.models import Account
from marketplace_ledger.infrastructure.store.base import DataStore


class HierarchyResolver:
    def __init__(self, store: DataStore):
        self.store = store

    async def scope_for(self, account: Union[Account, str]) -> Scope:
        if isinstance(account, str):
            account = await self.store.accounts.get(account)
        branches = await self.store.branches.get_all()
        return scope_of(account, branches)

    async def known_owner_ids(self) -> frozenset[str]:
        """Every id a listing's owner_id can legitimately point at"""
        accounts = await self.store.accounts.get_all()
        branches = await self.store.branches.get_all()
        return frozenset([*(a.id for a in accounts), *(b.id for b in branches)])

    async def root_account_id(self, owner_id: str) -> str:
        """Account id whose quota covers owner_id (the parent when owner_id is a branch)"""
        branch = await self.store.branches.find(owner_id)
        if branch is not None:
            return branch.parent_account_id
        account = await self.store.accounts.get(owner_id)
        return account.id
