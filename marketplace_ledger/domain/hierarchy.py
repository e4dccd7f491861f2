"""Account/branch scope resolution and listing attribution"""

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional
from marketplace_ledger.domain.models import Account, Branch, Listing


@dataclass(frozen=True)
class Scope:
    """An account plus every branch whose parent is that account"""

    account: Account
    branches: tuple[Branch, ...] = ()

    @property
    def root_account_id(self) -> str:
        return self.account.id

    @property
    def ids(self) -> frozenset[str]:
        return frozenset([self.account.id, *(b.id for b in self.branches)])

    @property
    def names(self) -> frozenset[str]:
        return frozenset([self.account.name, *(b.name for b in self.branches)])


def scope_of(account: Account, branches: Iterable[Branch]) -> Scope:
    """Build the quota scope of an account from the full branch list"""
    own = tuple(b for b in branches if b.parent_account_id == account.id)
    return Scope(account=account, branches=own)


def listing_in_scope(listing: Listing, scope: Scope, known_owner_ids: AbstractSet[str]) -> bool:
    """
    Two-tier attribution of a listing to a scope.

    1. owner_id match: when the listing's owner_id resolves to a known
       account or branch, it decides alone.
    2. Legacy name match: only when owner_id is absent or unknown, the
       listing's display name is compared with the account and branch names.

    A listing owned by another scope is never claimed through a name collision.
    """
    if listing.owner_id and listing.owner_id in known_owner_ids:
        return listing.owner_id in scope.ids
    return listing.owner_display_name in scope.names


def resolve_owner_account(
    listing: Listing,
    accounts: Iterable[Account],
    branches: Iterable[Branch],
) -> Optional[Account]:
    """
    Find the account that earns a listing's sale (branches resolve to their parent).

    Same precedence as listing_in_scope: owner_id first, display name as fallback.
    """
    accounts_by_id = {a.id: a for a in accounts}
    branches = list(branches)
    branches_by_id = {b.id: b for b in branches}

    if listing.owner_id:
        if listing.owner_id in accounts_by_id:
            return accounts_by_id[listing.owner_id]
        if listing.owner_id in branches_by_id:
            return accounts_by_id.get(branches_by_id[listing.owner_id].parent_account_id)

    for account in accounts_by_id.values():
        if account.name == listing.owner_display_name:
            return account
    for branch in branches:
        if branch.name == listing.owner_display_name:
            return accounts_by_id.get(branch.parent_account_id)
    return None
