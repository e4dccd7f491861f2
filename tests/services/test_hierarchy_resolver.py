"""Tests for the store-backed hierarchy resolver"""

import pytest
from marketplace_ledger.domain.exceptions import NotFoundError
from marketplace_ledger.services.hierarchy import HierarchyResolver
from tests.conftest import BRANCH_A_ID, SELLER_A_ID, SELLER_B_ID


async def test_scope_for_account_id(store):
    """Test scopes can be built from an id and include the account's branches"""
    scope = await HierarchyResolver(store).scope_for(SELLER_A_ID)

    assert scope.ids == frozenset([SELLER_A_ID, BRANCH_A_ID])


async def test_known_owner_ids(store):
    """Test known owner ids cover accounts and branches"""
    known = await HierarchyResolver(store).known_owner_ids()

    assert {SELLER_A_ID, SELLER_B_ID, BRANCH_A_ID} <= known


async def test_root_account_id(store):
    """Test branches map to their parent and accounts to themselves"""
    resolver = HierarchyResolver(store)

    assert await resolver.root_account_id(BRANCH_A_ID) == SELLER_A_ID
    assert await resolver.root_account_id(SELLER_B_ID) == SELLER_B_ID
    with pytest.raises(NotFoundError):
        await resolver.root_account_id("acc-missing")
