"""Unit tests for scope resolution and two-tier listing attribution"""

from marketplace_ledger.domain.hierarchy import listing_in_scope, resolve_owner_account, scope_of
from marketplace_ledger.domain.models import Account, Branch, Listing

HQ = Account(id="acc-hq", name="Acme")
OTHER = Account(id="acc-other", name="Globex")
BRANCHES = [
    Branch(id="br-north", parent_account_id="acc-hq", name="Acme North"),
    Branch(id="br-south", parent_account_id="acc-hq", name="Acme South"),
    Branch(id="br-globex", parent_account_id="acc-other", name="Globex East"),
]
KNOWN_IDS = frozenset(["acc-hq", "acc-other", "br-north", "br-south", "br-globex"])


def _listing(owner_id=None, owner_name="Acme") -> Listing:
    return Listing(id="lst-1", owner_id=owner_id, owner_display_name=owner_name, price_cents=100)


def test_scope_includes_only_own_branches():
    """Test the scope pools HQ with the branches whose parent is HQ"""
    scope = scope_of(HQ, BRANCHES)

    assert scope.root_account_id == "acc-hq"
    assert scope.ids == frozenset(["acc-hq", "br-north", "br-south"])
    assert "Globex East" not in scope.names


def test_listing_owned_by_branch_id_is_in_scope():
    """Test owner_id pointing at a branch attributes the listing to the parent's scope"""
    scope = scope_of(HQ, BRANCHES)
    assert listing_in_scope(_listing(owner_id="br-north", owner_name="Renamed"), scope, KNOWN_IDS)


def test_known_owner_id_wins_over_name_collision():
    """Test a listing owned by another scope is not claimed because its display name matches"""
    scope = scope_of(HQ, BRANCHES)
    # Display name says Acme, but the id belongs to Globex
    listing = _listing(owner_id="acc-other", owner_name="Acme")

    assert not listing_in_scope(listing, scope, KNOWN_IDS)


def test_legacy_listing_falls_back_to_name():
    """Test listings without owner_id are matched by account or branch name"""
    scope = scope_of(HQ, BRANCHES)

    assert listing_in_scope(_listing(owner_name="Acme South"), scope, KNOWN_IDS)
    assert not listing_in_scope(_listing(owner_name="Initech"), scope, KNOWN_IDS)


def test_unknown_owner_id_falls_back_to_name():
    """Test a dangling owner_id (deleted entity) is treated like a legacy listing"""
    scope = scope_of(HQ, BRANCHES)
    assert listing_in_scope(_listing(owner_id="br-deleted", owner_name="Acme"), scope, KNOWN_IDS)


def test_resolve_owner_account_branch_resolves_to_parent():
    """Test sales of a branch listing are credited to the parent account"""
    payee = resolve_owner_account(_listing(owner_id="br-globex"), [HQ, OTHER], BRANCHES)
    assert payee == OTHER


def test_resolve_owner_account_by_name():
    """Test name fallback checks accounts first, then branches"""
    assert resolve_owner_account(_listing(owner_name="Globex"), [HQ, OTHER], BRANCHES) == OTHER
    assert resolve_owner_account(_listing(owner_name="Acme North"), [HQ, OTHER], BRANCHES) == HQ


def test_resolve_owner_account_unresolvable():
    """Test None is returned when neither id nor name matches"""
    assert resolve_owner_account(_listing(owner_id="ghost", owner_name="Nobody"), [HQ, OTHER], BRANCHES) is None
