"""Pytest fixtures for testing"""

import pytest
from fastapi.testclient import TestClient
from marketplace_ledger.api.main import create_app
from marketplace_ledger.domain.models import (
    Account,
    AccountKind,
    AccountStatus,
    BankDetails,
    Branch,
    Listing,
    PlanType,
)
from marketplace_ledger.infrastructure.store.memory import InMemoryDataStore
from marketplace_ledger.services.checkout import CheckoutOrchestrator
from marketplace_ledger.services.ledger import LedgerService
from marketplace_ledger.services.locks import AccountLocks
from marketplace_ledger.services.quota import QuotaService

BUYER_ID = "acc-buyer"
SELLER_A_ID = "acc-seller-a"
SELLER_B_ID = "acc-seller-b"
BRANCH_A_ID = "br-seller-a-downtown"
BLOCKED_ID = "acc-blocked"


def make_accounts() -> list[Account]:
    return [
        Account(
            id=BUYER_ID,
            name="Ana Buyer",
            email="ana@example.com",
            bank_details=BankDetails(
                bank_name="Banco Central",
                iban="ES9121000418450200051332",
                account_number="0200051332",
                beneficiary_name="Ana Buyer",
            ),
        ),
        Account(
            id=SELLER_A_ID,
            name="Seller A",
            kind=AccountKind.BUSINESS,
            plan=PlanType.BASIC,
        ),
        Account(id=SELLER_B_ID, name="Seller B"),
        Account(id=BLOCKED_ID, name="Blocked User", status=AccountStatus.BLOCKED),
    ]


def make_listings() -> list[Listing]:
    return [
        Listing(id="lst-a", owner_id=SELLER_A_ID, owner_display_name="Seller A", title="Desk", price_cents=150_000),
        Listing(id="lst-b", owner_id=SELLER_B_ID, owner_display_name="Seller B", title="Lamp", price_cents=80_000),
        Listing(
            id="lst-branch",
            owner_id=BRANCH_A_ID,
            owner_display_name="Seller A Downtown",
            title="Chair",
            price_cents=5_000,
        ),
        # Legacy row without owner_id, attributed by display name
        Listing(id="lst-legacy", owner_display_name="Seller B", title="Rug", price_cents=3_000),
    ]


@pytest.fixture
async def store() -> InMemoryDataStore:
    """In-memory store seeded with a buyer, two sellers (one with a branch) and their listings"""
    store = InMemoryDataStore()
    for account in make_accounts():
        await store.accounts.create(account)
    await store.branches.create(
        Branch(id=BRANCH_A_ID, parent_account_id=SELLER_A_ID, name="Seller A Downtown")
    )
    for listing in make_listings():
        await store.listings.create(listing)
    return store


@pytest.fixture
def locks() -> AccountLocks:
    return AccountLocks()


@pytest.fixture
def quota(store: InMemoryDataStore, locks: AccountLocks) -> QuotaService:
    return QuotaService(store, locks)


@pytest.fixture
def ledger(store: InMemoryDataStore, quota: QuotaService, locks: AccountLocks) -> LedgerService:
    return LedgerService(store, quota=quota, locks=locks, overdraft_policy="clamp", reference_prefix="REF")


@pytest.fixture
def orchestrator(ledger: LedgerService) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(ledger)


@pytest.fixture
def client(store: InMemoryDataStore) -> TestClient:
    """Create FastAPI test client over the seeded in-memory store"""
    app = create_app(store=store)
    return TestClient(app)
