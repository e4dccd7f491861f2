"""Integration tests for API endpoints"""

from fastapi.testclient import TestClient
from tests.conftest import BUYER_ID, SELLER_A_ID, SELLER_B_ID


def _checkout(client: TestClient, method: str, **extra):
    return client.post(
        "/v1/checkout",
        json={
            "buyer_account_id": BUYER_ID,
            "method": method,
            "lines": [{"listing_id": "lst-a"}, {"listing_id": "lst-b"}],
            **extra,
        },
    )


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "ledger_transactions_total" in response.text


def test_request_id_header(client: TestClient):
    """Test every response carries a request ID, echoing the caller's when given"""
    assert client.get("/health").headers["X-Request-ID"]
    assert client.get("/health", headers={"X-Request-ID": "req-123"}).headers["X-Request-ID"] == "req-123"


def test_instant_checkout(client: TestClient):
    """Test POST /v1/checkout with an instant method approves both pairs"""
    response = _checkout(client, "instant_card")

    assert response.status_code == 200
    transactions = response.json()["transactions"]
    assert len(transactions) == 4
    assert {t["status"] for t in transactions} == {"approved"}
    assert {t["category"] for t in transactions} == {"sale", "purchase"}

    history = client.get(f"/v1/accounts/{SELLER_A_ID}/transactions").json()
    assert [t["amount_cents"] for t in history["transactions"]] == [150_000]


def test_manual_checkout_then_decision(client: TestClient):
    """Test a manual checkout stays pending until approved, and a second decision conflicts"""
    transactions = _checkout(client, "manual_transfer", proof_ref="proof.png").json()["transactions"]
    sale = next(t for t in transactions if t["category"] == "sale" and t["account_id"] == SELLER_B_ID)
    assert sale["status"] == "pending"

    response = client.post(f"/v1/transactions/{sale['id']}/decision", json={"decision": "approve"})
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["settled"] is True

    response = client.post(f"/v1/transactions/{sale['id']}/decision", json={"decision": "approve"})
    assert response.status_code == 409


def test_checkout_plan_line(client: TestClient):
    """Test buying a plan through checkout updates the plan limits"""
    response = client.post(
        "/v1/checkout",
        json={"buyer_account_id": BUYER_ID, "method": "instant_card", "lines": [{"listing_id": "plan:basic"}]},
    )

    assert response.status_code == 200
    (payment,) = response.json()["transactions"]
    assert payment["category"] == "plan_payment"
    assert payment["plan"] == "basic"
    assert client.get(f"/v1/accounts/{BUYER_ID}/usage").json()["max_listings"] == 32


def test_checkout_errors(client: TestClient):
    """Test empty carts, unknown listings and blocked buyers map to 422/404"""
    empty = client.post("/v1/checkout", json={"buyer_account_id": BUYER_ID, "method": "instant_card", "lines": []})
    assert empty.status_code == 422

    unknown = client.post(
        "/v1/checkout",
        json={"buyer_account_id": BUYER_ID, "method": "instant_card", "lines": [{"listing_id": "lst-nope"}]},
    )
    assert unknown.status_code == 404

    blocked = client.post(
        "/v1/checkout",
        json={"buyer_account_id": "acc-blocked", "method": "instant_card", "lines": [{"listing_id": "lst-a"}]},
    )
    assert blocked.status_code == 422


def test_deposit_flow(client: TestClient):
    """Test POST /v1/deposits creates a pending top-up credited on approval"""
    response = client.post(
        "/v1/deposits", json={"account_id": BUYER_ID, "amount_cents": 25_000, "method": "manual_transfer"}
    )
    assert response.status_code == 201
    deposit = response.json()
    assert deposit["status"] == "pending"

    client.post(f"/v1/transactions/{deposit['id']}/decision", json={"decision": "approve"})

    history = client.get(f"/v1/accounts/{BUYER_ID}/transactions").json()["transactions"]
    assert history[0]["status"] == "approved"


def test_deposit_validation(client: TestClient):
    """Test non-positive deposits are refused by request validation"""
    response = client.post("/v1/deposits", json={"account_id": BUYER_ID, "amount_cents": 0, "method": "instant_card"})
    assert response.status_code == 422


def test_withdrawal_flow(client: TestClient):
    """Test an over-withdrawal is clamped to the available balance on approval"""
    client.post(
        "/v1/checkout",
        json={
            "buyer_account_id": BUYER_ID,
            "method": "instant_card",
            "lines": [{"listing_id": "lst-b", "price_cents": 3_000}],
        },
    )

    response = client.post(
        "/v1/withdrawals",
        json={"account_id": SELLER_B_ID, "amount_cents": 5_000, "bank_details": "Banco Sur - ES00 1234"},
    )
    assert response.status_code == 201
    withdrawal = response.json()

    response = client.post(f"/v1/withdrawals/{withdrawal['id']}/decision", json={"decision": "approve"})
    assert response.status_code == 200
    assert response.json()["status"] == "processed"
    assert response.json()["paid_cents"] == 3_000

    listed = client.get(f"/v1/accounts/{SELLER_B_ID}/withdrawals").json()
    assert [w["id"] for w in listed] == [withdrawal["id"]]


def test_withdrawal_without_bank_details(client: TestClient):
    """Test a withdrawal with no destination returns 422"""
    response = client.post("/v1/withdrawals", json={"account_id": SELLER_B_ID, "amount_cents": 1_000})
    assert response.status_code == 422
    assert "bank details" in response.json()["detail"]


def test_unknown_withdrawal_decision(client: TestClient):
    """Test deciding a missing withdrawal returns 404"""
    response = client.post("/v1/withdrawals/wd-missing/decision", json={"decision": "reject"})
    assert response.status_code == 404


def test_listing_lifecycle(client: TestClient):
    """Test create, edit and delete of a listing report the updated usage"""
    response = client.post(
        f"/v1/accounts/{SELLER_A_ID}/listings",
        json={"title": "Bookshelf", "price_cents": 40_000, "highlighted": True},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["listing"]["owner_display_name"] == "Seller A"
    assert body["usage"]["listing_count"] == 3
    assert body["usage"]["highlighted_count"] == 1
    listing_id = body["listing"]["id"]

    response = client.patch(f"/v1/accounts/{SELLER_A_ID}/listings/{listing_id}", json={"highlighted": False})
    assert response.status_code == 200
    assert response.json()["usage"]["highlighted_count"] == 0

    response = client.delete(f"/v1/accounts/{SELLER_A_ID}/listings/{listing_id}")
    assert response.status_code == 200
    assert response.json()["listing_count"] == 2


def test_listing_quota_exceeded(client: TestClient):
    """Test a Free account at its limit gets 422 with an upgrade message"""
    response = client.post(f"/v1/accounts/{SELLER_B_ID}/listings", json={"title": "Vase", "price_cents": 1_000})

    assert response.status_code == 422
    assert "Upgrade your plan" in response.json()["detail"]


def test_change_plan(client: TestClient):
    """Test POST /v1/accounts/{id}/plan returns the reconciled limits"""
    response = client.post(f"/v1/accounts/{SELLER_A_ID}/plan", json={"plan": "professional"})

    assert response.status_code == 200
    data = response.json()
    assert data["plan"] == "professional"
    assert data["max_listings"] == 128
    assert data["max_highlights"] == 60


def test_unknown_account(client: TestClient):
    """Test endpoints on a missing account return 404"""
    assert client.get("/v1/accounts/acc-missing/usage").status_code == 404
    assert client.get("/v1/accounts/acc-missing/transactions").status_code == 404
