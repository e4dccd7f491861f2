"""POST /v1/checkout - turn a buyer's cart into ledger records"""

from fastapi import APIRouter, Depends, Request

from marketplace_ledger.api.dependencies import get_checkout, get_request_id, get_store, to_http_exception
from marketplace_ledger.api.v1.schemas import CheckoutRequest, CheckoutResponse, TransactionResponse
from marketplace_ledger.domain.exceptions import DomainException
from marketplace_ledger.domain.models import Cart, CartLine
from marketplace_ledger.domain.plans import plan_listing, plan_type_for_listing
from marketplace_ledger.infrastructure.store.base import DataStore
from marketplace_ledger.services.checkout import CheckoutOrchestrator

router = APIRouter()


async def _build_cart(body: CheckoutRequest, store: DataStore) -> Cart:
    """Rebuild the buyer's cart from listing ids; plan lines use the synthetic plan listing"""
    cart = Cart()
    for line in body.lines:
        plan_type = plan_type_for_listing(line.listing_id)
        listing = plan_listing(plan_type) if plan_type else await store.listings.get(line.listing_id)
        if line.price_cents is None:
            cart.add(listing)
        else:
            cart.lines.append(CartLine(listing=listing, price_cents=line.price_cents))
    return cart


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    request: Request,
    store: DataStore = Depends(get_store),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout),
):
    """
    Check out a cart.

    Flow:
    1. Resolve each line's listing (plan lines map to the plan catalog)
    2. Record paired SALE/PURCHASE (or PLAN_PAYMENT) transactions
    3. Instant methods settle immediately; manual transfers stay Pending
    """
    request_id = get_request_id(request)
    try:
        cart = await _build_cart(body, store)
        records = await orchestrator.checkout(
            cart,
            body.buyer_account_id,
            body.method,
            proof_ref=body.proof_ref,
            reference=body.reference,
        )
    except DomainException as e:
        raise to_http_exception(e, request_id)

    return CheckoutResponse(transactions=[TransactionResponse.model_validate(t) for t in records])
