"""POST /v1/accounts/{id}/plan - standalone plan change"""

from fastapi import APIRouter, Depends, Request

from marketplace_ledger.api.dependencies import get_quota_service, get_request_id, to_http_exception
from marketplace_ledger.api.v1.schemas import AccountResponse, PlanChangeRequest
from marketplace_ledger.domain.exceptions import DomainException
from marketplace_ledger.domain.quota import resolve_effective_limits
from marketplace_ledger.services.quota import QuotaService

router = APIRouter()


@router.post("/accounts/{account_id}/plan", response_model=AccountResponse)
async def change_plan(
    account_id: str,
    body: PlanChangeRequest,
    request: Request,
    quota: QuotaService = Depends(get_quota_service),
):
    """
    Move an account to another plan without going through checkout.

    Unused headroom from the current limits is carried into the new ones.
    """
    try:
        account = await quota.change_plan(account_id, body.plan)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    limits = resolve_effective_limits(account)
    return AccountResponse(
        id=account.id,
        name=account.name,
        plan=account.plan,
        wallet_balance_cents=account.wallet_balance_cents,
        top_up_balance_cents=account.top_up_balance_cents,
        max_listings=limits.max_listings,
        max_highlights=limits.max_highlights,
    )
