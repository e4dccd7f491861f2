"""Listing endpoints: quota usage and quota-checked listing writes"""

from fastapi import APIRouter, Depends, Request

from marketplace_ledger.api.dependencies import get_quota_service, get_request_id, to_http_exception
from marketplace_ledger.api.v1.schemas import (
    ListingCreateRequest,
    ListingResponse,
    ListingUpdateRequest,
    ListingWriteResponse,
    UsageResponse,
)
from marketplace_ledger.domain.exceptions import DomainException
from marketplace_ledger.domain.models import Listing
from marketplace_ledger.services.quota import QuotaService

router = APIRouter()


def _write_response(listing: Listing, usage) -> ListingWriteResponse:
    return ListingWriteResponse(
        listing=ListingResponse.model_validate(listing),
        usage=UsageResponse.model_validate(usage),
    )


@router.get("/accounts/{account_id}/usage", response_model=UsageResponse)
async def get_usage(
    account_id: str,
    request: Request,
    quota: QuotaService = Depends(get_quota_service),
):
    """Listing and highlight usage across the account and its branches"""
    try:
        usage = await quota.usage_for(account_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return UsageResponse.model_validate(usage)


@router.post("/accounts/{account_id}/listings", response_model=ListingWriteResponse, status_code=201)
async def create_listing(
    account_id: str,
    body: ListingCreateRequest,
    request: Request,
    quota: QuotaService = Depends(get_quota_service),
):
    """
    Publish a listing as the account or one of its branches.

    Returns 422 with an upgrade message when the plan limit is reached.
    """
    draft = Listing(
        id="",
        owner_display_name="",
        price_cents=body.price_cents,
        owner_id=body.owner_id,
        title=body.title,
        category=body.category,
        highlighted=body.highlighted,
    )
    try:
        listing, usage = await quota.create_listing(account_id, draft)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return _write_response(listing, usage)


@router.patch("/accounts/{account_id}/listings/{listing_id}", response_model=ListingWriteResponse)
async def update_listing(
    account_id: str,
    listing_id: str,
    body: ListingUpdateRequest,
    request: Request,
    quota: QuotaService = Depends(get_quota_service),
):
    try:
        listing, usage = await quota.update_listing(account_id, listing_id, **body.model_dump(exclude_unset=True))
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return _write_response(listing, usage)


@router.delete("/accounts/{account_id}/listings/{listing_id}", response_model=UsageResponse)
async def delete_listing(
    account_id: str,
    listing_id: str,
    request: Request,
    quota: QuotaService = Depends(get_quota_service),
):
    try:
        usage = await quota.delete_listing(account_id, listing_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return UsageResponse.model_validate(usage)
