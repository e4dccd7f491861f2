"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from marketplace_ledger.domain.models import (
    Decision,
    ListingCategory,
    PaymentMethod,
    PlanType,
    TransactionCategory,
    TransactionStatus,
    WithdrawalStatus,
)


class CheckoutLineRequest(BaseModel):
    """One cart line; price_cents is the price when the line was added"""

    listing_id: str = Field(..., min_length=1)
    price_cents: Optional[int] = Field(None, ge=0, description="Defaults to the listing's current price")


class CheckoutRequest(BaseModel):
    """Request body for POST /v1/checkout"""

    buyer_account_id: str = Field(..., min_length=1)
    method: PaymentMethod
    lines: List[CheckoutLineRequest]
    proof_ref: Optional[str] = None
    reference: Optional[str] = Field(None, description="Reuse to retry a failed checkout without duplicates")


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    amount_cents: int
    category: TransactionCategory
    method: PaymentMethod
    status: TransactionStatus
    timestamp: datetime
    reference: str
    counterparty_name: str
    description: str
    proof_ref: Optional[str] = None
    listing_id: Optional[str] = None
    plan: Optional[PlanType] = None
    settled: bool


class CheckoutResponse(BaseModel):
    """Response for POST /v1/checkout"""

    transactions: List[TransactionResponse]


class DecisionRequest(BaseModel):
    """Back-office approve/reject body"""

    decision: Decision


class DepositRequest(BaseModel):
    """Request body for POST /v1/deposits"""

    account_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, description="Top-up amount in cents")
    method: PaymentMethod
    proof_ref: Optional[str] = None


class HistoryResponse(BaseModel):
    """Response for GET /v1/accounts/{id}/transactions"""

    account_id: str
    transactions: List[TransactionResponse]


class WithdrawalRequestBody(BaseModel):
    """Request body for POST /v1/withdrawals"""

    account_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, description="Amount to pay out in cents")
    bank_details: Optional[str] = Field(None, description="Destination; defaults to the bank details on file")


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    account_name: str
    amount_cents: int
    status: WithdrawalStatus
    bank_details: str
    requested_at: datetime
    processed_at: Optional[datetime] = None
    paid_cents: Optional[int] = None
    settled: bool = False


class UsageResponse(BaseModel):
    """Listing and highlight usage against the effective limits (-1 = unlimited)"""

    model_config = ConfigDict(from_attributes=True)

    listing_count: int
    highlighted_count: int
    max_listings: int
    max_highlights: int
    remaining_listings: Optional[int] = None
    remaining_highlights: Optional[int] = None


class ListingCreateRequest(BaseModel):
    """Request body for POST /v1/accounts/{id}/listings"""

    title: str = Field(..., min_length=1)
    price_cents: int = Field(..., ge=0)
    category: ListingCategory = ListingCategory.PRODUCT
    highlighted: bool = False
    owner_id: Optional[str] = Field(None, description="Branch id to publish as; the account itself when absent")


class ListingUpdateRequest(BaseModel):
    """Partial update; only fields that are sent are changed"""

    title: Optional[str] = Field(None, min_length=1)
    price_cents: Optional[int] = Field(None, ge=0)
    category: Optional[ListingCategory] = None
    highlighted: Optional[bool] = None
    owner_id: Optional[str] = None


class ListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: Optional[str] = None
    owner_display_name: str
    title: str
    price_cents: int
    category: ListingCategory
    highlighted: bool


class ListingWriteResponse(BaseModel):
    listing: ListingResponse
    usage: UsageResponse


class PlanChangeRequest(BaseModel):
    plan: PlanType


class AccountResponse(BaseModel):
    """Account after a plan change, with its effective limits"""

    id: str
    name: str
    plan: PlanType
    wallet_balance_cents: int
    top_up_balance_cents: int
    max_listings: int
    max_highlights: int
