"""Withdrawal endpoints: payout requests and their back-office processing"""

from typing import List
from fastapi import APIRouter, Depends, Request

from marketplace_ledger.api.dependencies import get_ledger_service, get_request_id, to_http_exception
from marketplace_ledger.api.v1.schemas import DecisionRequest, WithdrawalRequestBody, WithdrawalResponse
from marketplace_ledger.domain.exceptions import DomainException
from marketplace_ledger.services.ledger import LedgerService

router = APIRouter()


@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=201)
async def create_withdrawal(
    body: WithdrawalRequestBody,
    request: Request,
    ledger: LedgerService = Depends(get_ledger_service),
):
    try:
        withdrawal = await ledger.request_withdrawal(body.account_id, body.amount_cents, body.bank_details)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return WithdrawalResponse.model_validate(withdrawal)


@router.post("/withdrawals/{withdrawal_id}/decision", response_model=WithdrawalResponse)
async def decide_withdrawal(
    withdrawal_id: str,
    body: DecisionRequest,
    request: Request,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Process (pay out) or reject a Pending withdrawal"""
    try:
        withdrawal = await ledger.process_withdrawal(withdrawal_id, body.decision)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return WithdrawalResponse.model_validate(withdrawal)


@router.get("/accounts/{account_id}/withdrawals", response_model=List[WithdrawalResponse])
async def list_withdrawals(
    account_id: str,
    ledger: LedgerService = Depends(get_ledger_service),
):
    records = await ledger.withdrawals_for(account_id)
    return [WithdrawalResponse.model_validate(w) for w in records]
