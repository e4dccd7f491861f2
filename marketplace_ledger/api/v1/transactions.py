"""Transaction endpoints: back-office decisions, deposits and account history"""

from fastapi import APIRouter, Depends, Request

from marketplace_ledger.api.dependencies import get_ledger_service, get_request_id, to_http_exception
from marketplace_ledger.api.v1.schemas import DecisionRequest, DepositRequest, HistoryResponse, TransactionResponse
from marketplace_ledger.domain.exceptions import DomainException
from marketplace_ledger.services.ledger import LedgerService

router = APIRouter()


@router.post("/transactions/{transaction_id}/decision", response_model=TransactionResponse)
async def decide_transaction(
    transaction_id: str,
    body: DecisionRequest,
    request: Request,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """
    Approve or reject a Pending transaction.

    Approval applies the balance effect (or plan change) exactly once;
    a second decision on the same record returns 409.
    """
    try:
        txn = await ledger.approve_transaction(transaction_id, body.decision)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return TransactionResponse.model_validate(txn)


@router.post("/deposits", response_model=TransactionResponse, status_code=201)
async def create_deposit(
    body: DepositRequest,
    request: Request,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Request a top-up; it stays Pending until a back-office decision"""
    try:
        txn = await ledger.request_deposit(body.account_id, body.amount_cents, body.method, body.proof_ref)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return TransactionResponse.model_validate(txn)


@router.get("/accounts/{account_id}/transactions", response_model=HistoryResponse)
async def get_history(
    account_id: str,
    request: Request,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """
    Retrieve an account's transactions.

    Returns:
        Transactions of every category, newest first
    """
    try:
        records = await ledger.history(account_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return HistoryResponse(
        account_id=account_id,
        transactions=[TransactionResponse.model_validate(t) for t in records],
    )
