"""Ledger engine - transactions, withdrawals and the balance effects of their transitions"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional
from marketplace_ledger.config import settings
from marketplace_ledger.domain.exceptions import (
    ExternalStoreError,
    InsufficientFundsError,
    MissingBankDetailsError,
    StateError,
    ValidationError,
)
from marketplace_ledger.domain.hierarchy import resolve_owner_account
from marketplace_ledger.domain.models import (
    CartLine,
    Decision,
    PaymentMethod,
    Transaction,
    TransactionCategory,
    TransactionStatus,
    WithdrawalRequest,
    WithdrawalStatus,
)
from marketplace_ledger.domain.plans import plan_type_for_listing
from marketplace_ledger.infrastructure.observability.logging import log_checkout, log_transition
from marketplace_ledger.infrastructure.observability.metrics import (
    record_credit,
    record_transaction,
    state_error_counter,
    withdrawal_counter,
)
from marketplace_ledger.infrastructure.store.base import DataStore
from marketplace_ledger.services.hierarchy import HierarchyResolver
from marketplace_ledger.services.locks import AccountLocks
from marketplace_ledger.services.quota import QuotaService
from marketplace_ledger.utils.references import (
    generate_reference,
    line_reference,
    new_id,
    transaction_id,
    utc_now,
)

logger = logging.getLogger(__name__)

PLATFORM_NAME = "Platform"

# Checkout pairs: approving or rejecting one side moves its partner too
_PARTNER = {
    TransactionCategory.SALE: TransactionCategory.PURCHASE,
    TransactionCategory.PURCHASE: TransactionCategory.SALE,
}

_CREDITING = {TransactionCategory.SALE, TransactionCategory.DEPOSIT}


@dataclass(frozen=True)
class _PlannedLine:
    """Records one cart line will produce; built before anything is written"""

    records: tuple[Transaction, ...]
    line: CartLine


class LedgerService:
    """
    Creates ledger records and moves them out of Pending.

    Balance effects are applied exactly once per record: under the account
    lock the record is first claimed by writing `settled`, then the balance
    is moved. A record that is already settled is never applied again.
    """

    def __init__(
        self,
        store: DataStore,
        quota: QuotaService | None = None,
        locks: AccountLocks | None = None,
        resolver: HierarchyResolver | None = None,
        overdraft_policy: str | None = None,
        validate_withdrawal_on_request: bool | None = None,
        reference_prefix: str | None = None,
    ):
        self.store = store
        self.locks = locks or (quota.locks if quota else AccountLocks())
        self.resolver = resolver or HierarchyResolver(store)
        self.quota = quota or QuotaService(store, self.locks, self.resolver)
        self.overdraft_policy = overdraft_policy or settings.withdrawal_overdraft_policy
        self.validate_withdrawal_on_request = (
            settings.validate_withdrawal_on_request
            if validate_withdrawal_on_request is None
            else validate_withdrawal_on_request
        )
        self.reference_prefix = reference_prefix or settings.reference_prefix

    async def plan_checkout(
        self,
        lines: Iterable[CartLine],
        buyer_account_id: str,
        method: PaymentMethod,
        reference: str,
        proof_ref: Optional[str] = None,
    ) -> List[_PlannedLine]:
        """
        Resolve every line into the records it will produce, without writing.

        Any NotFoundError/ValidationError here aborts the whole checkout
        before a single record exists.
        """
        buyer = await self.store.accounts.get(buyer_account_id)
        buyer.ensure_active()
        accounts = await self.store.accounts.get_all()
        branches = await self.store.branches.get_all()

        status = TransactionStatus.APPROVED if method.is_instant else TransactionStatus.PENDING
        timestamp = utc_now()
        planned: List[_PlannedLine] = []

        for number, line in enumerate(lines, start=1):
            ref = line_reference(reference, number)
            listing = line.listing
            plan_type = plan_type_for_listing(listing.id)
            if plan_type is not None and line.price_cents <= 0:
                raise ValidationError(
                    f"The {plan_type.value} plan has no price and cannot be bought; change the plan instead"
                )
            if line.price_cents <= 0:
                logger.info("Skipping free cart line", extra={"reference": ref, "listing_id": listing.id})
                continue

            common = dict(
                amount_cents=line.price_cents,
                method=method,
                status=status,
                timestamp=timestamp,
                reference=ref,
                proof_ref=proof_ref,
                listing_id=listing.id,
                description=listing.title,
            )

            if plan_type is not None:
                payment = Transaction(
                    id=transaction_id(ref, TransactionCategory.PLAN_PAYMENT.value),
                    account_id=buyer.id,
                    category=TransactionCategory.PLAN_PAYMENT,
                    counterparty_name=PLATFORM_NAME,
                    plan=plan_type,
                    **common,
                )
                planned.append(_PlannedLine(records=(payment,), line=line))
                continue

            payee = resolve_owner_account(listing, accounts, branches)
            if payee is None:
                logger.warning(
                    "Skipping cart line without resolvable owner",
                    extra={"reference": ref, "listing_id": listing.id, "owner_id": listing.owner_id},
                )
                continue

            sale = Transaction(
                id=transaction_id(ref, TransactionCategory.SALE.value),
                account_id=payee.id,
                category=TransactionCategory.SALE,
                counterparty_name=buyer.name,
                **common,
            )
            purchase = Transaction(
                id=transaction_id(ref, TransactionCategory.PURCHASE.value),
                account_id=buyer.id,
                category=TransactionCategory.PURCHASE,
                counterparty_name=payee.name,
                **common,
            )
            planned.append(_PlannedLine(records=(sale, purchase), line=line))

        return planned

    async def record_checkout(
        self,
        lines: Iterable[CartLine],
        buyer_account_id: str,
        method: PaymentMethod,
        proof_ref: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Turn cart lines into paired SALE/PURCHASE records (PLAN_PAYMENT for plan lines).

        Flow:
        1. Resolve payees and build every record (no writes)
        2. Create each record unless its deterministic id already exists
        3. For instant methods, settle: credit the seller's wallet, or
           change the buyer's plan for PLAN_PAYMENT lines

        The buyer is never debited. Passing the same reference again
        (a retry after a failure) neither duplicates records nor credits twice.
        """
        lines = list(lines)
        reference = reference or generate_reference(self.reference_prefix)
        planned = await self.plan_checkout(lines, buyer_account_id, method, reference, proof_ref)

        recorded: List[Transaction] = []
        for item in planned:
            for record in item.records:
                stored = await self.store.transactions.find(record.id)
                if stored is None:
                    stored = await self.store.transactions.create(record)
                    record_transaction(record.category.value, record.status.value)
                if method.is_instant:
                    stored = await self.settle(stored.id)
                recorded.append(stored)

        log_checkout(
            reference=reference,
            buyer_id=buyer_account_id,
            method=method.value,
            transaction_count=len(recorded),
            skipped_lines=len(lines) - len(planned),
            total_cents=sum(item.line.price_cents for item in planned),
        )
        return recorded

    async def settle(self, transaction_id_: str) -> Transaction:
        """
        Apply the effect of an approved, unsettled record, exactly once.

        SALE credits the payee's wallet, DEPOSIT credits the top-up balance,
        PLAN_PAYMENT changes the account's plan and WITHDRAWAL debits the
        wallet. PURCHASE records carry no effect.
        """
        txn = await self.store.transactions.get(transaction_id_)
        async with self.locks.hold(txn.account_id):
            return await self._settle_held(transaction_id_)

    async def _settle_held(self, transaction_id_: str) -> Transaction:
        # Caller holds the account lock
        txn = await self.store.transactions.get(transaction_id_)
        if txn.status is not TransactionStatus.APPROVED or txn.settled:
            return txn

        # The claim is written before the effect; a failed effect releases it
        claimed = await self.store.transactions.update(txn.id, settled=True)
        try:
            await self._apply_effect(txn)
        except Exception:
            await self._release_claim(txn)
            raise
        return claimed

    async def _apply_effect(self, txn: Transaction) -> None:
        match txn.category:
            case TransactionCategory.SALE:
                await self._credit(txn.account_id, wallet_cents=txn.amount_cents)
            case TransactionCategory.DEPOSIT:
                await self._credit(txn.account_id, top_up_cents=txn.amount_cents)
            case TransactionCategory.PLAN_PAYMENT:
                if txn.plan is not None:
                    await self.quota.apply_plan_change(txn.account_id, txn.plan)
            case TransactionCategory.WITHDRAWAL:
                await self._debit(txn.account_id, txn.amount_cents)
            case TransactionCategory.PURCHASE:
                pass

    async def _release_claim(self, txn: Transaction) -> None:
        try:
            await self.store.transactions.update(txn.id, settled=False)
        except ExternalStoreError:
            # Left settled without its effect; needs manual reconciliation
            logger.exception(
                "Could not release settlement claim",
                extra={"transaction_id": txn.id, "account_id": txn.account_id},
            )

    async def _credit(self, account_id: str, wallet_cents: int = 0, top_up_cents: int = 0) -> None:
        # Caller holds the account lock
        account = await self.store.accounts.get(account_id)
        await self.store.accounts.update(
            account_id,
            wallet_balance_cents=account.wallet_balance_cents + wallet_cents,
            top_up_balance_cents=account.top_up_balance_cents + top_up_cents,
        )
        record_credit("wallet", wallet_cents)
        record_credit("top_up", top_up_cents)

    async def _debit(self, account_id: str, wallet_cents: int) -> None:
        # Caller holds the account lock; the wallet never goes below zero
        account = await self.store.accounts.get(account_id)
        await self.store.accounts.update(
            account_id, wallet_balance_cents=max(0, account.wallet_balance_cents - wallet_cents)
        )

    async def approve_transaction(self, transaction_id_: str, decision: Decision) -> Transaction:
        """
        Move a Pending transaction to Approved or Rejected.

        Checkout pairs move together: deciding the SALE also decides its
        PURCHASE and vice versa. Rejection never touches balances.

        Raises:
            StateError: The transaction is already Approved or Rejected
        """
        txn = await self.store.transactions.get(transaction_id_)
        partner = await self._partner_of(txn)
        account_ids = [txn.account_id] + ([partner.account_id] if partner else [])

        async with self.locks.hold(*account_ids):
            txn = await self.store.transactions.get(transaction_id_)
            if txn.status.is_terminal:
                state_error_counter.inc()
                raise StateError(txn.id, txn.status.value)

            new_status = {
                Decision.APPROVE: TransactionStatus.APPROVED,
                Decision.REJECT: TransactionStatus.REJECTED,
            }[decision]
            moved = [txn]
            if partner is not None:
                partner = await self.store.transactions.get(partner.id)
                if not partner.status.is_terminal:
                    moved.append(partner)

            for record in moved:
                await self.store.transactions.update(record.id, status=new_status)
                record_transaction(record.category.value, new_status.value)

        # Effects run after the status locks are released: settle() and
        # plan changes take the account locks themselves
        results = []
        for record in moved:
            updated = await self.settle(record.id)
            log_transition(
                "Transaction",
                updated.id,
                updated.account_id,
                TransactionStatus.PENDING.value,
                new_status.value,
                updated.amount_cents if updated.settled and record.category in _CREDITING else None,
            )
            results.append(updated)
        return results[0]

    async def _partner_of(self, txn: Transaction) -> Optional[Transaction]:
        partner_category = _PARTNER.get(txn.category)
        if partner_category is None:
            return None
        return await self.store.transactions.find(transaction_id(txn.reference, partner_category.value))

    async def request_deposit(
        self,
        account_id: str,
        amount_cents: int,
        method: PaymentMethod,
        proof_ref: Optional[str] = None,
    ) -> Transaction:
        """Record a top-up; always Pending, whatever the method, until approved"""
        if amount_cents <= 0:
            raise ValidationError("Deposit amount must be positive")
        account = await self.store.accounts.get(account_id)
        account.ensure_active()

        reference = generate_reference(self.reference_prefix)
        deposit = Transaction(
            id=transaction_id(reference, TransactionCategory.DEPOSIT.value),
            account_id=account.id,
            amount_cents=amount_cents,
            category=TransactionCategory.DEPOSIT,
            method=method,
            status=TransactionStatus.PENDING,
            timestamp=utc_now(),
            reference=reference,
            counterparty_name=PLATFORM_NAME,
            description="Balance top-up",
            proof_ref=proof_ref,
        )
        created = await self.store.transactions.create(deposit)
        record_transaction(deposit.category.value, deposit.status.value)
        return created

    async def request_withdrawal(
        self,
        account_id: str,
        amount_cents: int,
        bank_details_text: Optional[str] = None,
    ) -> WithdrawalRequest:
        """
        Ask for earned funds to be paid out.

        The destination is the given text, or the bank details on file.
        The balance is only checked here when validate_withdrawal_on_request
        is set; it is always enforced at approval.
        """
        if amount_cents <= 0:
            raise ValidationError("Withdrawal amount must be positive")
        account = await self.store.accounts.get(account_id)
        account.ensure_active()

        destination = (bank_details_text or "").strip()
        if not destination and account.bank_details is not None:
            destination = account.bank_details.describe()
        if not destination:
            raise MissingBankDetailsError(account_id)

        if self.validate_withdrawal_on_request and amount_cents > account.wallet_balance_cents:
            raise InsufficientFundsError(account.wallet_balance_cents, amount_cents)

        withdrawal = WithdrawalRequest(
            id=new_id(),
            account_id=account.id,
            account_name=account.name,
            amount_cents=amount_cents,
            status=WithdrawalStatus.PENDING,
            bank_details=destination,
            requested_at=utc_now(),
        )
        return await self.store.withdrawals.create(withdrawal)

    async def process_withdrawal(self, withdrawal_id: str, decision: Decision) -> WithdrawalRequest:
        """
        Pay out (Processed) or decline (Rejected) a Pending withdrawal.

        Approval first moves the request to Processed with the amount to pay,
        then debits the wallet through a WITHDRAWAL payout record settled like
        any other. When the amount exceeds the balance, the "clamp" policy
        pays what is there and leaves the wallet at zero; the "reject" policy
        raises InsufficientFundsError and leaves the request Pending.

        Approving a request that is Processed but not yet settled (an earlier
        approval failed part way) finishes the payout instead of raising.

        Raises:
            StateError: The withdrawal was already rejected, or processed and settled
        """
        withdrawal = await self.store.withdrawals.get(withdrawal_id)
        async with self.locks.hold(withdrawal.account_id):
            withdrawal = await self.store.withdrawals.get(withdrawal_id)
            resumable = (
                decision is Decision.APPROVE
                and withdrawal.status is WithdrawalStatus.PROCESSED
                and not withdrawal.settled
            )
            if withdrawal.status.is_terminal and not resumable:
                state_error_counter.inc()
                raise StateError(withdrawal.id, withdrawal.status.value)

            match decision:
                case Decision.REJECT:
                    updated = await self.store.withdrawals.update(
                        withdrawal.id, status=WithdrawalStatus.REJECTED, processed_at=utc_now()
                    )
                    withdrawal_counter.labels(outcome="rejected").inc()
                    log_transition("WithdrawalRequest", updated.id, updated.account_id, "pending", "rejected")
                    return updated

                case Decision.APPROVE:
                    if withdrawal.status is WithdrawalStatus.PENDING:
                        withdrawal = await self._mark_processed(withdrawal)
                    else:
                        logger.info(
                            "Resuming unsettled withdrawal",
                            extra={"withdrawal_id": withdrawal.id, "account_id": withdrawal.account_id},
                        )
                    updated = await self._settle_withdrawal(withdrawal)

            withdrawal_counter.labels(outcome="processed").inc()
            log_transition(
                "WithdrawalRequest", updated.id, updated.account_id, "pending", "processed", -(updated.paid_cents or 0)
            )
            return updated

    async def _mark_processed(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        # Caller holds the account lock
        account = await self.store.accounts.get(withdrawal.account_id)
        balance = account.wallet_balance_cents
        if withdrawal.amount_cents > balance and self.overdraft_policy == "reject":
            raise InsufficientFundsError(balance, withdrawal.amount_cents)

        return await self.store.withdrawals.update(
            withdrawal.id,
            status=WithdrawalStatus.PROCESSED,
            processed_at=utc_now(),
            paid_cents=min(withdrawal.amount_cents, balance),
        )

    async def _settle_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        # Caller holds the account lock. Each step is a no-op when already done.
        if withdrawal.paid_cents:
            payout = await self._payout_record(withdrawal)
            await self._settle_held(payout.id)
        return await self.store.withdrawals.update(withdrawal.id, settled=True)

    async def _payout_record(self, withdrawal: WithdrawalRequest) -> Transaction:
        """Mirror a processed withdrawal in the account's transaction history"""
        reference = f"{self.reference_prefix}-WD-{withdrawal.id}"
        payout_id = transaction_id(reference, TransactionCategory.WITHDRAWAL.value)
        existing = await self.store.transactions.find(payout_id)
        if existing is not None:
            return existing

        payout = Transaction(
            id=payout_id,
            account_id=withdrawal.account_id,
            amount_cents=withdrawal.paid_cents,
            category=TransactionCategory.WITHDRAWAL,
            method=PaymentMethod.MANUAL_TRANSFER,
            status=TransactionStatus.APPROVED,
            timestamp=withdrawal.processed_at or utc_now(),
            reference=reference,
            counterparty_name=withdrawal.bank_details,
            description="Withdrawal",
        )
        created = await self.store.transactions.create(payout)
        record_transaction(payout.category.value, payout.status.value)
        return created

    async def history(self, account_id: str) -> List[Transaction]:
        """Transactions of an account, newest first"""
        await self.store.accounts.get(account_id)
        records = [t for t in await self.store.transactions.get_all() if t.account_id == account_id]
        return sorted(records, key=lambda t: t.timestamp, reverse=True)

    async def withdrawals_for(self, account_id: str) -> List[WithdrawalRequest]:
        records = [w for w in await self.store.withdrawals.get_all() if w.account_id == account_id]
        return sorted(records, key=lambda w: w.requested_at, reverse=True)

