"""Checkout orchestrator - turns a buyer's cart into ledger records"""

import logging
from typing import List, Optional
from marketplace_ledger.domain.exceptions import EmptyCartError
from marketplace_ledger.domain.models import Cart, PaymentMethod, Transaction
from marketplace_ledger.services.ledger import LedgerService

logger = logging.getLogger(__name__)


class CheckoutOrchestrator:
    """Validates the cart, records it through the ledger, then empties it"""

    def __init__(self, ledger: LedgerService):
        self.ledger = ledger

    async def checkout(
        self,
        cart: Cart,
        buyer_account_id: str,
        method: PaymentMethod,
        proof_ref: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Check out every line of the cart as one purchase.

        The cart is cleared only once all records are written; on any error
        it is left untouched so the buyer can retry with the same reference.

        Args:
            cart: Lines to buy, with prices fixed when they were added
            buyer_account_id: Paying account
            method: Instant methods settle immediately, manual transfers stay Pending
            proof_ref: Payment proof for manual transfers
            reference: Retry key; generated when absent

        Returns:
            Records created (or found again, on retry) for the checkout

        Raises:
            EmptyCartError: Cart has no lines
            AccountBlockedError: Buyer is blocked
        """
        if cart.is_empty:
            raise EmptyCartError()

        buyer = await self.ledger.store.accounts.get(buyer_account_id)
        buyer.ensure_active()

        records = await self.ledger.record_checkout(
            list(cart.lines),
            buyer.id,
            method,
            proof_ref=proof_ref,
            reference=reference,
        )
        cart.clear()
        return records
