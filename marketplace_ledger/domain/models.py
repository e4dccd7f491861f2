"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import List, Optional
from marketplace_ledger.domain.exceptions import AccountBlockedError


class AccountKind(Enum):
    PERSONAL = "personal"
    BUSINESS = "business"


class AccountStatus(Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


@total_ordering
class PlanType(Enum):
    """Subscription tiers, ordered Free < Basic < Professional < Premium"""

    FREE = "free"
    BASIC = "basic"
    PROFESSIONAL = "professional"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return list(PlanType).index(self)

    def __lt__(self, other):
        if not isinstance(other, PlanType):
            return NotImplemented
        return self.rank < other.rank


class PaymentMethod(Enum):
    INSTANT_ELECTRONIC = "instant_electronic"
    INSTANT_CARD = "instant_card"
    MANUAL_TRANSFER = "manual_transfer"

    @property
    def is_instant(self) -> bool:
        """Instant methods settle synchronously; manual transfers wait for proof review"""
        match self:
            case PaymentMethod.INSTANT_ELECTRONIC | PaymentMethod.INSTANT_CARD:
                return True
            case PaymentMethod.MANUAL_TRANSFER:
                return False


class TransactionCategory(Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    PLAN_PAYMENT = "plan_payment"


class TransactionStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class WithdrawalStatus(Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not WithdrawalStatus.PENDING


class Decision(Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ListingCategory(Enum):
    PRODUCT = "product"
    SERVICE = "service"


@dataclass(frozen=True)
class Plan:
    """Catalog entry for a subscription tier; -1 means unlimited"""

    type: PlanType
    monthly_price_cents: int
    max_listings: int
    max_highlights: int
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class CustomLimits:
    """Per-account quota override produced by plan reconciliation"""

    max_listings: int
    max_highlights: int


@dataclass(frozen=True)
class BankDetails:
    bank_name: str
    iban: str
    account_number: str
    beneficiary_name: str

    def describe(self) -> str:
        return f"{self.bank_name} - {self.iban} ({self.beneficiary_name})"


@dataclass(frozen=True)
class Account:
    """Personal or business account holding the two balances"""

    id: str
    name: str
    email: str = ""
    phone: str = ""
    kind: AccountKind = AccountKind.PERSONAL
    is_bank: bool = False
    plan: PlanType = PlanType.FREE
    custom_limits: Optional[CustomLimits] = None
    wallet_balance_cents: int = 0  # earned from sales
    top_up_balance_cents: int = 0  # prepaid for platform spending
    favorites: frozenset[str] = frozenset()
    following: frozenset[str] = frozenset()
    status: AccountStatus = AccountStatus.ACTIVE
    bank_details: Optional[BankDetails] = None

    def ensure_active(self) -> None:
        """Blocked accounts cannot publish, buy or withdraw"""
        if self.status is AccountStatus.BLOCKED:
            raise AccountBlockedError(self.id)


@dataclass(frozen=True)
class Branch:
    """Subordinate location of a business account"""

    id: str
    parent_account_id: str
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""


@dataclass(frozen=True)
class Listing:
    """Published product or service"""

    id: str
    owner_display_name: str
    price_cents: int
    owner_id: Optional[str] = None  # account or branch id; absent on legacy rows
    title: str = ""
    category: ListingCategory = ListingCategory.PRODUCT
    highlighted: bool = False


@dataclass(frozen=True)
class CartLine:
    """Listing plus its price at the moment it was added to the cart"""

    listing: Listing
    price_cents: int


@dataclass
class Cart:
    """Transient buyer cart, owned by the caller"""

    lines: List[CartLine] = field(default_factory=list)

    def add(self, listing: Listing) -> CartLine:
        line = CartLine(listing=listing, price_cents=listing.price_cents)
        self.lines.append(line)
        return line

    def remove(self, index: int) -> CartLine:
        return self.lines.pop(index)

    def clear(self) -> None:
        self.lines.clear()

    @property
    def total_cents(self) -> int:
        return sum(line.price_cents for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


@dataclass(frozen=True)
class Transaction:
    """Ledger record; only status and settled change after creation"""

    id: str
    account_id: str
    amount_cents: int
    category: TransactionCategory
    method: PaymentMethod
    status: TransactionStatus
    timestamp: datetime
    reference: str
    counterparty_name: str = ""
    description: str = ""
    proof_ref: Optional[str] = None
    listing_id: Optional[str] = None
    plan: Optional[PlanType] = None
    settled: bool = False  # balance or plan effect applied


@dataclass(frozen=True)
class WithdrawalRequest:
    id: str
    account_id: str
    amount_cents: int
    status: WithdrawalStatus
    bank_details: str
    requested_at: datetime
    account_name: str = ""
    processed_at: Optional[datetime] = None
    paid_cents: Optional[int] = None
    settled: bool = False  # wallet debited and payout recorded


@dataclass(frozen=True)
class QuotaUsage:
    """Scope-wide usage snapshot against the effective limits"""

    listing_count: int
    highlighted_count: int
    max_listings: int
    max_highlights: int

    @property
    def remaining_listings(self) -> Optional[int]:
        if self.max_listings == -1:
            return None
        return max(0, self.max_listings - self.listing_count)

    @property
    def remaining_highlights(self) -> Optional[int]:
        if self.max_highlights == -1:
            return None
        return max(0, self.max_highlights - self.highlighted_count)
