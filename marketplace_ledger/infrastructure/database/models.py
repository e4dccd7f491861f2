"""SQLAlchemy ORM models; column names mirror the domain dataclass fields"""

from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class AccountRow(Base):
    """Personal or business account with its balances and quota override"""

    __tablename__ = "account"

    id = Column(String(64), primary_key=True)
    name = Column(Text, nullable=False, index=True)
    email = Column(Text, nullable=False, default="")
    phone = Column(Text, nullable=False, default="")
    kind = Column(Text, nullable=False, default="personal")
    is_bank = Column(Boolean, nullable=False, default=False)
    plan = Column(Text, nullable=False, default="free")
    custom_limits = Column(JSON, nullable=True)
    wallet_balance_cents = Column(BigInteger, nullable=False, default=0)
    top_up_balance_cents = Column(BigInteger, nullable=False, default=0)
    favorites = Column(JSON, nullable=False, default=list)
    following = Column(JSON, nullable=False, default=list)
    status = Column(Text, nullable=False, default="active")
    bank_details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BranchRow(Base):
    """Branch of a business account"""

    __tablename__ = "branch"

    id = Column(String(64), primary_key=True)
    parent_account_id = Column(String(64), ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ListingRow(Base):
    """Published product or service"""

    __tablename__ = "listing"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=True, index=True)
    owner_display_name = Column(Text, nullable=False)
    title = Column(Text, nullable=False, default="")
    price_cents = Column(BigInteger, nullable=False)
    category = Column(Text, nullable=False, default="product")
    highlighted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionRow(Base):
    """Ledger transaction; (reference, category) is unique so retried checkouts cannot duplicate pairs"""

    __tablename__ = "ledger_transaction"
    __table_args__ = (UniqueConstraint("reference", "category", name="uq_transaction_reference_category"),)

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    category = Column(Text, nullable=False)
    method = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    timestamp = Column(DateTime(timezone=True), nullable=False)
    reference = Column(Text, nullable=False, index=True)
    counterparty_name = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    proof_ref = Column(Text, nullable=True)
    listing_id = Column(String(64), nullable=True)
    plan = Column(Text, nullable=True)
    settled = Column(Boolean, nullable=False, default=False)


class WithdrawalRow(Base):
    """Withdrawal request awaiting back-office processing"""

    __tablename__ = "withdrawal_request"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), nullable=False, index=True)
    account_name = Column(Text, nullable=False, default="")
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    bank_details = Column(Text, nullable=False)
    requested_at = Column(DateTime(timezone=True), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    paid_cents = Column(BigInteger, nullable=True)
    settled = Column(Boolean, nullable=False, default=False)
