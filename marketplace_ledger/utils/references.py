"""Identifier, reference code and timestamp utilities"""

import secrets
import uuid
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def generate_reference(prefix: str = "REF") -> str:
    """Human-readable receipt code, e.g. REF-7F3A9C21"""
    return f"{prefix}-{secrets.token_hex(4).upper()}"


def line_reference(checkout_reference: str, line_number: int) -> str:
    """Reference shared by the SALE/PURCHASE pair of one cart line (1-based)"""
    return f"{checkout_reference}-{line_number}"


def transaction_id(reference: str, category: str) -> str:
    """Deterministic id for the ledger record of a reference/category pair"""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"ledger:{reference}:{category}"))
