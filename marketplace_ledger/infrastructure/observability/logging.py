"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

logger = logging.getLogger("marketplace_ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "marketplace-ledger"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_checkout(
    reference: str,
    buyer_id: str,
    method: str,
    transaction_count: int,
    skipped_lines: int,
    total_cents: int,
) -> None:
    """Log structured checkout outcome"""
    logger.info(
        "Checkout recorded",
        extra={
            "reference": reference,
            "buyer_id": buyer_id,
            "step": "checkout_complete",
            "method": method,
            "transaction_count": transaction_count,
            "skipped_lines": skipped_lines,
            "total_cents": total_cents,
        },
    )


def log_transition(
    record_kind: str,
    record_id: str,
    account_id: str,
    from_status: str,
    to_status: str,
    balance_delta_cents: Optional[int] = None,
) -> None:
    """Log a ledger record leaving Pending"""
    logger.info(
        f"{record_kind} {to_status}",
        extra={
            "record_kind": record_kind,
            "record_id": record_id,
            "account_id": account_id,
            "step": "status_transition",
            "from_status": from_status,
            "to_status": to_status,
            "balance_delta_cents": balance_delta_cents,
        },
    )


def log_quota_rejection(account_id: str, limit_name: str, limit: int) -> None:
    logger.warning(
        "Quota limit reached",
        extra={
            "account_id": account_id,
            "step": "quota_check",
            "limit_name": limit_name,
            "limit": limit,
        },
    )
