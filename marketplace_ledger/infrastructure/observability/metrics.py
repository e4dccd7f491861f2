"""Prometheus metrics for ledger activity, quota enforcement and data store health"""

from prometheus_client import Counter, Histogram

# Ledger metrics
transaction_counter = Counter(
    "ledger_transactions_total",
    "Ledger transactions recorded",
    ["category", "status"],
)

balance_credit_counter = Counter(
    "ledger_balance_credits_cents_total",
    "Amounts credited to account balances",
    ["balance"],  # wallet | top_up
)

withdrawal_counter = Counter(
    "ledger_withdrawals_total",
    "Withdrawal requests leaving Pending",
    ["outcome"],  # processed | rejected
)

state_error_counter = Counter(
    "ledger_state_errors_total",
    "Transitions attempted on terminal records",
)

# Quota metrics
quota_rejection_counter = Counter(
    "quota_rejections_total",
    "Listing operations refused by plan limits",
    ["limit"],  # listings | highlights
)

plan_change_counter = Counter(
    "quota_plan_changes_total",
    "Plan changes applied",
    ["plan"],
)

# Data store metrics
store_latency_histogram = Histogram(
    "data_store_latency_seconds",
    "Data store request time",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

store_failure_counter = Counter(
    "data_store_failures_total",
    "Failed data store calls (including retried attempts)",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transaction(category: str, status: str) -> None:
    transaction_counter.labels(category=category, status=status).inc()


def record_credit(balance: str, amount_cents: int) -> None:
    """Track credited amounts per balance kind"""
    if amount_cents > 0:
        balance_credit_counter.labels(balance=balance).inc(amount_cents)
