"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainException):
    """Operation rejected by a business rule; nothing was written"""

    pass


class QuotaExceededError(ValidationError):
    """Plan limit for listings or highlights reached"""

    def __init__(self, limit_name: str, limit: int):
        self.limit_name = limit_name
        self.limit = limit
        super().__init__(f"Limit of {limit} {limit_name} reached. Upgrade your plan to add more.")


class InsufficientFundsError(ValidationError):
    """Wallet balance does not cover the requested amount"""

    def __init__(self, balance_cents: int, amount_cents: int):
        self.balance_cents = balance_cents
        self.amount_cents = amount_cents
        super().__init__(
            f"Insufficient wallet balance: {balance_cents} available, {amount_cents} requested"
        )


class MissingBankDetailsError(ValidationError):
    """Withdrawal requested without a destination bank account"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__("Add your bank details before requesting a withdrawal")


class AccountBlockedError(ValidationError):
    """Account is blocked and cannot transact or publish"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is blocked")


class EmptyCartError(ValidationError):
    """Checkout attempted with no lines"""

    def __init__(self):
        super().__init__("Cart is empty")


class StateError(DomainException):
    """Transition attempted on a record that is already terminal"""

    def __init__(self, record_id: str, status: str):
        self.record_id = record_id
        self.status = status
        super().__init__(f"Record {record_id} is already {status}")


class NotFoundError(DomainException):
    """Referenced account, branch, listing or ledger record does not exist"""

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} {record_id} not found")


class ExternalStoreError(DomainException):
    """Data store call failed or timed out; the write may not have happened"""

    pass
