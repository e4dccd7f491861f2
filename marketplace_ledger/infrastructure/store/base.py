"""Data store contract: async CRUD per entity plus change notifications"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar
from marketplace_ledger.domain.exceptions import NotFoundError
from marketplace_ledger.domain.models import Account, Branch, Listing, Transaction, WithdrawalRequest

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


ChangeCallback = Callable[[ChangeType, Any], None]


class ChangeFeed:
    """Per-entity change notifications for callers that keep cached views"""

    def __init__(self):
        self._subscribers: Dict[str, List[ChangeCallback]] = defaultdict(list)

    def subscribe(self, entity: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it"""
        self._subscribers[entity].append(callback)
        return lambda: self._subscribers[entity].remove(callback)

    def publish(self, entity: str, change: ChangeType, record: Any) -> None:
        for callback in list(self._subscribers[entity]):
            try:
                callback(change, record)
            except Exception:
                # A broken subscriber must not fail the write that already happened
                logger.exception("Change subscriber failed", extra={"entity": entity})


class Repository(ABC, Generic[T]):
    """CRUD access to one entity type"""

    entity: str
    model: Type[T]

    @abstractmethod
    async def get_all(self) -> List[T]:
        ...

    @abstractmethod
    async def find(self, record_id: str) -> Optional[T]:
        ...

    @abstractmethod
    async def create(self, record: T) -> T:
        ...

    @abstractmethod
    async def update(self, record_id: str, **changes: Any) -> T:
        """Apply a partial update and return the stored record"""

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        ...

    async def get(self, record_id: str) -> T:
        """Fetch a record or raise NotFoundError"""
        record = await self.find(record_id)
        if record is None:
            raise NotFoundError(self.entity, record_id)
        return record


class DataStore:
    """Bundle of repositories, one per entity the engine reads or writes"""

    def __init__(
        self,
        accounts: Repository[Account],
        branches: Repository[Branch],
        listings: Repository[Listing],
        transactions: Repository[Transaction],
        withdrawals: Repository[WithdrawalRequest],
        feed: Optional[ChangeFeed] = None,
    ):
        self.accounts = accounts
        self.branches = branches
        self.listings = listings
        self.transactions = transactions
        self.withdrawals = withdrawals
        self.feed = feed or ChangeFeed()

    async def close(self) -> None:
        """Release connections held by the backend"""
        return None
