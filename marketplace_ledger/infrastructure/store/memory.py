"""In-process data store backend (default backend, used by the test suite)"""

import dataclasses
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from marketplace_ledger.domain.exceptions import ExternalStoreError, NotFoundError
from marketplace_ledger.domain.models import Account, Branch, Listing, Transaction, WithdrawalRequest
from marketplace_ledger.infrastructure.store.base import ChangeFeed, ChangeType, DataStore, Repository

T = TypeVar("T")


class InMemoryRepository(Repository[T], Generic[T]):
    """Dict-backed repository; records are frozen dataclasses so they are stored as-is"""

    def __init__(self, entity: str, model: Type[T], feed: ChangeFeed):
        self.entity = entity
        self.model = model
        self.feed = feed
        self._records: Dict[str, T] = {}

    async def get_all(self) -> List[T]:
        return list(self._records.values())

    async def find(self, record_id: str) -> Optional[T]:
        return self._records.get(record_id)

    async def create(self, record: T) -> T:
        if record.id in self._records:
            raise ExternalStoreError(f"{self.entity} {record.id} already exists")
        self._records[record.id] = record
        self.feed.publish(self.entity, ChangeType.CREATED, record)
        return record

    async def update(self, record_id: str, **changes: Any) -> T:
        existing = self._records.get(record_id)
        if existing is None:
            raise NotFoundError(self.entity, record_id)
        updated = dataclasses.replace(existing, **changes)
        self._records[record_id] = updated
        self.feed.publish(self.entity, ChangeType.UPDATED, updated)
        return updated

    async def delete(self, record_id: str) -> None:
        record = self._records.pop(record_id, None)
        if record is None:
            raise NotFoundError(self.entity, record_id)
        self.feed.publish(self.entity, ChangeType.DELETED, record)


class InMemoryDataStore(DataStore):
    def __init__(self):
        feed = ChangeFeed()
        super().__init__(
            accounts=InMemoryRepository("Account", Account, feed),
            branches=InMemoryRepository("Branch", Branch, feed),
            listings=InMemoryRepository("Listing", Listing, feed),
            transactions=InMemoryRepository("Transaction", Transaction, feed),
            withdrawals=InMemoryRepository("WithdrawalRequest", WithdrawalRequest, feed),
            feed=feed,
        )
