"""Data access layer for ledger entities backed by SQLAlchemy"""

import dataclasses
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from marketplace_ledger.domain.exceptions import ExternalStoreError, NotFoundError
from marketplace_ledger.domain.models import Account, Branch, Listing, Transaction, WithdrawalRequest
from marketplace_ledger.infrastructure.database.models import (
    AccountRow,
    Base,
    BranchRow,
    ListingRow,
    TransactionRow,
    WithdrawalRow,
)
from marketplace_ledger.infrastructure.database.session import create_db_engine, create_session_factory
from marketplace_ledger.infrastructure.observability.metrics import store_failure_counter, store_latency_histogram
from marketplace_ledger.infrastructure.store.base import ChangeFeed, ChangeType, DataStore, Repository
from marketplace_ledger.infrastructure.store.serialization import dump_changes, dump_entity, load_entity

T = TypeVar("T")


class SqlRepository(Repository[T], Generic[T]):
    """Repository for one entity table; each call runs in its own committed session"""

    def __init__(self, entity: str, model: Type[T], row_type: type, session_factory: sessionmaker, feed: ChangeFeed):
        self.entity = entity
        self.model = model
        self.row_type = row_type
        self.session_factory = session_factory
        self.feed = feed
        self._fields = [f.name for f in dataclasses.fields(model)]

    def _to_domain(self, row: Any) -> T:
        return load_entity(self.model, {name: getattr(row, name) for name in self._fields})

    async def get_all(self) -> List[T]:
        with self._session() as db:
            return [self._to_domain(row) for row in db.query(self.row_type).all()]

    async def find(self, record_id: str) -> Optional[T]:
        with self._session() as db:
            row = db.get(self.row_type, record_id)
            return self._to_domain(row) if row is not None else None

    async def create(self, record: T) -> T:
        with self._session() as db:
            db.add(self.row_type(**dump_entity(record)))
            db.commit()
        self.feed.publish(self.entity, ChangeType.CREATED, record)
        return record

    async def update(self, record_id: str, **changes: Any) -> T:
        with self._session() as db:
            row = db.get(self.row_type, record_id)
            if row is None:
                raise NotFoundError(self.entity, record_id)
            for name, value in dump_changes(changes).items():
                setattr(row, name, value)
            db.commit()
            updated = self._to_domain(row)
        self.feed.publish(self.entity, ChangeType.UPDATED, updated)
        return updated

    async def delete(self, record_id: str) -> None:
        with self._session() as db:
            row = db.get(self.row_type, record_id)
            if row is None:
                raise NotFoundError(self.entity, record_id)
            record = self._to_domain(row)
            db.delete(row)
            db.commit()
        self.feed.publish(self.entity, ChangeType.DELETED, record)

    def _session(self) -> "_TrackedSession":
        return _TrackedSession(self.session_factory, self.entity)


class _TrackedSession:
    """Session context that times the call and maps driver errors to ExternalStoreError"""

    def __init__(self, session_factory: sessionmaker, entity: str):
        self.session_factory = session_factory
        self.entity = entity
        self.db: Optional[Session] = None
        self._timer = None

    def __enter__(self) -> Session:
        self._timer = store_latency_histogram.time()
        self._timer.__enter__()
        self.db = self.session_factory()
        return self.db

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is not None:
                self.db.rollback()
        finally:
            self.db.close()
            self._timer.__exit__(exc_type, exc, tb)

        if exc_type is not None and issubclass(exc_type, SQLAlchemyError):
            store_failure_counter.inc()
            raise ExternalStoreError(f"Database error on {self.entity}: {exc}") from exc
        return False


class SqlDataStore(DataStore):
    """Data store over a relational database"""

    def __init__(self, database_url: str, create_schema: bool = False):
        self.engine = create_db_engine(database_url)
        if create_schema:
            Base.metadata.create_all(bind=self.engine)
        session_factory = create_session_factory(self.engine)
        feed = ChangeFeed()
        tables: Dict[str, tuple] = {
            "accounts": ("Account", Account, AccountRow),
            "branches": ("Branch", Branch, BranchRow),
            "listings": ("Listing", Listing, ListingRow),
            "transactions": ("Transaction", Transaction, TransactionRow),
            "withdrawals": ("WithdrawalRequest", WithdrawalRequest, WithdrawalRow),
        }
        super().__init__(
            feed=feed,
            **{
                attr: SqlRepository(entity, model, row_type, session_factory, feed)
                for attr, (entity, model, row_type) in tables.items()
            },
        )

    async def close(self) -> None:
        self.engine.dispose()
