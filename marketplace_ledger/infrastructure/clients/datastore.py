"""Hosted data store HTTP client (PostgREST-style tables) with retry and idempotency keys"""

import asyncio
import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
import httpx
from marketplace_ledger.config import settings
from marketplace_ledger.domain.exceptions import ExternalStoreError, NotFoundError
from marketplace_ledger.domain.models import Account, Branch, Listing, Transaction, WithdrawalRequest
from marketplace_ledger.infrastructure.observability.metrics import store_failure_counter, store_latency_histogram
from marketplace_ledger.infrastructure.store.base import ChangeFeed, ChangeType, DataStore, Repository
from marketplace_ledger.infrastructure.store.serialization import dump_changes, dump_entity, load_entity

T = TypeVar("T")

logger = logging.getLogger(__name__)


class DataStoreClient:
    """Thin HTTP client for the hosted data store REST API"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.data_store_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.data_store_api_key
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.store_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.store_backoff_base
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._default_headers(),
            transport=transport,
        )

    def _default_headers(self) -> Dict[str, str]:
        headers = {"Prefer": "return=representation"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        params: Dict[str, str] | None = None,
        json: Any = None,
        idempotency_key: str | None = None,
    ) -> Any:
        """
        Send a request with bounded retry.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures/timeouts, never on 4xx
        - Writes carry an Idempotency-Key so a retried create is applied once

        Raises:
            ExternalStoreError: When the store keeps failing or rejects the request
        """
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        attempt = 0
        while True:
            try:
                with store_latency_histogram.time():
                    response = await self._client.request(method, path, params=params, json=json, headers=headers)
                    response.raise_for_status()
                return response.json() if response.content else None

            except httpx.HTTPStatusError as e:
                store_failure_counter.inc()
                if e.response.status_code < 500:
                    raise ExternalStoreError(f"Data store rejected {method} {path}: {e.response.status_code}") from e
                attempt += 1
                if attempt >= self.max_retries:
                    raise ExternalStoreError(f"Data store error: {e.response.status_code}") from e

            except httpx.TimeoutException as e:
                store_failure_counter.inc()
                attempt += 1
                if attempt >= self.max_retries:
                    raise ExternalStoreError(f"Data store timeout after {self.timeout}s") from e

            except httpx.RequestError as e:
                store_failure_counter.inc()
                attempt += 1
                if attempt >= self.max_retries:
                    raise ExternalStoreError(f"Data store unreachable: {e}") from e

            except ValueError as e:
                raise ExternalStoreError(f"Invalid response from data store: {e}") from e

            backoff = self.backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "Retrying data store call",
                extra={"method": method, "path": path, "attempt": attempt, "backoff_seconds": backoff},
            )
            await asyncio.sleep(backoff)

    async def aclose(self) -> None:
        await self._client.aclose()


class RestRepository(Repository[T], Generic[T]):
    """Repository over one REST table"""

    def __init__(self, client: DataStoreClient, entity: str, model: Type[T], table: str, feed: ChangeFeed):
        self.client = client
        self.entity = entity
        self.model = model
        self.table = table
        self.feed = feed

    def _load(self, data: Dict[str, Any]) -> T:
        try:
            return load_entity(self.model, data)
        except ValueError as e:
            raise ExternalStoreError(f"Invalid {self.entity} record from data store: {e}") from e

    async def get_all(self) -> List[T]:
        rows = await self.client.request("GET", f"/{self.table}", params={"select": "*"})
        return [self._load(row) for row in rows or []]

    async def find(self, record_id: str) -> Optional[T]:
        rows = await self.client.request("GET", f"/{self.table}", params={"select": "*", "id": f"eq.{record_id}"})
        return self._load(rows[0]) if rows else None

    async def create(self, record: T) -> T:
        # Ledger records are keyed by their reference; everything else by id
        key = getattr(record, "reference", None) or record.id
        rows = await self.client.request(
            "POST",
            f"/{self.table}",
            json=dump_entity(record, mode="json"),
            idempotency_key=f"{self.table}:{key}:{record.id}",
        )
        created = self._load(rows[0]) if rows else record
        self.feed.publish(self.entity, ChangeType.CREATED, created)
        return created

    async def update(self, record_id: str, **changes: Any) -> T:
        rows = await self.client.request(
            "PATCH",
            f"/{self.table}",
            params={"id": f"eq.{record_id}"},
            json=dump_changes(changes, mode="json"),
        )
        if not rows:
            raise NotFoundError(self.entity, record_id)
        updated = self._load(rows[0])
        self.feed.publish(self.entity, ChangeType.UPDATED, updated)
        return updated

    async def delete(self, record_id: str) -> None:
        rows = await self.client.request("DELETE", f"/{self.table}", params={"id": f"eq.{record_id}"})
        if not rows:
            raise NotFoundError(self.entity, record_id)
        self.feed.publish(self.entity, ChangeType.DELETED, self._load(rows[0]))


class RestDataStore(DataStore):
    """Data store backed by the hosted REST API"""

    def __init__(self, client: DataStoreClient | None = None):
        self.client = client or DataStoreClient()
        feed = ChangeFeed()
        super().__init__(
            accounts=RestRepository(self.client, "Account", Account, "accounts", feed),
            branches=RestRepository(self.client, "Branch", Branch, "branches", feed),
            listings=RestRepository(self.client, "Listing", Listing, "listings", feed),
            transactions=RestRepository(self.client, "Transaction", Transaction, "transactions", feed),
            withdrawals=RestRepository(self.client, "WithdrawalRequest", WithdrawalRequest, "withdrawal_requests", feed),
            feed=feed,
        )

    async def close(self) -> None:
        await self.client.aclose()
