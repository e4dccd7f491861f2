"""Dependency injection for FastAPI endpoints"""

import logging
from fastapi import HTTPException, Request
from marketplace_ledger.config import Settings, settings
from marketplace_ledger.domain.exceptions import (
    DomainException,
    ExternalStoreError,
    NotFoundError,
    StateError,
    ValidationError,
)
from marketplace_ledger.infrastructure.clients.datastore import DataStoreClient, RestDataStore
from marketplace_ledger.infrastructure.database.repositories import SqlDataStore
from marketplace_ledger.infrastructure.store.base import DataStore
from marketplace_ledger.infrastructure.store.memory import InMemoryDataStore
from marketplace_ledger.services.checkout import CheckoutOrchestrator
from marketplace_ledger.services.ledger import LedgerService
from marketplace_ledger.services.quota import QuotaService


def build_store(config: Settings = settings) -> DataStore:
    """Instantiate the configured data store backend"""
    match config.data_store_backend:
        case "sql":
            return SqlDataStore(config.database_url)
        case "rest":
            return RestDataStore(DataStoreClient(config.data_store_url, config.data_store_api_key))
        case _:
            return InMemoryDataStore()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def get_quota_service(request: Request) -> QuotaService:
    return request.app.state.quota


def get_ledger_service(request: Request) -> LedgerService:
    return request.app.state.ledger


def get_checkout(request: Request) -> CheckoutOrchestrator:
    return request.app.state.checkout


def to_http_exception(error: DomainException, request_id: str) -> HTTPException:
    """
    Map a domain error to its HTTP status.

    ValidationError -> 422, StateError -> 409, NotFoundError -> 404,
    ExternalStoreError -> 503.
    """
    match error:
        case ValidationError():
            logging.warning(f"Rejected: {error.message}", extra={"request_id": request_id})
            return HTTPException(status_code=422, detail=error.message)
        case StateError():
            logging.warning(f"Conflict: {error.message}", extra={"request_id": request_id})
            return HTTPException(status_code=409, detail=error.message)
        case NotFoundError():
            return HTTPException(status_code=404, detail=error.message)
        case ExternalStoreError():
            logging.error(f"Data store error: {error.message}", extra={"request_id": request_id})
            return HTTPException(status_code=503, detail="Data store unavailable")
        case _:
            logging.error(f"Unexpected domain error: {error.message}", extra={"request_id": request_id})
            return HTTPException(status_code=500, detail="Internal server error")
