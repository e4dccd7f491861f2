"""FastAPI application factory"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from marketplace_ledger.api.dependencies import build_store
from marketplace_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from marketplace_ledger.api.v1 import accounts, checkout, listings, transactions, withdrawals
from marketplace_ledger.infrastructure.observability.logging import setup_logging
from marketplace_ledger.infrastructure.store.base import DataStore
from marketplace_ledger.services.checkout import CheckoutOrchestrator
from marketplace_ledger.services.ledger import LedgerService
from marketplace_ledger.services.locks import AccountLocks
from marketplace_ledger.services.quota import QuotaService
from marketplace_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app(store: DataStore | None = None) -> FastAPI:
    """Create and configure FastAPI application; the store defaults to the configured backend"""
    store = store or build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await store.close()

    app = FastAPI(
        title="Marketplace Ledger",
        description="Checkout, balances, withdrawals and plan quota enforcement",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # One lock registry shared by every service touching account state
    locks = AccountLocks()
    app.state.store = store
    app.state.quota = QuotaService(store, locks)
    app.state.ledger = LedgerService(store, quota=app.state.quota, locks=locks)
    app.state.checkout = CheckoutOrchestrator(app.state.ledger)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(checkout.router, prefix="/v1", tags=["checkout"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(withdrawals.router, prefix="/v1", tags=["withdrawals"])
    app.include_router(listings.router, prefix="/v1", tags=["listings"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])

    return app


app = create_app()
