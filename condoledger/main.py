"""Condo Ledger FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from condoledger.api.errors import billing_error_handler
from condoledger.api.routes import billing, payments, soa, units
from condoledger.config import settings
from condoledger.models import Base
from condoledger.services import engine
from condoledger.services.errors import BillingError
from condoledger.services.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    setup_logging()
    # Startup: Initialize database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.api_title,
    description="Billing and payment ledger engine for condominium corporations",
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_exception_handler(BillingError, billing_error_handler)

# Include routers
app.include_router(billing.router)
app.include_router(payments.router)
app.include_router(soa.router)
app.include_router(units.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.info("Health check called")
    return {"status": "ok"}


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
