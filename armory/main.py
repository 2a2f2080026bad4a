"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from armory.api import auth, owner, payment
from armory.config import get_settings
from armory.database import init_db
from armory.errors import AccountError, account_error_handler

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.database_url.startswith("sqlite"):
        init_db()
    app.state.started_at = datetime.now(UTC)
    logger.info(f"Armory API starting ({settings.environment})")
    yield
    logger.info("Armory API stopped")


app = FastAPI(
    title="Armory API",
    description="Accounts, sessions and subscriptions for The Armory",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_exception_handler(AccountError, account_error_handler)

# Register routers
app.include_router(auth.router)
app.include_router(owner.router)
app.include_router(payment.router)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    started_at: datetime = request.app.state.started_at
    return {
        "status": "healthy",
        "environment": settings.environment,
        "uptime_seconds": int((datetime.now(UTC) - started_at).total_seconds()),
    }
