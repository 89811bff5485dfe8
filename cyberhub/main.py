"""
CyberHub - FastAPI Application

Main entry point for the backend API.
Provides endpoints for entitlements, the resource catalog, bookmarks and
subscription billing.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from cyberhub.config.settings import Settings, get_settings
from cyberhub.infrastructure.exceptions import (
    CyberHubError,
    ValidationError,
    AccessDeniedError,
    DatabaseError,
    NotFoundError,
    DuplicateError,
    ConcurrentUpdateError,
    ConfigurationError,
)


logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: builds and tears down shared clients."""
    from cyberhub.api.dependencies import build_jwks_client
    from cyberhub.infrastructure.db.database import DatabaseManager
    from cyberhub.infrastructure.payments.stripe_service import StripeService

    settings: Settings = app.state.settings
    logger.info(f"CyberHub Backend starting in {settings.environment} mode...")

    app.state.jwks_client = build_jwks_client(settings)

    app.state.db = None
    if settings.database_configured:
        app.state.db = DatabaseManager(settings)
        try:
            await app.state.db.ping()
            logger.info("Database connection pool initialized")
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database not reachable at startup: {e}")
    else:
        logger.warning("Database not configured; data endpoints will answer 503")

    app.state.stripe = None
    if settings.stripe_secret_key:
        app.state.stripe = StripeService.from_settings(settings)
        logger.info("Stripe client initialized")
    else:
        logger.warning("STRIPE_SECRET_KEY not set; billing endpoints will answer 503")

    yield

    if app.state.db is not None:
        await app.state.db.close()
        logger.info("Database connection pool closed")

    logger.info("CyberHub Backend shutting down...")


# ============================================================================
# Exception Handlers
# ============================================================================

def _error_response(status_code: int):
    async def handler(request: Request, exc: CyberHubError) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=exc.to_dict())
    return handler


async def database_error_handler(request: Request, exc: DatabaseError):
    """Handle database errors without leaking details."""
    logger.error(f"Database error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


async def general_error_handler(request: Request, exc: CyberHubError):
    """Handle all other application errors."""
    logger.error(f"Unhandled application error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _error_response(400))
    app.add_exception_handler(AccessDeniedError, _error_response(403))
    app.add_exception_handler(NotFoundError, _error_response(404))
    app.add_exception_handler(DuplicateError, _error_response(409))
    app.add_exception_handler(ConcurrentUpdateError, _error_response(409))
    app.add_exception_handler(ConfigurationError, _error_response(503))
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(CyberHubError, general_error_handler)


# ============================================================================
# App Factory
# ============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="CyberHub",
        description="Cybersecurity learning platform API",
        version="1.0.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings

    # CORS configuration from Settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "cyberhub"}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "CyberHub API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    from cyberhub.api.routes import (
        admin,
        bookmarks,
        entitlements,
        resources,
        subscriptions,
        webhooks,
    )

    app.include_router(entitlements.router, prefix="/api", tags=["Entitlements"])
    app.include_router(resources.router, prefix="/api", tags=["Resources"])
    app.include_router(bookmarks.router, prefix="/api", tags=["Bookmarks"])
    app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
    app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
    app.include_router(admin.router, prefix="/api")

    return app


app = create_app()
