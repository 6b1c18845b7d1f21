"""
Storefront backend
Catalog, orders, customers, discounts, wishlists and sales analytics
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import subprocess
import os

import httpx

from storefront.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from storefront.core_settings import Settings, get_settings
from storefront.infrastructure.carrier import NimbusPostClient
from storefront.infrastructure.db import Database
from storefront.infrastructure.messaging import WhatsAppNotifier
from storefront.infrastructure.payments import RazorpayClient
from storefront.api.error_handlers import register_error_handlers
from storefront.api.analytics import router as analytics_router, sales_router
from storefront.api.categories import router as categories_router
from storefront.api.customers import router as customers_router
from storefront.api.discounts import router as discounts_router
from storefront.api.orders import router as orders_router
from storefront.api.products import router as products_router, inventory_router
from storefront.api.webhooks import router as webhooks_router
from storefront.api.wishlists import router as wishlists_router

SERVICE_DESCRIPTION = "E-commerce storefront backend"
PROJECT_ROOT = os.path.join(os.path.dirname(__file__), "..")

logger = get_logger(__name__)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

def run_migrations(settings: Settings) -> None:
    logger.info("Running database migrations")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            env={**os.environ, "DATABASE_URL": settings.database_url},
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.error(f"Migration error: {e}")
        return
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")

def create_app(settings: Optional[Settings] = None, http_transport: Optional[httpx.BaseTransport] = None) -> FastAPI:
    """Build the application; ``http_transport`` replaces the network for outbound provider calls."""
    settings = settings or get_settings()

    setup_logging(
        service_name=settings.SERVICE_NAME,
        level=settings.LOG_LEVEL,
        environment=settings.ENVIRONMENT,
        version=settings.SERVICE_VERSION,
    )

    database = Database(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management"""
        logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")
        if settings.RUN_MIGRATIONS:
            run_migrations(settings)
        try:
            database.init_models()
            logger.info("Database models initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database models: {e}")
            raise
        logger.info(f"{settings.SERVICE_NAME} started successfully")

        yield

        logger.info(f"Shutting down {settings.SERVICE_NAME}")
        database.dispose()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    timeout = settings.EXTERNAL_TIMEOUT_SECONDS
    app.state.settings = settings
    app.state.database = database
    app.state.payments = RazorpayClient(
        settings.RAZORPAY_BASE_URL, settings.RAZORPAY_KEY_ID, settings.RAZORPAY_SECRET,
        timeout=timeout, transport=http_transport,
    )
    app.state.carrier = NimbusPostClient(
        settings.NIMBUS_CREATE_URL, settings.NIMBUS_CANCEL_URL, settings.NIMBUS_TOKEN,
        timeout=timeout, transport=http_transport,
    )
    app.state.notifier = WhatsAppNotifier(
        settings.WHATSAPP_API_URL, settings.WHATSAPP_TOKEN, settings.WHATSAPP_PHONE_NUMBER_ID,
        template=settings.WHATSAPP_TEMPLATE, timeout=timeout, transport=http_transport,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app, settings.ENVIRONMENT)

    health_service = ServiceHealth(settings.SERVICE_NAME, settings.SERVICE_VERSION, database)
    app.include_router(health_service.create_health_router())

    for router in (
        categories_router,
        products_router,
        inventory_router,
        orders_router,
        discounts_router,
        customers_router,
        wishlists_router,
        analytics_router,
        sales_router,
        webhooks_router,
    ):
        app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "environment": settings.ENVIRONMENT,
            "status": "running",
            "docs": "/api/docs",
        }

    return app

app = create_app()
