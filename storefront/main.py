"""
Storefront order and payment service.

Order intake, gateway order creation, payment reconciliation, promotions and
newsletter subscribers for multi-tenant stores.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import os

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from storefront.core_settings import Settings, get_settings
from storefront.application.errors import AppError, InternalError, ValidationError, describe_validation_errors
from storefront.infrastructure.db import Database
from storefront.infrastructure.email import Mailer
from storefront.infrastructure.payment_gateway import RazorpayClient
from storefront.api.routes.contact import router as contact_router
from storefront.api.routes.customers import router as customers_router
from storefront.api.routes.orders import router as orders_router
from storefront.api.routes.payments import router as payments_router
from storefront.api.routes.promotions import router as promotions_router
from storefront.api.routes.subscribers import router as subscribers_router

SERVICE_NAME = "storefront-service"
SERVICE_DESCRIPTION = "Storefront orders, payments and promotions"

logger = get_logger(__name__)


def build_gateway(settings: Settings) -> RazorpayClient:
    return RazorpayClient(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=settings.RAZORPAY_API_BASE,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        max_attempts=settings.GATEWAY_MAX_ATTEMPTS,
        backoff_seconds=settings.GATEWAY_BACKOFF_SECONDS,
    )


def build_mailer(settings: Settings) -> Mailer:
    return Mailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_ssl=settings.SMTP_USE_SSL,
        sender=settings.MAIL_FROM,
        sender_name=settings.MAIL_FROM_NAME,
    )


def _error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{exc.code}: {exc.message}",
            extra={'extra_fields': {
                'path': request.url.path,
                'status_code': exc.status_code,
                'details': exc.details,
            }}
        )
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = describe_validation_errors(exc.errors())
        logger.warning(
            "Request validation failed",
            extra={'extra_fields': {'path': request.url.path, 'details': details}}
        )
        return _error_response(ValidationError("Validation Failed", details))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            f"Unhandled error: {exc}",
            extra={'extra_fields': {'path': request.url.path}}
        )
        return _error_response(InternalError("Internal Server Error"))


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    gateway=None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """Build the application with its clients.

    Anything not passed in is built from settings, so tests can swap in an
    in-memory database, a fake gateway and a recording mailer.
    """
    settings = settings or get_settings()
    setup_logging(service_name=SERVICE_NAME, level=settings.LOG_LEVEL)

    database = database or Database(settings.database_url)
    gateway = gateway or build_gateway(settings)
    mailer = mailer or build_mailer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {SERVICE_NAME} version {settings.SERVICE_VERSION}")
        try:
            database.init_models()
            logger.info("Database models initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database models: {e}")
            raise
        if not settings.RAZORPAY_WEBHOOK_SECRET:
            logger.warning("RAZORPAY_WEBHOOK_SECRET is not set; payment confirmations will be rejected")

        yield

        logger.info(f"Shutting down {SERVICE_NAME}")
        close = getattr(gateway, "close", None)
        if close:
            close()

    app = FastAPI(
        title=SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.settings = settings
    app.state.database = database
    app.state.gateway = gateway
    app.state.mailer = mailer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    health_service = ServiceHealth(
        SERVICE_NAME,
        settings.SERVICE_VERSION,
        engine_provider=lambda: database.engine,
        config_provider=lambda: {
            "RAZORPAY_KEY_ID": settings.RAZORPAY_KEY_ID,
            "RAZORPAY_KEY_SECRET": settings.RAZORPAY_KEY_SECRET,
            "RAZORPAY_WEBHOOK_SECRET": settings.RAZORPAY_WEBHOOK_SECRET,
        },
    )
    app.include_router(health_service.create_health_router())

    app.include_router(customers_router)
    app.include_router(orders_router)
    app.include_router(payments_router)
    app.include_router(promotions_router)
    app.include_router(subscribers_router)
    app.include_router(contact_router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "status": "running",
            "docs": "/api/docs"
        }

    @app.get("/info")
    async def info():
        """Service information endpoint"""
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "description": SERVICE_DESCRIPTION,
            "environment": os.getenv("ENVIRONMENT", "development"),
            "endpoints": {
                "health": "/health",
                "ready": "/health/ready",
                "live": "/health/live",
                "metrics": "/metrics",
                "docs": "/api/docs"
            }
        }

    return app
