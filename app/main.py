"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError
import logging

from app.config import settings
from app.database import test_database_connection, create_tables, close_db_connection
from app.routers import (
    auth_router,
    callback_router,
    hospitable_router,
    onboarding_router,
    properties_router,
    reviews_router,
)
from app.utils.dependencies import get_hospitable_client, get_request_queue
from app.utils.exceptions import APIException
from app.services.error_handler import ErrorHandlerService
from app.middleware.validation import ValidationMiddleware

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    if settings.is_development or settings.is_testing:
        await create_tables()
    elif not await test_database_connection():
        logger.error("Failed to connect to database on startup")

    if not settings.hospitable_platform_token:
        logger.warning("HOSPITABLE_PLATFORM_TOKEN is not set; Hospitable endpoints will fail")

    yield

    logger.info("Shutting down application")
    await get_request_queue().close()
    await get_hospitable_client().close()
    get_request_queue.cache_clear()
    get_hospitable_client.cache_clear()
    await close_db_connection()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Backend for the StayDirectly vacation-rental site.

    ## Features

    * **Hospitable Connect**: Customer creation, consent links and OAuth token handling
    * **Listing Import**: Import Hospitable listings and their images into local properties
    * **Onboarding**: Resumable server-side onboarding flow per customer
    * **Properties**: Listing, featured selection, search and reviews

    ## Rate Limiting

    Outbound Hospitable calls go through a per-customer queue (30 requests per minute).
    Inbound `/api/hospitable` requests are limited per client IP and answered with
    `429` and `Retry-After` when exceeded.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Hospitable",
            "description": "Hospitable proxy, listing import and publishing"
        },
        {
            "name": "Authentication",
            "description": "Hospitable OAuth token management and callback"
        },
        {
            "name": "Onboarding",
            "description": "Server-side onboarding flow"
        },
        {
            "name": "Properties",
            "description": "Imported property listings and search"
        },
        {
            "name": "Reviews",
            "description": "Property reviews"
        },
        {
            "name": "Health",
            "description": "System health endpoints"
        }
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Retry-After"],
)

app.add_middleware(
    ValidationMiddleware,
    enable_request_logging=settings.debug,
    enable_rate_limiting=settings.enable_rate_limiting,
    rate_limit_requests=settings.rate_limit_requests,
    rate_limit_window=settings.rate_limit_window,
    rate_limit_path_prefix=f"{API_PREFIX}/hospitable",
)

# Include API routers
app.include_router(hospitable_router, prefix=API_PREFIX)
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(onboarding_router, prefix=API_PREFIX)
app.include_router(properties_router, prefix=API_PREFIX)
app.include_router(reviews_router, prefix=API_PREFIX)
app.include_router(callback_router)


# Global exception handlers using ErrorHandlerService
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle custom API exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: PydanticValidationError):
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors with appropriate error responses."""
    return ErrorHandlerService.handle_database_error(exc, request)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with secure error responses."""
    return ErrorHandlerService.handle_unexpected_error(exc, request)


@app.get("/", tags=["Health"])
async def root():
    """Basic API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "status": "healthy",
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": API_PREFIX
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint with database connectivity test.
    Used by Docker health checks and load balancers.
    """
    if not await test_database_connection():
        raise HTTPException(status_code=503, detail="Database connection failed")

    queue = get_request_queue()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected",
        "hospitable": {
            "platform_token_configured": bool(settings.hospitable_platform_token),
            "outbound_queue": {
                "max_requests": queue.max_requests,
                "window_seconds": queue.window_seconds,
            },
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
