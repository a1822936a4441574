from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import uuid

from . import __version__
from .config import settings
from .database import create_tables
from .exceptions import (
    TourOpsError,
    ValidationError,
    NotFoundError,
    MissingPricingData,
    AlreadyBilledError,
    InvoiceStateError,
    StoreUnavailable,
)
from .utils.logging_config import setup_logging, set_request_context, clear_request_context
from .utils.rate_limiter import limiter

from .routers import assignments, pricing, finance, manifest, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    logger.info(f"Starting tourops {__version__} ({settings.environment})")
    logger.info(f"CORS origins: {settings.cors_origins}")

    create_tables()
    logger.info("Database ready")

    yield

    logger.info("Shutting down tourops")


# Create FastAPI app
app = FastAPI(
    title="TourOps API",
    description="Boat locks, pricing, invoicing and the daily operations manifest",
    version=__version__,
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id, request.headers.get("X-Company-ID"))
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


# Add other middleware AFTER CORS
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# ================================
# ERROR HANDLERS
# ================================

ERROR_STATUS_CODES = {
    ValidationError: 422,
    MissingPricingData: 422,
    NotFoundError: 404,
    AlreadyBilledError: 409,
    InvoiceStateError: 409,
    StoreUnavailable: 503,
}


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, try again later"}
    )


@app.exception_handler(TourOpsError)
async def tourops_error_handler(request: Request, exc: TourOpsError):
    status_code = 400
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Include routers
app.include_router(assignments.router)
app.include_router(pricing.router)
app.include_router(finance.router)
app.include_router(manifest.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {
        "message": "TourOps API",
        "version": __version__,
        "docs": "/docs",
        "status": "running"
    }
