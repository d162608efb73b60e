"""
STJT Application Server - Main Application
"""
import logging
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .api import applications, programmes
from .core.config import settings
from .core.correlation import CorrelationIdMiddleware
from .core.errors import submission_response
from .core.rate_limit import RateLimitMiddleware
from .core.logging_config import setup_logging
from .services.storage import StorageSink, get_storage_sink

# Setup logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize Sentry if configured
if settings.SENTRY_DSN:
    try:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        )
        logger.info("Sentry monitoring initialized", extra={"correlation_id": "startup"})
    except ImportError:
        logger.warning("Sentry SDK not installed, monitoring disabled", extra={"correlation_id": "startup"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown"""
    logger.info("Starting St Joseph's Technical Institute Application Server", extra={"correlation_id": "startup"})
    logger.info(f"Environment: {settings.ENVIRONMENT}", extra={"correlation_id": "startup"})
    logger.info(f"Storage backend: {settings.STORAGE_BACKEND}", extra={"correlation_id": "startup"})
    logger.info(f"Email delivery: {settings.EMAIL_ENABLED}", extra={"correlation_id": "startup"})
    logger.info(f"Rate Limiting: {settings.RATE_LIMIT_ENABLED}", extra={"correlation_id": "startup"})

    # Verify storage connection
    try:
        storage = app.dependency_overrides.get(get_storage_sink, get_storage_sink)()
        if storage.check_health():
            logger.info("Storage connection verified", extra={"correlation_id": "startup"})
        else:
            logger.warning("Storage health check failed", extra={"correlation_id": "startup"})
    except Exception as e:
        logger.error(f"Storage connection failed: {e}", extra={"correlation_id": "startup"})

    yield
    logger.info("Application server shutting down...", extra={"correlation_id": "shutdown"})


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url=None,
)

# Middleware (order matters!)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)

app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-Id", "X-RateLimit-Remaining-Minute", "X-RateLimit-Remaining-Hour"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything that escapes a route still answers in the submission envelope"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return submission_response(
        status=500,
        message="An error occurred while processing your request",
        detail=str(exc) if settings.EXPOSE_ERROR_DETAILS else None,
    )


# Application submission endpoint
app.include_router(
    applications.router,
    tags=["Applications"],
)

app.include_router(
    programmes.router,
    prefix=f"/api/{settings.API_VERSION}/programmes",
    tags=["Programmes"],
)


@app.get("/health", tags=["System"])
async def health_check(storage: StorageSink = Depends(get_storage_sink)):
    """
    Health check with storage verification

    Returns 200 if healthy, 503 if unhealthy
    """
    health = {
        "status": "ok",
        "service": settings.API_TITLE,
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
        "storage": "unknown",
    }

    try:
        if storage.check_health():
            health["storage"] = "connected"
        else:
            health["storage"] = "disconnected"
            health["status"] = "unhealthy"
            logger.warning("Health check: storage disconnected")
    except Exception as e:
        health["storage"] = f"error: {str(e)}"
        health["status"] = "unhealthy"
        logger.error(f"Health check: storage error: {e}")

    status_code = 200 if health["status"] == "ok" else 503
    return JSONResponse(content=health, status_code=status_code)


@app.get("/", tags=["System"])
async def root():
    """Root endpoint"""
    return {
        "service": settings.API_TITLE,
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
        "submit": "/submit",
        "programmes": f"/api/{settings.API_VERSION}/programmes",
        "docs": "/docs" if settings.ENABLE_DOCS else None,
        "health": "/health",
    }
