from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from cidco_records import __version__
from cidco_records.core.config import settings
from cidco_records.core.database import init_db, close_db, AsyncSessionLocal
from cidco_records.core.exceptions import RecordsError
from cidco_records.core.logging_config import logger
from cidco_records.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from cidco_records.core.rate_limiter import limiter, rate_limit_exceeded_handler
from cidco_records.api.router import api_router
from cidco_records.services.email_service import EmailService
from cidco_records.services.storage_service import StorageService
from cidco_records.services.user_service import sync_user_sequence
import cidco_records.models  # Import models so metadata knows about them


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if not settings.S3_BUCKET_NAME:
        errors.append("S3_BUCKET_NAME is not set")

    if not settings.AUTH_REQUIRED:
        warnings.append("AUTH_REQUIRED is off - registry endpoints are open to anyone")

    if not (settings.SMTP_USER and settings.SMTP_PASSWORD):
        warnings.append("SMTP credentials not set - reset links will only be logged")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")


async def prepare_database():
    """Create missing tables when asked to, then line up the user id sequence"""
    try:
        if settings.DB_CREATE_TABLES:
            await init_db()
            logger.info("[Startup] Database tables ensured")

        async with AsyncSessionLocal() as session:
            await sync_user_sequence(session)
    except SQLAlchemyError as e:
        logger.error(f"[Startup] Database not ready: {e}")
        logger.error("[Startup] Requests needing the database will fail until it is reachable")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info("=" * 60)

    await validate_critical_config()
    await prepare_database()

    app.state.storage_service = StorageService()
    app.state.email_service = EmailService()
    await app.state.email_service.verify_connection()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Land-plot registry for CIDCO allotment records",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(RecordsError)
async def records_exception_handler(request: Request, exc: RecordsError):
    content = exc.to_dict()
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message} {exc.details}")
    if settings.DEBUG and exc.details.get("cause"):
        content["detail"] = exc.details["cause"]
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{field}: {message}" if field else message,
            "code": "VALIDATION_ERROR",
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    content = {"error": "Internal Server Error", "code": "INTERNAL_ERROR"}
    if settings.DEBUG:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": __version__,
        "environment": settings.ENVIRONMENT
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Include API router
app.include_router(api_router, prefix=settings.API_PREFIX)


def run():
    import uvicorn
    uvicorn.run(
        "cidco_records.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
