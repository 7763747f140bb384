"""
FastAPI application entry point for the creator back office.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.config import settings
from backoffice.database import create_engine, create_session_factory
from backoffice.logging_config import setup_logging
from backoffice.routers import creators, dashboard, withdrawals
from backoffice.services.errors import BackofficeError
from backoffice.services.payout_lifecycle import WithdrawalLocks

# Get logger for request logging
logger = logging.getLogger(__name__)

# Configure logging
setup_logging(settings.LOG_LEVEL, sql_echo=settings.DATABASE_ECHO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting up creator back office API...")
    app.state.engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.withdrawal_locks = WithdrawalLocks()

    yield
    # Shutdown
    logger.info("Shutting down creator back office API...")
    await app.state.engine.dispose()


app = FastAPI(
    title="Creator Back Office API",
    description="Payments, payouts and dashboard statistics for the creator platform",
    version="0.1.0",
    lifespan=lifespan
)

# Parse CORS origins from config
# In development mode, allow all origins for easier local development
if settings.ENVIRONMENT == "development" or settings.DEBUG:
    cors_origins = ["*"]
else:
    cors_origins = (
        ["*"] if settings.CORS_ORIGINS == "*"
        else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(BackofficeError)
async def backoffice_error_handler(request: Request, exc: BackofficeError):
    """Render engine errors; a failed aggregation never turns into zeros."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with method, path, origin, and response status."""
    origin = request.headers.get("origin", "no-origin")
    logger.info(f"Request: {request.method} {request.url.path} | Origin: {origin}")

    response = await call_next(request)

    logger.info(f"Response: {request.method} {request.url.path} | Status: {response.status_code}")
    return response

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response

# Register routers
app.include_router(dashboard.router, tags=["dashboard"])
app.include_router(creators.router, tags=["creators"])
app.include_router(withdrawals.router, tags=["withdrawals"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
