"""
Main FastAPI application for the Match Sync API.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from app.core.config import settings
from app.core.database import init_db
from app.core.logging import configure_logging, get_logger
from app.core.middleware import CorrelationIdMiddleware
from app.core import metrics
from app.api.routes import market, sync
from app.services.core.upstream_client import UpstreamClient
from app.services.sync.single_flight import SingleFlight

# Load environment variables from .env file
from dotenv import load_dotenv
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Configure structured logging with JSON formatter
configure_logging(
    level=settings.LOG_LEVEL,
    json_output=settings.LOG_JSON
)
logger = get_logger(__name__)


# Configure rate limiting
def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    # Check for forwarded address (behind proxy/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["60/minute"],
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_STORAGE == "redis" else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    for problem in settings.validate_timeouts():
        logger.warning(f"Timeout configuration: {problem}")

    # Local SQLite databases are created on the fly; Postgres is migrated separately
    if settings.DATABASE_URL.startswith("sqlite"):
        init_db()

    if getattr(app.state, "upstream_client", None) is None:
        app.state.upstream_client = UpstreamClient.from_settings(settings)
    if settings.SINGLE_FLIGHT_ENABLED and getattr(app.state, "single_flight", None) is None:
        app.state.single_flight = SingleFlight()
    if not app.state.upstream_client.configured:
        logger.warning("UPSTREAM_BASE_URL not configured - serving stored data only")

    if settings.SCHEDULER_ENABLED:
        from app.core.scheduler import start_scheduler
        await start_scheduler(app.state.upstream_client, settings=settings)
        logger.info("Market sync scheduler started")
    metrics.update_scheduler_metrics()

    logger.info("Application started")

    yield

    # Shutdown
    if settings.SCHEDULER_ENABLED:
        from app.core.scheduler import stop_scheduler
        await stop_scheduler()
        logger.info("Market sync scheduler stopped")
    await app.state.upstream_client.close()
    app.state.upstream_client = None
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Match data sync with staleness-aware caching over the upstream prediction/odds provider",
    lifespan=lifespan
)
app.state.limiter = limiter
app.state.upstream_client = None
app.state.single_flight = None
app.state.quick_purchases = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Initialize Prometheus metrics BEFORE including routes
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1
app.include_router(market.router, prefix="/api/v1")
app.include_router(sync.router, prefix="/api/v1")


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "api_version": "v1",
            "market": "/api/v1/market",
            "match": "/api/v1/match/{match_id}",
            "sync": "/api/v1/sync/market",
            "sync_status": "/api/v1/sync/market/status",
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics"
        }
    }


@app.get("/health")
@limiter.limit("120/minute")  # Higher limit for health checks
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


@app.get("/api/health")
@limiter.limit("60/minute")
async def api_health(request: Request):
    """Detailed API health check with component-level status."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "components": {}
    }

    all_healthy = True

    # 1. Database Health Check
    try:
        from app.core.database import SessionLocal
        from app.models import MarketMatch

        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            health_status["components"]["database"] = {
                "status": "connected",
                "counts": {"market_matches": db.query(MarketMatch).count()}
            }
        finally:
            db.close()

        metrics.update_db_pool_metrics()

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        all_healthy = False

    # 2. Scheduler Health Check
    from app.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        health_status["components"]["scheduler"] = {
            "status": "running",
            "jobs": scheduler.jobs()
        }
    else:
        health_status["components"]["scheduler"] = {
            "status": "disabled" if not settings.SCHEDULER_ENABLED else "stopped"
        }
        if settings.SCHEDULER_ENABLED:
            all_healthy = False
    metrics.update_scheduler_metrics()

    # 3. Upstream Provider Health Check
    upstream = request.app.state.upstream_client
    if upstream is None:
        health_status["components"]["upstream"] = {"status": "not_started"}
    else:
        health_status["components"]["upstream"] = await upstream.ping()
    # Don't fail overall health for upstream provider issues

    if not all_healthy:
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "healthy" else 503

    return JSONResponse(
        status_code=status_code,
        content=health_status
    )


# Exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
