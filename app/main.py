"""
One Sip Reservations - FastAPI Backend Application
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
import structlog

from app.config import settings
from app.database import create_all
from app.identity import AuthError, AuthErrorCode
from app.log import configure_logging
from app.ratelimit import limiter
from app.realtime import get_hub
from app.api import auth, users, reservations, site_settings

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting One Sip Reservations API", version="1.0.0")
    if settings.db_auto_create:
        await create_all()
    hub = get_hub()
    await hub.start()
    yield
    await hub.stop()
    logger.info("Shutting down One Sip Reservations API")


# Create FastAPI application
app = FastAPI(
    title="One Sip Reservations",
    description="Table reservations, customer accounts and the staff console for One Sip",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Identity endpoints answer throttling in their own result shape"""
    logger.warning("Rate limit exceeded", path=request.url.path, limit=str(exc.detail))
    if request.url.path.startswith("/auth"):
        return auth.auth_failure(AuthError(AuthErrorCode.TOO_MANY_REQUESTS))
    return _rate_limit_exceeded_handler(request, exc)


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from app.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check Redis
    try:
        from app.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/users", tags=["Profiles"])
app.include_router(site_settings.router, prefix="/settings", tags=["Settings"])
app.include_router(reservations.router, prefix="/reservations", tags=["Reservations"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
