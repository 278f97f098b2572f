"""
FastAPI application entry point.

Run with:
    uvicorn crisis_backend.app.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from crisis_backend.app.core.config import settings
from crisis_backend.app.core.database import close_db, init_db
from crisis_backend.app.core.errors import register_error_handlers
from crisis_backend.app.core.health import HealthStatus, run_health_check
from crisis_backend.app.core.logging_config import get_logger, setup_logging
from crisis_backend.app.core.middleware import RequestLoggingMiddleware

# ── API routers ──
from crisis_backend.app.api.v1.crisis_events import admin_router, public_router, user_router
from crisis_backend.app.api.v1.notifications import router as notification_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown events."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    if not settings.is_production:
        init_db()
    yield
    close_db()
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Crisis-event lifecycle backend. Admins create, update and "
        "deactivate crisis events; every mutation is audited field by field "
        "and users whose home or household lies inside the event radius are "
        "notified with a personalised reason."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(admin_router)
app.include_router(public_router)
app.include_router(user_router)
app.include_router(notification_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "modules": [
            "crisis-lifecycle",
            "change-audit",
            "affected-user-resolution",
            "notifications",
        ],
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
def health_check():
    """Deep health probe — checks all subsystems."""
    return run_health_check().to_dict()


@app.get("/health/live", tags=["health"])
def liveness():
    """Liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
def readiness():
    """Readiness probe — can we serve traffic?"""
    report = run_health_check()
    if report.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
