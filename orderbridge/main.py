"""
OrderBridge - delivery platform webhook ingestion service
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
import structlog

from orderbridge import __version__
from orderbridge.config import settings
from orderbridge.log import configure_logging
from orderbridge.platforms import registered_platforms
from orderbridge.webhooks import platforms as platform_webhooks

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting OrderBridge API", version=__version__, platforms=registered_platforms())
    yield
    logger.info("Shutting down OrderBridge API")


# Create FastAPI application
app = FastAPI(
    title="OrderBridge",
    description="Multi-tenant delivery platform webhook ingestion and order sync",
    version=__version__,
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


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": __version__}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from orderbridge.database import SessionLocal

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
        from orderbridge.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include webhook routers
app.include_router(platform_webhooks.router, prefix="/webhooks", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "orderbridge.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
