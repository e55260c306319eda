"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, stats, sync
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from sync.scheduler import SyncScheduler

# Configure logging
setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Magento Sync Backend API",
    description="Synchronization service between the Magento SOAP API and the local database",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = SyncScheduler()


# Include routers
app.include_router(health.router)
app.include_router(stats.router)
app.include_router(sync.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Magento Sync Backend API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    if not settings.INTERNAL_TOKEN:
        logger.warning("INTERNAL_TOKEN is not set; sync endpoints are unprotected")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Magento Sync Backend API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Magento Sync Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "stats": "/stats",
            "sync": "/sync/{job}",
            "order": "/sync/orders/{increment_id}",
            "address": "/sync/addresses/{address_id}",
            "product": "/sync/products/{identifier}",
            "until_done": "/sync/order_details/until-done"
        }
    }
