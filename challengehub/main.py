from contextlib import asynccontextmanager

from fastapi import FastAPI

from challengehub.core.config import settings
from challengehub.core.logging import setup_logging
from challengehub.core.scheduler import setup_scheduler, start_scheduler, stop_scheduler
from challengehub.database import Database
from challengehub.routes.scheduler.scheduler_routes import router as scheduler_router

setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the application"""
    # Startup
    await Database.connect_db()

    if settings.SCHEDULER_ENABLED:
        setup_scheduler()
        start_scheduler()

    yield
    # Shutdown
    stop_scheduler()
    await Database.close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="ChallengeHub midnight run: deadlines, prize distribution, reminders and platform stats",
    lifespan=lifespan
)

# Include routers with /api prefix
app.include_router(scheduler_router, prefix="/api")


@app.get("/")
async def read_root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "database": Database.client is not None,
    }
