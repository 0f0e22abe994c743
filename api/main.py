"""
FastAPI application for read-only ingestion status
"""

from fastapi import FastAPI
from api.routes import health, stats
from api.middleware import RequestContextMiddleware
from api.dependencies import dispose_engine
import logging

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Event Ingestion Status API",
    description="Read-only status of the resumable event ingestion engine",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Event Ingestion Status API")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Event Ingestion Status API")
    await dispose_engine()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Event Ingestion Status API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "stats": "/stats"
        }
    }
