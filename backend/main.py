"""
DrowsyVision - FastAPI Application Entry Point
Real-time eye-closure drowsiness detection over WebSocket.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO")
logger = logging.getLogger("drowsyvision.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  DrowsyVision - Starting")
    logger.info("=" * 60)

    # Pre-load MediaPipe
    from app.services.drowsiness_service import get_landmark_service
    service = get_landmark_service()
    if service.is_ready:
        logger.info("Landmark detector loaded successfully")
    else:
        logger.warning("Landmark detector unavailable (will retry on next connection)")

    logger.info(f"Environment: {settings.DROWSY_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info("DrowsyVision is ready!")
    logger.info("=" * 60)

    yield

    logger.info("DrowsyVision shutting down...")
    service.cleanup()


# Create FastAPI app
app = FastAPI(
    title="DrowsyVision",
    description="Eye-closure drowsiness detection powered by MediaPipe Face Mesh",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import drowsiness
from app.services.websocket_manager import ws_manager

app.include_router(drowsiness.router)


# Health check endpoint
@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "connections": ws_manager.total_connections,
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "DrowsyVision API",
        "version": "1.0.0",
        "description": "Eye-closure drowsiness detection",
        "endpoints": {
            "drowsiness_health": "/api/drowsiness/health",
            "drowsiness_defaults": "/api/drowsiness/defaults",
            "websocket_drowsiness": "/ws/drowsiness",
            "health": "/health",
        }
    }
