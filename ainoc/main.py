"""
Ainoc Analytics - Backend API
Conversational analytics over invoice and stock data
"""
import logging
import time

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ainoc.api import chat
from ainoc.core.config import settings
from ainoc.core.database import db_cursor

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(chat.router)


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": "Ainoc Analytics API",
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
def health():
    """Health check for monitoring - tests database connectivity"""
    start_time = time.time()
    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        with db_cursor() as cursor:
            db_start = time.time()
            cursor.execute("SELECT 1")
            cursor.fetchone()
            db_latency_ms = round((time.time() - db_start) * 1000, 2)
        db_status = "connected"
    except Exception as e:
        logger.warning(f"Health check database error: {e}")
        db_status = "disconnected"
        db_error = "database unavailable"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "ainoc-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
        },
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
    }


def run():
    """Serve the API with uvicorn using the API_* settings."""
    uvicorn.run(
        "ainoc.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
