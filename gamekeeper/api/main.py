"""
GameKeeper API Server

FastAPI server for game sessions, peer-confirmed scores and friends.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from gamekeeper.api.routes import router, limiter as routes_limiter
from gamekeeper.database import db
from gamekeeper.database.init_defaults import init_defaults
from gamekeeper.services.session_cleanup_service import (
    SWEEPER_ENABLED,
    get_session_cleanup_service,
)

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up GameKeeper API...")

    # Create tables that migrations have not created yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
        logger.info("✓ Default values initialized")
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    # Optional sweeper; reads resolve stale sessions either way
    if SWEEPER_ENABLED:
        try:
            get_session_cleanup_service().start()
            logger.info("✓ Session cleanup worker started")
        except Exception as e:
            logger.error(f"Failed to start session cleanup worker: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down GameKeeper API...")

    if SWEEPER_ENABLED:
        try:
            get_session_cleanup_service().stop()
            logger.info("✓ Session cleanup worker stopped")
        except Exception as e:
            logger.error(f"Error stopping session cleanup worker: {e}", exc_info=True)


app = FastAPI(
    title="GameKeeper API",
    description="API for game sessions, peer-confirmed scores, statistics and friends",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware; origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
