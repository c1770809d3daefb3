import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from listing_chat.database import close_db, get_db, ping
from listing_chat.exceptions import register_exception_handlers
from listing_chat.log_config import RequestLoggingMiddleware, setup_logging_from_env
from listing_chat.routers.conversations import router as conversations_router
from listing_chat.routers.devices import router as devices_router

# Load environment variables
load_dotenv()

# Environment variable parsing
ENV = os.getenv("ENV")
ENV_IS_PROD = ENV == "prod"
COMMIT_HASH = os.getenv("COMMIT_HASH")
if not COMMIT_HASH and ENV_IS_PROD:
    raise ValueError("COMMIT_HASH is required for production environments")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
APP_ADDR = os.getenv("HOST", "0.0.0.0")
APP_PORT = int(os.getenv("PORT", "8000"))

setup_logging_from_env()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown."""
    logger.info("Starting listing chat service (env=%s, version=%s)", ENV, COMMIT_HASH)
    yield
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title="Listing Chat Service",
    description="Conversations, messages and read receipts for item listings",
    version=COMMIT_HASH or "dev",
    debug=DEBUG,
    lifespan=lifespan,
)

register_exception_handlers(app, debug=DEBUG)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(
    conversations_router, prefix="/api/conversations", tags=["conversations"]
)
app.include_router(devices_router, prefix="/api/devices", tags=["devices"])


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> Dict[str, Optional[str]]:
    """Health check endpoint with database connectivity."""
    try:
        db_status = "connected" if await ping(db) else "error"
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        db_status = "disconnected"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        "environment": ENV,
        "version": COMMIT_HASH,
    }


# If run directly, start the server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=APP_ADDR, port=APP_PORT)
