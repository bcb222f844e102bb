"""
HTTP API Routes - service-level endpoints that belong to no resource.
"""

from fastapi import APIRouter

from app.api.common import envelope
from app.db import check_db_connection
from app.exceptions import StoreError
from app.utils.logger import setup_logger

logger = setup_logger("api")

router = APIRouter(prefix="/api")


@router.get("/")
async def read_root():
    """API health check endpoint."""
    return envelope("Task API is running!")


@router.get("/health/db")
async def database_health():
    """Report whether the application database answers a trivial query."""
    try:
        await check_db_connection()
    except RuntimeError as e:
        logger.error(f"Database health check failed: {e}")
        raise StoreError("Database is unavailable") from e
    return envelope("OK", {"database": "reachable"})
