import logging

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.db.mongo import get_db, ping
from app.models.base import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


@router.get("/status")
async def service_status(db = Depends(get_db)):
    """Database round-trip and server info. Never fails."""
    database = {
        "status": "connected",
        "connected": True,
        "name": settings.MONGODB_DB,
        "timestamp": utcnow().isoformat(),
    }
    try:
        if db is None:
            raise RuntimeError("Database not initialised")
        await ping(db)
    except Exception as e:
        logger.warning("Status check could not reach MongoDB: %s", e)
        database.update({"status": "disconnected", "connected": False, "error": str(e)})

    return {
        "database": database,
        "server": {"status": "running", "version": settings.PROJECT_VERSION},
    }
