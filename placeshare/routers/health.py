import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", summary="Liveness and database check")
async def health():
    import placeshare.db
    db = placeshare.db.db
    if db is None:
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "disconnected"})
    try:
        await db.command("ping")
    except PyMongoError as e:
        logger.error(f"Health check ping failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "unreachable"})
    return {"status": "ok", "database": "connected"}
