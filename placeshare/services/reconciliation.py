import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from placeshare.config import settings

logger = logging.getLogger(__name__)


async def reconcile_places(database: AsyncIOMotorDatabase, grace_minutes: Optional[int] = None) -> Dict[str, int]:
    """
    Restore the place/creator invariant after interrupted non-transactional writes.

    - pending places older than the grace period are unlinked and removed
      (an interrupted create is dropped, an interrupted delete is finished)
    - user references to places that no longer exist are pulled
    - finished places missing from their creator's set are linked again

    Pending places inside the grace period belong to a create or delete in
    flight and are neither unlinked nor relinked.
    """
    if grace_minutes is None:
        grace_minutes = settings.RECONCILE_GRACE_MINUTES
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=grace_minutes)
    report = {"pending_removed": 0, "references_pulled": 0, "references_restored": 0, "orphaned_places": 0}

    stale = database.places.find({"pending": True, "pending_since": {"$lt": cutoff}})
    async for place in stale:
        await database.users.update_one({"_id": place["creator"]}, {"$pull": {"places": place["_id"]}})
        await database.places.delete_one({"_id": place["_id"]})
        report["pending_removed"] += 1
        logger.info(f"Removed stale pending place {place['_id']}")

    async for user in database.users.find({}, projection={"places": 1}):
        refs = user.get("places") or []
        if not refs:
            continue
        # stale pending places are gone by now, any document left counts
        cursor = database.places.find({"_id": {"$in": refs}}, projection={"_id": 1})
        existing = {p["_id"] async for p in cursor}
        missing = [ref for ref in refs if ref not in existing]
        if missing:
            await database.users.update_one({"_id": user["_id"]}, {"$pull": {"places": {"$in": missing}}})
            report["references_pulled"] += len(missing)
            logger.info(f"Pulled {len(missing)} dangling place references from user {user['_id']}")

    async for place in database.places.find({"pending": {"$exists": False}}, projection={"creator": 1}):
        result = await database.users.update_one(
            {"_id": place["creator"]},
            {"$addToSet": {"places": place["_id"]}},
        )
        if result.matched_count == 0:
            report["orphaned_places"] += 1
            logger.warning(f"Place {place['_id']} references missing user {place['creator']}")
        elif result.modified_count:
            report["references_restored"] += 1
            logger.info(f"Linked place {place['_id']} back to user {place['creator']}")

    return report
