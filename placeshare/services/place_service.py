"""
Place CRUD with ownership checks.

A place id must appear in exactly one user's ``places`` set, the one named by
the place's ``creator``. Create and delete touch both collections, so both
writes go through a single client-session transaction. When the deployment
has no transactions (``MONGO_TRANSACTIONS=false``), a compensating protocol is
used instead: a place is ``pending`` (invisible to reads) while its user link
is being added or removed, and a failed step is undone. Anything a crash
leaves behind is cleaned up by ``placeshare.services.reconciliation``.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from placeshare.config import settings
from placeshare.errors import AuthorizationError, InternalError, NotFoundError
from placeshare.models import parse_object_id, places_to_public, to_public
from placeshare.services.location_service import LocationService

logger = logging.getLogger(__name__)

PLACE_NOT_FOUND = "Could not find a place for the provided id."
USER_NOT_FOUND = "Could not find user for the provided id."
NO_PLACES_FOR_USER = "Could not find places for the provided user id."


def visible(query: dict) -> dict:
    """Restrict a place query to places that finished creation."""
    return {**query, "pending": {"$exists": False}}


class PlaceService:
    def __init__(self, database: AsyncIOMotorDatabase, location_service: LocationService,
                 use_transactions: Optional[bool] = None):
        self.db = database
        self.location_service = location_service
        self.use_transactions = settings.MONGO_TRANSACTIONS if use_transactions is None else use_transactions

    # ── reads ──────────────────────────────────────────────────────────────

    async def get_place_by_id(self, place_id: str) -> dict:
        oid = parse_object_id(place_id)
        if oid is None:
            raise NotFoundError(PLACE_NOT_FOUND)

        try:
            place = await self.db.places.find_one(visible({"_id": oid}))
        except PyMongoError:
            logger.exception(f"Lookup of place {place_id} failed")
            raise InternalError("Something went wrong, could not find a place.")

        if not place:
            raise NotFoundError(PLACE_NOT_FOUND)
        return to_public(place)

    async def get_places_by_user_id(self, user_id: str) -> List[dict]:
        """
        Resolve the user's ``places`` references to full place documents.

        A missing user and a user without places both raise NotFoundError.
        """
        oid = parse_object_id(user_id)
        if oid is None:
            raise NotFoundError(NO_PLACES_FOR_USER)

        places: List[dict] = []
        try:
            user = await self.db.users.find_one({"_id": oid})
            if user and user.get("places"):
                cursor = self.db.places.find(visible({"_id": {"$in": user["places"]}}))
                places = await cursor.to_list(length=None)
        except PyMongoError:
            logger.exception(f"Fetching places for user {user_id} failed")
            raise InternalError("Fetching places failed, please try again later.")

        if not user or not places:
            raise NotFoundError(NO_PLACES_FOR_USER)

        # keep the order of the user's list
        order = {pid: i for i, pid in enumerate(user["places"])}
        places.sort(key=lambda p: order.get(p["_id"], len(order)))
        return places_to_public(places)

    # ── create ─────────────────────────────────────────────────────────────

    async def create_place(self, user_id: str, title: str, description: str, address: str, image: str) -> dict:
        # GeocodingError already carries the right status and message
        coordinates = await self.location_service.get_coords_for_address(address)

        creator = parse_object_id(user_id)
        if creator is None:
            raise NotFoundError(USER_NOT_FOUND)

        place = {
            "title": title,
            "description": description,
            "address": address,
            "location": coordinates,
            "image": image,
            "creator": creator,
        }

        try:
            user = await self.db.users.find_one({"_id": creator})
        except PyMongoError:
            logger.exception(f"Lookup of user {user_id} failed")
            raise InternalError("Creating place failed, please try again.")
        if not user:
            raise NotFoundError(USER_NOT_FOUND)

        try:
            if self.use_transactions:
                await self._insert_in_transaction(place)
            else:
                await self._insert_with_compensation(place)
        except PyMongoError:
            logger.exception(f"Creating place for user {user_id} failed")
            raise InternalError("Creating place failed, please try again.")

        logger.info(f"Place {place['_id']} created by user {user_id}")
        return to_public(place)

    async def _insert_in_transaction(self, place: dict):
        async def insert_and_link(session):
            await self.db.places.insert_one(place, session=session)
            result = await self.db.users.update_one(
                {"_id": place["creator"]},
                {"$addToSet": {"places": place["_id"]}},
                session=session,
            )
            if result.matched_count == 0:
                # user vanished after the lookup; abort the insert too
                raise NotFoundError(USER_NOT_FOUND)

        # with_transaction retries write conflicts between concurrent creates
        async with await self.db.client.start_session() as session:
            await session.with_transaction(insert_and_link)

    async def _insert_with_compensation(self, place: dict):
        place["pending"] = True
        place["pending_since"] = datetime.now(timezone.utc)
        await self.db.places.insert_one(place)

        try:
            result = await self.db.users.update_one(
                {"_id": place["creator"]},
                {"$addToSet": {"places": place["_id"]}},
            )
            if result.matched_count == 0:
                raise NotFoundError(USER_NOT_FOUND)
            await self.db.places.update_one(
                {"_id": place["_id"]},
                {"$unset": {"pending": "", "pending_since": ""}},
            )
        except (PyMongoError, NotFoundError):
            await self._undo_pending(place)
            raise

        del place["pending"], place["pending_since"]

    async def _undo_pending(self, place: dict):
        try:
            await self.db.places.delete_one({"_id": place["_id"]})
            await self.db.users.update_one({"_id": place["creator"]}, {"$pull": {"places": place["_id"]}})
        except PyMongoError:
            logger.exception(f"Could not undo pending place {place['_id']}, leaving it to reconciliation")

    # ── update ─────────────────────────────────────────────────────────────

    async def update_place(self, user_id: str, place_id: str, title: str, description: str) -> dict:
        oid = parse_object_id(place_id)
        if oid is None:
            raise NotFoundError(PLACE_NOT_FOUND)

        try:
            place = await self.db.places.find_one(visible({"_id": oid}))
        except PyMongoError:
            logger.exception(f"Lookup of place {place_id} failed")
            raise InternalError("Something went wrong, could not update place.")

        if not place:
            raise NotFoundError(PLACE_NOT_FOUND)
        if str(place["creator"]) != user_id:
            logger.warning(f"User {user_id} tried to edit place {place_id} owned by {place['creator']}")
            raise AuthorizationError("You are not allowed to edit this place.")

        try:
            updated = await self.db.places.find_one_and_update(
                {"_id": oid},
                {"$set": {"title": title, "description": description}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError:
            logger.exception(f"Updating place {place_id} failed")
            raise InternalError("Something went wrong, could not update place.")

        if updated is None:
            raise NotFoundError(PLACE_NOT_FOUND)
        return to_public(updated)

    # ── delete ─────────────────────────────────────────────────────────────

    async def delete_place(self, user_id: str, place_id: str) -> dict:
        """
        Delete the place and unlink it from its creator.

        Returns the deleted place so the caller can clean up its image.
        """
        oid = parse_object_id(place_id)
        if oid is None:
            raise NotFoundError(PLACE_NOT_FOUND)

        try:
            place = await self.db.places.find_one(visible({"_id": oid}))
        except PyMongoError:
            logger.exception(f"Lookup of place {place_id} failed")
            raise InternalError("Something went wrong, could not delete place.")

        if not place:
            raise NotFoundError(PLACE_NOT_FOUND)
        if str(place["creator"]) != user_id:
            logger.warning(f"User {user_id} tried to delete place {place_id} owned by {place['creator']}")
            raise AuthorizationError("You are not allowed to delete this place.")

        try:
            if self.use_transactions:
                await self._remove_in_transaction(place)
            else:
                await self._remove_with_compensation(place)
        except PyMongoError:
            logger.exception(f"Deleting place {place_id} failed")
            raise InternalError("Something went wrong, could not delete place.")

        logger.info(f"Place {place_id} deleted by user {user_id}")
        return to_public(place)

    async def _remove_in_transaction(self, place: dict):
        async def delete_and_unlink(session):
            result = await self.db.places.delete_one({"_id": place["_id"]}, session=session)
            if result.deleted_count == 0:
                raise NotFoundError(PLACE_NOT_FOUND)
            await self.db.users.update_one(
                {"_id": place["creator"]},
                {"$pull": {"places": place["_id"]}},
                session=session,
            )

        async with await self.db.client.start_session() as session:
            await session.with_transaction(delete_and_unlink)

    async def _remove_with_compensation(self, place: dict):
        # Mark the place pending first: reads stop seeing it and the
        # reconciliation sweep will not link it back while we unlink it.
        result = await self.db.places.update_one(
            visible({"_id": place["_id"]}),
            {"$set": {"pending": True, "pending_since": datetime.now(timezone.utc)}},
        )
        if result.matched_count == 0:
            raise NotFoundError(PLACE_NOT_FOUND)

        try:
            # unlink before deleting, a reference must never point at a deleted place
            await self.db.users.update_one({"_id": place["creator"]}, {"$pull": {"places": place["_id"]}})
            await self.db.places.delete_one({"_id": place["_id"]})
        except PyMongoError:
            await self._undo_remove(place)
            raise

    async def _undo_remove(self, place: dict):
        try:
            await self.db.users.update_one({"_id": place["creator"]}, {"$addToSet": {"places": place["_id"]}})
            await self.db.places.update_one({"_id": place["_id"]}, {"$unset": {"pending": "", "pending_since": ""}})
        except PyMongoError:
            # a stale pending place is deleted by reconciliation, finishing the removal
            logger.exception(f"Could not restore place {place['_id']}, leaving it to reconciliation")
