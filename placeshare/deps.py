from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from placeshare.errors import InternalError
from placeshare.services.location_service import LocationService, get_location_service
from placeshare.services.place_service import PlaceService
from placeshare.services.user_service import UserService


def get_db() -> AsyncIOMotorDatabase:
    # Read the module attribute at call time, connect() replaces it on startup
    import placeshare.db
    db = placeshare.db.db
    if db is None:
        raise InternalError("Database not connected")
    return db


def get_place_service(
    database: AsyncIOMotorDatabase = Depends(get_db),
    location_service: LocationService = Depends(get_location_service),
) -> PlaceService:
    return PlaceService(database, location_service)


def get_user_service(database: AsyncIOMotorDatabase = Depends(get_db)) -> UserService:
    return UserService(database)
