import asyncio

from motor.motor_asyncio import AsyncIOMotorClient

from placeshare.config import settings


async def main():
    client = AsyncIOMotorClient(settings.MONGO_URI)
    db = client[settings.DB_NAME]
    await db.users.create_index([("email", 1)], unique=True)
    await db.places.create_index([("creator", 1)])
    # lets the reconciliation sweep find stale pending places quickly
    await db.places.create_index([("pending_since", 1)], sparse=True)

    print("Indexes created")
    client.close()

asyncio.run(main())
