import asyncio

from motor.motor_asyncio import AsyncIOMotorClient

from placeshare.config import settings
from placeshare.security.auth import hash_password


async def main():
    client = AsyncIOMotorClient(settings.MONGO_URI)
    db = client[settings.DB_NAME]
    user = await db.users.insert_one(
        {
            "name": "Demo User",
            "email": "demo@example.com",
            "password": hash_password("demo-password"),
            "image": "uploads/images/demo-user.png",
            "places": [],
        }
    )

    places = await db.places.insert_many(
        [
            {
                "title": "Empire State Building",
                "description": "One of the most famous sky scrapers in the world.",
                "address": "20 W 34th St, New York, NY 10001",
                "location": {"lat": 40.7484405, "lng": -73.9878584},
                "image": "uploads/images/empire-state.jpg",
                "creator": user.inserted_id,
            },
            {
                "title": "Brooklyn Bridge",
                "description": "Hybrid cable-stayed suspension bridge.",
                "address": "Brooklyn Bridge, New York, NY 10038",
                "location": {"lat": 40.7060855, "lng": -73.9968643},
                "image": "uploads/images/brooklyn-bridge.jpg",
                "creator": user.inserted_id,
            },
        ]
    )
    await db.users.update_one(
        {"_id": user.inserted_id},
        {"$addToSet": {"places": {"$each": places.inserted_ids}}},
    )

    print("Seeded demo data successfully!")
    print(f"   - Created user: {user.inserted_id} (demo@example.com / demo-password)")
    print(f"   - Created {len(places.inserted_ids)} places:")
    for i, place_id in enumerate(places.inserted_ids):
        print(f"     Place {i+1}: {place_id}")
    client.close()

asyncio.run(main())
