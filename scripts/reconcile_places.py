"""
Repair place/user links left inconsistent by interrupted writes.

Only needed when the API runs with MONGO_TRANSACTIONS=false. Safe to run
periodically, e.g. from cron.
"""
import asyncio

from motor.motor_asyncio import AsyncIOMotorClient

from placeshare.config import settings
from placeshare.logging_config import setup_logging
from placeshare.services.reconciliation import reconcile_places


async def main():
    setup_logging(settings.LOG_LEVEL)
    client = AsyncIOMotorClient(settings.MONGO_URI)
    db = client[settings.DB_NAME]
    report = await reconcile_places(db)

    print("Reconciliation finished")
    for key, value in report.items():
        print(f"   - {key}: {value}")
    client.close()

asyncio.run(main())
