import logging
from typing import Optional

import requests
from fastapi.concurrency import run_in_threadpool

from placeshare.config import settings
from placeshare.errors import GeocodingError
from placeshare.models import Coordinates

logger = logging.getLogger(__name__)


class LocationService:
    """Resolves free-text addresses to coordinates with the Google Geocoding API."""

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.url = url or settings.GEOCODING_URL
        self.timeout = timeout or settings.GEOCODING_TIMEOUT

    def _request(self, address: str) -> dict:
        response = requests.get(
            self.url,
            params={"address": address, "key": self.api_key},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def get_coords_for_address(self, address: str) -> dict:
        if not self.api_key:
            logger.error("GOOGLE_API_KEY is not configured, cannot geocode")
            raise GeocodingError("Geocoding is not available right now.", status_code=500)

        try:
            # requests is blocking; keep it off the event loop
            data = await run_in_threadpool(self._request, address)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Geocoding request failed for '{address}': {e}")
            raise GeocodingError("Could not reach the geocoding service.", status_code=500)

        if not isinstance(data, dict):
            raise GeocodingError("Could not reach the geocoding service.", status_code=500)
        status = data.get("status")
        if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
            raise GeocodingError()
        if status != "OK":
            logger.error(f"Geocoding rejected '{address}': {status} {data.get('error_message', '')}")
            raise GeocodingError("Could not reach the geocoding service.", status_code=500)

        location = data["results"][0]["geometry"]["location"]
        return Coordinates(lat=location["lat"], lng=location["lng"]).model_dump()


# Provider (singleton) for dependency injection
_location_service_instance = None


def get_location_service() -> LocationService:
    global _location_service_instance
    if _location_service_instance is None:
        _location_service_instance = LocationService()
    return _location_service_instance
