from typing import Optional
import httpx
from listing_search.core.config import settings
from listing_search.models.geospatial import Coordinates
import logging

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """Forward geocoding against an OpenStreetMap Nominatim endpoint"""

    def __init__(
        self,
        url: Optional[str] = None,
        user_agent: Optional[str] = None,
        country_suffix: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = url or settings.GEOCODER_URL
        # Nominatim rejects requests without an identifying User-Agent
        self.headers = {"User-Agent": user_agent or settings.GEOCODER_USER_AGENT}
        self.country_suffix = country_suffix if country_suffix is not None else settings.GEOCODER_COUNTRY_SUFFIX
        self.client = client

    def build_query(self, location: str) -> str:
        if self.country_suffix and self.country_suffix.lower() not in location.lower():
            return f"{location}, {self.country_suffix}"
        return location

    async def geocode(self, location: str) -> Optional[Coordinates]:
        """Return the best match for a place name, or None when nothing is found or the call fails"""
        params = {"q": self.build_query(location), "format": "json", "limit": 1}
        try:
            if self.client is not None:
                response = await self.client.get(self.url, params=params, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS) as client:
                    response = await client.get(self.url, params=params, headers=self.headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Geocoder HTTP error {e.response.status_code} for {location}")
            return None
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Error geocoding location {location}: {e}")
            return None

        if not data:
            return None
        try:
            top = data[0]
            return Coordinates(
                latitude=float(top["lat"]),
                longitude=float(top["lon"]),
                display_name=top.get("display_name")
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unexpected geocoder payload for {location}: {e}")
            return None
