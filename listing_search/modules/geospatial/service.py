from typing import Awaitable, Callable, Optional
import asyncio
import re
from geopy.distance import great_circle
from listing_search.models.geospatial import Coordinates
from listing_search.models.listing import GeoPoint
import logging

logger = logging.getLogger(__name__)

GeocodeFn = Callable[[str], Awaitable[Optional[Coordinates]]]

# "around ₱6M" / "around 5m" talk about price, not place
_PRICE_AROUND = re.compile(r"\baround\s*[₱$]|\baround\s*\d+[km]?", re.IGNORECASE)
_PLACE_AROUND = re.compile(r"\baround\s+[a-z]+", re.IGNORECASE)
_PROXIMITY = re.compile(
    r"\b(near|nearby|close to|within|proximity)\s+(?:to|from|of)?\s*[a-z]+", re.IGNORECASE
)
_WITHIN_DISTANCE = re.compile(
    r"\bwithin\s+\d+(?:\.\d+)?\s*(km|kms|kilometers?|kilometres?|mi|miles?)\b", re.IGNORECASE
)


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometers"""
    return great_circle((lat1, lon1), (lat2, lon2)).kilometers


def has_proximity_intent(query: Optional[str]) -> bool:
    """True when the free-text query explicitly asks for places near somewhere"""
    if not query:
        return False
    if _PROXIMITY.search(query) or _WITHIN_DISTANCE.search(query):
        return True
    return bool(_PLACE_AROUND.search(query)) and not _PRICE_AROUND.search(query)


class GeoFallbackResolver:
    """Geocodes the requested location at most once per request and measures distances to it"""

    def __init__(
        self,
        geocode: Optional[GeocodeFn],
        location_tokens: list,
        radius_km: float = 100.0,
        timeout_seconds: float = 10.0
    ):
        self.geocode = geocode
        self.location = location_tokens[0] if location_tokens else None
        self.radius_km = radius_km
        self.timeout_seconds = timeout_seconds
        self._resolved = False
        self._coordinates: Optional[Coordinates] = None

    async def resolve(self) -> Optional[Coordinates]:
        """Geocode the first requested location; failures are cached as None"""
        if self._resolved:
            return self._coordinates
        self._resolved = True

        if not self.location or self.geocode is None:
            return None

        logger.info(f"Attempting to geocode: {self.location}")
        try:
            self._coordinates = await asyncio.wait_for(
                self.geocode(self.location), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Geocoding timed out for {self.location}")
            self._coordinates = None
        except Exception as e:
            logger.error(f"Error geocoding {self.location}: {e}")
            self._coordinates = None

        if self._coordinates:
            logger.info(
                f"Geocoded {self.location} to {self._coordinates.display_name} "
                f"({self._coordinates.latitude}, {self._coordinates.longitude})"
            )
        else:
            logger.warning(f"Failed to geocode: {self.location}")
        return self._coordinates

    @property
    def reference_label(self) -> Optional[str]:
        if self._coordinates is None:
            return None
        return self._coordinates.display_name or self.location

    def distance_within_radius(self, point: Optional[GeoPoint]) -> Optional[float]:
        """
        Distance from the geocoded location to a listing, or None when the
        listing has no coordinates, nothing was geocoded, or it lies outside
        the fallback radius
        """
        if self._coordinates is None or point is None:
            return None
        if point.latitude is None or point.longitude is None:
            return None
        distance = calculate_distance(
            self._coordinates.latitude, self._coordinates.longitude,
            point.latitude, point.longitude
        )
        return distance if distance <= self.radius_km else None
