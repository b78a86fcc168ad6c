# Geospatial module for location-based fallbacks

from .service import GeoFallbackResolver, GeocodeFn, calculate_distance, has_proximity_intent

__all__ = ["GeoFallbackResolver", "GeocodeFn", "calculate_distance", "has_proximity_intent"]
