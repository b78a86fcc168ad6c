from pydantic import BaseModel, Field
from typing import Optional


class Coordinates(BaseModel):
    """A geocoded point, as returned by the geocoding provider"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    display_name: Optional[str] = Field(None, serialization_alias="displayName")
