from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Any
import math


def lenient_number(value: Any) -> Optional[float]:
    """Parse a catalog number, returning None for anything that is not one"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def text_list(value: Any) -> List[str]:
    """Tag and feature fields arrive as a string, a list, or nothing"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    text = str(value)
    return [text] if text.strip() else []


class CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GeoPoint(CatalogModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def parse_coordinate(cls, v):
        return lenient_number(v)


class Developer(CatalogModel):
    id: Optional[str] = None
    full_name: Optional[str] = Field(None, alias="fullName")
    short_name: Optional[str] = Field(None, alias="shortName")
    slug: Optional[str] = None


class Project(CatalogModel):
    id: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    developer: Optional[Developer] = None


class NamedRef(CatalogModel):
    id: Optional[str] = None
    name: Optional[str] = None


class PropertyUnit(CatalogModel):
    """One unit configuration offered within a property listing"""
    id: Optional[str] = None
    unit_name: Optional[str] = Field(None, alias="unitName")
    unit_type: Optional[str] = Field(None, alias="unitType")
    config_price: Optional[float] = Field(None, alias="configPrice")
    floor_area: Optional[float] = Field(None, alias="floorArea")
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    lot_area: Optional[float] = Field(None, alias="lotArea")
    unit_features: List[str] = Field(default_factory=list, alias="unitFeatures")

    @field_validator("config_price", "floor_area", "bedrooms", "bathrooms", "lot_area", mode="before")
    @classmethod
    def parse_numbers(cls, v):
        return lenient_number(v)

    @field_validator("unit_features", mode="before")
    @classmethod
    def parse_features(cls, v):
        return text_list(v)


class PropertyListing(CatalogModel):
    """Real-estate listing as served by the content API"""
    id: str
    name: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    ptype: Optional[str] = None
    purpose: Optional[str] = None
    location_name: Optional[str] = Field(None, alias="locationName")
    location: Optional[GeoPoint] = None
    price: Optional[float] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    developer: Optional[Developer] = None
    project: Optional[Project] = None
    developer_name: Optional[str] = Field(None, alias="developerName")
    project_name: Optional[str] = Field(None, alias="projectName")
    search_tags: List[str] = Field(default_factory=list, alias="searchTags")
    secondary_tags: List[str] = Field(default_factory=list, alias="secondaryTags")
    amenities_and_common_facilities: List[str] = Field(default_factory=list, alias="amenitiesAndCommonFacilities")
    building_amenities: List[str] = Field(default_factory=list, alias="buildingAmenities")
    unit_features: List[str] = Field(default_factory=list, alias="unitFeatures")
    unit_configuration: List[PropertyUnit] = Field(default_factory=list, alias="unitConfiguration")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("price", "bedrooms", "bathrooms", mode="before")
    @classmethod
    def parse_numbers(cls, v):
        return lenient_number(v)

    @field_validator(
        "search_tags", "secondary_tags", "amenities_and_common_facilities",
        "building_amenities", "unit_features", mode="before"
    )
    @classmethod
    def parse_text_lists(cls, v):
        return text_list(v)

    @field_validator("unit_configuration", mode="before")
    @classmethod
    def parse_units(cls, v):
        return v or []

    def unit_prices(self) -> List[float]:
        return [u.config_price for u in self.unit_configuration if u.config_price is not None]

    @property
    def listing_price(self) -> Optional[float]:
        return self.price


class VehicleVariant(CatalogModel):
    """One trim or configuration of a vehicle model"""
    id: Optional[str] = None
    name: Optional[str] = None
    srp: Optional[float] = None
    downpayment: Optional[float] = None
    monthly_payment: Optional[float] = Field(None, alias="monthlyPayment")
    features: List[str] = Field(default_factory=list)

    @field_validator("srp", "downpayment", "monthly_payment", mode="before")
    @classmethod
    def parse_numbers(cls, v):
        return lenient_number(v)

    @field_validator("features", mode="before")
    @classmethod
    def parse_features(cls, v):
        return text_list(v)


class VehicleListing(CatalogModel):
    """Vehicle model listing as served by the content API"""
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[str] = None
    srp: Optional[float] = None
    seating_capacity: Optional[str] = Field(None, alias="seatingCapacity")
    fuel_system: Optional[str] = Field(None, alias="fuelSystem")
    vcategory: Optional[str] = None
    vtype: Optional[str] = None
    brand: Optional[NamedRef] = None
    distributor: Optional[NamedRef] = None
    unit_configuration: List[VehicleVariant] = Field(default_factory=list, alias="unitConfiguration")

    @field_validator("id", "year", "seating_capacity", mode="before")
    @classmethod
    def stringify(cls, v):
        return str(v) if v is not None else v

    @field_validator("srp", mode="before")
    @classmethod
    def parse_price(cls, v):
        return lenient_number(v)

    @field_validator("unit_configuration", mode="before")
    @classmethod
    def parse_variants(cls, v):
        return v or []

    def unit_prices(self) -> List[float]:
        return [u.srp for u in self.unit_configuration if u.srp is not None]

    @property
    def listing_price(self) -> Optional[float]:
        return self.srp
