"""
Listing profiles.

The filter and ranking pipeline is the same for every catalog; what differs is
where a catalog keeps its prices, names, tags and counts. A profile answers
those questions for one catalog so the engine never touches raw field names.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple
from pydantic import ValidationError
from listing_search.core.config import SearchEngineConfig, PROPERTY_ENGINE_CONFIG, VEHICLE_ENGINE_CONFIG
from listing_search.models.listing import GeoPoint, PropertyListing, VehicleListing
from listing_search.models.search import Candidate, SearchCriteria, SlimCandidate
from listing_search.modules.search import vocabulary
import logging

logger = logging.getLogger(__name__)


def range_meets(value: float, low: Optional[float], high: Optional[float]) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def either_contains(filters: List[str], tokens: Iterable[str]) -> bool:
    """Any filter is a substring of any token, or the other way round"""
    tokens = list(tokens)
    return any(
        token in f or f in token
        for f in filters
        for token in tokens
    )


def collect_tokens(*values: Optional[str]) -> List[str]:
    tokens = []
    for value in values:
        if not value:
            continue
        token = str(value).lower().strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def split_feature_text(values: Iterable[str]) -> List[str]:
    tokens = []
    seen = set()
    for value in values:
        for part in vocabulary.FEATURE_TOKEN_SEPARATORS.split(str(value).lower()):
            part = part.strip()
            if part and part not in seen:
                seen.add(part)
                tokens.append(part)
    return tokens


def format_count(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    return str(int(value)) if float(value).is_integer() else str(value)


def format_price(value: Optional[float]) -> Optional[str]:
    if not value:
        return None
    return f"₱{value / 1_000_000:.1f}M"


class ListingProfile(ABC):
    """Catalog-specific knowledge the search pipeline needs"""

    name: str = "listing"
    plural: str = "listings"
    features_word: str = "features"
    listing_model: Any = None

    # Raw analyzer keys, per canonical criteria field
    category_keys: Tuple[str, ...] = ()
    list_keys: Dict[str, Tuple[str, ...]] = {}
    range_fields: Tuple[str, ...] = ()
    exclusion_keys: Tuple[str, ...] = ()

    def __init__(self, config: Optional[SearchEngineConfig] = None):
        self.config = config or SearchEngineConfig()

    def parse_catalog(self, items: Iterable[Any]) -> List[Any]:
        """Validate raw catalog records, skipping any the model cannot read"""
        listings = []
        for item in items:
            if isinstance(item, self.listing_model):
                listings.append(item)
                continue
            try:
                listings.append(self.listing_model.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable {self.name} record: {e.error_count()} errors")
        return listings

    # --- filter predicates -------------------------------------------------

    def matches_price(self, listing, criteria: SearchCriteria) -> bool:
        """The listing price or any unit price inside the range is a match"""
        if criteria.min_price is None and criteria.max_price is None:
            return True
        prices = [listing.listing_price] + listing.unit_prices()
        return any(p is not None and range_meets(p, criteria.min_price, criteria.max_price) for p in prices)

    @abstractmethod
    def matches_category(self, listing, criteria: SearchCriteria) -> bool:
        pass

    @abstractmethod
    def matches_counts(self, listing, criteria: SearchCriteria) -> bool:
        pass

    @abstractmethod
    def matches_names(self, listing, criteria: SearchCriteria) -> bool:
        """Developer/project or brand/distributor/model/fuel filters"""
        pass

    @abstractmethod
    def feature_tokens(self, listing) -> List[str]:
        pass

    @abstractmethod
    def feature_matches(self, tokens: List[str], feature: str) -> bool:
        pass

    def matches_features(self, listing, criteria: SearchCriteria) -> bool:
        if not criteria.required_features:
            return True
        tokens = self.feature_tokens(listing)
        return all(self.feature_matches(tokens, feature) for feature in criteria.required_features)

    @abstractmethod
    def location_text(self, listing) -> str:
        pass

    def matches_location(self, listing, tokens: List[str]) -> bool:
        text = self.location_text(listing)
        return any(token in text for token in tokens)

    def coordinates(self, listing) -> Optional[GeoPoint]:
        return None

    # --- projections -------------------------------------------------------

    def price_bounds(self, listing) -> Tuple[Optional[float], Optional[float]]:
        unit_prices = listing.unit_prices()
        if not unit_prices:
            return None, None
        return min(unit_prices), max(unit_prices)

    def sample_tags(self, tags: Iterable[str]) -> List[str]:
        sample = list(tags)[:self.config.feature_tag_sample]
        return [str(tag)[:self.config.feature_tag_max_length] for tag in sample]

    @abstractmethod
    def slim(self, candidate: Candidate) -> SlimCandidate:
        pass

    @abstractmethod
    def embedding_text(self, candidate: SlimCandidate) -> str:
        pass

    @abstractmethod
    def count_phrase(self, criteria: SearchCriteria) -> Optional[str]:
        """How the requested count reads inside an embedding query"""
        pass

    @abstractmethod
    def count_reason(self, candidate: SlimCandidate, criteria: SearchCriteria) -> Optional[str]:
        pass


class PropertyProfile(ListingProfile):
    name = "property"
    plural = "properties"
    features_word = "amenities"
    listing_model = PropertyListing

    category_keys = ("filter_ptype", "ptype")
    list_keys = {
        "developers": ("filter_developer",),
        "projects": ("filter_project",),
        "required_features": ("must_have_amenities", "must_have_features"),
    }
    range_fields = ("bedrooms", "bathrooms")
    exclusion_keys = ("excludedPropertyIds", "excluded_property_ids")

    def __init__(
        self,
        config: Optional[SearchEngineConfig] = None,
        amenity_synonyms: Optional[Dict[str, List[str]]] = None,
        category_unit_types: Optional[Dict[str, List[str]]] = None,
        unit_type_patterns: Optional[List[tuple]] = None
    ):
        super().__init__(config or PROPERTY_ENGINE_CONFIG)
        self.amenity_synonyms = amenity_synonyms or vocabulary.AMENITY_SYNONYMS
        self.category_unit_types = category_unit_types or vocabulary.PROPERTY_CATEGORY_UNIT_TYPES
        self.unit_type_patterns = unit_type_patterns or vocabulary.UNIT_TYPE_QUERY_PATTERNS

    def matches_category(self, listing: PropertyListing, criteria: SearchCriteria) -> bool:
        if not criteria.category:
            return True
        unit_types = [str(u.unit_type or "").lower() for u in listing.unit_configuration]

        # A unit type named in the query is stricter than the broad category
        for pattern, unit_type in self.unit_type_patterns:
            if pattern.search(criteria.query or ""):
                return unit_type in unit_types

        has_lot = any(u.lot_area is not None and u.lot_area > 0 for u in listing.unit_configuration)
        for desired in criteria.category_tokens:
            # Categories without a unit-type family do not constrain the search
            if desired not in self.category_unit_types:
                return True
            if any(t in self.category_unit_types[desired] for t in unit_types):
                return True
            if desired in vocabulary.LOT_AREA_CATEGORIES and has_lot:
                return True
        return False

    def matches_counts(self, listing: PropertyListing, criteria: SearchCriteria) -> bool:
        for field in self.range_fields:
            low = getattr(criteria, f"min_{field}")
            high = getattr(criteria, f"max_{field}")
            if low is None and high is None:
                continue
            values = [getattr(listing, field)] + [getattr(u, field) for u in listing.unit_configuration]
            if not any(v is not None and range_meets(v, low, high) for v in values):
                return False
        return True

    def developer_tokens(self, listing: PropertyListing) -> List[str]:
        developer = listing.developer or None
        project_developer = listing.project.developer if listing.project else None
        return collect_tokens(
            developer.full_name if developer else None,
            developer.short_name if developer else None,
            developer.slug if developer else None,
            listing.developer_name,
            project_developer.full_name if project_developer else None,
            project_developer.short_name if project_developer else None,
            project_developer.slug if project_developer else None,
        )

    def project_tokens(self, listing: PropertyListing) -> List[str]:
        return collect_tokens(
            listing.project.name if listing.project else None,
            listing.project_name,
            listing.name,
        )

    def matches_names(self, listing: PropertyListing, criteria: SearchCriteria) -> bool:
        if criteria.developers and not either_contains(criteria.developers, self.developer_tokens(listing)):
            return False
        if criteria.projects and not either_contains(criteria.projects, self.project_tokens(listing)):
            return False
        return True

    def feature_tokens(self, listing: PropertyListing) -> List[str]:
        texts = (
            listing.search_tags
            + listing.secondary_tags
            + listing.amenities_and_common_facilities
            + listing.building_amenities
            + listing.unit_features
            + [listing.description or "", listing.summary or ""]
        )
        for unit in listing.unit_configuration:
            texts += unit.unit_features
        return split_feature_text(texts)

    def feature_matches(self, tokens: List[str], feature: str) -> bool:
        synonyms = self.amenity_synonyms.get(feature) or [feature.replace("_", " ")]
        return any(syn.lower() in token for syn in synonyms for token in tokens)

    def location_text(self, listing: PropertyListing) -> str:
        parts = [
            listing.location_name or "",
            (listing.project.name if listing.project else None) or "",
            (listing.developer.full_name if listing.developer else None) or "",
            listing.name or "",
        ]
        return " ".join(parts).lower()

    def coordinates(self, listing: PropertyListing) -> Optional[GeoPoint]:
        return listing.location

    def slim(self, candidate: Candidate) -> SlimCandidate:
        p: PropertyListing = candidate.listing
        min_unit_price, max_unit_price = self.price_bounds(p)
        unit_type_summary = []
        for unit in p.unit_configuration:
            unit_type = str(unit.unit_type or "").lower()
            if unit_type and unit_type not in unit_type_summary:
                unit_type_summary.append(unit_type)

        developer = None
        if p.developer and p.developer.full_name:
            developer = p.developer.full_name
        elif p.project and p.project.developer and p.project.developer.short_name:
            developer = p.project.developer.short_name

        return SlimCandidate(
            id=p.id,
            name=p.name or "",
            location_name=p.location_name or "",
            price=p.price,
            min_unit_price=min_unit_price,
            max_unit_price=max_unit_price,
            bedrooms=p.bedrooms,
            bathrooms=p.bathrooms,
            brand=developer,
            category=p.ptype,
            unit_type_summary=unit_type_summary,
            feature_tags=self.sample_tags(p.search_tags + p.secondary_tags),
            distance_km=candidate.distance_km,
        )

    def embedding_text(self, candidate: SlimCandidate) -> str:
        counts = []
        if candidate.bedrooms is not None:
            counts.append(f"{format_count(candidate.bedrooms)} bedroom")
        if candidate.bathrooms is not None:
            counts.append(f"{format_count(candidate.bathrooms)} bathroom")
        parts = [
            candidate.name,
            candidate.location_name,
            candidate.brand,
            " ".join(counts),
            ", ".join(candidate.unit_type_summary),
            format_price(candidate.price),
            f"Amenities: {', '.join(candidate.feature_tags)}",
        ]
        return ". ".join(part for part in parts if part)

    def count_phrase(self, criteria: SearchCriteria) -> Optional[str]:
        if not criteria.min_bedrooms:
            return None
        return f"{format_count(criteria.min_bedrooms)} bedroom"

    def count_reason(self, candidate: SlimCandidate, criteria: SearchCriteria) -> Optional[str]:
        if candidate.bedrooms is None:
            return None
        bedrooms = format_count(candidate.bedrooms)
        if criteria.min_bedrooms is not None and criteria.min_bedrooms == candidate.bedrooms:
            return f"{bedrooms}-bedroom as requested"
        if candidate.bedrooms:
            return f"{bedrooms}-bedroom unit"
        return None


class VehicleProfile(ListingProfile):
    name = "vehicle"
    plural = "vehicles"
    features_word = "features"
    listing_model = VehicleListing

    category_keys = ("filter_category", "vcategory")
    list_keys = {
        "brands": ("filter_brand",),
        "distributors": ("filter_distributor",),
        "models": ("filter_model",),
        "fuel_types": ("filter_fuel_type",),
        "required_features": ("must_have_features", "must_have_amenities"),
    }
    range_fields = ("seating",)
    exclusion_keys = ("excludedVehicleIds", "excluded_vehicle_ids")

    def __init__(
        self,
        config: Optional[SearchEngineConfig] = None,
        category_families: Optional[List[str]] = None
    ):
        super().__init__(config or VEHICLE_ENGINE_CONFIG)
        self.category_families = category_families or vocabulary.VEHICLE_CATEGORY_FAMILIES

    @staticmethod
    def seating(listing: VehicleListing) -> Optional[int]:
        match = vocabulary.SEATING_PATTERN.search(str(listing.seating_capacity or ""))
        return int(match.group(1)) if match else None

    def _category_matches(self, vcategory: str, wanted: str) -> bool:
        if vcategory == wanted:
            return True
        if vcategory in wanted or wanted in vcategory:
            return True
        compact_category = vcategory.replace("_", "").replace("-", "")
        compact_wanted = wanted.replace("_", "").replace("-", "")
        if compact_category == compact_wanted:
            return True
        for family in self.category_families:
            if wanted == family and family in compact_category:
                return True
            if vcategory == family and family in compact_wanted:
                return True
        return False

    def matches_category(self, listing: VehicleListing, criteria: SearchCriteria) -> bool:
        if not criteria.category:
            return True
        vcategory = str(listing.vcategory or "").lower().strip()
        # Uncategorized models pass
        if not vcategory:
            return True
        return any(self._category_matches(vcategory, w) for w in criteria.category_tokens)

    def matches_counts(self, listing: VehicleListing, criteria: SearchCriteria) -> bool:
        if criteria.min_seating is None and criteria.max_seating is None:
            return True
        seating = self.seating(listing)
        # Seating is not recorded for every model; unknown seating never excludes
        if seating is None:
            return True
        return range_meets(seating, criteria.min_seating, criteria.max_seating)

    def matches_names(self, listing: VehicleListing, criteria: SearchCriteria) -> bool:
        if criteria.fuel_types:
            fuel_system = str(listing.fuel_system or "").lower().strip()
            if fuel_system and not either_contains(criteria.fuel_types, [fuel_system]):
                return False
        if criteria.distributors:
            tokens = collect_tokens(listing.distributor.name if listing.distributor else None)
            if not either_contains(criteria.distributors, tokens):
                return False
        if criteria.brands:
            tokens = collect_tokens(listing.brand.name if listing.brand else None, listing.make)
            if not either_contains(criteria.brands, tokens):
                return False
        if criteria.models:
            tokens = collect_tokens(listing.name, listing.model, listing.make)
            if not either_contains(criteria.models, tokens):
                return False
        return True

    def feature_tokens(self, listing: VehicleListing) -> List[str]:
        texts = []
        for variant in listing.unit_configuration:
            texts += variant.features
        texts.append(listing.description or "")
        return split_feature_text(texts)

    def feature_matches(self, tokens: List[str], feature: str) -> bool:
        return either_contains([feature.lower()], tokens)

    def location_text(self, listing: VehicleListing) -> str:
        parts = [
            (listing.distributor.name if listing.distributor else None) or "",
            listing.name or "",
            listing.description or "",
        ]
        return " ".join(parts).lower()

    def slim(self, candidate: Candidate) -> SlimCandidate:
        v: VehicleListing = candidate.listing
        min_unit_price, max_unit_price = self.price_bounds(v)
        features = []
        for variant in v.unit_configuration:
            features += variant.features

        return SlimCandidate(
            id=v.id,
            name=v.name or "",
            location_name=(v.distributor.name if v.distributor else None) or "",
            price=v.srp,
            min_unit_price=min_unit_price,
            max_unit_price=max_unit_price,
            seating=self.seating(v),
            brand=v.brand.name if v.brand else None,
            distributor=v.distributor.name if v.distributor else None,
            make=v.make,
            model=v.model,
            category=v.vcategory,
            fuel_system=v.fuel_system,
            feature_tags=self.sample_tags(features),
            distance_km=candidate.distance_km,
        )

    def embedding_text(self, candidate: SlimCandidate) -> str:
        parts = [
            candidate.name,
            " ".join(p for p in (candidate.make, candidate.model) if p),
            candidate.brand,
            candidate.distributor,
            candidate.category,
            candidate.fuel_system,
            f"{candidate.seating}-seater" if candidate.seating else None,
            format_price(candidate.reference_price),
            f"Features: {', '.join(candidate.feature_tags)}",
        ]
        return ". ".join(part for part in parts if part)

    def count_phrase(self, criteria: SearchCriteria) -> Optional[str]:
        if not criteria.min_seating:
            return None
        return f"{format_count(criteria.min_seating)} seater"

    def count_reason(self, candidate: SlimCandidate, criteria: SearchCriteria) -> Optional[str]:
        if not candidate.seating:
            return None
        if criteria.min_seating is not None and criteria.min_seating == candidate.seating:
            return f"{candidate.seating}-seater as requested"
        return f"{candidate.seating}-seater"
