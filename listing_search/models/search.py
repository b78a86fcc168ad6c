from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Union
from dataclasses import dataclass
from enum import Enum
from listing_search.models.listing import PropertyListing, VehicleListing


class SortOption(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"


class QuerySentinel(str, Enum):
    """Terminal values the query analyzer writes into the query field"""
    NOT_REAL_ESTATE = "NOT_REAL_ESTATE"
    INVALID_PROPERTY_TYPE = "INVALID_PROPERTY_TYPE"
    UNREALISTIC_DESCRIPTION = "UNREALISTIC_DESCRIPTION"


class ClarificationReason(str, Enum):
    UNSPECIFIED = "UNSPECIFIED"
    AMBIGUOUS_LOCATION = "AMBIGUOUS_LOCATION"
    AMBIGUOUS_PROPERTY_TYPE = "AMBIGUOUS_PROPERTY_TYPE"
    AMBIGUOUS_BUDGET = "AMBIGUOUS_BUDGET"
    MISSING_CRITERIA = "MISSING_CRITERIA"


class PriceOutlier(str, Enum):
    TOO_LOW = "TOO_LOW"
    TOO_HIGH = "TOO_HIGH"
    UNKNOWN = "UNKNOWN"  # analyzer flagged the price without naming a side


class RangeIssue(str, Enum):
    NEGATIVE_PRICE = "NEGATIVE_PRICE"
    NEGATIVE_BEDROOMS = "NEGATIVE_BEDROOMS"
    NEGATIVE_BATHROOMS = "NEGATIVE_BATHROOMS"
    NEGATIVE_SEATING = "NEGATIVE_SEATING"
    MIN_GREATER_THAN_MAX = "MIN_GREATER_THAN_MAX"


class SearchMessage(str, Enum):
    NOT_REAL_ESTATE_QUERY = "NOT_REAL_ESTATE_QUERY"
    INVALID_PROPERTY_TYPE_QUERY = "INVALID_PROPERTY_TYPE_QUERY"
    UNREALISTIC_DESCRIPTION_QUERY = "UNREALISTIC_DESCRIPTION_QUERY"
    NEEDS_CLARIFICATION = "NEEDS_CLARIFICATION"
    UNREALISTIC_PRICE_QUERY = "UNREALISTIC_PRICE_QUERY"
    INVALID_RANGE_QUERY = "INVALID_RANGE_QUERY"
    NO_RESULTS = "NO_RESULTS"


class RankingStrategyKind(str, Enum):
    SKIP = "skip"
    EMBEDDING = "embedding"
    LLM = "llm"
    IDENTITY = "identity"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchCriteria(BaseModel):
    """Canonical, filter-ready query produced by the criteria normalizer"""

    query: str = ""
    sentinel: Optional[QuerySentinel] = None

    # Location, comma-separated when several areas were requested
    location: Optional[str] = None
    category: Optional[str] = None

    # Numeric ranges
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_bedrooms: Optional[float] = None
    max_bedrooms: Optional[float] = None
    min_bathrooms: Optional[float] = None
    max_bathrooms: Optional[float] = None
    min_seating: Optional[float] = None
    max_seating: Optional[float] = None

    # Categorical filters, lower-cased; None means "filter absent"
    developers: Optional[List[str]] = None
    projects: Optional[List[str]] = None
    brands: Optional[List[str]] = None
    distributors: Optional[List[str]] = None
    models: Optional[List[str]] = None
    fuel_types: Optional[List[str]] = None
    required_features: Optional[List[str]] = None
    soft_requirements: Optional[List[str]] = None

    # Search options
    sort_by: Optional[SortOption] = None
    requested_count: int = Field(3, ge=1, le=10)
    excluded_ids: List[str] = []

    @model_validator(mode='after')
    def validate_ranges(self):
        for field in ("price", "bedrooms", "bathrooms", "seating"):
            low = getattr(self, f"min_{field}")
            high = getattr(self, f"max_{field}")
            if low is not None and high is not None and low > high:
                raise ValueError(f'min_{field} must be less than or equal to max_{field}')
        return self

    @property
    def location_tokens(self) -> List[str]:
        if not self.location:
            return []
        return [token.strip().lower() for token in self.location.split(",") if token.strip()]

    @property
    def category_tokens(self) -> List[str]:
        if not self.category:
            return []
        return [token.strip().lower() for token in self.category.split(",") if token.strip()]

    @property
    def has_closed_price_range(self) -> bool:
        return self.min_price is not None and self.max_price is not None

    @property
    def is_terminal(self) -> bool:
        return self.sentinel is not None


class ValidationFlags(CamelModel):
    """Side-channel verdicts about the query that gate whether filtering runs"""

    clarification_reason: Optional[ClarificationReason] = None
    clarification_options: List[str] = []
    price_outlier: Optional[PriceOutlier] = None
    range_issue: Optional[RangeIssue] = None
    soft_notes: List[str] = []

    @computed_field(alias="needsClarification")
    @property
    def needs_clarification(self) -> bool:
        return self.clarification_reason is not None

    @computed_field(alias="unrealisticPrice")
    @property
    def unrealistic_price(self) -> bool:
        return self.price_outlier is not None


class SlimCandidate(CamelModel):
    """Reduced snapshot of a listing, sized for transport to a ranking strategy"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str = ""
    location_name: str = ""
    price: Optional[float] = None
    min_unit_price: Optional[float] = None
    max_unit_price: Optional[float] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    seating: Optional[int] = None
    brand: Optional[str] = None
    distributor: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    category: Optional[str] = None
    fuel_system: Optional[str] = None
    unit_type_summary: List[str] = []
    feature_tags: List[str] = []
    distance_km: Optional[float] = None
    embedding: Optional[List[float]] = Field(None, exclude=True)

    @property
    def reference_price(self) -> Optional[float]:
        """Cheapest unit price when units exist, else the listing price"""
        return self.min_unit_price if self.min_unit_price is not None else self.price


@dataclass
class Candidate:
    """A catalog record that survived the filter cascade"""
    listing: Union[PropertyListing, VehicleListing]
    distance_km: Optional[float] = None

    @property
    def id(self) -> str:
        return self.listing.id


class RankingOutcome(CamelModel):
    ordered_ids: List[str] = []
    reasons_by_id: Dict[str, str] = {}
    scores_by_id: Dict[str, float] = {}
    strategy: RankingStrategyKind = Field(RankingStrategyKind.IDENTITY, exclude=True)
    degraded: bool = Field(False, exclude=True)

    def is_complete_for(self, candidate_ids: List[str]) -> bool:
        """Ordered ids are a permutation of the candidates and every id is scored and explained"""
        if len(self.ordered_ids) != len(candidate_ids):
            return False
        if set(self.ordered_ids) != set(candidate_ids) or len(set(self.ordered_ids)) != len(self.ordered_ids):
            return False
        return all(cid in self.scores_by_id and cid in self.reasons_by_id for cid in candidate_ids)


class RankedCandidate(CamelModel):
    candidate: SlimCandidate
    score: Optional[float] = None
    reason: Optional[str] = None


class SearchResponse(CamelModel):
    candidates: List[SlimCandidate] = []
    count: int = 0
    reference_location: Optional[str] = None
    flags: ValidationFlags = Field(default_factory=ValidationFlags)
    soft_requirements: Optional[List[str]] = None
    requested_count: int = 3
    message_code: Optional[SearchMessage] = None
    message: Optional[str] = None


class RankedSearchResponse(SearchResponse):
    ranking: Optional[RankingOutcome] = None
    results: List[RankedCandidate] = []


class RerankRequest(BaseModel):
    criteria: Union[Dict[str, Any], str] = {}
    candidates: List[SlimCandidate] = []
