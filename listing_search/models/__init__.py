# Pydantic models for catalog records and search contracts

from .listing import (
    GeoPoint, Developer, Project, NamedRef,
    PropertyUnit, PropertyListing, VehicleVariant, VehicleListing
)
from .geospatial import Coordinates
from .search import (
    # Enums
    SortOption, QuerySentinel, ClarificationReason, PriceOutlier, RangeIssue,
    SearchMessage, RankingStrategyKind,

    # Criteria and flags
    SearchCriteria, ValidationFlags,

    # Candidates and outcomes
    Candidate, SlimCandidate, RankingOutcome, RankedCandidate,
    SearchResponse, RankedSearchResponse, RerankRequest
)

__all__ = [
    # Listing models
    "GeoPoint", "Developer", "Project", "NamedRef",
    "PropertyUnit", "PropertyListing", "VehicleVariant", "VehicleListing",

    # Geospatial
    "Coordinates",

    # Search enums
    "SortOption", "QuerySentinel", "ClarificationReason", "PriceOutlier", "RangeIssue",
    "SearchMessage", "RankingStrategyKind",

    # Criteria and flags
    "SearchCriteria", "ValidationFlags",

    # Candidates and outcomes
    "Candidate", "SlimCandidate", "RankingOutcome", "RankedCandidate",
    "SearchResponse", "RankedSearchResponse", "RerankRequest"
]
