from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional
from listing_search.models.search import Candidate, SearchCriteria, SlimCandidate, SortOption
from listing_search.modules.geospatial.service import GeoFallbackResolver, GeocodeFn, has_proximity_intent
from listing_search.modules.search.diversity import DiversityBalancer
from listing_search.modules.search.profiles import ListingProfile
import logging

logger = logging.getLogger(__name__)

STRICT = "strict"
AMENITY_RELAXED = "amenity_relaxed"
PRICE_RELAXED = "price_relaxed"
GEO_FALLBACK = "geo_fallback"


@dataclass
class FilterResult:
    candidates: List[SlimCandidate] = field(default_factory=list)
    reference_location: Optional[str] = None
    pass_name: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.candidates)


class CandidateFilterEngine:
    """Filters a full catalog down to a small, ordered candidate set with progressive relaxation"""

    def __init__(self, profile: ListingProfile, geocode: Optional[GeocodeFn] = None):
        self.profile = profile
        self.config = profile.config
        self.geocode = geocode
        self.balancer = DiversityBalancer(profile.location_text)

    def _eligible(
        self,
        listing,
        criteria: SearchCriteria,
        check_price: bool = True,
        check_features: bool = True
    ) -> bool:
        """Every non-location filter, with price and features optionally relaxed"""
        if listing.id in criteria.excluded_ids:
            return False
        if check_price and not self.profile.matches_price(listing, criteria):
            return False
        if not self.profile.matches_category(listing, criteria):
            return False
        if not self.profile.matches_counts(listing, criteria):
            return False
        if not self.profile.matches_names(listing, criteria):
            return False
        if check_features and not self.profile.matches_features(listing, criteria):
            return False
        return True

    def _located(self, listings: Iterable, criteria: SearchCriteria, **relaxed) -> List[Candidate]:
        tokens = criteria.location_tokens
        return [
            Candidate(listing=listing)
            for listing in listings
            if self._eligible(listing, criteria, **relaxed)
            and (not tokens or self.profile.matches_location(listing, tokens))
        ]

    def strict_pass(self, listings: Iterable, criteria: SearchCriteria) -> List[Candidate]:
        """Listings satisfying every hard filter, in catalog order"""
        return self._located(listings, criteria)

    async def _geo_pass(
        self, listings: Iterable, criteria: SearchCriteria, resolver: GeoFallbackResolver
    ) -> List[Candidate]:
        if await resolver.resolve() is None:
            return []
        candidates = []
        for listing in listings:
            if not self._eligible(listing, criteria):
                continue
            distance = resolver.distance_within_radius(self.profile.coordinates(listing))
            if distance is not None:
                candidates.append(Candidate(listing=listing, distance_km=distance))
        return candidates

    async def run_cascade(self, listings: List[Any], criteria: SearchCriteria):
        """Run filter passes until one yields candidates; returns (candidates, pass name, resolver)"""
        tokens = criteria.location_tokens
        resolver = GeoFallbackResolver(
            self.geocode,
            tokens,
            radius_km=self.config.geo_radius_km,
            timeout_seconds=self.config.external_call_timeout_seconds
        )

        candidates = self.strict_pass(listings, criteria)
        if candidates:
            return candidates, STRICT, resolver

        if tokens and criteria.required_features:
            candidates = self._located(listings, criteria, check_features=False)
            if candidates:
                logger.info(f"Relaxed {self.profile.features_word} to keep location {criteria.location}")
                return candidates, AMENITY_RELAXED, resolver

        # Only a closed price range is relaxed; "under X" and "above X" stay hard limits
        if tokens and criteria.has_closed_price_range:
            candidates = self._located(listings, criteria, check_price=False, check_features=False)
            if candidates:
                logger.info(f"Relaxed price range to keep location {criteria.location}")
                return candidates, PRICE_RELAXED, resolver

        if tokens and has_proximity_intent(criteria.query):
            candidates = await self._geo_pass(listings, criteria, resolver)
            if candidates:
                logger.info(
                    f"Geo fallback found {len(candidates)} {self.profile.plural} "
                    f"within {self.config.geo_radius_km}km of {resolver.location}"
                )
                return candidates, GEO_FALLBACK, resolver

        return [], None, resolver

    @staticmethod
    def dedupe(candidates: List[Candidate]) -> List[Candidate]:
        seen = set()
        deduped = []
        for candidate in candidates:
            if candidate.id in seen:
                continue
            seen.add(candidate.id)
            deduped.append(candidate)
        return deduped

    @staticmethod
    def sort_candidates(candidates: List[Candidate], sort_by: Optional[SortOption]) -> List[Candidate]:
        """Stable price sort; missing prices go last ascending and count as zero descending"""
        if sort_by == SortOption.PRICE_ASC:
            def ascending_key(candidate: Candidate) -> float:
                unit_prices = candidate.listing.unit_prices()
                if unit_prices:
                    return min(unit_prices)
                return candidate.listing.listing_price or float("inf")
            return sorted(candidates, key=ascending_key)

        if sort_by == SortOption.PRICE_DESC:
            def descending_key(candidate: Candidate) -> float:
                unit_prices = candidate.listing.unit_prices()
                if unit_prices:
                    return -max(unit_prices)
                return -(candidate.listing.listing_price or 0)
            return sorted(candidates, key=descending_key)

        return candidates

    async def build_candidates(self, catalog: Iterable[Any], criteria: SearchCriteria) -> FilterResult:
        """Filter, sort, balance, cap and slim the catalog for ranking"""
        listings = self.profile.parse_catalog(catalog)
        if criteria.excluded_ids:
            logger.info(f"Excluding {len(criteria.excluded_ids)} previously shown {self.profile.plural}")

        candidates, pass_name, resolver = await self.run_cascade(listings, criteria)
        candidates = self.dedupe(candidates)
        candidates = self.sort_candidates(candidates, criteria.sort_by)

        tokens = criteria.location_tokens
        if len(tokens) > 1:
            candidates = self.balancer.balance(candidates, tokens, criteria.requested_count)

        cap = min(criteria.requested_count, self.config.max_candidates)
        capped = candidates[:cap]
        logger.info(
            f"Capping to {cap} {self.profile.plural} "
            f"(requested: {criteria.requested_count}, max: {self.config.max_candidates}, pass: {pass_name})"
        )

        return FilterResult(
            candidates=[self.profile.slim(candidate) for candidate in capped],
            reference_location=resolver.reference_label,
            pass_name=pass_name
        )
