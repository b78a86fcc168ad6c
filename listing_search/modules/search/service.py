from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union
from listing_search.models.search import (
    RankedSearchResponse, RankingOutcome, SearchCriteria, SearchResponse, SlimCandidate
)
from listing_search.modules.catalog.client import CatalogClient
from listing_search.modules.geospatial.service import GeocodeFn
from listing_search.modules.providers import NominatimGeocoder, OpenAIEmbeddingProvider, OpenAIRankingProvider
from listing_search.modules.search.assembler import ResultAssembler
from listing_search.modules.search.filter_engine import CandidateFilterEngine, FilterResult
from listing_search.modules.search.normalizer import CriteriaNormalizer, NormalizedCriteria
from listing_search.modules.search.profiles import ListingProfile, PropertyProfile, VehicleProfile
from listing_search.modules.search.ranking_engine import EmbedFn, RankFn, RankingStrategySelector
import logging

logger = logging.getLogger(__name__)

CatalogFn = Callable[[], Awaitable[List[Any]]]


class SearchService:
    """Runs the normalize -> filter -> rank pipeline for one listing profile"""

    def __init__(
        self,
        profile: ListingProfile,
        fetch_catalog: Optional[CatalogFn] = None,
        geocode: Optional[GeocodeFn] = None,
        embed: Optional[EmbedFn] = None,
        rank: Optional[RankFn] = None,
        resources: Optional[List[Any]] = None
    ):
        self.profile = profile
        self.fetch_catalog = fetch_catalog
        # Provider clients this service owns and must close
        self.resources = resources or []
        self.normalizer = CriteriaNormalizer(profile)
        self.filter_engine = CandidateFilterEngine(profile, geocode=geocode)
        self.selector = RankingStrategySelector(profile, embed=embed, rank=rank)
        self.assembler = ResultAssembler(profile)

    async def aclose(self):
        for resource in self.resources:
            await resource.aclose()
        logger.info(f"Closed {len(self.resources)} {self.profile.name} provider clients")

    async def _load_catalog(self, catalog: Optional[List[Any]]) -> List[Any]:
        if catalog is not None:
            return catalog
        if self.fetch_catalog is None:
            logger.warning(f"No {self.profile.name} catalog source configured")
            return []
        try:
            return await self.fetch_catalog()
        except Exception as e:
            logger.error(f"Failed to fetch {self.profile.name} catalog: {e}")
            return []

    async def _search(self, raw_criteria: Any, catalog: Optional[List[Any]]) -> Tuple[SearchResponse, NormalizedCriteria]:
        normalized = self.normalizer.normalize(raw_criteria)
        criteria, flags = normalized.criteria, normalized.flags

        message = self.normalizer.gate(flags, criteria)
        if message is not None:
            logger.info(f"Skipping {self.profile.name} search: {message.value}")
            return self.assembler.assemble_rejection(message, flags, criteria), normalized

        listings = await self._load_catalog(catalog)
        result: FilterResult = await self.filter_engine.build_candidates(listings, criteria)
        logger.info(f"Returning {result.count} {self.profile.name} candidates ({result.pass_name or 'no match'})")
        return self.assembler.assemble_search(result, flags, criteria), normalized

    async def search(self, raw_criteria: Any, catalog: Optional[List[Any]] = None) -> SearchResponse:
        """Normalize criteria, gate, filter the catalog and return the capped candidate set"""
        response, _ = await self._search(raw_criteria, catalog)
        return response

    async def rank(
        self,
        candidates: List[SlimCandidate],
        criteria: Union[SearchCriteria, Any]
    ) -> RankingOutcome:
        """Order candidates by relevance; raw criteria are normalized first"""
        if not isinstance(criteria, SearchCriteria):
            criteria = self.normalizer.normalize(criteria).criteria
        return await self.selector.rank(candidates, criteria)

    async def search_and_rank(self, raw_criteria: Any, catalog: Optional[List[Any]] = None) -> RankedSearchResponse:
        response, normalized = await self._search(raw_criteria, catalog)
        outcome = None
        if response.candidates:
            outcome = await self.selector.rank(response.candidates, normalized.criteria)
        return self.assembler.assemble_search_and_rank(response, outcome)


def _default_service(profile: ListingProfile, fetch_name: str) -> SearchService:
    async def fetch_catalog() -> List[Any]:
        async with CatalogClient() as client:
            return await getattr(client, fetch_name)()

    embedder = OpenAIEmbeddingProvider()
    ranker = OpenAIRankingProvider(plural=profile.plural)
    return SearchService(
        profile,
        fetch_catalog=fetch_catalog,
        geocode=NominatimGeocoder().geocode,
        embed=embedder.embed,
        rank=ranker.rank,
        resources=[embedder, ranker]
    )


def property_search_service() -> SearchService:
    return _default_service(PropertyProfile(), "fetch_properties")


def vehicle_search_service() -> SearchService:
    return _default_service(VehicleProfile(), "fetch_vehicles")
