from functools import lru_cache
from fastapi import APIRouter, Body, Depends, HTTPException, status
from typing import Any, Dict, Union
from listing_search.models.search import RankedSearchResponse, RankingOutcome, RerankRequest, SearchResponse
from listing_search.modules.search.service import SearchService, property_search_service, vehicle_search_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

CriteriaBody = Union[Dict[str, Any], str]


@lru_cache()
def get_property_search_service() -> SearchService:
    return property_search_service()


@lru_cache()
def get_vehicle_search_service() -> SearchService:
    return vehicle_search_service()


async def close_search_services():
    """Close the provider clients of every service built so far"""
    for dependency in (get_property_search_service, get_vehicle_search_service):
        if dependency.cache_info().currsize:
            await dependency().aclose()
        dependency.cache_clear()


def _unavailable(action: str, e: Exception) -> HTTPException:
    logger.error(f"{action} failed: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Search service temporarily unavailable"
    )


@router.post("/properties", response_model=SearchResponse)
async def search_properties(
    criteria: CriteriaBody = Body(...),
    search_service: SearchService = Depends(get_property_search_service)
):
    """
    Filter the property catalog with analyzer criteria.

    Accepts the analyzer envelope (apiSearchParams, flags, excludedPropertyIds)
    or the flattened criteria. Gated queries come back empty with a message code.
    """
    try:
        return await search_service.search(criteria)
    except Exception as e:
        raise _unavailable("Property search", e)


@router.post("/properties/ranked", response_model=RankedSearchResponse)
async def search_and_rank_properties(
    criteria: CriteriaBody = Body(...),
    search_service: SearchService = Depends(get_property_search_service)
):
    """Filter and rank properties in one call"""
    try:
        return await search_service.search_and_rank(criteria)
    except Exception as e:
        raise _unavailable("Property search and rank", e)


@router.post("/properties/rerank", response_model=RankingOutcome)
async def rerank_properties(
    request: RerankRequest,
    search_service: SearchService = Depends(get_property_search_service)
):
    """Order previously returned property candidates by relevance"""
    try:
        return await search_service.rank(request.candidates, request.criteria)
    except Exception as e:
        raise _unavailable("Property rerank", e)


@router.post("/vehicles", response_model=SearchResponse)
async def search_vehicles(
    criteria: CriteriaBody = Body(...),
    search_service: SearchService = Depends(get_vehicle_search_service)
):
    """Filter the vehicle catalog with analyzer criteria"""
    try:
        return await search_service.search(criteria)
    except Exception as e:
        raise _unavailable("Vehicle search", e)


@router.post("/vehicles/ranked", response_model=RankedSearchResponse)
async def search_and_rank_vehicles(
    criteria: CriteriaBody = Body(...),
    search_service: SearchService = Depends(get_vehicle_search_service)
):
    try:
        return await search_service.search_and_rank(criteria)
    except Exception as e:
        raise _unavailable("Vehicle search and rank", e)


@router.post("/vehicles/rerank", response_model=RankingOutcome)
async def rerank_vehicles(
    request: RerankRequest,
    search_service: SearchService = Depends(get_vehicle_search_service)
):
    try:
        return await search_service.rank(request.candidates, request.criteria)
    except Exception as e:
        raise _unavailable("Vehicle rerank", e)
