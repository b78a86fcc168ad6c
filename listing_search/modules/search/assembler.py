from typing import List, Optional
from listing_search.models.search import (
    RankedCandidate, RankedSearchResponse, RankingOutcome, SearchCriteria,
    SearchMessage, SearchResponse, SlimCandidate, ValidationFlags
)
from listing_search.modules.search.filter_engine import FilterResult
from listing_search.modules.search.profiles import ListingProfile


class ResultAssembler:
    """Reshapes filter and ranking output into the responses the conversational layer consumes"""

    def __init__(self, profile: ListingProfile):
        self.profile = profile

    def assemble_search(
        self, result: FilterResult, flags: ValidationFlags, criteria: SearchCriteria
    ) -> SearchResponse:
        response = SearchResponse(
            candidates=result.candidates,
            count=result.count,
            reference_location=result.reference_location,
            flags=flags,
            soft_requirements=criteria.soft_requirements,
            requested_count=criteria.requested_count
        )
        if not result.candidates:
            response.message_code = SearchMessage.NO_RESULTS
            response.message = f"no {self.profile.plural} found"
        return response

    def assemble_rejection(
        self, message: SearchMessage, flags: ValidationFlags, criteria: SearchCriteria
    ) -> SearchResponse:
        """Empty response carrying the gate that stopped the search"""
        return SearchResponse(
            flags=flags,
            soft_requirements=criteria.soft_requirements,
            requested_count=criteria.requested_count,
            message_code=message,
            message=message.value
        )

    @staticmethod
    def assemble_ranked(
        candidates: List[SlimCandidate], outcome: RankingOutcome, limit: Optional[int] = None
    ) -> List[RankedCandidate]:
        by_id = {c.id: c for c in candidates}
        ranked = []
        for candidate_id in outcome.ordered_ids:
            candidate = by_id.get(candidate_id)
            if candidate is None:
                continue
            ranked.append(RankedCandidate(
                candidate=candidate,
                score=outcome.scores_by_id.get(candidate_id),
                reason=outcome.reasons_by_id.get(candidate_id)
            ))
        return ranked[:limit] if limit is not None else ranked

    def assemble_search_and_rank(
        self, response: SearchResponse, outcome: Optional[RankingOutcome]
    ) -> RankedSearchResponse:
        results = []
        if outcome is not None:
            results = self.assemble_ranked(response.candidates, outcome, response.requested_count)
        return RankedSearchResponse(
            **response.model_dump(exclude={"flags", "candidates"}),
            candidates=response.candidates,
            flags=response.flags,
            ranking=outcome,
            results=results
        )
