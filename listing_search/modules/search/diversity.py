from typing import Callable, Dict, List, Optional
from listing_search.models.search import Candidate
import logging

logger = logging.getLogger(__name__)


class DiversityBalancer:
    """Reorders candidates so each requested location shows up before the list is capped"""

    def __init__(self, location_text: Callable[[object], str]):
        # Maps a listing to the lower-cased text its location tokens are matched against
        self.location_text = location_text

    def _first_matching_token(self, candidate: Candidate, tokens: List[str]) -> Optional[str]:
        text = self.location_text(candidate.listing)
        for token in tokens:
            if token in text:
                return token
        return None

    def balance(self, candidates: List[Candidate], tokens: List[str], limit: int) -> List[Candidate]:
        """
        Return candidates reordered for location diversity.

        Candidates must already be sorted. Each token contributes its best
        candidate first, then remaining slots are filled in sorted order up to
        the limit. If any token ends up without a candidate, or the limit is
        smaller than the number of tokens, the input order is returned as is.
        """
        if len(tokens) < 2 or not candidates or limit < len(tokens):
            return candidates

        groups: Dict[str, List[Candidate]] = {token: [] for token in tokens}
        for candidate in candidates:
            token = self._first_matching_token(candidate, tokens)
            if token is not None:
                groups[token].append(candidate)

        if sum(1 for group in groups.values() if group) < 2:
            return candidates

        chosen: List[Candidate] = []
        used = set()
        for token in tokens:
            group = groups[token]
            if group and group[0].id not in used:
                chosen.append(group[0])
                used.add(group[0].id)

        if len(chosen) < len(tokens):
            logger.info(
                f"Location diversity incomplete ({len(chosen)}/{len(tokens)} locations), keeping sorted order"
            )
            return candidates

        for candidate in candidates:
            if len(chosen) >= limit:
                break
            if candidate.id not in used:
                chosen.append(candidate)
                used.add(candidate.id)

        logger.info(f"Balanced candidates across {len(tokens)} locations")
        return chosen
