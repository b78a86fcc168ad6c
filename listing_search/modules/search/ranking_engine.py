from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import json
import math
import re
from listing_search.core.config import SearchEngineConfig
from listing_search.models.search import RankingOutcome, RankingStrategyKind, SearchCriteria, SlimCandidate
from listing_search.modules.search.normalizer import round_half_up
from listing_search.modules.search.profiles import ListingProfile
import logging

logger = logging.getLogger(__name__)

EmbedFn = Callable[[List[str]], Awaitable[Optional[List[List[float]]]]]
RankFn = Callable[[str], Awaitable[str]]

_CODE_FENCE = re.compile(r"```(?:json)?\s*")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def select_strategy(count: int, config: SearchEngineConfig) -> RankingStrategyKind:
    """Pick a ranking tier from the candidate count"""
    if count <= config.skip_max:
        return RankingStrategyKind.SKIP
    if count <= config.embedding_max:
        return RankingStrategyKind.EMBEDDING
    return RankingStrategyKind.LLM


def cosine_similarity(vec_a: List[float], vec_b: List[float]) -> float:
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def identity_outcome(
    candidates: List[SlimCandidate],
    reasons: Optional[Dict[str, str]] = None,
    scores: Optional[Dict[str, float]] = None,
    strategy: RankingStrategyKind = RankingStrategyKind.IDENTITY,
    degraded: bool = True
) -> RankingOutcome:
    """Filter order, keeping only the reasons and scores that belong to known candidates"""
    ids = [c.id for c in candidates]
    known = set(ids)
    return RankingOutcome(
        ordered_ids=ids,
        reasons_by_id={k: v for k, v in (reasons or {}).items() if k in known},
        scores_by_id={k: v for k, v in (scores or {}).items() if k in known},
        strategy=strategy,
        degraded=degraded
    )


def parse_ranking_output(text: str) -> Optional[Dict[str, Any]]:
    """Parse provider output as a JSON object, tolerating code fences and surrounding chatter"""
    cleaned = _CODE_FENCE.sub("", text or "").strip()
    try:
        parsed = json.loads(cleaned)
        return parsed if isinstance(parsed, dict) else None
    except ValueError:
        pass

    match = _JSON_OBJECT.search(cleaned)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None
    # Salvaged text is only trusted when it carries a usable order
    if isinstance(parsed, dict) and isinstance(parsed.get("orderedIds"), list):
        return parsed
    return None


class ReasonBuilder:
    """Short human-readable justifications from the facts a candidate carries"""

    def __init__(self, profile: ListingProfile):
        self.profile = profile

    def concrete_reasons(self, candidate: SlimCandidate, criteria: SearchCriteria) -> List[str]:
        parts = []

        location_name = candidate.location_name or ""
        if any(token in location_name.lower() for token in criteria.location_tokens):
            parts.append(f"Located in {location_name}")
        elif candidate.distance_km:
            parts.append(f"{candidate.distance_km:.1f}km from your search area")
        elif location_name:
            parts.append(f"In {location_name}")

        count_reason = self.profile.count_reason(candidate, criteria)
        if count_reason:
            parts.append(count_reason)

        price = candidate.reference_price
        if criteria.max_price and price:
            ratio = price / criteria.max_price
            if ratio <= 0.8:
                parts.append("excellent value")
            elif ratio <= 1:
                parts.append("within budget")

        if candidate.brand:
            parts.append(f"by {candidate.brand}")
        return parts

    def reason(self, candidate: SlimCandidate, criteria: SearchCriteria, similarity: Optional[float] = None) -> str:
        parts = self.concrete_reasons(candidate, criteria)
        if len(parts) >= 2:
            return ", ".join(parts[:3])

        if similarity is None:
            prefix = f"Matches your {self.profile.name} search"
        elif similarity > 0.8:
            prefix = "Excellent match"
        elif similarity > 0.6:
            prefix = "Great option"
        else:
            prefix = f"Quality {self.profile.name}"
        return f"{prefix}: {parts[0]}" if parts else prefix


class EmbeddingStrategy:
    """Ranks candidates by cosine similarity between query and listing embeddings"""

    def __init__(self, profile: ListingProfile, embed: EmbedFn, reasons: Optional[ReasonBuilder] = None):
        self.profile = profile
        self.config = profile.config
        self.embed = embed
        self.reasons = reasons or ReasonBuilder(profile)

    def query_text(self, criteria: SearchCriteria) -> str:
        parts = []
        if criteria.query:
            parts.append(criteria.query)
        if criteria.location:
            parts.append(f"in {criteria.location}")
        count_phrase = self.profile.count_phrase(criteria)
        if count_phrase:
            parts.append(count_phrase)
        if criteria.category:
            parts.append(criteria.category)

        if not parts:
            parts.append(self.profile.plural)
            if criteria.required_features:
                parts.append(f"with {self.profile.features_word}")
        return " ".join(parts).strip()

    def score(self, similarity: float) -> float:
        clamped = min(max(similarity, 0.0), 1.0)
        span = self.config.score_ceiling - self.config.score_floor
        return round_half_up(self.config.score_floor + clamped * span)

    async def _call_embed(self, texts: List[str]) -> Optional[List[List[float]]]:
        try:
            return await asyncio.wait_for(self.embed(texts), timeout=self.config.external_call_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Embedding call timed out after {self.config.external_call_timeout_seconds}s")
            return None
        except Exception as e:
            logger.error(f"Embedding provider error: {e}")
            return None

    async def rank(self, candidates: List[SlimCandidate], criteria: SearchCriteria) -> Optional[RankingOutcome]:
        """Rank by embeddings; None means the caller should fall through to the next tier"""
        query_text = self.query_text(criteria)
        if not query_text:
            logger.warning("Embedding query text is empty, cannot rank by embeddings")
            return None
        logger.info(f"Embedding query: {query_text}")

        pending = [c for c in candidates if not c.embedding]
        texts = [self.profile.embedding_text(c) for c in pending]

        if texts:
            logger.info(f"Generating embeddings for {len(texts)} {self.profile.plural}")
            query_vectors, candidate_vectors = await asyncio.gather(
                self._call_embed([query_text]), self._call_embed(texts)
            )
        else:
            query_vectors, candidate_vectors = await self._call_embed([query_text]), []

        if not query_vectors:
            logger.warning("Failed to get query embedding")
            return None
        if candidate_vectors is None or len(candidate_vectors) != len(pending):
            logger.warning(f"Failed to generate {self.profile.name} embeddings")
            return None

        fresh = {c.id: vector for c, vector in zip(pending, candidate_vectors)}
        query_vector = query_vectors[0]

        scored = []
        for candidate in candidates:
            vector = candidate.embedding or fresh.get(candidate.id)
            similarity = cosine_similarity(query_vector, vector)
            scored.append((candidate, similarity))

        # sorted() is stable, so equal similarities keep filter order
        scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
        logger.info(f"Ranked {len(scored)} {self.profile.plural}. Top similarity: {scored[0][1]:.3f}")

        return RankingOutcome(
            ordered_ids=[c.id for c, _ in scored],
            reasons_by_id={c.id: self.reasons.reason(c, criteria, similarity) for c, similarity in scored},
            scores_by_id={c.id: self.score(similarity) for c, similarity in scored},
            strategy=RankingStrategyKind.EMBEDDING
        )


class LLMStrategy:
    """Delegates ordering to a generative model and validates what comes back"""

    def __init__(self, profile: ListingProfile, rank: RankFn):
        self.profile = profile
        self.config = profile.config
        self.rank_fn = rank

    @staticmethod
    def build_payload(candidates: List[SlimCandidate], criteria: SearchCriteria) -> str:
        criteria_json = json.dumps(criteria.model_dump(mode="json", exclude_none=True))
        candidates_json = json.dumps([c.model_dump(mode="json", by_alias=True) for c in candidates])
        return f"CRITERIA\n{criteria_json}\n\nCANDIDATES\n{candidates_json}"

    @staticmethod
    def _reasons(value: Any) -> Dict[str, str]:
        if not isinstance(value, dict):
            return {}
        return {str(k): str(v) for k, v in value.items() if v is not None}

    @staticmethod
    def _scores(value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            return {}
        scores = {}
        for k, v in value.items():
            if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
                continue
            scores[str(k)] = min(max(float(v), 0.0), 100.0)
        return scores

    async def rank(self, candidates: List[SlimCandidate], criteria: SearchCriteria) -> RankingOutcome:
        payload = self.build_payload(candidates, criteria)
        logger.debug(f"Ranking payload: {payload}")

        try:
            output = await asyncio.wait_for(
                self.rank_fn(payload), timeout=self.config.external_call_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("LLM ranking timed out, using filter order")
            return identity_outcome(candidates)
        except Exception as e:
            logger.error(f"LLM ranking provider error: {e}")
            return identity_outcome(candidates)

        parsed = parse_ranking_output(output)
        if parsed is None:
            logger.warning("LLM ranking returned malformed JSON, using filter order")
            return identity_outcome(candidates)

        reasons = self._reasons(parsed.get("reasonsById"))
        scores = self._scores(parsed.get("scoresById"))
        ordered_ids = parsed.get("orderedIds")
        if not isinstance(ordered_ids, list):
            logger.warning("LLM ranking returned invalid orderedIds, using filter order")
            return identity_outcome(candidates, reasons, scores)

        return RankingOutcome(
            ordered_ids=[str(i) for i in ordered_ids],
            reasons_by_id=reasons,
            scores_by_id=scores,
            strategy=RankingStrategyKind.LLM
        )


class RankingStrategySelector:
    """Chooses a ranking tier by candidate count and walks the embedding -> LLM -> identity chain"""

    def __init__(
        self,
        profile: ListingProfile,
        embed: Optional[EmbedFn] = None,
        rank: Optional[RankFn] = None
    ):
        self.profile = profile
        self.config = profile.config
        self.reasons = ReasonBuilder(profile)
        self.embedding = EmbeddingStrategy(profile, embed, self.reasons) if embed else None
        self.llm = LLMStrategy(profile, rank) if rank else None

    def skip_outcome(self, candidates: List[SlimCandidate], criteria: SearchCriteria) -> RankingOutcome:
        """Filter order with brief reasons; every candidate already passed the hard filters"""
        return RankingOutcome(
            ordered_ids=[c.id for c in candidates],
            reasons_by_id={c.id: self.reasons.reason(c, criteria) for c in candidates},
            scores_by_id={c.id: float(self.config.score_ceiling) for c in candidates},
            strategy=RankingStrategyKind.SKIP
        )

    def _verified(self, outcome: RankingOutcome, candidates: List[SlimCandidate]) -> RankingOutcome:
        if outcome.degraded or outcome.is_complete_for([c.id for c in candidates]):
            return outcome
        logger.warning(f"{outcome.strategy.value} ranking omitted or duplicated candidates, using filter order")
        return identity_outcome(candidates, outcome.reasons_by_id, outcome.scores_by_id)

    async def rank(self, candidates: List[SlimCandidate], criteria: SearchCriteria) -> RankingOutcome:
        """Rank candidates; always returns an outcome covering every candidate id"""
        kind = select_strategy(len(candidates), self.config)
        logger.info(f"Ranking {len(candidates)} {self.profile.plural} with strategy {kind.value}")

        if kind == RankingStrategyKind.SKIP:
            return self.skip_outcome(candidates, criteria)

        if kind == RankingStrategyKind.EMBEDDING and self.embedding is not None:
            try:
                outcome = await self.embedding.rank(candidates, criteria)
            except Exception as e:
                logger.error(f"Embedding ranking failed: {e}")
                outcome = None
            if outcome is not None and outcome.is_complete_for([c.id for c in candidates]):
                return outcome
            logger.warning("Embeddings failed, falling back to LLM")

        if self.llm is None:
            logger.warning("No LLM ranking provider configured, using filter order")
            return identity_outcome(candidates)

        try:
            outcome = await self.llm.rank(candidates, criteria)
        except Exception as e:
            logger.error(f"LLM ranking failed: {e}")
            return identity_outcome(candidates)
        return self._verified(outcome, candidates)
