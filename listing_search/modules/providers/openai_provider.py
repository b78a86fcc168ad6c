"""
OpenAI-backed embedding and generative ranking providers.

Both are thin adapters: the ranking engine owns timeouts, validation and
fallbacks, so these only translate between the client SDK and plain Python
values.
"""

from typing import List, Optional, Union
from openai import AsyncOpenAI
from listing_search.core.config import settings
import logging

logger = logging.getLogger(__name__)

RERANKER_INSTRUCTIONS = """You rerank {plural} for a shopper.
You receive the shopper's structured search criteria and a list of candidate {plural}
that already satisfy the hard filters. Order the candidates from most to least relevant.
Use soft requirements, amenity and feature synonyms, intent (family, investment, commute),
distance and price fit to break ties.

Respond with JSON only, in exactly this shape:
{{"orderedIds": ["<id>", ...], "reasonsById": {{"<id>": "<one short sentence>"}}, "scoresById": {{"<id>": <0-100>}}}}

Every candidate id must appear exactly once in orderedIds and as a key in both maps.
Never invent ids."""


def _client(api_key: Optional[str]) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key or settings.OPENAI_API_KEY)


class OpenAIEmbeddingProvider:
    """Batch text embeddings; None signals failure, never an empty match"""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        self.model = model or settings.EMBEDDING_MODEL
        self.client = client or _client(api_key)

    async def embed(self, texts: Union[str, List[str]]) -> Optional[List[List[float]]]:
        inputs = [texts] if isinstance(texts, str) else list(texts)
        if not inputs:
            return []
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=inputs,
                encoding_format="float"
            )
        except Exception as e:
            logger.error(f"Error calling embeddings API: {e}")
            return None
        return [item.embedding for item in response.data]

    async def aclose(self):
        await self.client.close()


class OpenAIRankingProvider:
    """Sends the ranking payload to a chat model constrained to JSON output"""

    def __init__(
        self,
        plural: str = "listings",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        max_tokens: int = 1000
    ):
        self.model = model or settings.RANKING_MODEL
        self.client = client or _client(api_key)
        self.instructions = RERANKER_INSTRUCTIONS.format(plural=plural)
        self.max_tokens = max_tokens

    async def rank(self, payload: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.instructions},
                {"role": "user", "content": payload},
            ],
            temperature=0,
            response_format={"type": "json_object"},
            max_tokens=self.max_tokens
        )
        return response.choices[0].message.content or ""

    async def aclose(self):
        await self.client.close()
