# Default collaborators: geocoding, embeddings and generative ranking

from .geocoder import NominatimGeocoder
from .openai_provider import OpenAIEmbeddingProvider, OpenAIRankingProvider

__all__ = ["NominatimGeocoder", "OpenAIEmbeddingProvider", "OpenAIRankingProvider"]
