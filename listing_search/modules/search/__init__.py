# Search pipeline: normalize, filter, balance, rank, assemble

from .profiles import ListingProfile, PropertyProfile, VehicleProfile
from .normalizer import CriteriaNormalizer, NormalizedCriteria
from .filter_engine import CandidateFilterEngine, FilterResult
from .diversity import DiversityBalancer
from .ranking_engine import RankingStrategySelector, EmbeddingStrategy, LLMStrategy, select_strategy
from .assembler import ResultAssembler

__all__ = [
    "ListingProfile", "PropertyProfile", "VehicleProfile",
    "CriteriaNormalizer", "NormalizedCriteria",
    "CandidateFilterEngine", "FilterResult",
    "DiversityBalancer",
    "RankingStrategySelector", "EmbeddingStrategy", "LLMStrategy", "select_strategy",
    "ResultAssembler"
]
