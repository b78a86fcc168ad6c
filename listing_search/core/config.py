from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Content API (catalog source)
    CONTENT_API_URL: str = "https://graphql.datocms.com/"
    CONTENT_API_TOKEN: str = ""
    CONTENT_API_ENVIRONMENT: Optional[str] = None
    CATALOG_MAX_FETCH: int = 500

    # Language model providers
    OPENAI_API_KEY: str = ""
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    RANKING_MODEL: str = "gpt-4o-mini"

    # Geocoding
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "ListingSearch/1.0"
    GEOCODER_COUNTRY_SUFFIX: str = "Philippines"

    # Every external call in the pipeline is bounded by this
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 10.0

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


class SearchEngineConfig(BaseModel):
    """Tunables for one catalog's filter and ranking pipeline"""

    # Candidate set sizing
    max_candidates: int = Field(12, ge=1)
    default_requested_count: int = Field(3, ge=1)
    max_requested_count: int = Field(10, ge=1)

    # Geo fallback
    geo_radius_km: float = Field(100.0, gt=0)

    # Slim projection payload bounds
    feature_tag_sample: int = Field(8, ge=0)
    feature_tag_max_length: int = Field(100, ge=1)

    # Price outlier thresholds
    low_price_threshold: float = 100_000
    high_price_threshold: float = 200_000_000

    # Ranking tiers: <= skip_max skips ranking, <= embedding_max uses embeddings
    skip_max: int = Field(3, ge=0)
    embedding_max: int = Field(10, ge=1)

    # Embedding similarity display range
    score_floor: int = Field(50, ge=0, le=100)
    score_ceiling: int = Field(100, ge=0, le=100)

    external_call_timeout_seconds: float = Field(10.0, gt=0)


PROPERTY_ENGINE_CONFIG = SearchEngineConfig()

VEHICLE_ENGINE_CONFIG = SearchEngineConfig(
    low_price_threshold=50_000,
    high_price_threshold=50_000_000,
)


settings = Settings()
