from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from listing_search.api.routers import search
from listing_search.core.config import settings
import logging

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Listing Search API",
    description="Structured search and relevance ranking for property and vehicle catalogs",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(search.router, prefix="/api/v1/search", tags=["search"])


@app.get("/")
async def root():
    return {"message": "Listing Search API"}


@app.get("/health")
async def health_check():
    """Report which collaborators are configured"""
    services = {
        "catalog": "configured" if settings.CONTENT_API_TOKEN else "missing token",
        "ranking": "configured" if settings.OPENAI_API_KEY else "missing api key",
        "geocoder": "configured",
    }
    degraded = any(value != "configured" for value in services.values())
    return {"status": "degraded" if degraded else "healthy", "services": services}


@app.on_event("shutdown")
async def shutdown_event():
    """Close the search services' provider clients"""
    try:
        await search.close_search_services()
        logger.info("Search services closed")
    except Exception as e:
        logger.error(f"Failed to close search services: {e}")
