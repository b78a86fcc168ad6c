"""
Catalog client for the headless content API (GraphQL over HTTP)
"""
import logging
from typing import Any, Dict, List, Optional
import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from listing_search.core.config import settings


logger = logging.getLogger(__name__)


PROPERTY_FIELDS_FRAGMENT = """
fragment PropertyFields on PropertyRecord {
  id
  name
  summary
  ptype
  purpose
  bedrooms
  bathrooms
  description
  amenitiesAndCommonFacilities
  buildingAmenities
  unitFeatures
  locationName
  location { latitude longitude }
  price
  project {
    id
    name
    slug
    developer { id fullName shortName slug }
  }
  developer { id fullName slug }
  searchTags
  secondaryTags
  unitConfiguration {
    id
    unitName
    unitType
    configPrice
    floorArea
    bedrooms
    bathrooms
    lotArea
    unitFeatures
  }
  developerName
  projectName
}
"""

VEHICLE_FIELDS_FRAGMENT = """
fragment VehicleFields on VehicleRecord {
  id
  name
  description
  make
  model
  year
  srp
  downpayment
  monthlyPayment
  fuelSystem
  seatingCapacity
  vcategory
  vtype
  brand { id name }
  distributor { id name }
  unitConfiguration {
    ... on VehicleConfigurationRecord {
      id
      name
      srp
      downpayment
      monthlyPayment
      features
    }
  }
}
"""

ALL_PROPERTIES_QUERY = PROPERTY_FIELDS_FRAGMENT + """
query AllProperties($first: IntType) {
  allProperties(first: $first) {
    ...PropertyFields
  }
}
"""

ALL_VEHICLES_QUERY = VEHICLE_FIELDS_FRAGMENT + """
query AllVehicles($first: IntType) {
  allVehicles(first: $first) {
    ...VehicleFields
  }
}
"""


class CatalogError(Exception):
    """The content API answered, but not with a usable catalog"""


class CatalogClient:
    """Fetches full listing catalogs from the content API, up to a fixed cap"""

    def __init__(
        self,
        url: Optional[str] = None,
        api_token: Optional[str] = None,
        environment: Optional[str] = None,
        max_fetch: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = url or settings.CONTENT_API_URL
        self.api_token = api_token if api_token is not None else settings.CONTENT_API_TOKEN
        self.environment = environment if environment is not None else settings.CONTENT_API_ENVIRONMENT
        self.max_fetch = max_fetch or settings.CATALOG_MAX_FETCH
        self.client = client or httpx.AsyncClient(
            timeout=30.0,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.api_token:
            raise CatalogError("CONTENT_API_TOKEN is not set")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_token}",
        }
        if self.environment:
            headers["X-Environment"] = self.environment
        return headers

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((httpx.RequestError, httpx.HTTPStatusError))
    )
    async def _post(self, query: str) -> httpx.Response:
        """POST a GraphQL query with retry on transport and HTTP errors"""
        try:
            response = await self.client.post(
                self.url,
                json={"query": query, "variables": {"first": self.max_fetch}},
                headers=self._headers()
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error {e.response.status_code} from content API: {e.response.text}")
            raise
        except httpx.RequestError as e:
            logger.error(f"Request error for content API: {str(e)}")
            raise

    async def _fetch(self, query: str, root: str) -> List[Dict[str, Any]]:
        response = await self._post(query)
        body = response.json()
        if body.get("errors"):
            raise CatalogError(f"GraphQL errors: {body['errors']}")
        records = (body.get("data") or {}).get(root) or []
        logger.info(f"Fetched {len(records)} records from {root}")
        return records

    async def fetch_properties(self) -> List[Dict[str, Any]]:
        return await self._fetch(ALL_PROPERTIES_QUERY, "allProperties")

    async def fetch_vehicles(self) -> List[Dict[str, Any]]:
        return await self._fetch(ALL_VEHICLES_QUERY, "allVehicles")
