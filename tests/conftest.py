import pytest
from typing import List
from listing_search.core.config import SearchEngineConfig
from listing_search.models.search import SearchCriteria, SlimCandidate
from listing_search.modules.search.profiles import PropertyProfile, VehicleProfile


def _property(id, name, location_name, price, bedrooms, bathrooms, developer, units,
              latitude=None, longitude=None, search_tags=None, **extra):
    record = {
        "id": id,
        "name": name,
        "locationName": location_name,
        "price": price,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "developer": {"fullName": developer} if developer else None,
        "searchTags": search_tags or [],
        "unitConfiguration": units,
    }
    if latitude is not None:
        record["location"] = {"latitude": latitude, "longitude": longitude}
    record.update(extra)
    return record


@pytest.fixture
def property_catalog() -> List[dict]:
    """Small property catalog in the content API's camelCase shape"""
    return [
        _property(
            "101", "Verde Residences", "BGC, Taguig", 8_500_000, 2, 2, "Ayala Land",
            [
                {"unitType": "bedroom_unit", "configPrice": 8_500_000, "bedrooms": 2, "bathrooms": 2},
                {"unitType": "bedroom_unit", "configPrice": 12_000_000, "bedrooms": 3, "bathrooms": 2},
            ],
            latitude=14.55, longitude=121.05,
            search_tags=["swimming pool", "gym"],
            secondaryTags=["near mall"],
            amenitiesAndCommonFacilities="Swimming pool, Fitness gym, 24/7 security",
            project={"name": "Verde", "developer": {"shortName": "ALI"}},
        ),
        _property(
            "102", "Lancaster Estates", "Imus, Cavite", 4_200_000, 3, 2, "Alveo",
            [{"unitType": "house_and_lot", "configPrice": 4_200_000, "bedrooms": 3, "bathrooms": 2, "lotArea": 100}],
            latitude=14.42, longitude=120.94,
            search_tags=["garden", "clubhouse"],
        ),
        _property(
            "103", "Uptown Studio", "Makati", 3_100_000, 0, 1, "Megaworld",
            [{"unitType": "studio_open_plan", "configPrice": 3_100_000, "bedrooms": 0, "bathrooms": 1}],
            latitude=14.56, longitude=121.02,
            search_tags=["rooftop deck"],
        ),
        _property(
            "104", "Bellefort Homes", "Dasmarinas, Cavite", 6_000_000, 4, 3, "Vista Land",
            [{"unitType": "house_and_lot", "configPrice": 6_000_000, "bedrooms": 4, "bathrooms": 3, "lotArea": 150}],
            latitude=14.33, longitude=120.94,
            search_tags=["parking", "garden"],
        ),
        _property(
            "105", "Calamba Heights", "Calamba, Laguna", 2_500_000, 2, 1, "Camella",
            [{"unitType": "house_and_lot", "configPrice": 2_500_000, "bedrooms": 2, "bathrooms": 1, "lotArea": 80}],
            latitude=14.21, longitude=121.16,
            search_tags=["parking"],
        ),
        _property(
            "106", "Loft One", "Pasig", 9_000_000, 1, 1, "Ortigas Land",
            [{"unitType": "loft", "configPrice": 9_000_000, "bedrooms": 1, "bathrooms": 1}],
            search_tags=["pet friendly"],
        ),
    ]


@pytest.fixture
def vehicle_catalog() -> List[dict]:
    """Small vehicle catalog in the content API's camelCase shape"""
    return [
        {
            "id": "v1", "name": "Toyota Innova 2.8 E", "make": "Toyota", "model": "Innova",
            "srp": 1_500_000, "seatingCapacity": "7-seater", "fuelSystem": "Diesel", "vcategory": "mpv",
            "brand": {"name": "Toyota"}, "distributor": {"name": "Toyota Makati"},
            "description": "Family MPV with roomy cabin",
            "unitConfiguration": [
                {"name": "E MT", "srp": 1_450_000, "features": ["Apple CarPlay", "Dual airbags"]},
                {"name": "V AT", "srp": 1_650_000, "features": ["Apple CarPlay, Rear camera"]},
            ],
        },
        {
            "id": "v2", "name": "Honda City", "make": "Honda", "model": "City",
            "srp": 1_100_000, "seatingCapacity": "5-seater", "fuelSystem": "Gasoline",
            "vcategory": "subcompact_sedan",
            "brand": {"name": "Honda"}, "distributor": {"name": "Honda Cars Quezon City"},
            "unitConfiguration": [{"name": "S CVT", "srp": 1_100_000, "features": ["Honda Sensing", "Rear camera"]}],
        },
        {
            "id": "v3", "name": "Ford Ranger Raptor", "make": "Ford", "model": "Ranger",
            "srp": 2_500_000, "seatingCapacity": "5 seater", "fuelSystem": "Diesel", "vcategory": "pickup",
            "brand": {"name": "Ford"}, "distributor": {"name": "Ford Pasig"},
            "unitConfiguration": None,
        },
        {
            "id": "v4", "name": "BYD Atto 3", "make": "BYD", "model": "Atto 3",
            "srp": 1_800_000, "seatingCapacity": None, "fuelSystem": "Electric", "vcategory": "crossover",
            "brand": {"name": "BYD"}, "distributor": {"name": "BYD Makati"},
            "unitConfiguration": [{"name": "Extended", "srp": 1_800_000, "features": ["Panoramic roof"]}],
        },
    ]


@pytest.fixture
def property_profile():
    return PropertyProfile()


@pytest.fixture
def vehicle_profile():
    return VehicleProfile()


@pytest.fixture
def slim_candidates():
    """Factory for slim candidates with sequential ids"""
    def _make(count: int, **overrides) -> List[SlimCandidate]:
        return [
            SlimCandidate(
                id=f"c{i}",
                name=f"Candidate {i}",
                location_name="Taguig",
                price=5_000_000 + i * 100_000,
                bedrooms=2,
                **overrides
            )
            for i in range(1, count + 1)
        ]
    return _make


@pytest.fixture
def criteria():
    return SearchCriteria(query="condo in Taguig", location="taguig", min_bedrooms=2, max_price=6_000_000)


@pytest.fixture
def small_cap_profile():
    return PropertyProfile(config=SearchEngineConfig(max_candidates=1))
