import pytest
from unittest.mock import AsyncMock
from listing_search.models.geospatial import Coordinates
from listing_search.models.search import Candidate, SearchCriteria, SortOption
from listing_search.modules.search.filter_engine import (
    AMENITY_RELAXED, GEO_FALLBACK, PRICE_RELAXED, STRICT, CandidateFilterEngine
)


def ids(result):
    return [c.id for c in result.candidates]


@pytest.fixture
def engine(property_profile):
    return CandidateFilterEngine(property_profile)


@pytest.fixture
def santa_rosa():
    return Coordinates(latitude=14.31, longitude=121.11, display_name="Santa Rosa, Laguna, Philippines")


class TestStrictPass:
    """Every hard filter applies in the first pass"""

    @pytest.mark.asyncio
    async def test_house_category(self, engine, property_catalog):
        result = await engine.build_candidates(property_catalog, SearchCriteria(category="house"))

        assert ids(result) == ["102", "104", "105"]
        assert result.pass_name == STRICT

    @pytest.mark.asyncio
    async def test_condo_category(self, engine, property_catalog):
        result = await engine.build_candidates(property_catalog, SearchCriteria(category="condo"))
        assert ids(result) == ["101", "103", "106"]

    @pytest.mark.asyncio
    async def test_unit_type_in_query_narrows_category(self, engine, property_catalog):
        criteria = SearchCriteria(query="studio in Makati", category="condo")
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["103"]

    @pytest.mark.asyncio
    async def test_max_price_sorted_ascending(self, engine, property_catalog):
        criteria = SearchCriteria(max_price=5_000_000, sort_by=SortOption.PRICE_ASC)
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["105", "103", "102"]

    @pytest.mark.asyncio
    async def test_any_unit_price_satisfies_range(self, engine, property_catalog):
        # Verde's listing price is 8.5M but its 3-bedroom unit is 12M
        criteria = SearchCriteria(min_price=11_000_000, max_price=13_000_000)
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["101"]

    @pytest.mark.asyncio
    async def test_listing_price_satisfies_range_when_units_do_not(self, engine):
        catalog = [{
            "id": "p1", "name": "Promo Tower", "price": 4_000_000,
            "unitConfiguration": [{"unitType": "bedroom_unit", "configPrice": 6_000_000}],
        }]
        result = await engine.build_candidates(catalog, SearchCriteria(max_price=5_000_000))
        assert ids(result) == ["p1"]

    @pytest.mark.asyncio
    async def test_several_categories(self, engine, property_catalog):
        criteria = SearchCriteria(category="house, condo", max_price=4_500_000, sort_by=SortOption.PRICE_ASC)
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["105", "103", "102"]

    @pytest.mark.asyncio
    async def test_bedrooms_match_any_unit(self, engine, property_catalog):
        criteria = SearchCriteria(min_bedrooms=3, max_bedrooms=3)
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["101", "102"]

    @pytest.mark.asyncio
    async def test_developer_and_amenity_synonyms(self, engine, property_catalog):
        criteria = SearchCriteria(developers=["ayala"], required_features=["swimming_pool", "fitness_center"])
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["101"]

    @pytest.mark.asyncio
    async def test_project_developer_short_name(self, engine, property_catalog):
        result = await engine.build_candidates(property_catalog, SearchCriteria(developers=["ali"]))
        assert ids(result) == ["101"]

    @pytest.mark.asyncio
    async def test_excluded_ids_are_removed(self, engine, property_catalog):
        criteria = SearchCriteria(category="house", excluded_ids=["105"])
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["102", "104"]

    def test_strict_pass_is_subset_without_violations(self, engine, property_profile, property_catalog):
        listings = property_profile.parse_catalog(property_catalog)
        criteria = SearchCriteria(max_price=7_000_000, min_bedrooms=2, excluded_ids=["102"])

        survivors = engine.strict_pass(listings, criteria)
        catalog_ids = {l.id for l in listings}

        assert survivors
        for candidate in survivors:
            assert candidate.id in catalog_ids
            assert candidate.id not in criteria.excluded_ids
            assert property_profile.matches_price(candidate.listing, criteria)
            assert property_profile.matches_counts(candidate.listing, criteria)

    def test_filtering_is_idempotent(self, engine, property_profile, property_catalog):
        listings = property_profile.parse_catalog(property_catalog)
        criteria = SearchCriteria(location="cavite, laguna", max_price=6_000_000, required_features=["parking"])

        first = engine.strict_pass(listings, criteria)
        second = engine.strict_pass([c.listing for c in first], criteria)

        assert [c.id for c in first] == [c.id for c in second] == ["104", "105"]


class TestRelaxation:
    """Later passes only run when a location was requested and earlier passes were empty"""

    @pytest.mark.asyncio
    async def test_amenities_relaxed_keep_location(self, engine, property_catalog):
        criteria = SearchCriteria(location="taguig", required_features=["parking"])
        result = await engine.build_candidates(property_catalog, criteria)

        assert ids(result) == ["101"]
        assert result.pass_name == AMENITY_RELAXED

    @pytest.mark.asyncio
    async def test_closed_price_range_relaxed(self, engine, property_catalog):
        criteria = SearchCriteria(location="makati", min_price=5_000_000, max_price=6_000_000)
        result = await engine.build_candidates(property_catalog, criteria)

        assert ids(result) == ["103"]
        assert result.pass_name == PRICE_RELAXED

    @pytest.mark.asyncio
    async def test_one_sided_price_is_never_relaxed(self, engine, property_catalog):
        criteria = SearchCriteria(location="makati", max_price=2_000_000)
        result = await engine.build_candidates(property_catalog, criteria)

        assert result.count == 0
        assert result.pass_name is None

    @pytest.mark.asyncio
    async def test_no_relaxation_without_location(self, engine, property_catalog):
        criteria = SearchCriteria(max_price=3_000_000, min_bedrooms=3)
        result = await engine.build_candidates(property_catalog, criteria)
        assert result.count == 0


class TestGeoFallback:
    """Distance fallback for explicit proximity queries"""

    @pytest.mark.asyncio
    async def test_nearby_listings_within_radius(self, property_profile, property_catalog, santa_rosa):
        geocode = AsyncMock(return_value=santa_rosa)
        engine = CandidateFilterEngine(property_profile, geocode=geocode)
        criteria = SearchCriteria(
            query="house near Santa Rosa", location="santa rosa", category="house",
            sort_by=SortOption.PRICE_ASC
        )

        result = await engine.build_candidates(property_catalog, criteria)

        assert result.pass_name == GEO_FALLBACK
        assert ids(result) == ["105", "102", "104"]
        assert all(c.distance_km is not None and c.distance_km <= 100 for c in result.candidates)
        assert result.reference_location == "Santa Rosa, Laguna, Philippines"
        geocode.assert_awaited_once_with("santa rosa")

    @pytest.mark.asyncio
    async def test_listings_without_coordinates_are_skipped(self, property_profile, property_catalog, santa_rosa):
        engine = CandidateFilterEngine(property_profile, geocode=AsyncMock(return_value=santa_rosa))
        criteria = SearchCriteria(query="condo near Santa Rosa", location="santa rosa", category="condo")

        result = await engine.build_candidates(property_catalog, criteria)

        # Loft One has no coordinates; Verde and Uptown do
        assert "106" not in ids(result)
        assert set(ids(result)) == {"101", "103"}

    @pytest.mark.asyncio
    async def test_no_proximity_intent_skips_geocoding(self, property_profile, property_catalog, santa_rosa):
        geocode = AsyncMock(return_value=santa_rosa)
        engine = CandidateFilterEngine(property_profile, geocode=geocode)
        criteria = SearchCriteria(query="house in Santa Rosa", location="santa rosa", category="house")

        result = await engine.build_candidates(property_catalog, criteria)

        assert result.count == 0
        assert result.reference_location is None
        geocode.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_geocoder_failure_skips_geo_pass(self, property_profile, property_catalog):
        geocode = AsyncMock(side_effect=RuntimeError("geocoder down"))
        engine = CandidateFilterEngine(property_profile, geocode=geocode)
        criteria = SearchCriteria(query="near Santa Rosa", location="santa rosa")

        result = await engine.build_candidates(property_catalog, criteria)

        assert result.count == 0
        assert result.reference_location is None

    @pytest.mark.asyncio
    async def test_geo_pass_keeps_non_location_filters(self, property_profile, property_catalog, santa_rosa):
        engine = CandidateFilterEngine(property_profile, geocode=AsyncMock(return_value=santa_rosa))
        criteria = SearchCriteria(query="near Santa Rosa", location="santa rosa", max_price=3_000_000)

        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["105"]


class TestOrderingAndCap:
    """Dedup, price sort, diversity and capping"""

    def test_dedupe_keeps_first_occurrence(self, property_profile, property_catalog):
        listings = property_profile.parse_catalog(property_catalog)
        candidates = [Candidate(listing=listings[0]), Candidate(listing=listings[1]),
                      Candidate(listing=listings[0], distance_km=3.0)]

        deduped = CandidateFilterEngine.dedupe(candidates)

        assert [c.id for c in deduped] == ["101", "102"]
        assert deduped[0].distance_km is None

    @pytest.mark.asyncio
    async def test_price_desc_uses_max_unit_price(self, engine, property_catalog):
        criteria = SearchCriteria(sort_by=SortOption.PRICE_DESC, requested_count=3)
        result = await engine.build_candidates(property_catalog, criteria)
        assert ids(result) == ["101", "106", "104"]

    def test_missing_prices_sort_last_ascending(self, property_profile):
        listings = property_profile.parse_catalog([
            {"id": "a", "price": None},
            {"id": "b", "price": 3_000_000},
            {"id": "c", "price": 0},
            {"id": "d", "unitConfiguration": [{"configPrice": 2_000_000}]},
        ])
        candidates = [Candidate(listing=l) for l in listings]

        ascending = CandidateFilterEngine.sort_candidates(candidates, SortOption.PRICE_ASC)
        descending = CandidateFilterEngine.sort_candidates(candidates, SortOption.PRICE_DESC)

        assert [c.id for c in ascending] == ["d", "b", "a", "c"]
        assert [c.id for c in descending] == ["b", "d", "a", "c"]

    @pytest.mark.asyncio
    async def test_cap_respects_requested_count(self, engine, property_catalog):
        result = await engine.build_candidates(property_catalog, SearchCriteria(requested_count=2))

        assert result.count == 2
        assert len(set(ids(result))) == 2

    @pytest.mark.asyncio
    async def test_cap_respects_engine_maximum(self, small_cap_profile, property_catalog):
        engine = CandidateFilterEngine(small_cap_profile)
        result = await engine.build_candidates(property_catalog, SearchCriteria(requested_count=3))
        assert result.count == 1

    @pytest.mark.asyncio
    async def test_two_locations_get_one_each(self, engine, property_catalog):
        criteria = SearchCriteria(location="Cavite, Taguig", requested_count=2, sort_by=SortOption.PRICE_ASC)
        result = await engine.build_candidates(property_catalog, criteria)

        # Without balancing the two cheapest Cavite listings would fill both slots
        assert ids(result) == ["102", "101"]
        locations = [c.location_name for c in result.candidates]
        assert any("Cavite" in name for name in locations)
        assert any("Taguig" in name for name in locations)


class TestSlimProjection:
    """Slim candidates carry bounded payloads"""

    @pytest.mark.asyncio
    async def test_feature_tags_are_bounded(self, property_profile):
        catalog = [{
            "id": "200",
            "name": "Tagged Tower",
            "searchTags": [f"tag {i}" for i in range(6)],
            "secondaryTags": ["x" * 150, "extra 1", "extra 2", "extra 3"],
            "project": {"developer": {"shortName": "TT"}},
            "unitConfiguration": [
                {"unitType": "Loft", "configPrice": 5_000_000},
                {"unitType": "loft", "configPrice": 7_000_000},
            ],
        }]
        engine = CandidateFilterEngine(property_profile)

        result = await engine.build_candidates(catalog, SearchCriteria())
        slim = result.candidates[0]

        assert len(slim.feature_tags) == 8
        assert all(len(tag) <= 100 for tag in slim.feature_tags)
        assert slim.unit_type_summary == ["loft"]
        assert slim.min_unit_price == 5_000_000
        assert slim.max_unit_price == 7_000_000
        assert slim.brand == "TT"

    @pytest.mark.asyncio
    async def test_unreadable_records_are_skipped(self, engine, property_catalog):
        catalog = property_catalog + [{"name": "no id"}]
        result = await engine.build_candidates(catalog, SearchCriteria(requested_count=10))
        assert result.count == 6


class TestVehicleFilters:
    """Vehicle profile predicates"""

    @pytest.fixture
    def vehicle_engine(self, vehicle_profile):
        return CandidateFilterEngine(vehicle_profile)

    @pytest.mark.asyncio
    async def test_sedan_family(self, vehicle_engine, vehicle_catalog):
        result = await vehicle_engine.build_candidates(vehicle_catalog, SearchCriteria(category="sedan"))
        assert ids(result) == ["v2"]

    @pytest.mark.asyncio
    async def test_unknown_seating_is_not_excluded(self, vehicle_engine, vehicle_catalog):
        result = await vehicle_engine.build_candidates(vehicle_catalog, SearchCriteria(min_seating=7))
        assert ids(result) == ["v1", "v4"]

    @pytest.mark.asyncio
    async def test_fuel_type(self, vehicle_engine, vehicle_catalog):
        result = await vehicle_engine.build_candidates(vehicle_catalog, SearchCriteria(fuel_types=["diesel"]))
        assert ids(result) == ["v1", "v3"]

    @pytest.mark.asyncio
    async def test_features_split_from_variant_text(self, vehicle_engine, vehicle_catalog):
        criteria = SearchCriteria(required_features=["rear camera"])
        result = await vehicle_engine.build_candidates(vehicle_catalog, criteria)
        assert ids(result) == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_location_matches_distributor(self, vehicle_engine, vehicle_catalog):
        result = await vehicle_engine.build_candidates(vehicle_catalog, SearchCriteria(location="makati"))
        assert ids(result) == ["v1", "v4"]

    @pytest.mark.asyncio
    async def test_srp_or_any_variant_price_matches(self, vehicle_engine, vehicle_catalog):
        result = await vehicle_engine.build_candidates(vehicle_catalog, SearchCriteria(max_price=1_200_000))
        assert ids(result) == ["v2"]

        # Innova's srp is 1.5M but its V AT variant is 1.65M
        criteria = SearchCriteria(min_price=1_600_000, max_price=1_700_000)
        result = await vehicle_engine.build_candidates(vehicle_catalog, criteria)
        assert ids(result) == ["v1"]

    @pytest.mark.asyncio
    async def test_category_list(self, vehicle_engine, vehicle_catalog):
        result = await vehicle_engine.build_candidates(vehicle_catalog, SearchCriteria(category="sedan, mpv"))
        assert ids(result) == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_uncategorized_vehicle_passes_category_filter(self, vehicle_engine):
        catalog = [
            {"id": "v1", "name": "Mystery Van", "vcategory": None},
            {"id": "v2", "name": "Hilux", "vcategory": "pickup"},
        ]
        result = await vehicle_engine.build_candidates(catalog, SearchCriteria(category="suv"))
        assert ids(result) == ["v1"]

    @pytest.mark.asyncio
    async def test_unknown_fuel_passes_fuel_filter(self, vehicle_engine):
        catalog = [
            {"id": "v1", "name": "Mystery Van", "fuelSystem": None},
            {"id": "v2", "name": "City", "fuelSystem": "Gasoline"},
        ]
        result = await vehicle_engine.build_candidates(catalog, SearchCriteria(fuel_types=["diesel"]))
        assert ids(result) == ["v1"]

    @pytest.mark.asyncio
    async def test_brand_and_model(self, vehicle_engine, vehicle_catalog):
        criteria = SearchCriteria(brands=["toyota"], models=["innova"])
        result = await vehicle_engine.build_candidates(vehicle_catalog, criteria)

        assert ids(result) == ["v1"]
        slim = result.candidates[0]
        assert slim.seating == 7
        assert slim.distributor == "Toyota Makati"
        assert slim.feature_tags == ["Apple CarPlay", "Dual airbags", "Apple CarPlay, Rear camera"]
