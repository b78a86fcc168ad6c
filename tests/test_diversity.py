import pytest
from types import SimpleNamespace
from listing_search.models.search import Candidate
from listing_search.modules.search.diversity import DiversityBalancer


def candidate(id, location):
    return Candidate(listing=SimpleNamespace(id=id, location_name=location))


@pytest.fixture
def balancer():
    return DiversityBalancer(lambda listing: listing.location_name.lower())


@pytest.fixture
def sorted_candidates():
    # Already sorted by price ascending
    return [
        candidate("imus", "Imus, Cavite"),
        candidate("dasma", "Dasmarinas, Cavite"),
        candidate("silang", "Silang, Cavite"),
        candidate("bgc", "BGC, Taguig"),
        candidate("arca", "Arca South, Taguig"),
    ]


def ids(candidates):
    return [c.id for c in candidates]


class TestDiversityBalancer:
    """Round-robin interleaving across requested locations"""

    def test_one_per_location_first(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["cavite", "taguig"], 2)
        assert ids(result) == ["imus", "bgc"]

    def test_remaining_slots_follow_sorted_order(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["cavite", "taguig"], 4)
        assert ids(result) == ["imus", "bgc", "dasma", "silang"]

    def test_token_order_sets_round_one_order(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["taguig", "cavite"], 2)
        assert ids(result) == ["bgc", "imus"]

    def test_missing_location_keeps_input(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["cavite", "laguna"], 2)
        assert result == sorted_candidates

    def test_partial_coverage_keeps_input(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["cavite", "taguig", "laguna"], 3)
        assert result == sorted_candidates

    def test_limit_below_token_count_keeps_input(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["cavite", "taguig"], 1)
        assert result == sorted_candidates

    def test_single_token_is_noop(self, balancer, sorted_candidates):
        assert balancer.balance(sorted_candidates, ["cavite"], 2) == sorted_candidates

    def test_empty_candidates(self, balancer):
        assert balancer.balance([], ["cavite", "taguig"], 2) == []

    def test_candidate_counts_for_first_matching_token_only(self, balancer):
        candidates = [
            candidate("border", "Taguig-Makati border"),
            candidate("poblacion", "Poblacion, Makati"),
        ]
        result = balancer.balance(candidates, ["taguig", "makati"], 2)
        assert ids(result) == ["border", "poblacion"]

    def test_result_has_no_duplicates(self, balancer, sorted_candidates):
        result = balancer.balance(sorted_candidates, ["cavite", "taguig"], 5)
        assert sorted(ids(result)) == sorted(ids(sorted_candidates))
