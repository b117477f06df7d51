"""
Tests for distance and radius filtering
"""

import pytest

from geo import (
    NEARBY_RADIUS_KM,
    coordinates_of,
    distance_between,
    distance_km,
    nearby,
    within_radius,
)
from conftest import ANDHERI, MUMBAI, PUNE


def place(name, coords=None):
    lat, lon = coords if coords else (None, None)
    return {"name": name, "latitude": lat, "longitude": lon}


class TestDistance:

    def test_one_degree_of_longitude_on_the_equator(self):
        assert distance_km(0, 0, 0, 1) == pytest.approx(111.195, abs=0.01)

    def test_same_point_is_zero(self):
        assert distance_km(*MUMBAI, *MUMBAI) == 0

    def test_one_degree_of_latitude(self):
        assert 110 < distance_km(10, 20, 11, 20) < 112

    def test_mumbai_to_pune(self):
        assert 115 < distance_km(*MUMBAI, *PUNE) < 125

    def test_symmetric(self):
        assert distance_km(*MUMBAI, *PUNE) == pytest.approx(distance_km(*PUNE, *MUMBAI))

    def test_antipodal_points_do_not_fail(self):
        assert distance_km(0, 0, 0, 180) == pytest.approx(20015.09, abs=0.1)

    def test_missing_coordinates(self):
        assert coordinates_of(place("nowhere")) is None
        assert distance_between(MUMBAI, place("nowhere")) is None
        assert distance_between(None, place("andheri", ANDHERI)) is None


class TestWithinRadius:

    def test_boundary_is_inclusive(self):
        assert within_radius(NEARBY_RADIUS_KM)
        assert not within_radius(NEARBY_RADIUS_KM + 0.001)

    def test_unknown_distance_counts_as_nearby(self):
        assert within_radius(None)


class TestNearby:

    def test_without_origin_nothing_is_filtered(self):
        candidates = [place("pune", PUNE), place("andheri", ANDHERI), place("nowhere")]

        result = nearby(None, candidates)

        assert [c["name"] for c, _ in result] == ["pune", "andheri", "nowhere"]
        assert all(d is None for _, d in result)

    def test_filters_and_sorts_nearest_first(self):
        candidates = [
            place("pune", PUNE),
            place("andheri", ANDHERI),
            place("mumbai", MUMBAI),
        ]

        result = nearby(MUMBAI, candidates)

        assert [c["name"] for c, _ in result] == ["mumbai", "andheri"]
        assert result[0][1] == 0
        assert 3 < result[1][1] < 6

    def test_candidates_without_coordinates_sort_last(self):
        candidates = [place("nowhere"), place("andheri", ANDHERI), place("mumbai", MUMBAI)]

        result = nearby(MUMBAI, candidates)

        assert [c["name"] for c, _ in result] == ["mumbai", "andheri", "nowhere"]
        assert result[-1][1] is None

    def test_point_exactly_on_the_radius_is_kept(self):
        radius = distance_km(*MUMBAI, *ANDHERI)

        result = nearby(MUMBAI, [place("andheri", ANDHERI)], radius_km=radius)

        assert len(result) == 1

    def test_just_outside_the_radius_is_dropped(self):
        outside = place("outside", (0.2258, 0.0))  # ~25.1 km north of the origin

        assert nearby((0.0, 0.0), [outside]) == []

    def test_filtering_twice_changes_nothing(self):
        candidates = [place("pune", PUNE), place("nowhere"), place("andheri", ANDHERI), place("mumbai", MUMBAI)]

        once = nearby(MUMBAI, candidates)
        twice = nearby(MUMBAI, [c for c, _ in once])

        assert twice == once

    def test_ties_keep_input_order(self):
        candidates = [place(f"twin-{i}", ANDHERI) for i in range(4)]

        result = nearby(MUMBAI, candidates)

        assert [c["name"] for c, _ in result] == ["twin-0", "twin-1", "twin-2", "twin-3"]

    def test_works_on_objects(self, donor):
        result = nearby(ANDHERI, [donor])

        assert result[0][0] is donor
        assert result[0][1] < NEARBY_RADIUS_KM
