"""Unit tests for contest region geometry and zone oracles."""
import math
import random

import pytest

from game.errors import InvalidRegion
from game.zone import (
    ContestRegion, GeometricZoneOracle, Vector3, ZoneManager, ZoneManagerOracle,
    build_zone_oracle, random_perimeter_point
)


class RecordingZoneManager(ZoneManager):
    """Zone manager that stores zones and answers with a sphere check."""

    def __init__(self):
        self.zones = {}

    def define_zone(self, zone_id, region):
        self.zones[zone_id] = region

    def is_inside(self, zone_id, position):
        region = self.zones[zone_id]
        return math.dist(position, region.center) <= region.radius


class TestContestRegion:
    """Test region validation."""

    def test_center_is_coerced_to_vector(self):
        region = ContestRegion([1, 2, 3], 5)
        assert region.center == Vector3(1.0, 2.0, 3.0)

    @pytest.mark.parametrize("radius", [0, -1, float("inf"), float("nan")])
    def test_bad_radius_rejected(self, radius):
        with pytest.raises(InvalidRegion):
            ContestRegion(Vector3(0, 0, 0), radius)

    def test_to_dict(self):
        region = ContestRegion(Vector3(1, 2, 3), 4)
        assert region.to_dict() == {"center": [1.0, 2.0, 3.0], "radius": 4}

    def test_vector_needs_three_coordinates(self):
        with pytest.raises(ValueError):
            Vector3.from_sequence([1, 2])


class TestGeometricZoneOracle:
    """Test the built-in distance check."""

    def test_nothing_inside_before_adopt(self):
        oracle = GeometricZoneOracle()
        assert not oracle.contains(Vector3(0, 0, 0))

    def test_inside_outside_and_boundary(self):
        oracle = GeometricZoneOracle()
        oracle.adopt(ContestRegion(Vector3(10, 0, 10), 5))

        assert oracle.contains(Vector3(10, 0, 10))
        assert oracle.contains(Vector3(13, 0, 14))  # exactly 5 away
        assert not oracle.contains(Vector3(16, 0, 10))

    def test_distance_is_three_dimensional(self):
        oracle = GeometricZoneOracle(ContestRegion(Vector3(0, 0, 0), 5))
        assert not oracle.contains(Vector3(0, 6, 0))

    def test_adopt_moves_region(self):
        oracle = GeometricZoneOracle(ContestRegion(Vector3(0, 0, 0), 5))
        oracle.adopt(ContestRegion(Vector3(100, 0, 0), 5))

        assert not oracle.contains(Vector3(0, 0, 0))
        assert oracle.contains(Vector3(101, 0, 0))


class TestZoneManagerOracle:
    """Test delegation to an external zone manager."""

    def test_adopt_defines_named_zone(self):
        manager = RecordingZoneManager()
        oracle = ZoneManagerOracle(manager, "KOTHZone")
        region = ContestRegion(Vector3(0, 0, 0), 10)

        oracle.adopt(region)

        assert manager.zones["KOTHZone"] == region
        assert oracle.contains(Vector3(3, 0, 3))
        assert not oracle.contains(Vector3(30, 0, 0))

    def test_nothing_inside_before_adopt(self):
        oracle = ZoneManagerOracle(RecordingZoneManager(), "KOTHZone")
        assert not oracle.contains(Vector3(0, 0, 0))

    def test_build_picks_strategy(self):
        assert isinstance(build_zone_oracle("geometric", "KOTHZone"), GeometricZoneOracle)
        oracle = build_zone_oracle("zone_manager", "Hill", RecordingZoneManager())
        assert isinstance(oracle, ZoneManagerOracle)
        assert oracle.zone_id == "Hill"

    def test_zone_manager_without_collaborator_falls_back(self, caplog):
        oracle = build_zone_oracle("zone_manager", "KOTHZone")

        assert isinstance(oracle, GeometricZoneOracle)
        assert "no ZoneManager" in caplog.text


class TestPerimeterPoint:
    """Test join teleport destinations."""

    def test_point_is_inset_from_edge(self):
        region = ContestRegion(Vector3(50, 7, -20), 20)
        rng = random.Random(1)
        for _ in range(50):
            point = random_perimeter_point(region, 2, rng)
            distance = math.hypot(point.x - 50, point.z + 20)
            assert distance == pytest.approx(18)
            assert point.y == 7

    def test_inset_larger_than_radius_clamps_to_center(self):
        region = ContestRegion(Vector3(5, 0, 5), 3)
        point = random_perimeter_point(region, 10, random.Random(1))
        assert point.x == pytest.approx(5)
        assert point.z == pytest.approx(5)

    def test_negative_inset_stays_on_edge(self):
        region = ContestRegion(Vector3(0, 0, 0), 10)
        point = random_perimeter_point(region, -5, random.Random(3))
        assert math.hypot(point.x, point.z) == pytest.approx(10)
