"""Contest region geometry and zone-membership oracles."""
import logging
import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

import numpy as np

from game.errors import InvalidRegion

logger = logging.getLogger(__name__)


class Vector3(NamedTuple):
    """World position. ``y`` is the vertical axis."""
    x: float
    y: float
    z: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> 'Vector3':
        """Build from a 3-item list/tuple, e.g. a JSON array."""
        if len(values) != 3:
            raise ValueError(f"Expected 3 coordinates, got {len(values)}")
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def to_list(self):
        return [self.x, self.y, self.z]


@dataclass(frozen=True)
class ContestRegion:
    """The bounded area where presence and kills are scored."""
    center: Vector3
    radius: float

    def __post_init__(self):
        if not isinstance(self.center, Vector3):
            object.__setattr__(self, "center", Vector3.from_sequence(self.center))
        if not math.isfinite(self.radius) or self.radius <= 0:
            raise InvalidRegion(f"Zone radius must be positive, got {self.radius}")

    def to_dict(self):
        return {"center": self.center.to_list(), "radius": self.radius}


class ZoneOracle(ABC):
    """Answers whether a position is inside the active contest region."""

    @abstractmethod
    def adopt(self, region: ContestRegion) -> None:
        """Take on a new region. Called by the scheduler when an event starts."""

    @abstractmethod
    def contains(self, position: Sequence[float]) -> bool:
        """Check if a position is inside the region."""


class GeometricZoneOracle(ZoneOracle):
    """Euclidean distance check against the region center."""

    def __init__(self, region: Optional[ContestRegion] = None):
        self.region = region

    def adopt(self, region: ContestRegion) -> None:
        self.region = region

    def contains(self, position: Sequence[float]) -> bool:
        if self.region is None:
            return False
        offset = np.asarray(position, dtype=float) - np.asarray(self.region.center, dtype=float)
        return float(np.linalg.norm(offset)) <= self.region.radius


class ZoneManager(ABC):
    """External zone-management collaborator, addressed by zone id."""

    @abstractmethod
    def define_zone(self, zone_id: str, region: ContestRegion) -> None:
        """Create or move the named zone."""

    @abstractmethod
    def is_inside(self, zone_id: str, position: Sequence[float]) -> bool:
        """Check a position against the named zone."""


class ZoneManagerOracle(ZoneOracle):
    """Delegates membership checks to a ZoneManager."""

    def __init__(self, zone_manager: ZoneManager, zone_id: str):
        self.zone_manager = zone_manager
        self.zone_id = zone_id
        self.region: Optional[ContestRegion] = None

    def adopt(self, region: ContestRegion) -> None:
        self.region = region
        self.zone_manager.define_zone(self.zone_id, region)

    def contains(self, position: Sequence[float]) -> bool:
        if self.region is None:
            return False
        return bool(self.zone_manager.is_inside(self.zone_id, position))


def build_zone_oracle(strategy: str, zone_id: str,
                      zone_manager: Optional[ZoneManager] = None) -> ZoneOracle:
    """Create the oracle for a configured strategy name.

    The ``zone_manager`` strategy without a collaborator falls back to the
    geometric oracle.
    """
    if strategy == "zone_manager":
        if zone_manager is not None:
            return ZoneManagerOracle(zone_manager, zone_id)
        logger.warning("ZoneStrategy zone_manager has no ZoneManager, using geometric")
    return GeometricZoneOracle()


def random_perimeter_point(region: ContestRegion, inset: float,
                           rng: Optional[random.Random] = None) -> Vector3:
    """
    Pick a random point on the region's edge, pulled in by ``inset``.

    The point lies on the horizontal circle around the center at distance
    ``radius - inset``, clamped to [0, radius]. Height matches the center.
    """
    rng = rng or random
    distance = min(region.radius, max(0.0, region.radius - max(0.0, inset)))
    bearing = rng.uniform(0.0, 2 * math.pi)
    return Vector3(
        region.center.x + distance * math.cos(bearing),
        region.center.y,
        region.center.z + distance * math.sin(bearing),
    )
