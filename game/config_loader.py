"""Configuration loader for KOTH event settings."""
import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from game.items import ItemCatalog, Manifest
from game.reward import ContainerPolicy
from game.zone import ContestRegion, Vector3

logger = logging.getLogger(__name__)

DEFAULT_CRATE_ITEMS = ["rifle.ak", "ammo.rifle"]


@dataclass
class KothSettings:
    """Validated KOTH settings. Times are in seconds."""

    crate_items: Dict[str, int] = field(
        default_factory=lambda: {kind: 1 for kind in DEFAULT_CRATE_ITEMS}
    )
    event_duration: float = 600.0
    event_interval: float = 3600.0
    point_interval: float = 5.0
    points_per_interval: int = 10
    kill_points: int = 1
    zone_center: Vector3 = Vector3(0.0, 0.0, 0.0)
    zone_radius: float = 20.0
    zone_strategy: str = "geometric"
    zone_id: str = "KOTHZone"
    scoreboard_refresh: float = 1.0
    scoreboard_size: int = 5
    join_inset: float = 2.0
    container_policy: ContainerPolicy = ContainerPolicy.IMMUNE
    hack_seconds: float = 60.0
    auto_schedule: bool = True

    @property
    def region(self) -> ContestRegion:
        return ContestRegion(self.zone_center, self.zone_radius)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'KothSettings':
        """Build settings from a parsed ``koth.json``.

        Missing keys take their default. Invalid values take their default
        and log a warning.
        """
        settings = cls()
        for key, (attr, parse) in _FIELDS.items():
            if key not in raw:
                continue
            try:
                setattr(settings, attr, parse(raw[key]))
            except (TypeError, ValueError) as e:
                logger.warning("Invalid %s %r (%s), using default %r",
                               key, raw[key], e, getattr(settings, attr))
        return settings


# ---------- field parsers ----------

def _positive_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number")
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise ValueError("must be > 0")
    return number


def _non_negative_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("expected a number")
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError("must be >= 0")
    return number


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("expected an integer")
    if value < 0:
        raise ValueError("must be >= 0")
    return value


def _positive_int(value: Any) -> int:
    number = _non_negative_int(value)
    if number == 0:
        raise ValueError("must be > 0")
    return number


def _vector(value: Any) -> Vector3:
    if not isinstance(value, (list, tuple)):
        raise TypeError("expected [x, y, z]")
    return Vector3.from_sequence(value)


def _choice(*allowed: str) -> Callable[[Any], str]:
    def parse(value: Any) -> str:
        if value not in allowed:
            raise ValueError(f"expected one of {', '.join(allowed)}")
        return value
    return parse


def _non_empty_string(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("expected a non-empty string")
    return value


def _flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError("expected true or false")
    return value


def _policy(value: Any) -> ContainerPolicy:
    return ContainerPolicy(value)


def _crate_items(value: Any) -> Dict[str, int]:
    """Accept {"kind": quantity} or ["kind", ...] (one of each per entry)."""
    items: Dict[str, int] = {}
    if isinstance(value, dict):
        for kind, quantity in value.items():
            items[str(kind)] = _positive_int(quantity)
    elif isinstance(value, list):
        for kind in value:
            if not isinstance(kind, str):
                raise TypeError("item kinds must be strings")
            items[kind] = items.get(kind, 0) + 1
    else:
        raise TypeError("expected a list or mapping of item kinds")
    return items


# config key -> (attribute, parser)
_FIELDS: Dict[str, tuple] = {
    "CrateItems": ("crate_items", _crate_items),
    "EventDuration": ("event_duration", _positive_number),
    "EventInterval": ("event_interval", _positive_number),
    "PointInterval": ("point_interval", _positive_number),
    "PointsPerInterval": ("points_per_interval", _non_negative_int),
    "KillPoints": ("kill_points", _non_negative_int),
    "ZoneCenter": ("zone_center", _vector),
    "ZoneRadius": ("zone_radius", _positive_number),
    "ZoneStrategy": ("zone_strategy", _choice("geometric", "zone_manager")),
    "ZoneId": ("zone_id", _non_empty_string),
    "ScoreboardRefresh": ("scoreboard_refresh", _positive_number),
    "ScoreboardSize": ("scoreboard_size", _positive_int),
    "JoinInset": ("join_inset", _non_negative_number),
    "ContainerPolicy": ("container_policy", _policy),
    "HackSeconds": ("hack_seconds", _positive_number),
    "AutoSchedule": ("auto_schedule", _flag),
}


class ConfigLoader:
    """Loads KOTH settings and the item catalog from a config directory."""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self.koth_config = self._load_json("koth.json")
        self.items_config = self._load_json("items.json")
        self.settings = KothSettings.from_dict(self.koth_config)
        self.item_catalog = ItemCatalog.from_config(self.items_config)

    def _load_json(self, filename: str) -> Dict[str, Any]:
        """Load a JSON configuration file."""
        filepath = os.path.join(self.config_dir, filename)
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning("Config file %s not found. Using defaults.", filename)
            return {}
        except json.JSONDecodeError as e:
            logger.warning("Error parsing %s: %s. Using defaults.", filename, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Config file %s is not a JSON object. Using defaults.", filename)
            return {}
        return data

    def build_manifest(self) -> Manifest:
        """Crate manifest for the configured CrateItems."""
        return self.item_catalog.build_manifest(self.settings.crate_items)
