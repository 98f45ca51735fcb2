# server/events.py
"""Event types and payloads for the KOTH event controller."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional

from game.zone import ContestRegion, Vector3


class KothEventType(Enum):
    """All events the controller dispatches."""

    # Admin / player requests
    ADMIN_START = auto()
    ADMIN_STOP = auto()
    JOIN_REQUEST = auto()
    STATUS_REQUEST = auto()

    # World notifications
    PLAYER_KILLED = auto()
    LOOT_ATTEMPT = auto()
    ENTITY_DAMAGED = auto()

    # Timers
    SCORING_TICK = auto()
    SCOREBOARD_REFRESH = auto()
    END_TIMEOUT = auto()
    ARMING_TIMEOUT = auto()


TIMER_EVENTS = frozenset({
    KothEventType.SCORING_TICK,
    KothEventType.SCOREBOARD_REFRESH,
    KothEventType.END_TIMEOUT,
    KothEventType.ARMING_TIMEOUT,
})


@dataclass
class StartRequest:
    """Start an event, optionally in a new region."""
    region: Optional[ContestRegion] = None


@dataclass
class StopRequest:
    """Stop the event. ``force`` skips winner resolution."""
    force: bool = False


@dataclass
class KillNotification:
    """A player died. Positions are where each party was at the time."""
    attacker_id: Optional[str]
    victim_id: str
    attacker_position: Optional[Vector3] = None
    victim_position: Optional[Vector3] = None


@dataclass
class LootAttempt:
    """A player opened a container."""
    player_id: str
    entity_id: str


@dataclass
class DamageReport:
    """An entity is about to take damage."""
    entity_id: str
    amount: float
    attacker_id: Optional[str] = None


@dataclass
class KothEvent:
    """An event that triggers controller work."""

    type: KothEventType
    payload: Any = None
    player_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
