"""Shared test fixtures for KOTH event server tests."""
import json
import random
from typing import Callable, Dict, List, Optional, Tuple

import pytest
import numpy as np

from game.config_loader import KothSettings
from game.items import Manifest
from game.world import PlayerSnapshot, WorldService
from game.zone import Vector3
from server.controller import EventController
from server.protocol import Message, ServerMessageType
from server.timers import TimerHandle


@pytest.fixture(autouse=True)
def deterministic_random():
    """Seed random for reproducible tests."""
    random.seed(42)
    np.random.seed(42)
    yield
    random.seed()


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeTimers:
    """TimerManager stand-in that only fires when a test says so.

    Every callback ever scheduled stays in ``callbacks`` so tests can
    replay a timer after it was cancelled.
    """

    def __init__(self):
        self.pending: Dict[int, TimerHandle] = {}
        self.callbacks: Dict[int, Callable] = {}
        self._next_id = 1

    def _register(self, delay, callback, repeating):
        handle = TimerHandle(self._next_id, delay, repeating)
        self._next_id += 1
        self.pending[handle.timer_id] = handle
        self.callbacks[handle.timer_id] = callback
        return handle

    def schedule_once(self, delay, callback):
        return self._register(delay, callback, False)

    def schedule_repeating(self, interval, callback):
        return self._register(interval, callback, True)

    def cancel(self, handle):
        if handle is None:
            return False
        return self.pending.pop(handle.timer_id, None) is not None

    def cancel_all(self):
        self.pending.clear()

    def is_active(self, handle):
        return handle is not None and handle.timer_id in self.pending

    def __len__(self):
        return len(self.pending)

    async def fire(self, handle: TimerHandle):
        """Run a pending timer's callback. One-shot timers are consumed."""
        assert handle.timer_id in self.pending, "timer is not pending"
        if not handle.repeating:
            del self.pending[handle.timer_id]
        await self.callbacks[handle.timer_id]()

    async def replay(self, handle: TimerHandle):
        """Run a timer's callback even if it was cancelled."""
        await self.callbacks[handle.timer_id]()


class FakeWorld(WorldService):
    """In-memory world that records every command it receives."""

    def __init__(self):
        self.players: Dict[str, PlayerSnapshot] = {}
        self.containers: Dict[str, Dict] = {}
        self.locks: Dict[str, bool] = {}
        self.destroyed: List[str] = []
        self.loot_closed: List[str] = []
        self.teleports: List[Tuple[str, Vector3]] = []
        self.fail_spawn = False
        self._next_id = 1

    def add_player(self, player_id: str, name: Optional[str] = None,
                   position=(0.0, 0.0, 0.0), is_admin: bool = False) -> PlayerSnapshot:
        player = PlayerSnapshot(player_id, name or f"Player{player_id}",
                                Vector3(*position), is_admin)
        self.players[player_id] = player
        return player

    def move(self, player_id: str, position):
        self.players[player_id].position = Vector3(*position)

    def active_players(self):
        return [p for p in self.players.values() if p.connected]

    def find_player(self, player_id):
        return self.players.get(player_id)

    def create_container(self, position, manifest: Manifest):
        if self.fail_spawn:
            return None
        entity_id = f"crate-{self._next_id}"
        self._next_id += 1
        self.containers[entity_id] = {"position": position, "manifest": list(manifest)}
        self.locks[entity_id] = True
        return entity_id

    def destroy_entity(self, entity_id):
        self.containers.pop(entity_id, None)
        self.destroyed.append(entity_id)

    def set_locked(self, entity_id, locked):
        self.locks[entity_id] = locked

    def end_looting(self, player_id):
        self.loot_closed.append(player_id)

    def teleport(self, player_id, position):
        self.teleports.append((player_id, position))
        if player_id in self.players:
            self.players[player_id].position = position


class MessageCollector:
    """Collects messages the controller sends."""

    def __init__(self):
        self.broadcasts: List[Message] = []
        self.direct: List[Tuple[str, Message]] = []

    async def broadcast(self, message: Message):
        self.broadcasts.append(message)

    async def send_to_player(self, player_id: str, message: Message):
        self.direct.append((player_id, message))

    def chat_to(self, player_id: str) -> List[str]:
        return [m.data["text"] for pid, m in self.direct
                if pid == player_id and m.type == ServerMessageType.CHAT.value]

    def broadcast_chat(self) -> List[str]:
        return [m.data["text"] for m in self.of_type(ServerMessageType.CHAT)]

    def of_type(self, msg_type: ServerMessageType) -> List[Message]:
        return [m for m in self.broadcasts if m.type == msg_type.value]

    def clear(self):
        self.broadcasts.clear()
        self.direct.clear()


@pytest.fixture
def settings():
    """Default settings with a zone at the origin, radius 20."""
    return KothSettings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def world():
    return FakeWorld()


@pytest.fixture
def messages():
    return MessageCollector()


@pytest.fixture
def manifest():
    return [("rifle.ak", 1), ("ammo.rifle", 128)]


@pytest.fixture
def controller(settings, world, messages, timers, clock, manifest):
    return EventController(
        settings=settings,
        world=world,
        broadcast=messages.broadcast,
        send_to_player=messages.send_to_player,
        manifest=manifest,
        timers=timers,
        clock=clock,
        rng=random.Random(7)
    )


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create temporary config directory with test JSON files."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    koth = {
        "CrateItems": {"rifle.ak": 1, "ammo.rifle": 64, "mystery.box": 1},
        "EventDuration": 300,
        "EventInterval": 1800,
        "PointInterval": 10,
        "PointsPerInterval": 5,
        "KillPoints": 2,
        "ZoneCenter": [100, 5, -40],
        "ZoneRadius": 30,
        "ContainerPolicy": "TimedHack",
        "HackSeconds": 90,
        "AutoSchedule": False
    }
    items = {
        "items": [
            {"id": "rifle.ak", "name": "Assault Rifle"},
            {"id": "ammo.rifle", "name": "5.56 Rifle Ammo"}
        ]
    }

    with open(config_dir / "koth.json", "w") as f:
        json.dump(koth, f)
    with open(config_dir / "items.json", "w") as f:
        json.dump(items, f)

    return config_dir
