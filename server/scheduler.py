# server/scheduler.py
"""
KOTH event lifecycle state machine.

States:
- IDLE: nothing scheduled
- ARMED: waiting for the arming timer to start the next event
- RUNNING: event in progress, scoring and end timers live

Every transition bumps ``generation``. Timer events carry the generation
they were scheduled under, so a timer that fires after a transition is
recognised as stale and ignored.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from game.config_loader import KothSettings
from game.errors import EventAlreadyRunning, RegionLocked
from game.items import Manifest
from game.reward import RewardContainer
from game.scoreboard import ScoreBoard
from game.zone import ContestRegion, ZoneOracle
from server.events import KothEvent, KothEventType
from server.timers import TimerHandle, TimerManager

logger = logging.getLogger(__name__)

TimerEventSink = Callable[[KothEvent], Awaitable[None]]


class EventState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    RUNNING = "running"


class TimerKind(Enum):
    END = "end"
    SCORING = "scoring"
    REFRESH = "refresh"
    ARMING = "arming"


RUNNING_TIMERS = (TimerKind.END, TimerKind.SCORING, TimerKind.REFRESH)


@dataclass
class StartResult:
    """What happened when an event started."""
    region: ContestRegion
    duration: float
    reward_spawned: bool


@dataclass
class Resolution:
    """Outcome of ending or stopping an event."""
    winner_id: Optional[str] = None
    winner_points: int = 0
    standings: List[Tuple[str, int]] = field(default_factory=list)
    reward_unlocked: bool = False
    forced: bool = False
    next_event_in: Optional[float] = None


class EventScheduler:
    """Owns event state, timer handles and the transitions between them.

    Callers must hold ``lock`` around every public method; the controller
    does this for all dispatched events.
    """

    def __init__(
        self,
        settings: KothSettings,
        timers: TimerManager,
        scoreboard: ScoreBoard,
        reward: RewardContainer,
        zone: ZoneOracle,
        manifest: Manifest,
        on_timer: TimerEventSink,
        clock: Callable[[], float] = time.monotonic
    ):
        self.settings = settings
        self.timers = timers
        self.scoreboard = scoreboard
        self.reward = reward
        self.zone = zone
        self.manifest = list(manifest)
        self._on_timer = on_timer
        self._clock = clock

        self.lock = asyncio.Lock()

        self._state = EventState.IDLE
        self._region = settings.region
        self._generation = 0
        self._ends_at: Optional[float] = None
        self._next_start_at: Optional[float] = None
        self._handles: Dict[TimerKind, TimerHandle] = {}

    # --- Queries ---

    @property
    def state(self) -> EventState:
        return self._state

    @property
    def region(self) -> ContestRegion:
        return self._region

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self._state is EventState.RUNNING

    def timer_handle(self, kind: TimerKind) -> Optional[TimerHandle]:
        return self._handles.get(kind)

    def is_current(self, event: KothEvent) -> bool:
        """True if a timer event was scheduled under the current generation."""
        return event.data.get("generation") == self._generation

    def remaining(self) -> float:
        """Seconds until the event ends (RUNNING) or starts (ARMED)."""
        deadline = self._ends_at if self.is_running else self._next_start_at
        if deadline is None:
            return 0.0
        return max(0.0, deadline - self._clock())

    # --- Transitions ---

    def set_region(self, region: ContestRegion) -> None:
        """Replace the contest region. Not allowed while running."""
        if self.is_running:
            raise RegionLocked()
        self._region = region

    def start(self, region: Optional[ContestRegion] = None) -> StartResult:
        """IDLE/ARMED -> RUNNING.

        Raises:
            EventAlreadyRunning: an event is in progress (nothing changes).
        """
        if self.is_running:
            raise EventAlreadyRunning()
        if region is not None:
            self.set_region(region)

        self._cancel(TimerKind.ARMING)
        self._next_start_at = None
        self._generation += 1

        self.scoreboard.clear()
        reward_spawned = self.reward.spawn(self._region.center, self.manifest)
        self.zone.adopt(self._region)

        self._state = EventState.RUNNING
        duration = self.settings.event_duration
        self._ends_at = self._clock() + duration
        self._schedule(TimerKind.END, KothEventType.END_TIMEOUT, duration)
        self._schedule(TimerKind.SCORING, KothEventType.SCORING_TICK,
                       self.settings.point_interval, repeating=True)
        self._schedule(TimerKind.REFRESH, KothEventType.SCOREBOARD_REFRESH,
                       self.settings.scoreboard_refresh, repeating=True)

        logger.info("KOTH event started at %s radius %.1f for %.0fs",
                    tuple(self._region.center), self._region.radius, duration)
        return StartResult(region=self._region, duration=duration,
                           reward_spawned=reward_spawned)

    def end(self) -> Optional[Resolution]:
        """Natural expiry: resolve, then arm the next event."""
        if not self.is_running:
            return None
        resolution = self._resolve()
        resolution.next_event_in = self.arm()
        return resolution

    def stop(self, force: bool = False) -> Optional[Resolution]:
        """Admin stop.

        Without force a running event is resolved normally but not re-armed.
        With force everything is torn down from any state and no winner is
        picked. Returns None when no event was running.
        """
        if not force:
            if self.is_running:
                return self._resolve()
            if self._state is EventState.ARMED:
                self._cancel(TimerKind.ARMING)
                self._enter_idle()
                logger.info("Scheduled KOTH event cancelled")
            return None

        was_running = self.is_running
        for kind in list(self._handles):
            self._cancel(kind)
        self.reward.destroy()
        self.scoreboard.clear()
        self._enter_idle()
        logger.info("KOTH event force-stopped")
        if was_running:
            return Resolution(forced=True)
        return None

    def arm(self, delay: Optional[float] = None) -> float:
        """Schedule the next automatic start. Returns the delay used."""
        if self.is_running:
            raise EventAlreadyRunning()
        delay = self.settings.event_interval if delay is None else delay
        self._cancel(TimerKind.ARMING)
        self._generation += 1
        self._state = EventState.ARMED
        self._next_start_at = self._clock() + delay
        self._schedule(TimerKind.ARMING, KothEventType.ARMING_TIMEOUT, delay)
        logger.info("Next KOTH event armed in %.0fs", delay)
        return delay

    # --- Internals ---

    def _resolve(self) -> Resolution:
        for kind in RUNNING_TIMERS:
            self._cancel(kind)

        resolution = Resolution(standings=self.scoreboard.top(self.settings.scoreboard_size))
        winner_id = self.scoreboard.winner()
        if winner_id is not None:
            resolution.winner_id = winner_id
            resolution.winner_points = self.scoreboard.points(winner_id)
            resolution.reward_unlocked = self.reward.unlock_for(winner_id)
        else:
            self.reward.destroy()

        self.scoreboard.clear()
        self._enter_idle()
        logger.info("KOTH event resolved, winner=%s points=%d",
                    resolution.winner_id, resolution.winner_points)
        return resolution

    def _enter_idle(self) -> None:
        self._state = EventState.IDLE
        self._ends_at = None
        self._next_start_at = None
        self._generation += 1

    def _schedule(self, kind: TimerKind, event_type: KothEventType,
                  delay: float, repeating: bool = False) -> None:
        callback = partial(self._fire, event_type, self._generation)
        if repeating:
            self._handles[kind] = self.timers.schedule_repeating(delay, callback)
        else:
            self._handles[kind] = self.timers.schedule_once(delay, callback)

    def _cancel(self, kind: TimerKind) -> None:
        self.timers.cancel(self._handles.pop(kind, None))

    async def _fire(self, event_type: KothEventType, generation: int) -> None:
        await self._on_timer(KothEvent(type=event_type, data={"generation": generation}))
