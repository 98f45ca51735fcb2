"""KOTH event controller.

Composition root for one contest region. It:
- Owns the scoreboard, zone oracle, reward crate and scheduler
- Dispatches typed events through a handler table, one at a time
- Forwards outcomes to the host as chat, scoreboard and zone messages
"""

import logging
import math
import random
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from game.config_loader import KothSettings
from game.errors import EventAlreadyRunning
from game.items import ItemCatalog, Manifest
from game.reward import LootDecision, RewardContainer
from game.scoreboard import ScoreBoard
from game.world import WorldService
from game.zone import Vector3, ZoneManager, build_zone_oracle, random_perimeter_point
from server.events import (
    TIMER_EVENTS, KothEvent, KothEventType, StartRequest, StopRequest
)
from server.protocol import (
    Message, chat_message, scoreboard_message, scoreboard_clear_message, zone_message
)
from server.scheduler import EventScheduler, EventState, Resolution, StartResult
from server.timers import TimerManager

logger = logging.getLogger(__name__)

# Type aliases
MessageBroadcaster = Callable[[Message], Awaitable[None]]
PlayerMessageSender = Callable[[str, Message], Awaitable[None]]

LOOT_DENIED_TEXT = "You cannot loot this inventory!"


def format_duration(seconds: float) -> str:
    """Human-friendly duration for chat, e.g. '10 minutes' or '45 seconds'."""
    seconds = int(math.ceil(seconds))
    if seconds >= 60 and seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    if seconds >= 60:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


class EventController:
    """Wires KOTH components together and handles external triggers."""

    def __init__(
        self,
        settings: KothSettings,
        world: WorldService,
        broadcast: MessageBroadcaster,
        send_to_player: PlayerMessageSender,
        manifest: Optional[Manifest] = None,
        timers: Optional[TimerManager] = None,
        zone_manager: Optional[ZoneManager] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None
    ):
        self.settings = settings
        self.world = world
        self.broadcast = broadcast
        self.send_to_player = send_to_player
        self._rng = rng or random.Random()

        if manifest is None:
            manifest = ItemCatalog().build_manifest(settings.crate_items)

        # Components
        self.scoreboard = ScoreBoard(settings.points_per_interval, settings.kill_points)
        self.zone = build_zone_oracle(settings.zone_strategy, settings.zone_id, zone_manager)
        self.reward = RewardContainer(world, settings.container_policy,
                                      settings.hack_seconds, clock)
        self.timers = timers if timers is not None else TimerManager()
        self.scheduler = EventScheduler(
            settings, self.timers, self.scoreboard, self.reward, self.zone,
            manifest, self._on_timer_event, clock
        )

        self._handlers: Dict[KothEventType, Callable[[KothEvent], Awaitable[Any]]] = {
            KothEventType.ADMIN_START: self._handle_admin_start,
            KothEventType.ADMIN_STOP: self._handle_admin_stop,
            KothEventType.JOIN_REQUEST: self._handle_join_request,
            KothEventType.STATUS_REQUEST: self._handle_status_request,
            KothEventType.PLAYER_KILLED: self._handle_player_killed,
            KothEventType.LOOT_ATTEMPT: self._handle_loot_attempt,
            KothEventType.ENTITY_DAMAGED: self._handle_entity_damaged,
            KothEventType.SCORING_TICK: self._handle_scoring_tick,
            KothEventType.SCOREBOARD_REFRESH: self._handle_scoreboard_refresh,
            KothEventType.END_TIMEOUT: self._handle_end_timeout,
            KothEventType.ARMING_TIMEOUT: self._handle_arming_timeout,
        }

    @property
    def state(self) -> EventState:
        return self.scheduler.state

    async def handle_event(self, event: KothEvent) -> Any:
        """Handle an incoming event under the scheduler lock.

        Returns whatever the handler produced (a StartResult, Resolution,
        LootDecision, awarded total...) or None if the event was ignored.
        """
        handler = self._handlers.get(event.type)
        if handler is None:
            return None

        async with self.scheduler.lock:
            if event.type in TIMER_EVENTS and not self.scheduler.is_current(event):
                logger.debug("Ignoring stale %s timer", event.type.name)
                return None
            return await handler(event)

    async def _on_timer_event(self, event: KothEvent) -> None:
        """Called when a scheduler timer fires. Routes to handle_event."""
        await self.handle_event(event)

    async def startup(self) -> Optional[float]:
        """Arm the first automatic event if enabled. Returns the delay."""
        if not self.settings.auto_schedule:
            return None
        async with self.scheduler.lock:
            if self.scheduler.state is not EventState.IDLE:
                return None
            delay = self.scheduler.arm()
        logger.info("First KOTH event in %s", format_duration(delay))
        return delay

    async def shutdown(self) -> None:
        """Tear everything down (server unload)."""
        async with self.scheduler.lock:
            resolution = self.scheduler.stop(force=True)
            self.timers.cancel_all()
        if resolution is not None:
            await self.broadcast(scoreboard_clear_message())
            await self.broadcast(zone_message(self.scheduler.region, active=False))

    # --- Admin / player requests ---

    async def _handle_admin_start(self, event: KothEvent) -> Optional[StartResult]:
        """Handle ADMIN_START event."""
        request = event.payload or StartRequest()
        try:
            result = self.scheduler.start(request.region)
        except EventAlreadyRunning as e:
            await self._reply(event.player_id, str(e))
            return None

        await self._announce_start(result)
        return result

    async def _handle_admin_stop(self, event: KothEvent) -> Optional[Resolution]:
        """Handle ADMIN_STOP event."""
        request = event.payload or StopRequest()
        previous = self.scheduler.state
        resolution = self.scheduler.stop(force=request.force)

        if resolution is None:
            if previous is EventState.ARMED:
                await self._reply(event.player_id, "The scheduled KOTH event has been cancelled.")
            else:
                await self._reply(event.player_id, "No KOTH event is running.")
            return None

        await self.broadcast(chat_message("KOTH event has been stopped by an admin."))
        await self._announce_resolution(resolution)
        return resolution

    async def _handle_join_request(self, event: KothEvent) -> Optional[Vector3]:
        """Handle JOIN_REQUEST event: teleport to the zone edge."""
        player_id = event.player_id
        if not player_id:
            return None
        if not self.scheduler.is_running:
            await self._reply(player_id, "No KOTH event is running.")
            return None
        if self.world.find_player(player_id) is None:
            return None

        point = random_perimeter_point(self.scheduler.region, self.settings.join_inset, self._rng)
        self.world.teleport(player_id, point)
        return point

    async def _handle_status_request(self, event: KothEvent) -> str:
        """Handle STATUS_REQUEST event."""
        text = self.status_text()
        await self._reply(event.player_id, text)
        return text

    # --- World notifications ---

    async def _handle_player_killed(self, event: KothEvent) -> Optional[int]:
        """Handle PLAYER_KILLED event."""
        if not self.scheduler.is_running:
            return None

        kill = event.payload
        if kill is None or kill.attacker_id is None or kill.victim_id is None:
            return None

        total = self.scoreboard.award_kill(
            kill.attacker_id,
            kill.victim_id,
            self._is_inside(kill.attacker_id, kill.attacker_position),
            self._is_inside(kill.victim_id, kill.victim_position)
        )
        if total is None:
            return None

        victim_name = self.world.display_name(kill.victim_id)
        await self.send_to_player(kill.attacker_id, chat_message(
            f"You have been awarded {self.scoreboard.kill_points} point(s) for killing "
            f"{victim_name}. Total points: {total}"
        ))
        return total

    async def _handle_loot_attempt(self, event: KothEvent) -> Optional[LootDecision]:
        """Handle LOOT_ATTEMPT event."""
        attempt = event.payload
        if attempt is None or not self.reward.is_reward(attempt.entity_id):
            return None

        decision = self.reward.attempt_loot(attempt.player_id)
        if decision is LootDecision.DENIED:
            if attempt.player_id == self.reward.winner_id and self.reward.hack_pending:
                text = (f"The crate is still unlocking. "
                        f"{format_duration(self.reward.seconds_until_open())} remaining.")
            else:
                text = LOOT_DENIED_TEXT
            await self.send_to_player(attempt.player_id, chat_message(text))
        return decision

    async def _handle_entity_damaged(self, event: KothEvent) -> Optional[float]:
        """Handle ENTITY_DAMAGED event. Returns the damage to apply to the crate."""
        report = event.payload
        if report is None or not self.reward.is_reward(report.entity_id):
            return None
        return self.reward.absorb_damage(report.amount)

    # --- Timers ---

    async def _handle_scoring_tick(self, event: KothEvent) -> Dict[str, int]:
        """Handle SCORING_TICK event: award everyone standing in the zone."""
        awarded: Dict[str, int] = {}
        for player in self.world.active_players():
            if not self.zone.contains(player.position):
                continue
            total = self.scoreboard.award_zone_presence(player.player_id)
            awarded[player.player_id] = total
            await self.send_to_player(player.player_id, chat_message(
                f"You have been awarded {self.scoreboard.presence_points} points. "
                f"Total points: {total}"
            ))
        return awarded

    async def _handle_scoreboard_refresh(self, event: KothEvent) -> None:
        """Handle SCOREBOARD_REFRESH event."""
        await self._push_scoreboard()

    async def _handle_end_timeout(self, event: KothEvent) -> Optional[Resolution]:
        """Handle END_TIMEOUT event."""
        resolution = self.scheduler.end()
        if resolution is not None:
            await self._announce_resolution(resolution)
        return resolution

    async def _handle_arming_timeout(self, event: KothEvent) -> Optional[StartResult]:
        """Handle ARMING_TIMEOUT event."""
        try:
            result = self.scheduler.start()
        except EventAlreadyRunning:
            logger.warning("Arming timer fired while an event was running")
            return None
        await self._announce_start(result)
        return result

    # --- Presentation ---

    async def _announce_start(self, result: StartResult) -> None:
        await self.broadcast(chat_message(
            "KOTH event has started! Capture and hold the area to win!"
        ))
        await self.broadcast(zone_message(result.region, active=True))
        await self._push_scoreboard()

    async def _announce_resolution(self, resolution: Resolution) -> None:
        if not resolution.forced:
            if resolution.winner_id is not None:
                name = self.world.display_name(resolution.winner_id)
                await self.broadcast(chat_message(
                    f"The KOTH event has ended! The winner is {name} "
                    f"with {resolution.winner_points} points!"
                ))
                if resolution.reward_unlocked:
                    await self._notify_winner(resolution.winner_id)
            else:
                await self.broadcast(chat_message("The KOTH event has ended! No participants."))

        await self.broadcast(scoreboard_clear_message())
        await self.broadcast(zone_message(self.scheduler.region, active=False))

        if resolution.next_event_in is not None:
            await self.broadcast(chat_message(
                f"The next KOTH event starts in {format_duration(resolution.next_event_in)}."
            ))

    async def _notify_winner(self, winner_id: str) -> None:
        if self.reward.hack_pending:
            text = (f"The crate at the center of the KOTH event unlocks for you in "
                    f"{format_duration(self.reward.seconds_until_open())}.")
        else:
            text = "You can now loot the crate at the center of the KOTH event!"
        await self.send_to_player(winner_id, chat_message(text))

    async def _push_scoreboard(self) -> None:
        entries = [
            {
                "rank": rank,
                "player_id": player_id,
                "name": self.world.display_name(player_id),
                "points": points,
            }
            for rank, (player_id, points) in enumerate(
                self.scoreboard.top(self.settings.scoreboard_size), 1
            )
        ]
        await self.broadcast(scoreboard_message(
            entries=entries,
            remaining_seconds=int(math.ceil(self.scheduler.remaining()))
        ))

    async def _reply(self, player_id: Optional[str], text: str) -> None:
        """Answer whoever sent a request; console requests just get logged."""
        if player_id:
            await self.send_to_player(player_id, chat_message(text))
        else:
            logger.info(text)

    def status_text(self) -> str:
        """One-line description of the current event state."""
        state = self.scheduler.state
        remaining = format_duration(self.scheduler.remaining())
        if state is EventState.RUNNING:
            leader = self.scoreboard.top(1)
            if leader:
                player_id, points = leader[0]
                return (f"KOTH event running, {remaining} left. Leader: "
                        f"{self.world.display_name(player_id)} with {points} points.")
            return f"KOTH event running, {remaining} left. No points scored yet."
        if state is EventState.ARMED:
            return f"Next KOTH event starts in {remaining}."
        return "No KOTH event is scheduled."

    def _is_inside(self, player_id: str, position: Optional[Vector3]) -> bool:
        if position is None:
            player = self.world.find_player(player_id)
            if player is None:
                return False
            position = player.position
        return self.zone.contains(position)
