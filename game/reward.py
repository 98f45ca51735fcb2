"""
Reward crate lifecycle and loot access control.

The crate spawns locked when an event starts. At resolution it is either
unlocked for exactly one winner or destroyed. Anyone else who opens it has
their loot panel force-closed.
"""
import logging
import time
from enum import Enum
from typing import Callable, Optional

from game.errors import WorldError
from game.items import Manifest
from game.world import WorldService
from game.zone import Vector3

logger = logging.getLogger(__name__)


class ContainerPolicy(Enum):
    """How the reward crate survives until resolution."""
    IMMUNE = "Immune"
    TIMED_HACK = "TimedHack"


class LockState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class LootDecision(Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


class RewardContainer:
    """The prize crate for one contest region."""

    def __init__(
        self,
        world: WorldService,
        policy: ContainerPolicy = ContainerPolicy.IMMUNE,
        hack_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.world = world
        self.policy = policy
        self.hack_seconds = hack_seconds
        self._clock = clock

        self.entity_id: Optional[str] = None
        self.lock_state = LockState.LOCKED
        self.winner_id: Optional[str] = None
        self.manifest: Manifest = []
        self.position: Optional[Vector3] = None
        self._opens_at: Optional[float] = None
        self._host_locked = False

    @property
    def exists(self) -> bool:
        return self.entity_id is not None

    @property
    def is_locked(self) -> bool:
        return self.lock_state is LockState.LOCKED

    def is_reward(self, entity_id: Optional[str]) -> bool:
        return self.exists and entity_id == self.entity_id

    def spawn(self, position: Vector3, manifest: Manifest) -> bool:
        """Create a fresh locked crate. Returns False if the host could not."""
        self.destroy()
        try:
            entity_id = self.world.create_container(position, list(manifest))
        except WorldError as e:
            logger.warning("Reward crate spawn failed: %s", e)
            entity_id = None

        if entity_id is None:
            logger.warning("No reward crate this event (host could not create entity)")
            return False

        self.entity_id = entity_id
        self.position = position
        self.manifest = list(manifest)
        self.lock_state = LockState.LOCKED
        self.winner_id = None
        self._opens_at = None
        self._host_locked = True
        logger.info("Spawned reward crate %s at %s with %d item stacks",
                    entity_id, tuple(position), len(self.manifest))
        return True

    def unlock_for(self, player_id: str) -> bool:
        """Designate the winner. Only the first call per crate counts."""
        if not self.exists or not self.is_locked:
            return False

        self.lock_state = LockState.UNLOCKED
        self.winner_id = player_id

        if self.policy is ContainerPolicy.TIMED_HACK:
            self._opens_at = self._clock() + self.hack_seconds
        else:
            self._release_host_lock()

        logger.info("Reward crate %s unlocked for %s", self.entity_id, player_id)
        return True

    def attempt_loot(self, player_id: str) -> LootDecision:
        """Gate a loot attempt. Denied attempts are force-closed."""
        if self._may_loot(player_id):
            self._release_host_lock()
            return LootDecision.ALLOWED

        self.world.end_looting(player_id)
        return LootDecision.DENIED

    def _may_loot(self, player_id: str) -> bool:
        if not self.exists or self.is_locked:
            return False
        if player_id != self.winner_id:
            return False
        return not self.hack_pending

    @property
    def hack_pending(self) -> bool:
        return self._opens_at is not None and self._clock() < self._opens_at

    def seconds_until_open(self) -> float:
        if not self.hack_pending:
            return 0.0
        return self._opens_at - self._clock()

    def absorb_damage(self, amount: float) -> float:
        """Damage that should actually be applied to the crate."""
        if self.is_protected:
            return 0.0
        return amount

    @property
    def is_protected(self) -> bool:
        if not self.exists:
            return False
        if self.policy is ContainerPolicy.IMMUNE:
            return True
        # Timed hack: intact until the winner's hack completes
        return self.is_locked or self.hack_pending

    def destroy(self) -> None:
        """Remove the crate. Safe to call when there is none."""
        if self.entity_id is None:
            return
        entity_id = self.entity_id
        self.entity_id = None
        self.winner_id = None
        self.lock_state = LockState.LOCKED
        self.manifest = []
        self.position = None
        self._opens_at = None
        self._host_locked = False
        try:
            self.world.destroy_entity(entity_id)
        except WorldError as e:
            logger.warning("Could not destroy reward crate %s: %s", entity_id, e)
        logger.info("Destroyed reward crate %s", entity_id)

    def _release_host_lock(self) -> None:
        if self._host_locked and self.entity_id is not None:
            self.world.set_locked(self.entity_id, False)
            self._host_locked = False
