"""Unit tests for the reward crate lifecycle."""
import pytest

from game.errors import WorldError
from game.reward import ContainerPolicy, LootDecision, RewardContainer
from game.zone import Vector3


CENTER = Vector3(0.0, 0.0, 0.0)
MANIFEST = [("rifle.ak", 1)]


@pytest.fixture
def crate(world):
    reward = RewardContainer(world, ContainerPolicy.IMMUNE)
    reward.spawn(CENTER, MANIFEST)
    return reward


class TestSpawn:
    """Test crate creation."""

    def test_spawn_creates_locked_crate(self, world, crate):
        assert crate.exists
        assert crate.is_locked
        assert world.locks[crate.entity_id] is True
        assert world.containers[crate.entity_id]["manifest"] == MANIFEST

    def test_respawn_destroys_previous(self, world, crate):
        first = crate.entity_id
        crate.spawn(CENTER, MANIFEST)

        assert first in world.destroyed
        assert crate.entity_id != first

    def test_spawn_failure_returns_false(self, world):
        world.fail_spawn = True
        reward = RewardContainer(world)
        assert reward.spawn(CENTER, MANIFEST) is False
        assert not reward.exists

    def test_world_error_is_logged_not_raised(self, world, monkeypatch, caplog):
        def explode(position, manifest):
            raise WorldError("entity limit reached")

        monkeypatch.setattr(world, "create_container", explode)
        reward = RewardContainer(world)
        assert reward.spawn(CENTER, MANIFEST) is False
        assert "entity limit reached" in caplog.text


class TestLootAccess:
    """Test who may open the crate."""

    def test_locked_crate_denies_everyone(self, world, crate):
        assert crate.attempt_loot("A") is LootDecision.DENIED
        assert world.loot_closed == ["A"]

    def test_only_winner_may_loot(self, world, crate):
        assert crate.unlock_for("A")

        assert crate.attempt_loot("B") is LootDecision.DENIED
        assert crate.attempt_loot("A") is LootDecision.ALLOWED
        assert world.loot_closed == ["B"]
        assert world.locks[crate.entity_id] is False

    def test_unlock_only_counts_once(self, crate):
        assert crate.unlock_for("A")
        assert not crate.unlock_for("B")
        assert crate.winner_id == "A"

    def test_unlock_without_crate(self, world):
        assert not RewardContainer(world).unlock_for("A")

    def test_destroy_is_idempotent(self, world, crate):
        entity_id = crate.entity_id
        crate.destroy()
        crate.destroy()

        assert world.destroyed == [entity_id]
        assert not crate.is_reward(entity_id)


class TestPolicies:
    """Test Immune and TimedHack protection."""

    def test_immune_absorbs_damage(self, crate):
        assert crate.absorb_damage(50.0) == 0.0
        crate.unlock_for("A")
        assert crate.absorb_damage(50.0) == 0.0

    def test_no_crate_no_protection(self, world):
        assert RewardContainer(world).absorb_damage(12.5) == 12.5

    def test_timed_hack_waits_for_delay(self, world, clock):
        crate = RewardContainer(world, ContainerPolicy.TIMED_HACK, hack_seconds=60, clock=clock)
        crate.spawn(CENTER, MANIFEST)
        crate.unlock_for("A")

        assert crate.hack_pending
        assert crate.seconds_until_open() == pytest.approx(60)
        assert crate.attempt_loot("A") is LootDecision.DENIED
        assert world.locks[crate.entity_id] is True

        clock.advance(61)

        assert not crate.hack_pending
        assert crate.attempt_loot("A") is LootDecision.ALLOWED
        assert world.locks[crate.entity_id] is False

    def test_timed_hack_protection_ends_with_hack(self, world, clock):
        crate = RewardContainer(world, ContainerPolicy.TIMED_HACK, hack_seconds=30, clock=clock)
        crate.spawn(CENTER, MANIFEST)

        assert crate.absorb_damage(10) == 0.0
        crate.unlock_for("A")
        assert crate.absorb_damage(10) == 0.0

        clock.advance(30)
        assert crate.absorb_damage(10) == 10
