"""Interface to the live game world that hosts the KOTH event."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from game.items import Manifest
from game.zone import Vector3


@dataclass
class PlayerSnapshot:
    """Last known state of a connected player."""

    player_id: str
    display_name: str
    position: Vector3 = Vector3(0.0, 0.0, 0.0)
    is_admin: bool = False
    connected: bool = True


class WorldService(ABC):
    """Entity and player operations provided by the host."""

    @abstractmethod
    def active_players(self) -> List[PlayerSnapshot]:
        """All currently connected players."""

    @abstractmethod
    def find_player(self, player_id: str) -> Optional[PlayerSnapshot]:
        """Look up a player by id."""

    @abstractmethod
    def create_container(self, position: Vector3, manifest: Manifest) -> Optional[str]:
        """Spawn a locked storage container. Returns its entity id, or None on failure."""

    @abstractmethod
    def destroy_entity(self, entity_id: str) -> None:
        """Remove an entity from the world."""

    @abstractmethod
    def set_locked(self, entity_id: str, locked: bool) -> None:
        """Set the host-side lock flag on a container."""

    @abstractmethod
    def end_looting(self, player_id: str) -> None:
        """Force-close a player's open loot panel."""

    @abstractmethod
    def teleport(self, player_id: str, position: Vector3) -> None:
        """Move a player."""

    def display_name(self, player_id: str) -> str:
        player = self.find_player(player_id)
        return player.display_name if player else "Unknown"
