"""World service backed by the connected game host."""

import asyncio
import itertools
from typing import Dict, List, Optional, Tuple

from game.items import Manifest
from game.world import PlayerSnapshot, WorldService
from game.zone import Vector3
from server.protocol import (
    Message, destroy_entity_message, end_looting_message, set_locked_message,
    spawn_container_message, teleport_message
)


class HostWorld(WorldService):
    """Tracks host-reported players and queues commands for the host.

    World operations never block: they put a message on ``outbox`` and the
    server's writer task delivers it.
    """

    def __init__(self):
        self.players: Dict[str, PlayerSnapshot] = {}
        self.connected = False
        self.outbox: asyncio.Queue = asyncio.Queue()
        self._entity_ids = itertools.count(1)

    def send(self, message: Message) -> None:
        """Queue a message for the host. Dropped while no host is connected."""
        if not self.connected:
            return
        self.outbox.put_nowait(message)

    def drain(self) -> List[Message]:
        """Take everything queued so far."""
        messages = []
        while not self.outbox.empty():
            messages.append(self.outbox.get_nowait())
        return messages

    def disconnect(self) -> None:
        """Forget the host session: players and undelivered messages."""
        self.connected = False
        self.players.clear()
        self.drain()

    # --- Player registry ---

    def add_player(self, player: PlayerSnapshot) -> None:
        self.players[player.player_id] = player

    def remove_player(self, player_id: str) -> None:
        self.players.pop(player_id, None)

    def update_positions(self, positions: List[Tuple[str, Vector3]]) -> None:
        """Apply a POSITIONS snapshot. Unknown players are ignored."""
        for player_id, position in positions:
            player = self.players.get(player_id)
            if player:
                player.position = position

    # --- WorldService ---

    def active_players(self) -> List[PlayerSnapshot]:
        return [p for p in self.players.values() if p.connected]

    def find_player(self, player_id: str) -> Optional[PlayerSnapshot]:
        return self.players.get(player_id)

    def create_container(self, position: Vector3, manifest: Manifest) -> Optional[str]:
        if not self.connected:
            return None
        entity_id = f"koth-crate-{next(self._entity_ids)}"
        self.send(spawn_container_message(entity_id, position, manifest))
        return entity_id

    def destroy_entity(self, entity_id: str) -> None:
        self.send(destroy_entity_message(entity_id))

    def set_locked(self, entity_id: str, locked: bool) -> None:
        self.send(set_locked_message(entity_id, locked))

    def end_looting(self, player_id: str) -> None:
        self.send(end_looting_message(player_id))

    def teleport(self, player_id: str, position: Vector3) -> None:
        self.send(teleport_message(player_id, position))
