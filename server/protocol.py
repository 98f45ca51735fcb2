"""WebSocket message protocol between the KOTH server and the game host."""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Tuple
import json

from game.errors import InvalidMessage
from game.items import Manifest, manifest_to_list
from game.zone import ContestRegion, Vector3


class ServerMessageType(Enum):
    """Message types sent from the KOTH server to the host."""
    # Connection
    WELCOME = "WELCOME"
    ERROR = "ERROR"

    # Presentation
    CHAT = "CHAT"
    SCOREBOARD = "SCOREBOARD"
    SCOREBOARD_CLEAR = "SCOREBOARD_CLEAR"
    ZONE = "ZONE"

    # World commands
    SPAWN_CONTAINER = "SPAWN_CONTAINER"
    DESTROY_ENTITY = "DESTROY_ENTITY"
    SET_LOCKED = "SET_LOCKED"
    END_LOOTING = "END_LOOTING"
    TELEPORT = "TELEPORT"
    DAMAGE_RESULT = "DAMAGE_RESULT"


class HostMessageType(Enum):
    """Message types sent from the host to the KOTH server."""
    # Connection
    HELLO = "HELLO"

    # Players
    PLAYER_JOINED = "PLAYER_JOINED"
    PLAYER_LEFT = "PLAYER_LEFT"
    POSITIONS = "POSITIONS"

    # World events
    PLAYER_KILLED = "PLAYER_KILLED"
    LOOT_ATTEMPT = "LOOT_ATTEMPT"
    ENTITY_DAMAGED = "ENTITY_DAMAGED"

    # Commands
    CHAT_COMMAND = "CHAT_COMMAND"


@dataclass
class Message:
    """Base message class for WebSocket communication."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        return json.dumps({
            "type": self.type,
            "data": self.data
        })

    @classmethod
    def from_json(cls, json_str: str) -> 'Message':
        """Deserialize message from JSON string."""
        obj = json.loads(json_str)
        if not isinstance(obj, dict):
            raise json.JSONDecodeError("Expected a JSON object", json_str, 0)
        data = obj.get("data") or {}
        return cls(type=obj.get("type", ""), data=data if isinstance(data, dict) else {})

    def addressed_to(self, player_id: str) -> 'Message':
        """Copy of this message delivered to one player."""
        return Message(type=self.type, data={**self.data, "player_id": player_id})


# Server -> Host message builders
def welcome_message(version: str, state: str) -> Message:
    """Build welcome message for a newly connected host."""
    return Message(
        type=ServerMessageType.WELCOME.value,
        data={
            "version": version,
            "state": state
        }
    )


def error_message(code: str, message: str) -> Message:
    """Build error message."""
    return Message(
        type=ServerMessageType.ERROR.value,
        data={
            "code": code,
            "message": message
        }
    )


def chat_message(text: str) -> Message:
    """Build a chat line. Broadcast, or addressed to one player."""
    return Message(
        type=ServerMessageType.CHAT.value,
        data={"text": text}
    )


def scoreboard_message(entries: List[Dict[str, Any]], remaining_seconds: int) -> Message:
    """Build scoreboard contents (top scorers with display names)."""
    return Message(
        type=ServerMessageType.SCOREBOARD.value,
        data={
            "entries": entries,
            "remaining_seconds": remaining_seconds
        }
    )


def scoreboard_clear_message() -> Message:
    """Tell the host to remove the scoreboard from every player."""
    return Message(type=ServerMessageType.SCOREBOARD_CLEAR.value)


def zone_message(region: ContestRegion, active: bool) -> Message:
    """Build zone boundary cue."""
    return Message(
        type=ServerMessageType.ZONE.value,
        data={
            **region.to_dict(),
            "active": active
        }
    )


def spawn_container_message(entity_id: str, position: Vector3, manifest: Manifest) -> Message:
    """Build container spawn command."""
    return Message(
        type=ServerMessageType.SPAWN_CONTAINER.value,
        data={
            "entity_id": entity_id,
            "position": position.to_list(),
            "items": manifest_to_list(manifest),
            "locked": True
        }
    )


def destroy_entity_message(entity_id: str) -> Message:
    """Build entity removal command."""
    return Message(
        type=ServerMessageType.DESTROY_ENTITY.value,
        data={"entity_id": entity_id}
    )


def set_locked_message(entity_id: str, locked: bool) -> Message:
    """Build container lock flag command."""
    return Message(
        type=ServerMessageType.SET_LOCKED.value,
        data={
            "entity_id": entity_id,
            "locked": locked
        }
    )


def end_looting_message(player_id: str) -> Message:
    """Build forced loot-panel close command."""
    return Message(
        type=ServerMessageType.END_LOOTING.value,
        data={"player_id": player_id}
    )


def teleport_message(player_id: str, position: Vector3) -> Message:
    """Build teleport command."""
    return Message(
        type=ServerMessageType.TELEPORT.value,
        data={
            "player_id": player_id,
            "position": position.to_list()
        }
    )


def damage_result_message(entity_id: str, amount: float) -> Message:
    """Build the damage the host should actually apply."""
    return Message(
        type=ServerMessageType.DAMAGE_RESULT.value,
        data={
            "entity_id": entity_id,
            "amount": amount
        }
    )


# Host -> Server message parsers
def _parse_position(value: Any) -> Optional[Vector3]:
    if not isinstance(value, (list, tuple)):
        return None
    try:
        return Vector3.from_sequence(value)
    except (TypeError, ValueError):
        return None


def _parse_id(value: Any) -> Optional[str]:
    if value is None or value == "" or isinstance(value, (dict, list)):
        return None
    return str(value)


def parse_hello_message(data: dict) -> dict:
    """Parse HELLO message data."""
    return {
        "version": data.get("version")
    }


def parse_player_joined_message(data: dict) -> dict:
    """Parse PLAYER_JOINED message data."""
    player_id = _parse_id(data.get("player_id"))
    return {
        "player_id": player_id,
        "display_name": str(data.get("display_name") or "Unknown"),
        "is_admin": bool(data.get("is_admin", False)),
        "position": _parse_position(data.get("position")),
    }


def parse_player_left_message(data: dict) -> dict:
    """Parse PLAYER_LEFT message data."""
    return {
        "player_id": _parse_id(data.get("player_id"))
    }


def parse_positions_message(data: dict) -> List[Tuple[str, Vector3]]:
    """Parse POSITIONS message data into (player_id, position) pairs.

    Raises:
        InvalidMessage: ``players`` is not a list.
    """
    players = data.get("players", [])
    if not isinstance(players, list):
        raise InvalidMessage("POSITIONS players must be a list")

    positions = []
    for entry in players:
        if not isinstance(entry, dict):
            continue
        player_id = _parse_id(entry.get("player_id"))
        position = _parse_position(entry.get("position"))
        if player_id and position:
            positions.append((player_id, position))
    return positions


def parse_player_killed_message(data: dict) -> dict:
    """Parse PLAYER_KILLED message data."""
    return {
        "attacker_id": _parse_id(data.get("attacker_id")),
        "victim_id": _parse_id(data.get("victim_id")),
        "attacker_position": _parse_position(data.get("attacker_position")),
        "victim_position": _parse_position(data.get("victim_position")),
    }


def parse_loot_attempt_message(data: dict) -> dict:
    """Parse LOOT_ATTEMPT message data."""
    return {
        "player_id": _parse_id(data.get("player_id")),
        "entity_id": _parse_id(data.get("entity_id")),
    }


def parse_entity_damaged_message(data: dict) -> dict:
    """Parse ENTITY_DAMAGED message data."""
    try:
        amount = float(data.get("amount", 0))
    except (TypeError, ValueError):
        amount = 0.0
    return {
        "entity_id": _parse_id(data.get("entity_id")),
        "amount": amount,
        "attacker_id": _parse_id(data.get("attacker_id")),
    }


def parse_chat_command_message(data: dict) -> dict:
    """Parse CHAT_COMMAND message data."""
    args = data.get("args", [])
    if not isinstance(args, list):
        args = []
    return {
        "player_id": _parse_id(data.get("player_id")),
        "command": str(data.get("command", "")).lstrip("/").lower(),
        "args": [str(a) for a in args],
    }
