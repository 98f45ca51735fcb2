"""Chat commands that drive the KOTH controller.

Admin commands:
- /kothcreate <x> <y> <z> <radius>   start an event at a position
- /kothhere <radius>                 start an event where the admin stands
- /kothstop                          end the event now and pick a winner
- /kothabort                         tear the event down, no winner

Player commands:
- /kothjoin                          teleport to the edge of the zone
- /kothstatus                        show time left and the leader
"""
import math
from typing import List, Optional

from game.errors import CommandError, InvalidRegion
from game.world import PlayerSnapshot
from game.zone import ContestRegion, Vector3
from server.events import KothEvent, KothEventType, StartRequest, StopRequest

NO_PERMISSION = "You do not have permission to use this command."

USAGE = {
    "kothcreate": "Usage: /kothcreate <x> <y> <z> <radius>",
    "kothhere": "Usage: /kothhere <radius>",
}

ADMIN_COMMANDS = frozenset({"kothcreate", "kothhere", "kothstop", "kothabort"})
PLAYER_COMMANDS = frozenset({"kothjoin", "kothstatus"})


def is_koth_command(command: str) -> bool:
    return command in ADMIN_COMMANDS or command in PLAYER_COMMANDS


def _parse_numbers(command: str, args: List[str], count: int) -> List[float]:
    if len(args) != count:
        raise CommandError(USAGE[command])
    try:
        numbers = [float(arg) for arg in args]
    except ValueError:
        raise CommandError(USAGE[command])
    if not all(math.isfinite(n) for n in numbers):
        raise CommandError(USAGE[command])
    return numbers


def _region(command: str, center: Vector3, radius: float) -> ContestRegion:
    try:
        return ContestRegion(center, radius)
    except InvalidRegion:
        raise CommandError(USAGE[command])


def build_command_event(command: str, args: List[str],
                        caller: PlayerSnapshot) -> Optional[KothEvent]:
    """Turn a chat command into a controller event.

    Returns None for commands that are not ours.

    Raises:
        CommandError: missing privilege or bad arguments. The message is
            meant to be shown to the caller.
    """
    command = command.lstrip("/").lower()
    if not is_koth_command(command):
        return None
    if command in ADMIN_COMMANDS and not caller.is_admin:
        raise CommandError(NO_PERMISSION)

    player_id = caller.player_id

    if command == "kothcreate":
        x, y, z, radius = _parse_numbers(command, args, 4)
        region = _region(command, Vector3(x, y, z), radius)
        return KothEvent(KothEventType.ADMIN_START, StartRequest(region), player_id)

    if command == "kothhere":
        (radius,) = _parse_numbers(command, args, 1)
        region = _region(command, caller.position, radius)
        return KothEvent(KothEventType.ADMIN_START, StartRequest(region), player_id)

    if command == "kothstop":
        return KothEvent(KothEventType.ADMIN_STOP, StopRequest(force=False), player_id)

    if command == "kothabort":
        return KothEvent(KothEventType.ADMIN_STOP, StopRequest(force=True), player_id)

    if command == "kothjoin":
        return KothEvent(KothEventType.JOIN_REQUEST, player_id=player_id)

    return KothEvent(KothEventType.STATUS_REQUEST, player_id=player_id)
