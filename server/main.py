"""
WebSocket server entry point for the KOTH event service.

This module provides:
- WebSocket server the game host connects to (one host at a time)
- Translation of host messages into controller events
- Delivery of queued world commands back to the host
"""

import asyncio
import json
import logging
import argparse
from typing import Optional

from rich.logging import RichHandler

# Suppress websockets library errors from TCP probes (health checks that don't
# complete the WebSocket handshake).
logging.getLogger("websockets").setLevel(logging.CRITICAL)

import websockets
from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from game.config_loader import ConfigLoader
from game.errors import CommandError, InvalidMessage
from game.world import PlayerSnapshot
from game.zone import Vector3
from server.commands import build_command_event
from server.controller import EventController
from server.events import (
    DamageReport, KillNotification, KothEvent, KothEventType, LootAttempt
)
from server.host import HostWorld
from server.protocol import (
    HostMessageType, Message, chat_message, damage_result_message, error_message,
    parse_chat_command_message, parse_entity_damaged_message, parse_hello_message,
    parse_loot_attempt_message, parse_player_joined_message, parse_player_killed_message,
    parse_player_left_message, parse_positions_message, welcome_message
)
from version import VERSION

logger = logging.getLogger(__name__)


class KothServer:
    """
    WebSocket server bridging one game host to the KOTH controller.

    Handles:
    - Host handshake and version validation
    - Player registry updates (joins, leaves, positions)
    - World notifications and chat commands
    - Writing queued world commands to the host
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 8765, config_dir: str = "config"):
        self.host = host
        self.port = port

        self.config = ConfigLoader(config_dir)
        self.world = HostWorld()
        self.controller = EventController(
            settings=self.config.settings,
            world=self.world,
            broadcast=self.broadcast,
            send_to_player=self.send_to_player,
            manifest=self.config.build_manifest()
        )

        self.websocket: Optional[ServerConnection] = None

    async def start(self):
        """Start the WebSocket server and run until cancelled."""
        logger.info("Starting KOTH server on ws://%s:%s", self.host, self.port)
        await self.controller.startup()
        try:
            # Use reuse_address=True to allow binding to ports in TIME_WAIT state
            async with websockets.serve(
                self.handle_connection, self.host, self.port,
                reuse_address=True
            ):
                await asyncio.Future()  # Run forever
        finally:
            await self.controller.shutdown()

    async def handle_connection(self, websocket: ServerConnection):
        """Handle a host connection. A second host is turned away."""
        if self.websocket is not None:
            await self.send_to_websocket(
                websocket, error_message("HOST_ALREADY_CONNECTED", "A game host is already connected")
            )
            await websocket.close()
            return

        self.websocket = websocket
        writer = asyncio.create_task(self._write_outbox(websocket))
        logger.info("Host connected")

        try:
            async for message in websocket:
                await self.handle_message(websocket, message)
        except ConnectionClosed:
            pass
        finally:
            writer.cancel()
            self.websocket = None
            self.world.disconnect()
            logger.info("Host disconnected")

    async def _write_outbox(self, websocket: ServerConnection):
        """Deliver queued messages to the host until the connection drops."""
        while True:
            message = await self.world.outbox.get()
            try:
                await websocket.send(message.to_json())
            except ConnectionClosed:
                return

    async def handle_message(self, websocket: ServerConnection, raw_message: str):
        """Handle an incoming host message."""
        try:
            msg = Message.from_json(raw_message)
        except json.JSONDecodeError:
            await self.send_to_websocket(websocket, error_message("INVALID_JSON", "Invalid JSON message"))
            return

        msg_type = msg.type

        if msg_type == HostMessageType.HELLO.value:
            await self.handle_hello(websocket, msg.data)
            return

        if not self.world.connected:
            await self.send_to_websocket(websocket, error_message("HELLO_REQUIRED", "Send HELLO first"))
            return

        try:
            await self.dispatch(websocket, msg)
        except InvalidMessage as e:
            await self.send_to_websocket(websocket, error_message("INVALID_MESSAGE", str(e)))

    async def dispatch(self, websocket: ServerConnection, msg: Message):
        """Route a message from a greeted host to its handler."""
        msg_type = msg.type

        if msg_type == HostMessageType.PLAYER_JOINED.value:
            self.handle_player_joined(msg.data)

        elif msg_type == HostMessageType.PLAYER_LEFT.value:
            self.world.remove_player(parse_player_left_message(msg.data)["player_id"])

        elif msg_type == HostMessageType.POSITIONS.value:
            self.world.update_positions(parse_positions_message(msg.data))

        elif msg_type == HostMessageType.PLAYER_KILLED.value:
            await self.handle_player_killed(msg.data)

        elif msg_type == HostMessageType.LOOT_ATTEMPT.value:
            await self.handle_loot_attempt(msg.data)

        elif msg_type == HostMessageType.ENTITY_DAMAGED.value:
            await self.handle_entity_damaged(msg.data)

        elif msg_type == HostMessageType.CHAT_COMMAND.value:
            await self.handle_chat_command(msg.data)

        else:
            await self.send_to_websocket(websocket, error_message("UNKNOWN_TYPE", f"Unknown message type: {msg_type}"))

    async def handle_hello(self, websocket: ServerConnection, data: dict):
        """Handle HELLO message - host handshake."""
        host_version = parse_hello_message(data)["version"]

        if host_version != VERSION:
            await self.send_to_websocket(
                websocket,
                error_message(
                    "VERSION_MISMATCH",
                    f"Version mismatch. Server: {VERSION}, Host: {host_version}"
                )
            )
            await websocket.close()
            return

        self.world.connected = True
        await self.send_to_websocket(websocket, welcome_message(VERSION, self.controller.state.name))

    def handle_player_joined(self, data: dict):
        """Handle PLAYER_JOINED message."""
        parsed = parse_player_joined_message(data)
        if not parsed["player_id"]:
            return
        self.world.add_player(PlayerSnapshot(
            player_id=parsed["player_id"],
            display_name=parsed["display_name"],
            position=parsed["position"] or Vector3(0.0, 0.0, 0.0),
            is_admin=parsed["is_admin"]
        ))

    async def handle_player_killed(self, data: dict):
        """Handle PLAYER_KILLED message."""
        parsed = parse_player_killed_message(data)
        if not parsed["victim_id"]:
            return
        await self.controller.handle_event(KothEvent(
            type=KothEventType.PLAYER_KILLED,
            payload=KillNotification(**parsed)
        ))

    async def handle_loot_attempt(self, data: dict):
        """Handle LOOT_ATTEMPT message."""
        parsed = parse_loot_attempt_message(data)
        if not parsed["player_id"] or not parsed["entity_id"]:
            return
        await self.controller.handle_event(KothEvent(
            type=KothEventType.LOOT_ATTEMPT,
            payload=LootAttempt(**parsed),
            player_id=parsed["player_id"]
        ))

    async def handle_entity_damaged(self, data: dict):
        """Handle ENTITY_DAMAGED message. Always answers with DAMAGE_RESULT."""
        parsed = parse_entity_damaged_message(data)
        if not parsed["entity_id"]:
            return
        amount = await self.controller.handle_event(KothEvent(
            type=KothEventType.ENTITY_DAMAGED,
            payload=DamageReport(**parsed)
        ))
        if amount is None:
            amount = parsed["amount"]
        self.world.send(damage_result_message(parsed["entity_id"], amount))

    async def handle_chat_command(self, data: dict):
        """Handle CHAT_COMMAND message."""
        parsed = parse_chat_command_message(data)
        caller = self.world.find_player(parsed["player_id"]) if parsed["player_id"] else None
        if caller is None:
            return

        try:
            event = build_command_event(parsed["command"], parsed["args"], caller)
        except CommandError as e:
            await self.send_to_player(caller.player_id, chat_message(str(e)))
            return

        if event is not None:
            await self.controller.handle_event(event)

    async def send_to_websocket(self, websocket: ServerConnection, message: Message):
        """Send a message to a specific websocket."""
        try:
            await websocket.send(message.to_json())
        except ConnectionClosed:
            pass

    async def broadcast(self, message: Message):
        """Send a message to every player through the host."""
        self.world.send(message)

    async def send_to_player(self, player_id: str, message: Message):
        """Send a message to one player through the host."""
        self.world.send(message.addressed_to(player_id))


def setup_logging(verbose: bool = False):
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)]
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="KOTH Event Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8765, help="Port to bind to")
    parser.add_argument("--config-dir", default="config", help="Directory holding koth.json and items.json")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    setup_logging(args.verbose)

    server = KothServer(host=args.host, port=args.port, config_dir=args.config_dir)
    try:
        asyncio.run(server.start())
    except OSError as e:
        logger.error("Could not bind to %s:%s: %s", args.host, args.port, e)
        logger.error("Try a different port: --port %s", args.port + 1)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down")

    return 0


if __name__ == "__main__":
    exit(main())
