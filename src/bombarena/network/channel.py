"""Network channel — one player's duplex WebSocket connection.

Inbound frames only ever set the player's pending command or, before
the first round starts, its display name. They are turned into events
(CommandReceived, NameChanged, ClientDisconnected) for the round manager.

Outbound frames are queued and written by a separate task. The queue is
bounded; when a peer does not keep up the oldest frame is dropped, so a
slow connection never holds up the tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import websockets
from pydantic import ValidationError

from bombarena.models.grid import parse_command
from bombarena.models.messages import (
    CommandMessage,
    EndOfRound,
    NameMessage,
    StateSnapshot,
    parse_message,
)
from bombarena.network.serialization import decode, encode
from bombarena.util import constants as C
from bombarena.util.events import ClientDisconnected, CommandReceived, EventBus, NameChanged

log = logging.getLogger(__name__)


class NetworkChannel:
    """Per-player connection wrapper.

    Args:
        ws: The WebSocket connection.
        event_bus: Receives the channel's events.
        remote_name: Display name supplied by the client at connect time.
        queue_size: Maximum number of unsent outbound frames.
    """

    def __init__(self, ws: Any, event_bus: EventBus,
                 remote_name: str = C.DEFAULT_REMOTE_NAME,
                 queue_size: int = C.SEND_QUEUE_SIZE) -> None:
        self._ws = ws
        self._events = event_bus
        self.remote_name = remote_name
        self.name_locked = False
        self.connected = True
        self.dropped_frames = 0
        self._kicked = False
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max(1, queue_size))
        self._writer: Optional[asyncio.Task] = None

    @property
    def remote_address(self) -> str:
        addr = getattr(self._ws, "remote_address", None)
        if isinstance(addr, tuple) and len(addr) >= 2:
            return f"{addr[0]}:{addr[1]}"
        return str(addr)

    @property
    def pending_frames(self) -> int:
        return self._queue.qsize()

    # -- Outbound --------------------------------------------------------

    def send_state(self, snapshot: StateSnapshot) -> bool:
        """Queue a state snapshot. Never blocks."""
        return self._enqueue(snapshot.model_dump())

    def send_end_of_round(self) -> bool:
        return self._enqueue(EndOfRound().model_dump())

    def _enqueue(self, data: dict[str, Any]) -> bool:
        if not self.connected:
            return False
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped_frames += 1
        self._queue.put_nowait(encode(data))
        return True

    def start_writer(self) -> None:
        if self._writer is None:
            self._writer = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while True:
            raw = await self._queue.get()
            try:
                await self._ws.send(raw)
            except websockets.ConnectionClosed:
                log.debug("Send to %s failed, connection closed", self.remote_address)
                return

    # -- Inbound ---------------------------------------------------------

    async def serve(self) -> None:
        """Read frames until the connection closes, then report it."""
        try:
            async for raw in self._ws:
                self.handle_frame(raw)
        except websockets.ConnectionClosed as e:
            log.info("Client %s disconnected: code=%s reason=%s",
                     self.remote_address, e.code, e.reason or "(none)")
        else:
            log.info("Client %s closed cleanly", self.remote_address)
        finally:
            self.connected = False
            if self._writer is not None:
                self._writer.cancel()
                self._writer = None
            if not self._kicked:
                self._events.emit(ClientDisconnected(channel=self))

    def handle_frame(self, raw: str | bytes) -> None:
        """Turn one inbound frame into an event; malformed frames are dropped."""
        try:
            message = parse_message(decode(raw))
        except (ValueError, ValidationError) as e:
            log.debug("Dropping malformed frame from %s: %s", self.remote_address, e)
            return

        if isinstance(message, CommandMessage):
            self._events.emit(CommandReceived(channel=self, command=parse_command(message.command)))
        elif isinstance(message, NameMessage):
            if self.name_locked:
                log.debug("Name change from %s ignored, round already started", self.remote_address)
                return
            self.remote_name = message.name
            self._events.emit(NameChanged(channel=self, name=message.name))
        else:
            log.debug("Unhandled message type %r from %s", message.type, self.remote_address)

    def lock_name(self) -> None:
        self.name_locked = True

    # -- Teardown --------------------------------------------------------

    def kick(self, code: int = 1008, reason: str = "Removed from the arena") -> None:
        """Close the connection without reporting a disconnect."""
        self._kicked = True
        self.connected = False
        asyncio.get_running_loop().create_task(self._ws.close(code, reason))
