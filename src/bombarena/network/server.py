"""WebSocket listener — admits player connections into the arena.

Each connection goes through:
1. WebSocket handshake; the display name comes from ``?name=<name>``.
2. The round manager accepts or refuses it (arena full, round running).
   Refused connections are closed with code 1013 and leave no trace.
3. The channel reads frames until the peer goes away.

Uses the ``websockets`` library with asyncio.
"""

from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

import websockets
from websockets.asyncio.server import ServerConnection, Server as WSServer

from bombarena.network.channel import NetworkChannel
from bombarena.util import constants as C

if TYPE_CHECKING:
    from bombarena.engine.round_manager import RoundManager
    from bombarena.util.events import EventBus

log = logging.getLogger(__name__)

MAX_NAME_LENGTH = 32


def remote_name(ws: ServerConnection) -> str:
    """Display name requested by the client, or the default name."""
    req = getattr(ws, "request", None)
    if req is None or not req.path:
        return C.DEFAULT_REMOTE_NAME
    names = parse_qs(urlparse(req.path).query).get("name")
    if not names or not names[0].strip():
        return C.DEFAULT_REMOTE_NAME
    return names[0].strip()[:MAX_NAME_LENGTH]


class Server:
    """asyncio WebSocket server feeding the round manager.

    Args:
        event_bus: Bus the channels report to.
        round_manager: Decides on admission.
        host: Bind address.
        port: Bind port (0 picks a free port).
        queue_size: Outbound queue length per channel.
    """

    def __init__(self, event_bus: EventBus, round_manager: RoundManager,
                 host: str = C.DEFAULT_HOST, port: int = C.DEFAULT_PORT,
                 queue_size: int = C.SEND_QUEUE_SIZE) -> None:
        self._events = event_bus
        self._manager = round_manager
        self._host = host
        self._port = port
        self._queue_size = queue_size
        self._channels: set[NetworkChannel] = set()
        self._server: Optional[WSServer] = None

    # -- Lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Start listening."""
        self._server = await websockets.serve(self._on_connect, self._host, self._port)
        log.info("Arena listening on ws://%s", self.address)

    def close(self) -> None:
        """Stop accepting connections; open channels stay up."""
        if self._server is not None:
            self._server.close(close_connections=False)
            log.info("Listener closed")

    async def stop(self) -> None:
        """Stop the server and close all connections."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            log.info("WebSocket server stopped")

    @property
    def address(self) -> str:
        """Listen address as ``host:port``."""
        host, port = self._host, self._port
        if self._server is not None:
            for sock in self._server.sockets:
                host, port = sock.getsockname()[:2]
                break
        return f"{host}:{port}"

    @property
    def connection_count(self) -> int:
        return len(self._channels)

    # -- Connection handler ----------------------------------------------

    async def _on_connect(self, ws: ServerConnection) -> None:
        channel = NetworkChannel(ws, self._events, remote_name(ws), self._queue_size)
        player = self._manager.accept_connection(channel)
        if player is None:
            await ws.close(1013, "Arena full or round in progress")
            return

        log.info("Client connected: pid=%d name=%r remote=%s",
                 player.pid, player.name, channel.remote_address)
        self._channels.add(channel)
        channel.start_writer()
        try:
            await channel.serve()
        finally:
            self._channels.discard(channel)
