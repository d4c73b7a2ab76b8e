"""Fuse loop — advances bomb fuses independently of the game tick.

Explosions happen at fuse resolution (``fuse_poll_ms``), not at tick
resolution, so a blast can kill a player between two ticks. The loop
runs while a round is playing and is paused together with the tick.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, TYPE_CHECKING

from bombarena.util import constants as C

if TYPE_CHECKING:
    from bombarena.loaders.game_config_loader import GameConfig

log = logging.getLogger(__name__)


class FuseLoop:
    """Periodically calls ``world.arena_map.step(dt_ms)``.

    Args:
        world: Object exposing the current ``arena_map``.
        game_config: Provides ``fuse_poll_ms``.
    """

    def __init__(self, world: Any, game_config: GameConfig | None = None) -> None:
        self._world = world
        poll_ms = game_config.fuse_poll_ms if game_config else C.FUSE_POLL_MS
        self._interval = poll_ms / 1000.0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        last = time.monotonic()
        while self._running:
            await asyncio.sleep(self._interval)
            now = time.monotonic()
            dt_ms = (now - last) * 1000.0
            last = now
            if self._running:
                self._world.arena_map.step(dt_ms)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self.run())

    def stop(self) -> None:
        self._running = False
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @property
    def is_active(self) -> bool:
        return self._running
