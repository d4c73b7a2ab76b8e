"""Tick engine — fixed-interval resolution of player intents.

Tick order (must be preserved):
1. shuffle    — random resolution order for this tick only
2. resolve    — bombs are planted, moves are checked and committed
3. check      — a death plus fewer than two survivors ends the round
4. broadcast  — otherwise every connected player gets its snapshot

The random order decides which of two players wins a contested cell,
so no pid has a structural advantage. The random source is injected
so tests can reproduce exact orders.

Provides a deterministic :meth:`TickEngine.step` for testing; the
asyncio loop in :meth:`TickEngine.run` only adds timing.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Optional, Sequence, TYPE_CHECKING

from bombarena.models.grid import GridPos
from bombarena.network.broadcast import broadcast
from bombarena.util import constants as C
from bombarena.util.events import RoundOver, TickCompleted

if TYPE_CHECKING:
    from bombarena.loaders.game_config_loader import GameConfig
    from bombarena.models.arena_map import ArenaMap
    from bombarena.models.player import Player
    from bombarena.util.events import EventBus

log = logging.getLogger(__name__)


def shuffle_order(players: Sequence[Player], rng: random.Random) -> list[Player]:
    """Fisher–Yates shuffle of a copy of ``players``.

    Walks indices ``count-1 .. 1`` and swaps each with a uniformly
    chosen index in ``[0, index]``.
    """
    order = list(players)
    for index in range(len(order) - 1, 0, -1):
        other = rng.randint(0, index)
        order[index], order[other] = order[other], order[index]
    return order


class TickEngine:
    """The arena game tick.

    Args:
        event_bus: Receives RoundOver and TickCompleted events.
        world: Object exposing ``players`` (roster in pid order) and
               ``arena_map``, normally the RoundManager.
        game_config: Timing and rule settings.
        rng: Random source for the resolution order.
    """

    def __init__(
        self,
        event_bus: EventBus,
        world: Any,
        game_config: GameConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._events = event_bus
        self._world = world
        self._rng = rng or random.Random()
        interval_ms = game_config.tick_interval_ms if game_config else C.TICK_INTERVAL_MS
        self._interval = interval_ms / 1000.0
        self._repeat_bomb = game_config.repeat_bomb_command if game_config else False
        self._running = False
        self._task: Optional[asyncio.Task] = None

        # --- Debug / monitoring counters ---
        self.tick_count: int = 0
        self.last_tick_duration_ms: float = 0.0
        self.last_order: list[int] = []

    # -- Timer -----------------------------------------------------------

    async def run(self) -> None:
        """Tick every interval until stop() is called or the round ends."""
        while self._running:
            await asyncio.sleep(self._interval)
            if not self._running:
                break

            t0 = time.monotonic()
            round_over = self.step()
            self.last_tick_duration_ms = (time.monotonic() - t0) * 1000

            self._events.emit(TickCompleted(tick=self.tick_count))
            if round_over:
                break

    def start(self) -> None:
        """Start the timer. No-op if it is already running."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self.run())
        log.debug("Tick timer started (%.0f ms)", self._interval * 1000)

    def stop(self) -> None:
        """Stop the timer. A tick in progress always completes."""
        self._running = False
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @property
    def is_active(self) -> bool:
        return self._running

    # -- Deterministic tick (also used by tests) -------------------------

    def step(self) -> bool:
        """Resolve one tick.

        Returns:
            True if the round is over (a RoundOver event was emitted).
        """
        arena_map: ArenaMap = self._world.arena_map
        players = shuffle_order(self._world.players, self._rng)
        self.last_order = [p.pid for p in players if p.alive]
        self.tick_count += 1

        for player in players:
            if not player.alive or player.command is None:
                continue

            if player.command.is_move:
                target = player.position.offset(player.command)
                if self._can_enter(target, players, arena_map):
                    player.position = target
                continue

            arena_map.add_bomb(player.position, player.pid)
            if not self._repeat_bomb:
                player.command = None

        dead = sum(1 for p in players if not p.alive)
        alive = len(players) - dead
        if dead > 0 and alive < 2:
            log.info("Tick %d: %d player(s) left alive, round over", self.tick_count, alive)
            self._events.emit(RoundOver(alive=alive))
            return True

        broadcast(self._world.players, arena_map, self.tick_count)
        return False

    @staticmethod
    def _can_enter(target: GridPos, players: Sequence[Player], arena_map: ArenaMap) -> bool:
        """Walkable, no alive player on it (moves of this tick included), no bomb."""
        if not arena_map.is_valid_position(target):
            return False
        if any(p.alive and p.position == target for p in players):
            return False
        return arena_map.bomb_at(target) is None
