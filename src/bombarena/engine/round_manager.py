"""Round manager — round lifecycle, win accounting and the player roster.

State machine::

    IDLE ──start_round──▶ PLAYING ──RoundOver──▶ RESOLVING
      ▲                                            │
      └──────── match over (counter reset) ◀───────┤
                                                   └──▶ PLAYING (after delay)

Also owns the connection lifecycle: admitting new channels, deferring
removal of players that disconnect mid-round, evicting network players
when a map with fewer starting positions is loaded, and keeping pids
dense (``players[i].pid == i``).

All inputs arrive as events on the bus (RoundOver, ExplosionAt,
CommandReceived, NameChanged, ClientDisconnected) or as direct calls
from the admin/presentation boundary.
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from bombarena.engine.fuse_loop import FuseLoop
from bombarena.engine.tick_engine import TickEngine
from bombarena.loaders.game_config_loader import GameConfig
from bombarena.loaders.map_loader import MapLoadError, load_map
from bombarena.models.grid import parse_command
from bombarena.models.player import Player
from bombarena.util import constants as C
from bombarena.util.events import (
    ClientDisconnected,
    CommandReceived,
    EventBus,
    ExplosionAt,
    MapChanged,
    MatchOver,
    NameChanged,
    PauseToggled,
    PlayerKilled,
    RosterChanged,
    RoundEnded,
    RoundOver,
    RoundStarted,
)

if TYPE_CHECKING:
    from bombarena.models.arena_map import ArenaMap
    from bombarena.network.channel import NetworkChannel

log = logging.getLogger(__name__)


class RoundPhase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    RESOLVING = "resolving"


class RoundManager:
    """Authoritative owner of the roster, the map and the round state.

    Args:
        event_bus: Bus shared with channels, map and presentation.
        arena_map: Initial map; must be valid.
        game_config: Rules and timing.
        rng: Random source for the tick order and map blocks.
        tick_engine: Injected tick engine (built from the config if None).
        fuse_loop: Injected fuse loop (built from the config if None).

    Raises:
        ValueError: ``arena_map`` is not a usable map.
    """

    def __init__(
        self,
        event_bus: EventBus,
        arena_map: ArenaMap,
        game_config: GameConfig | None = None,
        rng: random.Random | None = None,
        tick_engine: TickEngine | None = None,
        fuse_loop: FuseLoop | None = None,
    ) -> None:
        self._events = event_bus
        self._config = game_config or GameConfig()
        self._rng = rng or random.Random(self._config.rng_seed)
        self.players: list[Player] = []
        self.arena_map: ArenaMap | None = None
        self.rounds_played: int = 0
        self.phase = RoundPhase.IDLE
        self.final_tallies: list[tuple[str, int]] = []
        self._next_round: Optional[asyncio.TimerHandle] = None

        self.tick_engine = tick_engine or TickEngine(event_bus, self, self._config, self._rng)
        self.fuse_loop = fuse_loop or FuseLoop(self, self._config)

        if not self.load_map(arena_map):
            raise ValueError(f"Map {arena_map.name!r} is not a usable starting map")

        event_bus.on(RoundOver, self._on_round_over)
        event_bus.on(ExplosionAt, self._on_explosion)
        event_bus.on(ClientDisconnected, self._on_client_disconnected)
        event_bus.on(CommandReceived, self._on_command)
        event_bus.on(NameChanged, self._on_name_changed)

    # -- State queries ---------------------------------------------------

    @property
    def round_active(self) -> bool:
        """A round is being played (paused or not)."""
        return self.phase is RoundPhase.PLAYING

    @property
    def is_paused(self) -> bool:
        return self.round_active and not self.tick_engine.is_active

    @property
    def capacity(self) -> int:
        return self.arena_map.capacity if self.arena_map else 0

    def alive_players(self) -> list[Player]:
        return [p for p in self.players if p.alive]

    # -- Maps ------------------------------------------------------------

    def load_map(self, arena_map: ArenaMap) -> bool:
        """Make ``arena_map`` authoritative.

        Network players are evicted from the highest pid down while the
        roster exceeds the new capacity; local players are never evicted.
        The remaining players are moved to the starting positions.

        Returns:
            False if the map was rejected (the previous map stays).
        """
        if not arena_map.is_valid:
            log.warning(
                "Map %s rejected: %d starting positions, at least %d expected",
                arena_map.name, len(arena_map.starting_positions),
                arena_map.min_starting_positions,
            )
            return False

        if self.arena_map is not None and self.arena_map is not arena_map:
            self.arena_map.event_bus = None
        arena_map.event_bus = self._events
        self.arena_map = arena_map

        for index in range(len(self.players) - 1, -1, -1):
            if len(self.players) <= arena_map.capacity:
                break
            player = self.players[index]
            if player.is_local:
                continue
            del self.players[index]
            log.info("Player %r evicted: map %s only has %d starting positions",
                     player.name, arena_map.name, arena_map.capacity)
            player.channel.kick()

        self._renumber(reposition=True)
        self._publish_roster()
        self._events.emit(MapChanged(arena_map=arena_map))
        log.info("Map loaded: %s (%dx%d, %d starting positions)", arena_map.name,
                 arena_map.width, arena_map.height, arena_map.capacity)
        return True

    def load_map_file(self, path: str | Path) -> bool:
        """Load a map from disk; unreadable or invalid maps are a no-op."""
        try:
            arena_map = load_map(path, self._config, self._rng)
        except MapLoadError as exc:
            log.warning("%s", exc)
            return False
        return self.load_map(arena_map)

    # -- Round lifecycle -------------------------------------------------

    def start_round(self) -> None:
        """IDLE/RESOLVING → PLAYING. No-op without players."""
        if self._next_round is not None:
            self._next_round.cancel()
            self._next_round = None
        if not self.players:
            log.info("Cannot start a round without players")
            if self.phase is RoundPhase.RESOLVING:
                # Everybody left during the next-round delay
                self.phase = RoundPhase.IDLE
                self.rounds_played = 0
            return
        if self.round_active:
            log.debug("Round already running")
            return

        new_match = self.rounds_played == 0
        for player in self.players:
            player.alive = True
            player.command = None
            if new_match:
                player.wins = 0
        self.load_map(self.arena_map.fresh())

        # Names are fixed once the round has started
        for player in self.players:
            if player.channel is not None:
                player.channel.lock_name()

        self.phase = RoundPhase.PLAYING
        self.tick_engine.start()
        self.fuse_loop.start()
        log.info("Round %d started with %d players", self.rounds_played + 1, len(self.players))
        self._events.emit(RoundStarted(round_number=self.rounds_played + 1))

    def end_round(self) -> None:
        """PLAYING → RESOLVING (or → IDLE when the match is over)."""
        self.tick_engine.stop()
        self.fuse_loop.stop()

        for player in self.players:
            if player.is_connected:
                player.channel.send_end_of_round()

        self._purge_ghosts()

        winner = next((p for p in self.players if p.alive), None)
        if winner is not None:
            winner.add_win()
        self.rounds_played += 1
        round_number = self.rounds_played
        log.info("Round %d over, winner: %s", round_number,
                 winner.name if winner else "nobody")
        self._events.emit(RoundEnded(round_number=round_number,
                                     winner_id=winner.pid if winner else None))

        if self.rounds_played < self._config.rounds_per_match:
            self.phase = RoundPhase.RESOLVING
            delay = self._config.next_round_delay_ms / 1000.0
            self._next_round = asyncio.get_running_loop().call_later(delay, self.start_round)
            return

        self.final_tallies = [(p.name, p.wins) for p in self.players]
        log.info("Match over: %s", ", ".join(f"{n}={w}" for n, w in self.final_tallies))
        self.rounds_played = 0
        self.phase = RoundPhase.IDLE
        self._events.emit(MatchOver(wins=tuple(self.final_tallies)))

    def toggle_pause(self) -> None:
        """Stop or restart the tick timer without touching round state."""
        if not self.round_active:
            log.debug("Pause ignored, no round in progress")
            return
        if self.tick_engine.is_active:
            self.tick_engine.stop()
            self.fuse_loop.stop()
        else:
            self.tick_engine.start()
            self.fuse_loop.start()
        log.info("Round %s", "paused" if self.is_paused else "resumed")
        self._events.emit(PauseToggled(paused=self.is_paused))

    def stop_game(self) -> None:
        """Force the running round to resolve and restart the round count.

        The next round is still scheduled by ``end_round``; it opens a new
        match because the counter is back at 0.
        """
        if self.round_active:
            self.end_round()
        self.rounds_played = 0

    def shutdown(self) -> None:
        """Stop all timers and release every channel."""
        self.tick_engine.stop()
        self.fuse_loop.stop()
        if self._next_round is not None:
            self._next_round.cancel()
            self._next_round = None
        for player in self.players:
            if player.channel is not None:
                player.channel.kick(code=1001, reason="Server shutting down")

    # -- Roster ----------------------------------------------------------

    def accept_connection(self, channel: NetworkChannel) -> Optional[Player]:
        """Admit a new network channel, or refuse it (returns None)."""
        if len(self.players) >= self.capacity or self.round_active:
            log.warning("Connection from %s refused: %s", channel.remote_address,
                        "round in progress" if self.round_active else "arena full")
            return None
        return self.add_player(channel)

    def add_player(self, channel: NetworkChannel | None = None) -> Optional[Player]:
        """Add a network player, or the local player when ``channel`` is None."""
        if len(self.players) >= self.capacity:
            log.warning("Cannot add player: all %d starting positions taken", self.capacity)
            return None

        pid = len(self.players)
        player = Player(
            pid=pid,
            name=channel.remote_name if channel is not None else C.LOCAL_PLAYER_NAME,
            position=self.arena_map.starting_positions[pid],
            channel=channel,
        )
        self.players.append(player)
        log.info("Player joined: pid=%d name=%r%s", pid, player.name,
                 " (local)" if player.is_local else "")
        self._publish_roster()
        return player

    def remove_local_player(self) -> bool:
        """Remove the first locally-controlled player."""
        for index, player in enumerate(self.players):
            if player.is_local:
                del self.players[index]
                self._renumber()
                self._publish_roster()
                log.info("Local player removed")
                return True
        return False

    def set_local_command(self, text: str) -> None:
        """Input path of the locally-controlled player."""
        command = parse_command(text)
        for player in self.players:
            if player.is_local:
                player.command = command

    def find_by_channel(self, channel: NetworkChannel) -> Optional[Player]:
        for player in self.players:
            if player.channel is channel:
                return player
        return None

    # -- Event handlers --------------------------------------------------

    def _on_round_over(self, event: RoundOver) -> None:
        if not self.round_active:
            log.debug("RoundOver ignored, no round in progress")
            return
        self.end_round()

    def _on_explosion(self, event: ExplosionAt) -> None:
        for player in self.players:
            if player.alive and player.position in event.cells:
                player.alive = False
                log.info("Player %d (%r) killed", player.pid, player.name)
                self._events.emit(PlayerKilled(pid=player.pid))

    def _on_client_disconnected(self, event: ClientDisconnected) -> None:
        player = self.find_by_channel(event.channel)
        if player is None:
            log.warning("Unable to find disconnecting client %s", event.channel.remote_address)
            return

        if self.round_active:
            # Keep the index space stable until the round ends
            player.ghost = True
            player.command = None
            log.info("Player %d (%r) disconnected, removal deferred to round end",
                     player.pid, player.name)
            return

        self.players.remove(player)
        log.info("Player %d (%r) disconnected", player.pid, player.name)
        self._renumber()
        self._publish_roster()

    def _on_command(self, event: CommandReceived) -> None:
        player = self.find_by_channel(event.channel)
        if player is None:
            log.warning("Command from unknown client %s ignored", event.channel.remote_address)
            return
        player.command = event.command

    def _on_name_changed(self, event: NameChanged) -> None:
        player = self.find_by_channel(event.channel)
        if player is None:
            log.warning("Name change from unknown client %s ignored", event.channel.remote_address)
            return
        player.name = event.name
        self._publish_roster()

    # -- Internal --------------------------------------------------------

    def _purge_ghosts(self) -> None:
        ghosts = [p for p in self.players if p.ghost]
        if not ghosts:
            return
        self.players[:] = [p for p in self.players if not p.ghost]
        log.info("Removed %d disconnected player(s)", len(ghosts))
        self._renumber()
        self._publish_roster()

    def _renumber(self, reposition: bool = False) -> None:
        starts = self.arena_map.starting_positions if self.arena_map else []
        for index, player in enumerate(self.players):
            player.pid = index
            if reposition and index < len(starts):
                player.position = starts[index]

    def _publish_roster(self) -> None:
        self._events.emit(RosterChanged(players=tuple(self.players)))
