"""Broadcast encoder — per-recipient state snapshots after each tick.

Every alive, connected, network-attached player gets its own snapshot:
the other alive players (never itself), its own state and the map.
Writes are queued on the channel, so a slow peer never delays the
others.
"""

from __future__ import annotations

import logging
from typing import Iterable, TYPE_CHECKING

from bombarena.models.messages import MapView, PlayerView, StateSnapshot

if TYPE_CHECKING:
    from bombarena.models.arena_map import ArenaMap
    from bombarena.models.player import Player

log = logging.getLogger(__name__)


def player_view(player: Player) -> PlayerView:
    return PlayerView(
        id=player.pid,
        name=player.name,
        x=player.position.x,
        y=player.position.y,
        alive=player.alive,
        wins=player.wins,
    )


def map_view(arena_map: ArenaMap) -> MapView:
    return MapView.model_validate(arena_map.to_dict())


def build_snapshot(
    recipient: Player,
    alive_players: Iterable[Player],
    arena_map: ArenaMap,
    tick: int = 0,
    view: MapView | None = None,
) -> StateSnapshot:
    """Build the snapshot for ``recipient``.

    Args:
        recipient: Player the snapshot is addressed to.
        alive_players: Alive players in roster order (may include recipient).
        arena_map: Current map.
        tick: Tick number the snapshot belongs to.
        view: Pre-built map view, shared between recipients of one tick.
    """
    return StateSnapshot(
        tick=tick,
        player=player_view(recipient),
        opponents=[player_view(p) for p in alive_players if p is not recipient],
        map=view if view is not None else map_view(arena_map),
    )


def broadcast(players: Iterable[Player], arena_map: ArenaMap, tick: int = 0) -> int:
    """Queue one snapshot per alive, connected, network-attached player.

    Returns:
        Number of snapshots queued.
    """
    alive = [p for p in players if p.alive]
    view = map_view(arena_map)
    sent = 0
    for player in alive:
        if not player.is_connected:
            continue
        snapshot = build_snapshot(player, alive, arena_map, tick, view)
        player.channel.send_state(snapshot)
        sent += 1
    log.debug("Tick %d: %d snapshots queued", tick, sent)
    return sent
