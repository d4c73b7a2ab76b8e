"""Player model — one participant of the arena.

A player is either network-attached (``channel`` set) or controlled
locally through the presentation layer (``channel`` is None).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING

from bombarena.models.grid import Command, GridPos

if TYPE_CHECKING:
    from bombarena.network.channel import NetworkChannel


@dataclass(eq=False)
class Player:
    """Mutable per-participant state.

    Players compare by identity: two players on the same cell with the
    same name are still different participants.

    Attributes:
        pid: Dense id, equal to the roster index.
        name: Display name.
        position: Current cell.
        alive: False once caught by an explosion.
        command: Pending command, None for no command.
        wins: Rounds won in the current match.
        channel: Attached network channel, None for a local player.
        ghost: Channel closed mid-round; removal waits for the round end.
    """

    pid: int
    name: str = ""
    position: GridPos = GridPos(0, 0)
    alive: bool = True
    command: Optional[Command] = None
    wins: int = 0
    channel: Optional[NetworkChannel] = None
    ghost: bool = False

    @property
    def is_local(self) -> bool:
        return self.channel is None

    @property
    def is_connected(self) -> bool:
        return self.channel is not None and self.channel.connected

    def add_win(self) -> None:
        self.wins += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.pid,
            "name": self.name,
            "x": self.position.x,
            "y": self.position.y,
            "alive": self.alive,
            "wins": self.wins,
            "local": self.is_local,
        }
