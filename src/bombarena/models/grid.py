"""Square grid coordinates and player commands.

The arena uses screen-style coordinates: ``x`` grows to the right,
``y`` grows downwards, so UP decrements ``y``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Command(Enum):
    """A player intent for the next tick."""

    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    BOMB = "BOMB"

    @property
    def is_move(self) -> bool:
        return self is not Command.BOMB


_OFFSETS: dict[Command, tuple[int, int]] = {
    Command.UP: (0, -1),
    Command.DOWN: (0, 1),
    Command.LEFT: (-1, 0),
    Command.RIGHT: (1, 0),
}


def parse_command(text: Optional[str]) -> Optional[Command]:
    """Map a wire command string to a :class:`Command`.

    Empty and unknown strings mean "no command".
    """
    if not text:
        return None
    try:
        return Command(text.strip().upper())
    except ValueError:
        return None


@dataclass(frozen=True)
class GridPos:
    """Immutable grid cell coordinate.

    Attributes:
        x: Column, growing to the right.
        y: Row, growing downwards.
    """

    x: int
    y: int

    def offset(self, command: Command) -> GridPos:
        """The neighbouring cell a move command targets."""
        dx, dy = _OFFSETS[command]
        return GridPos(self.x + dx, self.y + dy)

    def neighbors(self) -> list[GridPos]:
        """The four orthogonal neighbours (up, down, left, right)."""
        return [self.offset(c) for c in _OFFSETS]

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y}
