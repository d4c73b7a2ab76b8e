"""Network message models.

Typed Pydantic models for all client ↔ server messages on a player
channel. Each message type gets its own model with validation.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel


# -- Base ----------------------------------------------------------------

class GameMessage(BaseModel):
    """Base class for all arena messages."""

    type: str


# -- Client → server -----------------------------------------------------

class CommandMessage(GameMessage):
    """Replace the pending command. ``""`` clears it."""
    type: Literal["command"] = "command"
    command: str = ""


class NameMessage(GameMessage):
    """Change the display name (only before the first round starts)."""
    type: Literal["name"] = "name"
    name: str


# -- Server → client -----------------------------------------------------

class PlayerView(BaseModel):
    id: int
    name: str
    x: int
    y: int
    alive: bool = True
    wins: int = 0


class BombView(BaseModel):
    x: int
    y: int
    owner: Optional[int] = None
    fuse_ms: float = 0.0


class MapView(BaseModel):
    name: str
    width: int
    height: int
    tiles: list[str]
    bombs: list[BombView] = []
    explosions: list[dict[str, Any]] = []


class StateSnapshot(GameMessage):
    """Per-recipient world view sent after every tick.

    ``opponents`` never contains the recipient; the recipient's own
    state travels in ``player``.
    """
    type: Literal["state"] = "state"
    tick: int = 0
    player: PlayerView
    opponents: list[PlayerView] = []
    map: MapView


class EndOfRound(GameMessage):
    type: Literal["end_of_round"] = "end_of_round"


# -- Registry ------------------------------------------------------------

MESSAGE_TYPES: dict[str, type[GameMessage]] = {
    "command": CommandMessage,
    "name": NameMessage,
    "state": StateSnapshot,
    "end_of_round": EndOfRound,
}


def parse_message(data: dict[str, Any]) -> GameMessage:
    """Parse a raw dict into the appropriate typed message model."""
    msg_type = data.get("type", "")
    model_cls = MESSAGE_TYPES.get(msg_type, GameMessage)
    return model_cls.model_validate(data)
