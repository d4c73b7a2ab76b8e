"""Typed event bus — explicit communication between arena components.

Network channels, the map and the tick engine never call into the
round manager directly; they emit events which the manager consumes.
The presentation layer subscribes to the same bus.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, TypeVar, Type

T = TypeVar("T")


# -- Map events ----------------------------------------------------------

@dataclass(frozen=True)
class ExplosionAt:
    """A bomb detonated; every player standing in ``cells`` dies."""
    cells: frozenset
    owner_id: int | None = None


@dataclass(frozen=True)
class PlayerKilled:
    """A player was caught in an explosion."""
    pid: int


# -- Tick / round events -------------------------------------------------

@dataclass(frozen=True)
class TickCompleted:
    """A tick was resolved (only emitted while the timer runs)."""
    tick: int


@dataclass(frozen=True)
class RoundOver:
    """Fewer than two players survived a death; the round must resolve."""
    alive: int


@dataclass(frozen=True)
class RoundStarted:
    round_number: int


@dataclass(frozen=True)
class RoundEnded:
    """A round was resolved. ``winner_id`` is None when nobody survived."""
    round_number: int
    winner_id: int | None


@dataclass(frozen=True)
class MatchOver:
    """Final win tallies as ``(name, wins)`` pairs in pid order."""
    wins: tuple


@dataclass(frozen=True)
class PauseToggled:
    paused: bool


# -- Roster / presentation events ---------------------------------------

@dataclass(frozen=True)
class RosterChanged:
    """The ordered player list changed (add, remove, renumbering)."""
    players: tuple


@dataclass(frozen=True)
class MapChanged:
    """A new map became authoritative."""
    arena_map: Any


@dataclass(frozen=True)
class MapsChanged:
    """The map files in the maps directory changed."""
    maps: tuple


# -- Network events ------------------------------------------------------

@dataclass(frozen=True)
class CommandReceived:
    """A channel delivered a new pending command (None clears it)."""
    channel: Any
    command: Any


@dataclass(frozen=True)
class NameChanged:
    channel: Any
    name: str


@dataclass(frozen=True)
class ClientDisconnected:
    channel: Any


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(PlayerKilled, lambda e: print(e.pid))
        bus.emit(PlayerKilled(pid=1))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in list(self._handlers.get(type(event), [])):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
