"""Bomb and explosion models.

Bombs are owned by the map. ``owner_id`` is only an identity reference:
a bomb keeps ticking and detonates normally even after its owner left
the roster.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from bombarena.models.grid import GridPos


@dataclass
class Bomb:
    """A planted bomb.

    Attributes:
        position: Cell the bomb occupies (blocks movement).
        owner_id: Pid of the planting player at planting time.
        fuse_remaining_ms: Time until detonation.
        placed_at_ms: Map clock value when the bomb was planted.
    """

    position: GridPos
    owner_id: Optional[int]
    fuse_remaining_ms: float
    placed_at_ms: float = 0.0

    @property
    def is_due(self) -> bool:
        return self.fuse_remaining_ms <= 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.position.x,
            "y": self.position.y,
            "owner": self.owner_id,
            "fuse_ms": max(0.0, self.fuse_remaining_ms),
        }


@dataclass
class Explosion:
    """Flame left behind by a detonation, kept for display only."""

    cells: frozenset[GridPos] = field(default_factory=frozenset)
    owner_id: Optional[int] = None
    remaining_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cells": [c.to_dict() for c in sorted(self.cells, key=lambda c: (c.y, c.x))],
            "owner": self.owner_id,
        }
