"""Arena map model.

Holds the tile grid, the ordered starting positions, active bombs and
the flames of recent detonations. Bomb fuses are advanced by
:meth:`ArenaMap.step`; each detonation is announced as an
:class:`~bombarena.util.events.ExplosionAt` event on the attached bus.

Tile characters:
- ``#``: solid wall
- ``.``: floor
- ``+``: destructible block (not walkable, stops a blast and is destroyed)
- ``S``: floor that is also a starting position (row-major order)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from bombarena.models.bomb import Bomb, Explosion
from bombarena.models.grid import Command, GridPos
from bombarena.util import constants as C
from bombarena.util.events import EventBus, ExplosionAt

log = logging.getLogger(__name__)

WALL = "#"
FLOOR = "."
BLOCK = "+"
START = "S"

TILE_TYPES = frozenset({WALL, FLOOR, BLOCK, START})


@dataclass
class ArenaMap:
    """The authoritative arena grid.

    Attributes:
        name: Map name, usually the path it was loaded from.
        rows: Tile rows as loaded; used to rebuild a fresh copy.
        bomb_fuse_ms: Fuse length of newly planted bombs.
        explosion_ms: Display lifetime of a flame.
        blast_radius: Reach of a blast in each direction.
        block_density: Chance that a free floor cell gets a random block.
        min_starting_positions: Starting positions required for a valid map.
        event_bus: Receives ExplosionAt events; None while detached.
        rng: Random source for block placement.
    """

    name: str
    rows: list[str]
    bomb_fuse_ms: float = C.BOMB_FUSE_MS
    explosion_ms: float = C.EXPLOSION_MS
    blast_radius: int = C.BLAST_RADIUS
    block_density: float = 0.0
    min_starting_positions: int = C.MIN_STARTING_POSITIONS
    event_bus: Optional[EventBus] = None
    rng: random.Random = field(default_factory=random.Random)

    bombs: list[Bomb] = field(default_factory=list, init=False)
    explosions: list[Explosion] = field(default_factory=list, init=False)
    starting_positions: list[GridPos] = field(default_factory=list, init=False)
    clock_ms: float = field(default=0.0, init=False)

    def __post_init__(self) -> None:
        self._tiles: list[list[str]] = []
        for y, row in enumerate(self.rows):
            tiles = []
            for x, ch in enumerate(row):
                if ch == START:
                    self.starting_positions.append(GridPos(x, y))
                    ch = FLOOR
                tiles.append(ch)
            self._tiles.append(tiles)
        if self.block_density > 0 and self.is_valid:
            self._scatter_blocks()

    # -- Shape -----------------------------------------------------------

    @property
    def height(self) -> int:
        return len(self._tiles)

    @property
    def width(self) -> int:
        return len(self._tiles[0]) if self._tiles else 0

    @property
    def is_valid(self) -> bool:
        """Rectangular, known tiles only, enough starting positions."""
        if not self.rows or not self.rows[0]:
            return False
        width = len(self.rows[0])
        for row in self.rows:
            if len(row) != width or not set(row) <= TILE_TYPES:
                return False
        return len(self.starting_positions) >= self.min_starting_positions

    @property
    def capacity(self) -> int:
        """How many players the map can host."""
        return len(self.starting_positions)

    def tile_at(self, pos: GridPos) -> str:
        if not (0 <= pos.y < self.height and 0 <= pos.x < self.width):
            return WALL
        return self._tiles[pos.y][pos.x]

    def tile_rows(self) -> list[str]:
        """Current tile grid (destroyed blocks are floor)."""
        return ["".join(row) for row in self._tiles]

    # -- Queries ---------------------------------------------------------

    def is_valid_position(self, pos: GridPos) -> bool:
        """True if a player may stand on ``pos`` (bombs not considered)."""
        return self.tile_at(pos) == FLOOR

    def bomb_at(self, pos: GridPos) -> Optional[Bomb]:
        for bomb in self.bombs:
            if bomb.position == pos:
                return bomb
        return None

    def blast_cells(self, center: GridPos) -> frozenset[GridPos]:
        """Cells reached by a blast at ``center``.

        The blast travels up to ``blast_radius`` cells in each direction,
        stops before a wall and stops on a destructible block.
        """
        cells = {center}
        for direction in (Command.UP, Command.DOWN, Command.LEFT, Command.RIGHT):
            pos = center
            for _ in range(self.blast_radius):
                pos = pos.offset(direction)
                tile = self.tile_at(pos)
                if tile == WALL:
                    break
                cells.add(pos)
                if tile == BLOCK:
                    break
        return frozenset(cells)

    # -- Mutation --------------------------------------------------------

    def add_bomb(self, pos: GridPos, owner_id: Optional[int] = None) -> Optional[Bomb]:
        """Plant a bomb at ``pos``.

        Returns None if the cell already holds a bomb or is not walkable.
        """
        if not self.is_valid_position(pos) or self.bomb_at(pos) is not None:
            return None
        bomb = Bomb(
            position=pos,
            owner_id=owner_id,
            fuse_remaining_ms=self.bomb_fuse_ms,
            placed_at_ms=self.clock_ms,
        )
        self.bombs.append(bomb)
        log.debug("Bomb planted at (%d,%d) by %s", pos.x, pos.y, owner_id)
        return bomb

    def step(self, dt_ms: float) -> list[Explosion]:
        """Advance fuses and flames by ``dt_ms``.

        Returns the explosions triggered during this step.
        """
        self.clock_ms += dt_ms

        for explosion in self.explosions:
            explosion.remaining_ms -= dt_ms
        self.explosions = [e for e in self.explosions if e.remaining_ms > 0]

        for bomb in self.bombs:
            bomb.fuse_remaining_ms -= dt_ms

        triggered: list[Explosion] = []
        for bomb in [b for b in self.bombs if b.is_due]:
            if bomb in self.bombs:
                self._detonate(bomb, triggered)
        return triggered

    def fresh(self) -> ArenaMap:
        """A new copy of this map with no bombs and all blocks restored."""
        return ArenaMap(
            name=self.name,
            rows=list(self.rows),
            bomb_fuse_ms=self.bomb_fuse_ms,
            explosion_ms=self.explosion_ms,
            blast_radius=self.blast_radius,
            block_density=self.block_density,
            min_starting_positions=self.min_starting_positions,
            rng=self.rng,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "tiles": self.tile_rows(),
            "bombs": [b.to_dict() for b in self.bombs],
            "explosions": [e.to_dict() for e in self.explosions],
        }

    # -- Internal --------------------------------------------------------

    def _detonate(self, bomb: Bomb, triggered: list[Explosion]) -> None:
        self.bombs.remove(bomb)
        cells = self.blast_cells(bomb.position)
        for cell in cells:
            if self.tile_at(cell) == BLOCK:
                self._tiles[cell.y][cell.x] = FLOOR

        explosion = Explosion(cells=cells, owner_id=bomb.owner_id,
                              remaining_ms=self.explosion_ms)
        self.explosions.append(explosion)
        triggered.append(explosion)
        log.debug("Bomb at (%d,%d) exploded, %d cells", bomb.position.x,
                  bomb.position.y, len(cells))

        if self.event_bus is not None:
            self.event_bus.emit(ExplosionAt(cells=cells, owner_id=bomb.owner_id))

        # Chain reaction
        for other in [b for b in self.bombs if b.position in cells]:
            if other in self.bombs:
                self._detonate(other, triggered)

    def _scatter_blocks(self) -> None:
        """Randomly fill free floor with blocks, keeping spawn areas open."""
        reserved: set[GridPos] = set()
        for start in self.starting_positions:
            reserved.add(start)
            reserved.update(start.neighbors())
        for y, row in enumerate(self._tiles):
            for x, tile in enumerate(row):
                if tile != FLOOR or GridPos(x, y) in reserved:
                    continue
                if self.rng.random() < self.block_density:
                    row[x] = BLOCK
