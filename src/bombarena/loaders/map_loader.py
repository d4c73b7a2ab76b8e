"""Map loader — parses arena map definitions into ArenaMap models.

Format::

    name: Arena           # optional, defaults to the file name
    tiles:
      - "#######"
      - "#S...S#"
      - "#.#+#.#"
      - "#S...S#"
      - "#######"

See :mod:`bombarena.models.arena_map` for the tile characters.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

import yaml

from bombarena.models.arena_map import ArenaMap

if TYPE_CHECKING:
    from bombarena.loaders.game_config_loader import GameConfig

log = logging.getLogger(__name__)

MAP_SUFFIXES = (".yaml", ".yml")


class MapLoadError(ValueError):
    """A map file could not be read or is not a map definition."""


def load_map(
    path: str | Path,
    game_config: Optional[GameConfig] = None,
    rng: Optional[random.Random] = None,
) -> ArenaMap:
    """Load an arena map from a YAML file.

    The returned map is not checked for playability; callers decide
    what to do with an invalid map (see ``ArenaMap.is_valid``).

    Args:
        path: Path to the map YAML file.
        game_config: Bomb/blast settings applied to the map.
        rng: Random source for block scattering.

    Raises:
        MapLoadError: The file is missing, not YAML, or has no tile rows.
    """
    path = Path(path)
    try:
        with path.open() as f:
            data: Any = yaml.safe_load(f) or {}
    except OSError as exc:
        raise MapLoadError(f"Cannot read map {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise MapLoadError(f"Map {path} is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise MapLoadError(f"Map {path} must be a mapping")
    tiles = data.get("tiles")
    if not isinstance(tiles, list) or not all(isinstance(row, str) for row in tiles):
        raise MapLoadError(f"Map {path} has no 'tiles' list of strings")

    return map_from_rows(str(path), tiles, game_config, rng)


def map_from_rows(
    name: str,
    rows: list[str],
    game_config: Optional[GameConfig] = None,
    rng: Optional[random.Random] = None,
) -> ArenaMap:
    """Build an ArenaMap from tile rows using the configured rules."""
    kwargs: dict[str, Any] = {}
    if game_config is not None:
        kwargs = {
            "bomb_fuse_ms": game_config.bomb_fuse_ms,
            "explosion_ms": game_config.explosion_ms,
            "blast_radius": game_config.blast_radius,
            "block_density": game_config.block_density,
            "min_starting_positions": game_config.min_starting_positions,
        }
    if rng is not None:
        kwargs["rng"] = rng
    return ArenaMap(name=name, rows=[row.rstrip("\n") for row in rows], **kwargs)


def available_maps(maps_dir: str | Path) -> list[str]:
    """List map files in ``maps_dir`` (sorted, empty if missing)."""
    directory = Path(maps_dir)
    if not directory.is_dir():
        log.debug("Map directory %s does not exist", directory)
        return []
    return sorted(
        str(p) for p in directory.iterdir()
        if p.is_file() and p.suffix in MAP_SUFFIXES
    )
