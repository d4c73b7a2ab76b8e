"""Game configuration — loads tunable constants from config/game.yaml.

Provides a single ``GameConfig`` dataclass that is loaded once at startup
and then passed (or injected) wherever constants are needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from bombarena.util import constants as C

log = logging.getLogger(__name__)

DEFAULT_GAME_CONFIG_PATH = "config/game.yaml"


@dataclass
class GameConfig:
    """All tunable gameplay constants.

    Loaded from ``config/game.yaml``.  Every field has a sensible default
    so the server can start even without the file.
    """

    # -- Timing ------------------------------------------------------
    tick_interval_ms: float = C.TICK_INTERVAL_MS
    fuse_poll_ms: float = C.FUSE_POLL_MS
    bomb_fuse_ms: float = C.BOMB_FUSE_MS
    explosion_ms: float = C.EXPLOSION_MS
    next_round_delay_ms: float = C.NEXT_ROUND_DELAY_MS

    # -- Rules -------------------------------------------------------
    rounds_per_match: int = C.ROUNDS_PER_MATCH
    blast_radius: int = C.BLAST_RADIUS
    repeat_bomb_command: bool = False
    min_starting_positions: int = C.MIN_STARTING_POSITIONS
    block_density: float = 0.0
    rng_seed: Optional[int] = None

    # -- Maps --------------------------------------------------------
    default_map: str = "config/maps/default.yaml"
    maps_dir: str = "config/maps"
    maps_poll_ms: float = C.MAPS_POLL_MS

    # -- Network -----------------------------------------------------
    host: str = C.DEFAULT_HOST
    port: int = C.DEFAULT_PORT
    rest_port: int = C.DEFAULT_REST_PORT
    send_queue_size: int = C.SEND_QUEUE_SIZE


def load_game_config(path: str = DEFAULT_GAME_CONFIG_PATH) -> GameConfig:
    """Load game configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Game config not found at %s, using defaults", p)
        return GameConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded game config from %s (%d keys)", p, len(raw))

    unknown = sorted(k for k in raw if k not in GameConfig.__dataclass_fields__)
    if unknown:
        log.warning("Ignoring unknown game config keys: %s", ", ".join(unknown))

    return GameConfig(**{
        k: v for k, v in raw.items()
        if k in GameConfig.__dataclass_fields__
    })
