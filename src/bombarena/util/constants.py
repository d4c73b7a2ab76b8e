"""Game constants — timing, match length, network defaults.

All magic numbers of the arena server, centralized here.
"""

# -- Timing --------------------------------------------------------------

TICK_INTERVAL_MS: float = 250.0
"""Game tick interval in milliseconds."""

FUSE_POLL_MS: float = 50.0
"""Interval at which bomb fuses are advanced."""

BOMB_FUSE_MS: float = 2000.0
"""Time between planting a bomb and its detonation."""

EXPLOSION_MS: float = 500.0
"""How long a flame stays visible after a detonation."""

NEXT_ROUND_DELAY_MS: float = 1000.0
"""Pause between the end of a round and the start of the next one."""

MAPS_POLL_MS: float = 2000.0
"""How often the maps directory is checked for changes."""

# -- Match ---------------------------------------------------------------

ROUNDS_PER_MATCH: int = 5
BLAST_RADIUS: int = 2
MIN_STARTING_POSITIONS: int = 2

# -- Network -------------------------------------------------------------

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 54321
DEFAULT_REST_PORT: int = 8080
SEND_QUEUE_SIZE: int = 8

LOCAL_PLAYER_NAME: str = "Local user"
DEFAULT_REMOTE_NAME: str = "Player"
