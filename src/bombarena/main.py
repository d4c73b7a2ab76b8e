"""Arena server entry point.

Initializes all components and starts the asyncio event loop:
1. Load configuration (game.yaml)
2. Load the starting map (fatal if unusable)
3. Create the event bus, round manager, listener and REST API
4. Start network servers
5. Run until SIGINT/SIGTERM, then shut down in order:
   stop accepting connections, stop the timers, release channels

Usage:
    python -m bombarena.main [--config config/game.yaml] [--map PATH]
    # or via entry point:
    bombarena
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import signal
import sys
from dataclasses import dataclass
from typing import Any, Optional

from bombarena.engine.round_manager import RoundManager
from bombarena.loaders.game_config_loader import (
    DEFAULT_GAME_CONFIG_PATH,
    GameConfig,
    load_game_config,
)
from bombarena.loaders.map_loader import load_map
from bombarena.loaders.maps_watcher import MapsWatcher
from bombarena.network.server import Server
from bombarena.util.events import EventBus

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all long-lived components."""

    game_config: Optional[GameConfig] = None
    event_bus: Optional[EventBus] = None
    round_manager: Optional[RoundManager] = None
    server: Optional[Server] = None
    maps_watcher: Optional[MapsWatcher] = None
    rest_server: Any = None


# ===================================================================
# 1. Create services
# ===================================================================


def create_services(config: GameConfig, map_path: str = "") -> Services:
    """Load the starting map and build all components.

    Raises:
        SystemExit: No usable starting map.
    """
    log.info("Creating services …")
    rng = random.Random(config.rng_seed)
    event_bus = EventBus()

    map_path = map_path or config.default_map
    try:
        arena_map = load_map(map_path, config, rng)
        round_manager = RoundManager(event_bus, arena_map, config, rng)
    except ValueError as exc:
        log.error("Unable to load the starting map: %s", exc)
        raise SystemExit(1) from exc
    log.info("  starting map: %s", map_path)

    server = Server(event_bus, round_manager, host=config.host, port=config.port,
                    queue_size=config.send_queue_size)
    maps_watcher = MapsWatcher(event_bus, config.maps_dir, config.maps_poll_ms)
    log.info("  all services created")

    return Services(
        game_config=config,
        event_bus=event_bus,
        round_manager=round_manager,
        server=server,
        maps_watcher=maps_watcher,
    )


# ===================================================================
# 2. Start network servers
# ===================================================================


async def start_network(services: Services) -> None:
    """Start the player listener and the REST API."""
    log.info("Starting network servers …")
    await services.server.start()
    services.maps_watcher.start()

    from bombarena.network.rest_api import create_app
    import uvicorn

    rest_app = create_app(services)
    config = uvicorn.Config(
        rest_app,
        host=services.game_config.host,
        port=services.game_config.rest_port,
        log_level="info",
        access_log=False,
    )
    rest_server = uvicorn.Server(config)
    services.rest_server = rest_server
    asyncio.create_task(rest_server.serve())
    log.info("  REST API listening on http://%s:%d",
             services.game_config.host, services.game_config.rest_port)


# ===================================================================
# 3. Run until shutdown
# ===================================================================


async def run_until_shutdown(services: Services) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received — stopping …")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    await stop.wait()

    log.info("Shutting down …")
    services.server.close()
    services.maps_watcher.stop()
    services.round_manager.shutdown()
    await services.server.stop()
    if services.rest_server is not None:
        services.rest_server.should_exit = True
        log.info("  REST API server stopped")
    log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_path: str, map_path: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Bomb Arena starting ===")

    config = load_game_config(config_path)
    services = create_services(config, map_path)
    await start_network(services)
    await run_until_shutdown(services)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="bombarena", description="Bomb Arena game server")
    parser.add_argument("--config", default=DEFAULT_GAME_CONFIG_PATH,
                        help="game configuration YAML (default: %(default)s)")
    parser.add_argument("--map", default="", help="starting map (default: from config)")
    return parser.parse_args(argv)


def main() -> None:
    """Entry point for the arena server."""
    args = parse_args(sys.argv[1:])
    asyncio.run(_start(config_path=args.config, map_path=args.map))


if __name__ == "__main__":
    main()
