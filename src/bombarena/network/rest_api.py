"""REST API — FastAPI application for the presentation and admin boundary.

Rendering layers read the roster and the map here and drive the
round (start, pause, stop, map change, local player). Presentation
events are pushed over ``/ws/events``.

Usage::

    from bombarena.network.rest_api import create_app

    app = create_app(services)
    # Start with uvicorn as an asyncio task alongside the WS server
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, TYPE_CHECKING

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from bombarena.loaders.map_loader import available_maps
from bombarena.network.rest_models import (
    CommandBody,
    MapLoadBody,
    MapsResponse,
    PlayersResponse,
    StatusResponse,
)
from bombarena.util.events import (
    MapChanged,
    MapsChanged,
    MatchOver,
    PauseToggled,
    PlayerKilled,
    RosterChanged,
    RoundEnded,
    RoundStarted,
    TickCompleted,
)

if TYPE_CHECKING:
    from bombarena.main import Services

log = logging.getLogger(__name__)


def _presentation_events() -> dict[type, Callable[[Any], dict[str, Any]]]:
    """Bus event type → JSON payload pushed to ``/ws/events``."""
    return {
        RosterChanged: lambda e: {"type": "roster", "players": [p.to_dict() for p in e.players]},
        MapChanged: lambda e: {"type": "map", "map": e.arena_map.to_dict()},
        MapsChanged: lambda e: {"type": "maps", "maps": list(e.maps)},
        TickCompleted: lambda e: {"type": "tick", "tick": e.tick},
        RoundStarted: lambda e: {"type": "round_started", "round": e.round_number},
        RoundEnded: lambda e: {"type": "round_ended", "round": e.round_number,
                               "winner": e.winner_id},
        MatchOver: lambda e: {"type": "match_over",
                              "wins": [{"name": n, "wins": w} for n, w in e.wins]},
        PauseToggled: lambda e: {"type": "paused", "paused": e.paused},
        PlayerKilled: lambda e: {"type": "killed", "id": e.pid},
    }


def create_app(services: "Services") -> FastAPI:
    """Factory: create and return a configured FastAPI application.

    The ``services`` reference is captured by closure so every endpoint
    can access game logic without global state.
    """
    app = FastAPI(title="Bomb Arena", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def manager():
        return services.round_manager

    def status() -> dict[str, Any]:
        rm = manager()
        server = services.server
        return {
            "phase": rm.phase.value,
            "round": rm.rounds_played,
            "rounds_per_match": services.game_config.rounds_per_match,
            "paused": rm.is_paused,
            "tick": rm.tick_engine.tick_count,
            "address": server.address if server is not None else "",
            "connections": server.connection_count if server is not None else 0,
            "map": rm.arena_map.name if rm.arena_map else "",
            "final_tallies": [{"name": n, "wins": w} for n, w in rm.final_tallies],
        }

    # =================================================================
    # Presentation (read-only)
    # =================================================================

    @app.get("/api/players", response_model=PlayersResponse)
    async def players() -> dict[str, Any]:
        return {"players": [p.to_dict() for p in manager().players]}

    @app.get("/api/map")
    async def current_map() -> dict[str, Any]:
        return manager().arena_map.to_dict()

    @app.get("/api/status", response_model=StatusResponse)
    async def get_status() -> dict[str, Any]:
        return status()

    @app.get("/api/maps", response_model=MapsResponse)
    async def maps() -> dict[str, Any]:
        return {
            "maps": available_maps(services.game_config.maps_dir),
            "current": manager().arena_map.name,
        }

    # =================================================================
    # Round control
    # =================================================================

    @app.post("/api/round/start", response_model=StatusResponse)
    async def start_round() -> dict[str, Any]:
        manager().start_round()
        return status()

    @app.post("/api/round/pause", response_model=StatusResponse)
    async def toggle_pause() -> dict[str, Any]:
        manager().toggle_pause()
        return status()

    @app.post("/api/round/stop", response_model=StatusResponse)
    async def stop_game() -> dict[str, Any]:
        manager().stop_game()
        return status()

    @app.post("/api/map", response_model=StatusResponse)
    async def load_map(body: MapLoadBody) -> dict[str, Any]:
        known = set(available_maps(services.game_config.maps_dir))
        known.add(services.game_config.default_map)
        if body.path not in known:
            raise HTTPException(status_code=404, detail=f"Unknown map: {body.path}")
        if not manager().load_map_file(body.path):
            raise HTTPException(status_code=400, detail=f"Map {body.path} could not be loaded")
        return status()

    # =================================================================
    # Local player
    # =================================================================

    @app.post("/api/local", response_model=PlayersResponse)
    async def add_local() -> dict[str, Any]:
        if manager().add_player() is None:
            raise HTTPException(status_code=409, detail="Arena is full")
        return {"players": [p.to_dict() for p in manager().players]}

    @app.delete("/api/local", response_model=PlayersResponse)
    async def remove_local() -> dict[str, Any]:
        if not manager().remove_local_player():
            raise HTTPException(status_code=404, detail="No local player")
        return {"players": [p.to_dict() for p in manager().players]}

    @app.post("/api/local/command")
    async def local_command(body: CommandBody) -> dict[str, Any]:
        manager().set_local_command(body.command)
        return {"success": True}

    # =================================================================
    # Presentation event stream
    # =================================================================

    @app.websocket("/ws/events")
    async def events(ws: WebSocket) -> None:
        await ws.accept()
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=64)
        handlers = []
        for event_type, to_payload in _presentation_events().items():
            def handler(event: Any, to_payload=to_payload) -> None:
                if queue.full():
                    queue.get_nowait()
                queue.put_nowait(to_payload(event))
            services.event_bus.on(event_type, handler)
            handlers.append((event_type, handler))

        try:
            await ws.send_json({"type": "roster",
                                "players": [p.to_dict() for p in manager().players]})
            await ws.send_json({"type": "map", "map": manager().arena_map.to_dict()})
            while True:
                await ws.send_json(await queue.get())
        except WebSocketDisconnect:
            log.debug("Presentation client disconnected")
        finally:
            for event_type, handler in handlers:
                services.event_bus.off(event_type, handler)

    return app
