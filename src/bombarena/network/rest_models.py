"""Pydantic request/response models for the REST API.

These models define the HTTP request bodies and response shapes of the
presentation/admin boundary. They are intentionally separate from the
channel message models.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class PlayerInfo(BaseModel):
    id: int
    name: str
    x: int
    y: int
    alive: bool
    wins: int
    local: bool


class PlayersResponse(BaseModel):
    players: List[PlayerInfo] = []


class StatusResponse(BaseModel):
    phase: str
    round: int
    rounds_per_match: int
    paused: bool
    tick: int
    address: str = ""
    connections: int = 0
    map: str = ""
    final_tallies: List[Dict[str, Any]] = []


class MapsResponse(BaseModel):
    maps: List[str] = []
    current: Optional[str] = None


class MapLoadBody(BaseModel):
    path: str


class CommandBody(BaseModel):
    command: str = ""
