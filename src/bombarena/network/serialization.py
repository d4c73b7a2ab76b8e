"""Serialization — JSON encoding/decoding of channel frames."""

from __future__ import annotations

import json
from typing import Any


def encode(data: dict[str, Any]) -> str:
    """Encode a message dict to a compact JSON text frame."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode(raw: str | bytes) -> dict[str, Any]:
    """Decode a text or binary frame to a message dict.

    Raises:
        ValueError: The frame is not UTF-8 JSON or not a JSON object.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Message must be a JSON object")
    return data
