"""Maps watcher — notices changes to the map files on disk.

Polls the maps directory and emits :class:`MapsChanged` whenever the
listing or a file's modification time differs from the last check, so
the presentation layer can refresh its map picker.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from bombarena.loaders.map_loader import available_maps
from bombarena.util import constants as C
from bombarena.util.events import MapsChanged

if TYPE_CHECKING:
    from bombarena.util.events import EventBus

log = logging.getLogger(__name__)


def scan_maps(maps_dir: str | Path) -> dict[str, float]:
    """Map path → modification time for every map file in ``maps_dir``."""
    found: dict[str, float] = {}
    for path in available_maps(maps_dir):
        try:
            found[path] = os.stat(path).st_mtime
        except OSError:
            # Removed between listing and stat
            continue
    return found


class MapsWatcher:
    """Periodic check of the maps directory.

    Args:
        event_bus: Receives MapsChanged events.
        maps_dir: Directory holding the map files.
        poll_ms: Interval between two checks.
    """

    def __init__(self, event_bus: EventBus, maps_dir: str | Path,
                 poll_ms: float = C.MAPS_POLL_MS) -> None:
        self._events = event_bus
        self._maps_dir = maps_dir
        self._interval = poll_ms / 1000.0
        self._known = scan_maps(maps_dir)
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def check(self) -> bool:
        """Compare the directory with the last check; emit on a difference."""
        current = scan_maps(self._maps_dir)
        if current == self._known:
            return False
        self._known = current
        log.info("Maps directory changed: %d map(s)", len(current))
        self._events.emit(MapsChanged(maps=tuple(sorted(current))))
        return True

    async def run(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            if self._running:
                self.check()

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self.run())

    def stop(self) -> None:
        self._running = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    @property
    def is_active(self) -> bool:
        return self._running
