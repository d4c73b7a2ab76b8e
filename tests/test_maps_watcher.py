"""Tests for the maps directory watcher."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from bombarena.loaders.maps_watcher import MapsWatcher, scan_maps
from bombarena.network.rest_api import _presentation_events
from bombarena.util.events import EventBus, MapsChanged

MAP_YAML = 'tiles:\n  - "#####"\n  - "#S.S#"\n  - "#####"\n'


def _make_watcher(maps_dir: Path, poll_ms: float = 2000.0):
    bus = EventBus()
    changes = []
    bus.on(MapsChanged, changes.append)
    return MapsWatcher(bus, maps_dir, poll_ms), changes


class TestScan:
    def test_lists_map_files_with_mtime(self, tmp_path):
        (tmp_path / "a.yaml").write_text(MAP_YAML)
        (tmp_path / "notes.txt").write_text("x")
        found = scan_maps(tmp_path)
        assert [Path(p).name for p in found] == ["a.yaml"]

    def test_missing_dir(self, tmp_path):
        assert scan_maps(tmp_path / "missing") == {}


class TestCheck:
    def test_no_change_no_event(self, tmp_path):
        (tmp_path / "a.yaml").write_text(MAP_YAML)
        watcher, changes = _make_watcher(tmp_path)
        assert watcher.check() is False
        assert changes == []

    def test_added_map(self, tmp_path):
        watcher, changes = _make_watcher(tmp_path)
        (tmp_path / "new.yaml").write_text(MAP_YAML)
        assert watcher.check() is True
        assert [Path(p).name for p in changes[0].maps] == ["new.yaml"]
        # Reported once
        assert watcher.check() is False

    def test_removed_map(self, tmp_path):
        path = tmp_path / "old.yaml"
        path.write_text(MAP_YAML)
        watcher, changes = _make_watcher(tmp_path)
        path.unlink()
        assert watcher.check() is True
        assert changes[0].maps == ()

    def test_edited_map(self, tmp_path):
        path = tmp_path / "a.yaml"
        path.write_text(MAP_YAML)
        watcher, changes = _make_watcher(tmp_path)
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert watcher.check() is True
        assert len(changes) == 1

    def test_presentation_payload(self):
        to_payload = _presentation_events()[MapsChanged]
        assert to_payload(MapsChanged(maps=("config/maps/a.yaml",))) == {
            "type": "maps", "maps": ["config/maps/a.yaml"],
        }


class TestPolling:
    @pytest.mark.asyncio
    async def test_polls_until_stopped(self, tmp_path):
        watcher, changes = _make_watcher(tmp_path, poll_ms=10)
        watcher.start()
        assert watcher.is_active
        (tmp_path / "a.yaml").write_text(MAP_YAML)
        await asyncio.sleep(0.1)
        assert len(changes) == 1

        watcher.stop()
        assert not watcher.is_active
        (tmp_path / "b.yaml").write_text(MAP_YAML)
        await asyncio.sleep(0.05)
        assert len(changes) == 1
