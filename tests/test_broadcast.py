"""Tests for the broadcast encoder."""

from __future__ import annotations

from bombarena.models.arena_map import ArenaMap
from bombarena.models.grid import GridPos
from bombarena.models.messages import StateSnapshot, parse_message
from bombarena.models.player import Player
from bombarena.network.broadcast import broadcast, build_snapshot, player_view

ROWS = ["#######", "#S...S#", "#.....#", "#S...S#", "#######"]


class _FakeChannel:
    def __init__(self, connected: bool = True):
        self.connected = connected
        self.states = []

    def send_state(self, snapshot):
        self.states.append(snapshot)
        return True


def _players(n: int) -> list[Player]:
    return [
        Player(pid=i, name=f"p{i}", position=GridPos(1 + i, 1), channel=_FakeChannel())
        for i in range(n)
    ]


class TestBuildSnapshot:
    def test_excludes_recipient(self):
        players = _players(3)
        snap = build_snapshot(players[1], players, ArenaMap(name="m", rows=ROWS), tick=4)
        assert snap.player.id == 1
        assert [o.id for o in snap.opponents] == [0, 2]
        assert snap.tick == 4

    def test_excludes_by_identity_not_by_value(self):
        a = Player(pid=0, name="twin", position=GridPos(2, 2))
        b = Player(pid=0, name="twin", position=GridPos(2, 2))
        snap = build_snapshot(a, [a, b], ArenaMap(name="m", rows=ROWS))
        assert len(snap.opponents) == 1

    def test_contains_map_and_bombs(self):
        arena_map = ArenaMap(name="m", rows=ROWS)
        arena_map.add_bomb(GridPos(3, 2), owner_id=1)
        players = _players(2)
        snap = build_snapshot(players[0], players, arena_map)
        assert snap.map.width == 7
        assert snap.map.bombs[0].x == 3 and snap.map.bombs[0].owner == 1

    def test_wire_round_trip_type(self):
        players = _players(2)
        snap = build_snapshot(players[0], players, ArenaMap(name="m", rows=ROWS))
        parsed = parse_message(snap.model_dump())
        assert isinstance(parsed, StateSnapshot)
        assert parsed.type == "state"

    def test_player_view(self):
        p = Player(pid=3, name="x", position=GridPos(4, 5), wins=2)
        v = player_view(p)
        assert (v.id, v.x, v.y, v.wins, v.alive) == (3, 4, 5, 2, True)


class TestBroadcast:
    def test_dead_players_get_nothing_and_are_not_listed(self):
        players = _players(3)
        players[2].alive = False
        sent = broadcast(players, ArenaMap(name="m", rows=ROWS))
        assert sent == 2
        assert players[2].channel.states == []
        for p in players[:2]:
            assert [o.id for o in p.channel.states[0].opponents] == [1 - p.pid]

    def test_disconnected_player_gets_nothing(self):
        players = _players(2)
        players[0].channel.connected = False
        assert broadcast(players, ArenaMap(name="m", rows=ROWS)) == 1
        assert players[0].channel.states == []
        # Still on the field, so the other player sees it
        assert [o.id for o in players[1].channel.states[0].opponents] == [0]

    def test_local_player_gets_nothing(self):
        players = _players(2)
        players[0].channel = None
        assert broadcast(players, ArenaMap(name="m", rows=ROWS)) == 1

    def test_never_receives_itself(self):
        players = _players(4)
        broadcast(players, ArenaMap(name="m", rows=ROWS), tick=9)
        for p in players:
            snap = p.channel.states[0]
            assert all(o.id != p.pid for o in snap.opponents)
            assert len(snap.opponents) == 3
