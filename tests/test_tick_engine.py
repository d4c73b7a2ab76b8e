"""Tests for the tick engine.

These tests use the deterministic step() method with a seeded random
source; no timers are involved.
"""

from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from bombarena.engine.tick_engine import TickEngine, shuffle_order
from bombarena.loaders.game_config_loader import GameConfig
from bombarena.models.arena_map import ArenaMap
from bombarena.models.grid import Command, GridPos
from bombarena.models.player import Player
from bombarena.util.events import EventBus, RoundOver

OPEN_ROWS = [
    "#######",
    "#S...S#",
    "#.....#",
    "#.....#",
    "#S...S#",
    "#######",
]


class _FakeChannel:
    """Records outbound frames instead of writing to a socket."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.states = []
        self.end_of_round = 0

    def send_state(self, snapshot):
        self.states.append(snapshot)
        return True

    def send_end_of_round(self):
        self.end_of_round += 1
        return True


def _make_world(positions, channels=False, rows=OPEN_ROWS):
    players = [
        Player(pid=i, name=f"p{i}", position=GridPos(*pos),
               channel=_FakeChannel() if channels else None)
        for i, pos in enumerate(positions)
    ]
    arena_map = ArenaMap(name="test", rows=list(rows))
    return SimpleNamespace(players=players, arena_map=arena_map)


def _make_engine(world, seed=1, **config):
    bus = EventBus()
    over = []
    bus.on(RoundOver, over.append)
    engine = TickEngine(bus, world, GameConfig(**config), random.Random(seed))
    return engine, over


class TestShuffle:
    def test_is_permutation(self):
        players = list(range(6))
        rng = random.Random(5)
        for _ in range(50):
            assert sorted(shuffle_order(players, rng)) == players

    def test_does_not_touch_input(self):
        players = [1, 2, 3]
        shuffle_order(players, random.Random(0))
        assert players == [1, 2, 3]

    def test_reproducible_with_seed(self):
        a = [shuffle_order(range(5), r) for r in [random.Random(9)] * 10]
        b = [shuffle_order(range(5), r) for r in [random.Random(9)] * 10]
        assert a == b

    def test_order_changes_between_ticks(self):
        rng = random.Random(2)
        orders = {tuple(shuffle_order(range(4), rng)) for _ in range(30)}
        assert len(orders) > 1

    def test_all_orders_reachable(self):
        rng = random.Random(11)
        orders = {tuple(shuffle_order(range(3), rng)) for _ in range(500)}
        assert len(orders) == 6

    def test_empty_and_single(self):
        rng = random.Random(0)
        assert shuffle_order([], rng) == []
        assert shuffle_order(["a"], rng) == ["a"]


class TestMovement:
    @pytest.mark.parametrize("command,expected", [
        (Command.UP, (3, 1)),
        (Command.DOWN, (3, 3)),
        (Command.LEFT, (2, 2)),
        (Command.RIGHT, (4, 2)),
    ])
    def test_directional_moves(self, command, expected):
        world = _make_world([(3, 2)])
        engine, _ = _make_engine(world)
        world.players[0].command = command
        engine.step()
        assert world.players[0].position == GridPos(*expected)

    def test_no_command_no_move(self):
        world = _make_world([(3, 2)])
        engine, _ = _make_engine(world)
        engine.step()
        assert world.players[0].position == GridPos(3, 2)

    def test_command_persists(self):
        world = _make_world([(1, 2)])
        engine, _ = _make_engine(world)
        world.players[0].command = Command.RIGHT
        engine.step()
        engine.step()
        assert world.players[0].position == GridPos(3, 2)
        assert world.players[0].command is Command.RIGHT

    def test_wall_blocks(self):
        world = _make_world([(1, 1)])
        engine, _ = _make_engine(world)
        world.players[0].command = Command.UP
        engine.step()
        assert world.players[0].position == GridPos(1, 1)

    def test_alive_player_blocks(self):
        world = _make_world([(2, 2), (3, 2)])
        engine, _ = _make_engine(world)
        world.players[0].command = Command.RIGHT
        engine.step()
        assert world.players[0].position == GridPos(2, 2)

    def test_dead_player_does_not_block(self):
        world = _make_world([(2, 2), (3, 2), (5, 4)])
        engine, _ = _make_engine(world)
        world.players[1].alive = False
        world.players[0].command = Command.RIGHT
        engine.step()
        assert world.players[0].position == GridPos(3, 2)

    def test_bomb_blocks(self):
        world = _make_world([(2, 2)])
        engine, _ = _make_engine(world)
        world.arena_map.add_bomb(GridPos(3, 2))
        world.players[0].command = Command.RIGHT
        engine.step()
        assert world.players[0].position == GridPos(2, 2)

    def test_dead_player_does_not_act(self):
        world = _make_world([(2, 2), (4, 4), (5, 4)])
        engine, _ = _make_engine(world)
        world.players[0].alive = False
        world.players[0].command = Command.BOMB
        engine.step()
        assert world.arena_map.bombs == []

    def test_contested_cell_goes_to_one_player(self):
        world = _make_world([(2, 2), (4, 2)])
        engine, _ = _make_engine(world)
        world.players[0].command = Command.RIGHT
        world.players[1].command = Command.LEFT
        engine.step()
        positions = {p.position for p in world.players}
        assert GridPos(3, 2) in positions
        assert len(positions) == 2

    def test_contested_cell_is_fair(self):
        world = _make_world([(2, 2), (4, 2)])
        engine, _ = _make_engine(world, seed=1234)
        p0, p1 = world.players
        wins = [0, 0]
        for _ in range(2000):
            p0.position, p1.position = GridPos(2, 2), GridPos(4, 2)
            p0.command, p1.command = Command.RIGHT, Command.LEFT
            engine.step()
            wins[0 if p0.position == GridPos(3, 2) else 1] += 1
        assert 0.45 < wins[0] / 2000 < 0.55

    def test_resolution_order_is_permutation_of_alive(self):
        world = _make_world([(1, 1), (5, 1), (1, 4), (5, 4)])
        engine, _ = _make_engine(world)
        world.players[2].alive = False
        for _ in range(20):
            engine.step()
            assert sorted(engine.last_order) == [0, 1, 3]


class TestBombCommand:
    def test_bomb_is_planted_without_moving(self):
        world = _make_world([(1, 1), (3, 3)])
        engine, over = _make_engine(world)
        p0, p1 = world.players
        p0.command = Command.BOMB
        engine.step()
        assert world.arena_map.bomb_at(GridPos(1, 1)) is not None
        assert world.arena_map.bomb_at(GridPos(1, 1)).owner_id == 0
        assert p0.position == GridPos(1, 1)

        p1.command = Command.LEFT
        engine.step()
        assert p1.position == GridPos(2, 3)
        assert p0.position == GridPos(1, 1)
        assert over == []

    def test_bomb_command_consumed_by_default(self):
        world = _make_world([(1, 1)])
        engine, _ = _make_engine(world)
        world.players[0].command = Command.BOMB
        engine.step()
        assert world.players[0].command is None

    def test_bomb_command_repeats_when_configured(self):
        world = _make_world([(1, 1)])
        engine, _ = _make_engine(world, repeat_bomb_command=True)
        p = world.players[0]
        p.command = Command.BOMB
        engine.step()
        assert p.command is Command.BOMB
        # Same cell already holds a bomb; the map refuses a second one.
        engine.step()
        assert len(world.arena_map.bombs) == 1

    def test_player_can_leave_own_bomb(self):
        world = _make_world([(1, 1)])
        engine, _ = _make_engine(world)
        p = world.players[0]
        p.command = Command.BOMB
        engine.step()
        p.command = Command.RIGHT
        engine.step()
        assert p.position == GridPos(2, 1)


class TestRoundOver:
    def test_no_round_over_without_deaths(self):
        world = _make_world([(1, 1), (5, 4)])
        engine, over = _make_engine(world)
        assert engine.step() is False
        assert over == []

    def test_single_player_never_ends_round(self):
        world = _make_world([(1, 1)])
        engine, over = _make_engine(world)
        for _ in range(5):
            engine.step()
        assert over == []

    def test_death_with_one_survivor_ends_round(self):
        world = _make_world([(1, 1), (5, 4)])
        engine, over = _make_engine(world)
        world.players[1].alive = False
        assert engine.step() is True
        assert len(over) == 1
        assert over[0].alive == 1

    def test_simultaneous_elimination(self):
        world = _make_world([(1, 1), (5, 4)])
        engine, over = _make_engine(world)
        for p in world.players:
            p.alive = False
        engine.step()
        assert over[0].alive == 0

    def test_death_with_two_survivors_continues(self):
        world = _make_world([(1, 1), (5, 1), (1, 4)])
        engine, over = _make_engine(world)
        world.players[0].alive = False
        assert engine.step() is False
        assert over == []

    def test_no_broadcast_on_round_over(self):
        world = _make_world([(1, 1), (5, 4)], channels=True)
        engine, _ = _make_engine(world)
        world.players[1].alive = False
        engine.step()
        assert world.players[0].channel.states == []


class TestBroadcast:
    def test_every_connected_alive_player_gets_snapshot(self):
        world = _make_world([(1, 1), (5, 1), (1, 4)], channels=True)
        engine, _ = _make_engine(world)
        engine.step()
        for p in world.players:
            assert len(p.channel.states) == 1
            snap = p.channel.states[0]
            assert snap.player.id == p.pid
            assert p.pid not in [o.id for o in snap.opponents]
            assert len(snap.opponents) == 2
            assert snap.tick == 1

    def test_snapshot_reflects_moves_of_the_tick(self):
        world = _make_world([(1, 1), (5, 4)], channels=True)
        engine, _ = _make_engine(world)
        world.players[0].command = Command.RIGHT
        engine.step()
        snap = world.players[1].channel.states[0]
        assert (snap.opponents[0].x, snap.opponents[0].y) == (2, 1)

    def test_local_players_are_skipped_but_listed(self):
        world = _make_world([(1, 1), (5, 4)], channels=True)
        world.players[0].channel = None
        engine, _ = _make_engine(world)
        engine.step()
        snap = world.players[1].channel.states[0]
        assert [o.id for o in snap.opponents] == [0]

    def test_tick_count(self):
        world = _make_world([(1, 1)])
        engine, _ = _make_engine(world)
        engine.step()
        engine.step()
        assert engine.tick_count == 2
