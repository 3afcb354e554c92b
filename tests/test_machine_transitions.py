from __future__ import annotations

import random
from uuid import uuid4

import pytest

from murder.core.events import Event, EventType
from murder.core.state import Active, GameInstance, GameState, Outcome, Paused, Resetting
from murder.machine import EventStatus, GameStateMachine
from murder.players import InMemoryPlayerDirectory


def _send(machine: GameStateMachine, type: str, *args: str):
    return machine.process_event(Event.of(type, *args))


def _start_round(machine: GameStateMachine, *players: str) -> None:
    for pid in players:
        _send(machine, EventType.ADD_PLAYER, pid)
    _send(machine, EventType.GAME_START)
    result = _send(machine, EventType.ACTIVATE)
    assert result.state_after == GameState.ACTIVE


def test_full_round_scenario(machine: GameStateMachine, hooks) -> None:
    assert machine.state == GameState.LOBBY
    assert machine.instance.roster.players == set()

    _send(machine, EventType.ADD_PLAYER, "p1")
    _send(machine, EventType.ADD_PLAYER, "p2")
    assert machine.instance.roster.players == {"p1", "p2"}

    res = _send(machine, EventType.GAME_START)
    assert res.status == EventStatus.applied
    assert machine.state == GameState.STARTING
    assert hooks.count("lobby_to_game") == 1

    machine.murderer_number = 0
    _send(machine, EventType.ACTIVATE)
    assert machine.state == GameState.ACTIVE
    state = machine.instance.state
    assert isinstance(state, Active)
    assert len(state.round.assignment.murderers) == 1
    assert set(state.round.assignment.murderers) <= {"p1", "p2"}

    _send(machine, EventType.DECLARE_MURDERER_VICTORY)
    assert machine.state == GameState.RESETTING
    assert isinstance(machine.instance.state, Resetting)
    assert machine.instance.state.outcome == Outcome.murderers

    _send(machine, EventType.RETURN_TO_LOBBY)
    assert machine.state == GameState.LOBBY
    assert hooks.count("back_to_lobby") == 1
    assert machine.instance.current_round() is None
    # Round-persistent data survives the soft reset.
    assert len(machine.instance.history) == 1
    assert machine.instance.stats.murderer_wins == 1
    assert machine.instance.roster.players == {"p1", "p2"}


def test_activate_in_lobby_is_a_no_op(machine: GameStateMachine) -> None:
    res = _send(machine, EventType.ACTIVATE)
    assert res.status == EventStatus.ignored
    assert machine.state == GameState.LOBBY


@pytest.mark.parametrize(
    "setup, expected",
    [
        ([EventType.GAME_START], GameState.STARTING),
        ([EventType.GAME_START, EventType.ACTIVATE], GameState.ACTIVE),
        ([EventType.GAME_START, EventType.ACTIVATE, EventType.PAUSE], GameState.PAUSED),
        ([EventType.GAME_START, EventType.ACTIVATE, EventType.DECLARE_INNOCENT_VICTORY], GameState.RESETTING),
    ],
)
def test_add_player_outside_lobby_does_not_touch_roster(machine: GameStateMachine, setup, expected) -> None:
    _send(machine, EventType.ADD_PLAYER, "p1")
    for t in setup:
        _send(machine, t)
    assert machine.state == expected

    res = _send(machine, EventType.ADD_PLAYER, "p2")
    assert res.status == EventStatus.ignored
    assert machine.instance.roster.players == {"p1"}
    assert machine.is_locked()


def test_add_spectator_works_in_every_state_and_removes_player(machine: GameStateMachine) -> None:
    _start_round(machine, "p1", "p2", "p3")

    res = _send(machine, EventType.ADD_SPECTATOR, "p2")
    assert res.status == EventStatus.applied
    assert machine.state == GameState.ACTIVE
    assert machine.instance.roster.spectators == {"p2"}
    assert machine.instance.roster.players == {"p1", "p3"}

    _send(machine, EventType.ADD_SPECTATOR, "Player 4")
    assert machine.instance.roster.spectators == {"p2", "p4"}


def test_unresolvable_tokens_are_skipped(machine: GameStateMachine) -> None:
    res = _send(machine, EventType.ADD_PLAYER, "ghost")
    assert res.status == EventStatus.ignored
    assert res.ok

    res = _send(machine, EventType.ADD_PLAYER)
    assert res.status == EventStatus.ignored
    assert machine.instance.roster.players == set()


def test_players_resolve_by_display_name(machine: GameStateMachine) -> None:
    _send(machine, EventType.ADD_PLAYER, "  player   3 ")
    assert machine.instance.roster.players == {"p3"}


def test_pause_resume_keeps_round(machine: GameStateMachine) -> None:
    _start_round(machine, "p1", "p2", "p3")
    round_before = machine.instance.current_round()

    _send(machine, EventType.PAUSE)
    assert isinstance(machine.instance.state, Paused)
    assert machine.instance.current_round() == round_before

    # Victory cannot be declared while paused.
    assert _send(machine, EventType.DECLARE_INNOCENT_VICTORY).status == EventStatus.ignored

    _send(machine, EventType.RESUME)
    assert machine.state == GameState.ACTIVE
    assert machine.instance.current_round() == round_before


def test_pause_in_lobby_is_reserved_no_op(machine: GameStateMachine) -> None:
    res = _send(machine, EventType.PAUSE)
    assert res.status == EventStatus.applied
    assert machine.state == GameState.LOBBY


def test_resume_outside_paused_is_ignored(machine: GameStateMachine) -> None:
    _start_round(machine, "p1", "p2")
    assert _send(machine, EventType.RESUME).status == EventStatus.ignored
    assert machine.state == GameState.ACTIVE


@pytest.mark.parametrize(
    "setup",
    [
        [],
        [EventType.GAME_START],
        [EventType.GAME_START, EventType.ACTIVATE],
        [EventType.GAME_START, EventType.ACTIVATE, EventType.PAUSE],
    ],
)
def test_return_to_lobby_outside_resetting_is_a_no_op(machine: GameStateMachine, hooks, setup) -> None:
    _send(machine, EventType.ADD_PLAYER, "p1")
    for t in setup:
        _send(machine, t)
    before = machine.state

    res = _send(machine, EventType.RETURN_TO_LOBBY)
    assert res.status == EventStatus.ignored
    assert machine.state == before
    assert hooks.count("back_to_lobby") == 0


def test_game_reset_from_active_goes_straight_to_lobby(machine: GameStateMachine, hooks) -> None:
    _start_round(machine, "p1", "p2", "p3")
    _send(machine, EventType.ADD_SPECTATOR, "p4")

    res = _send(machine, EventType.GAME_RESET)
    assert res.status == EventStatus.applied
    assert res.state_before == GameState.ACTIVE
    assert res.state_after == GameState.LOBBY
    assert hooks.count("back_to_lobby") == 1
    assert machine.instance.roster.players == set()
    assert machine.instance.roster.spectators == set()
    assert machine.instance.current_round() is None


def test_game_reset_wipes_round_persistent_data(machine: GameStateMachine) -> None:
    _start_round(machine, "p1", "p2")
    _send(machine, EventType.DECLARE_INNOCENT_VICTORY)
    _send(machine, EventType.RETURN_TO_LOBBY)
    assert machine.instance.stats.rounds_played == 1

    _send(machine, EventType.GAME_RESET)
    assert machine.instance.history == []
    assert machine.instance.stats.rounds_played == 0
    assert machine.instance.stats.player_wins == {}


def test_game_reset_in_lobby_still_runs_teardown(machine: GameStateMachine, hooks) -> None:
    _send(machine, EventType.ADD_PLAYER, "p1")
    _send(machine, EventType.GAME_RESET)
    assert machine.state == GameState.LOBBY
    assert hooks.count("back_to_lobby") == 1
    assert machine.instance.roster.players == set()


def test_activate_with_empty_roster_aborts_to_lobby(machine: GameStateMachine, hooks) -> None:
    _send(machine, EventType.GAME_START)
    res = _send(machine, EventType.ACTIVATE)

    assert res.status == EventStatus.applied
    assert res.state_after == GameState.LOBBY
    assert hooks.count("back_to_lobby") == 1
    assert machine.instance.current_round() is None


def test_activation_places_player_and_scrap_spawns(hooks, directory) -> None:
    instance = GameInstance(game_id=uuid4(), scrap_count=3)
    machine = GameStateMachine(instance=instance, hooks=hooks, directory=directory, rng=random.Random(1))
    _start_round(machine, "p1", "p2", "p3")

    round_data = machine.instance.current_round()
    assert round_data is not None
    assert set(round_data.player_spawns) == {"p1", "p2", "p3"}
    assert len(set(round_data.player_spawns.values())) == 3
    assert len(round_data.scrap_spawns) == 3


def test_player_spawn_shortage_aborts_activation(hooks, directory) -> None:
    del hooks.player_spawns[1:]
    machine = GameStateMachine(instance=GameInstance(game_id=uuid4()), hooks=hooks, directory=directory)
    for pid in ("p1", "p2"):
        _send(machine, EventType.ADD_PLAYER, pid)
    _send(machine, EventType.GAME_START)

    res = _send(machine, EventType.ACTIVATE)
    assert res.ok
    assert machine.state == GameState.LOBBY
    assert hooks.count("back_to_lobby") == 1
    # Roster survives an aborted activation.
    assert machine.instance.roster.players == {"p1", "p2"}


def test_scrap_shortage_is_not_fatal(hooks, directory) -> None:
    del hooks.scrap_spawns[2:]
    machine = GameStateMachine(instance=GameInstance(game_id=uuid4(), scrap_count=5), hooks=hooks, directory=directory)
    _start_round(machine, "p1", "p2")

    round_data = machine.instance.current_round()
    assert round_data is not None
    assert len(round_data.scrap_spawns) == 2


def test_eliminating_every_murderer_ends_in_innocent_victory(machine: GameStateMachine) -> None:
    machine.murderer_number = 1
    machine.hunter_number = 1
    _start_round(machine, "p1", "p2", "p3", "p4")
    round_data = machine.instance.current_round()
    assert round_data is not None
    murderer = round_data.assignment.murderers[0]

    innocent = round_data.assignment.innocents[0]
    assert _send(machine, EventType.ELIMINATE_PLAYER, innocent).status == EventStatus.applied
    assert machine.state == GameState.ACTIVE

    _send(machine, EventType.ELIMINATE_PLAYER, murderer)
    assert machine.state == GameState.RESETTING
    assert machine.instance.history[-1].outcome == Outcome.innocents
    assert machine.instance.history[-1].eliminated == [innocent, murderer]
    assert murderer not in machine.instance.stats.player_wins


def test_eliminating_every_non_murderer_ends_in_murderer_victory(machine: GameStateMachine) -> None:
    _start_round(machine, "p1", "p2", "p3")
    round_data = machine.instance.current_round()
    assert round_data is not None
    others = [p for p in round_data.assignment.players if p not in round_data.assignment.murderers]

    for pid in others:
        _send(machine, EventType.ELIMINATE_PLAYER, pid)

    assert machine.state == GameState.RESETTING
    assert machine.instance.stats.murderer_wins == 1
    assert machine.instance.stats.player_wins == {round_data.assignment.murderers[0]: 1}


def test_repeated_or_unknown_eliminations_are_ignored(machine: GameStateMachine) -> None:
    _start_round(machine, "p1", "p2", "p3")
    round_data = machine.instance.current_round()
    assert round_data is not None
    victim = next(p for p in round_data.assignment.players if p not in round_data.assignment.murderers)

    assert _send(machine, EventType.ELIMINATE_PLAYER, victim).status == EventStatus.applied
    assert _send(machine, EventType.ELIMINATE_PLAYER, victim).status == EventStatus.ignored
    # Connected but not dealt into this round.
    assert _send(machine, EventType.ELIMINATE_PLAYER, "p9").status == EventStatus.ignored
    assert machine.instance.current_round().eliminated == [victim]


def test_unknown_event_types_are_dropped(machine: GameStateMachine) -> None:
    res = _send(machine, "DANCE")
    assert res.status == EventStatus.ignored
    assert res.detail == "unknown event type"
    assert machine.state == GameState.LOBBY


def test_machine_only_accepts_its_configured_vocabulary(hooks, directory) -> None:
    machine = GameStateMachine(
        instance=GameInstance(game_id=uuid4()),
        hooks=hooks,
        directory=directory,
        event_types={EventType.ADD_PLAYER, EventType.GAME_RESET},
    )
    _send(machine, EventType.ADD_PLAYER, "p1")
    assert _send(machine, EventType.GAME_START).status == EventStatus.ignored
    assert machine.state == GameState.LOBBY
    assert machine.instance.roster.players == {"p1"}


def test_load_runs_teardown_and_starts_in_lobby(machine: GameStateMachine, hooks) -> None:
    machine.load()
    assert hooks.calls == ["back_to_lobby"]
    assert machine.state == GameState.LOBBY
    assert not machine.is_locked()


def test_state_is_always_one_of_the_defined_states(hooks) -> None:
    directory = InMemoryPlayerDirectory({"p1": "p1", "p2": "p2", "p3": "p3"})
    machine = GameStateMachine(instance=GameInstance(game_id=uuid4()), hooks=hooks, directory=directory)
    rng = random.Random(1234)
    vocabulary = [t.value for t in EventType] + ["BOGUS"]

    for _ in range(500):
        t = rng.choice(vocabulary)
        machine.process_event(Event.of(t, rng.choice(["p1", "p2", "p3", "ghost"])))
        assert machine.state in set(GameState)
        assert not machine.instance.roster.players & machine.instance.roster.spectators
        assert machine.is_locked() == (machine.state != GameState.LOBBY)


def test_each_game_start_draws_a_round_seed_that_survives_reset(hooks, directory) -> None:
    machine = GameStateMachine(
        instance=GameInstance(game_id=uuid4()),
        hooks=hooks,
        directory=directory,
        entropy=random.Random(99),
    )
    assert machine.instance.round_seed is None

    seeds = []
    for _ in range(3):
        _send(machine, EventType.GAME_START)
        seeds.append(machine.instance.round_seed)
        _send(machine, EventType.GAME_RESET)
        assert machine.instance.round_seed == seeds[-1]

    assert None not in seeds
    assert len(set(seeds)) == 3
