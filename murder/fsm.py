from __future__ import annotations

from statemachine import State, StateMachine

from murder.core.state import GameInstance, GameState, MachineState


class GameFSM(StateMachine):
    """Guards the lifecycle transitions of one game instance.

    The FSM only decides which transitions are legal; the round payload for
    the target state is supplied by the caller through `move`.
    """

    lobby = State(GameState.LOBBY.value, value=GameState.LOBBY.value, initial=True)
    starting = State(GameState.STARTING.value, value=GameState.STARTING.value)
    active = State(GameState.ACTIVE.value, value=GameState.ACTIVE.value)
    paused = State(GameState.PAUSED.value, value=GameState.PAUSED.value)
    resetting = State(GameState.RESETTING.value, value=GameState.RESETTING.value)

    begin_setup = lobby.to(starting)
    activate_round = starting.to(active)
    abort_setup = starting.to(lobby)
    declare_victory = active.to(resetting)
    pause_round = active.to(paused)
    resume_round = paused.to(active)
    return_to_lobby = resetting.to(lobby)
    hard_reset = (
        lobby.to.itself()
        | starting.to(lobby)
        | active.to(lobby)
        | paused.to(lobby)
        | resetting.to(lobby)
    )

    def __init__(self, game: GameInstance):
        self.game = game
        super().__init__(start_value=game.state.kind)

    @property
    def phase(self) -> GameState:
        return GameState(str(self.current_state.value))

    def move(self, trigger: str, target: MachineState) -> None:
        """Fire `trigger` and install `target` as the instance state."""

        self.send(trigger)
        if self.phase != target.kind:
            raise AssertionError(f"{trigger} landed in {self.phase}, payload is {target.kind}")
        self.game.state = target
