from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from murder.config import ConfigurationError
from murder.core.events import MURDER_EVENT_TYPES, Event, EventType
from murder.core.state import (
    Active,
    GameInstance,
    GameState,
    Lobby,
    Outcome,
    Paused,
    Resetting,
    RoundData,
    RoundRecord,
    RoundStats,
    Starting,
)
from murder.fsm import GameFSM
from murder.hooks import GameModeHooks, PlayerDirectory
from murder.roles import InsufficientPlayersError, assign_roles
from murder.spawns import Location, NoSpawnAvailableError

logger = logging.getLogger(__name__)


class EventStatus(StrEnum):
    applied = "applied"
    ignored = "ignored"
    failed = "failed"


class InvalidStateError(RuntimeError):
    pass


class ReentrantEventError(RuntimeError):
    pass


class _AbortActivation(Exception):
    """Internal signal: ACTIVATE could not complete and must fall back to the lobby."""


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Outcome of delivering one event to a machine.

    - `applied`: the event was accepted in the current state (it may still have
      been a no-op, e.g. PAUSE in the lobby).
    - `ignored`: not accepted in the current state, or its player token did
      not resolve.
    - `failed`: an exception was raised and the instance was rolled back.
    """

    event: Event
    status: EventStatus
    state_before: GameState
    state_after: GameState
    detail: str | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status != EventStatus.failed

    @property
    def state_changed(self) -> bool:
        return self.state_before != self.state_after


class GameStateMachine:
    """Round lifecycle controller for a single game instance.

    Not reentrant: callers must deliver events to one instance serially. Any
    number of instances may run side by side.
    """

    def __init__(
        self,
        *,
        instance: GameInstance,
        hooks: GameModeHooks,
        directory: PlayerDirectory,
        event_types: Iterable[str] = MURDER_EVENT_TYPES,
        rng: random.Random | None = None,
        failure_limit: int | None = None,
        sink: logging.Logger | None = None,
        entropy: random.Random | None = None,
    ) -> None:
        self.hooks = hooks
        self.directory = directory
        self.event_types = frozenset(str(t) for t in event_types)
        self.failure_limit = failure_limit
        self._rng = rng or random.Random(instance.seed)
        self._entropy = entropy or random.SystemRandom()
        self._log = sink or logger
        self._processing = False
        self._bind(instance)

    def _bind(self, instance: GameInstance) -> None:
        self.instance = instance
        self._fsm = GameFSM(instance)

    # ---- queries ----

    @property
    def state(self) -> GameState:
        return self.instance.phase

    @property
    def faulted(self) -> bool:
        return self.instance.faulted

    @property
    def consecutive_failures(self) -> int:
        return self.instance.consecutive_failures

    def is_locked(self) -> bool:
        """True unless the lobby is open for new players."""

        return self.state != GameState.LOBBY

    @property
    def murderer_number(self) -> float:
        return self.instance.murderer_number

    @murderer_number.setter
    def murderer_number(self, value: float) -> None:
        self.instance.murderer_number = _finite(value, "murderer_number")

    @property
    def hunter_number(self) -> float:
        return self.instance.hunter_number

    @hunter_number.setter
    def hunter_number(self, value: float) -> None:
        self.instance.hunter_number = _finite(value, "hunter_number")

    # ---- lifecycle ----

    def load(self) -> None:
        """Run once when the instance is first brought up."""

        self.hooks.back_to_lobby()
        if self.state != GameState.LOBBY:
            self._fsm.move("hard_reset", Lobby())

    def process_event(self, e: Event) -> ProcessResult:
        if self._processing:
            raise ReentrantEventError(f"process_event re-entered while handling {e.type}")

        self._processing = True
        try:
            return self._process(e)
        finally:
            self._processing = False

    def _process(self, e: Event) -> ProcessResult:
        before = self.state
        self._log.debug("Event %s args=%s state=%s", e.type, list(e.args), before.value)

        if e.type not in self.event_types:
            self._log.debug("Dropping unknown event type %s", e.type)
            return ProcessResult(event=e, status=EventStatus.ignored, state_before=before, state_after=before, detail="unknown event type")

        if self.faulted and e.type != EventType.GAME_RESET:
            return ProcessResult(
                event=e,
                status=EventStatus.failed,
                state_before=before,
                state_after=before,
                detail=f"instance faulted after {self.consecutive_failures} consecutive failures; send GAME_RESET",
            )

        snapshot = self.instance.model_copy(deep=True)
        try:
            handled = self._handle_state_insensitive(e)
            if self._dispatch(e):
                handled = True
        except ReentrantEventError:
            self._bind(snapshot)
            raise
        except Exception as ex:
            self._log.exception("Exception while handling event %s", e.type)
            self._bind(snapshot)
            self._record_failure()
            return ProcessResult(
                event=e,
                status=EventStatus.failed,
                state_before=before,
                state_after=self.state,
                detail=str(ex) or type(ex).__name__,
                error=ex,
            )

        self.instance.consecutive_failures = 0
        status = EventStatus.applied if handled else EventStatus.ignored
        if not handled:
            self._log.debug("Event %s not accepted in state %s", e.type, self.state.value)
        return ProcessResult(event=e, status=status, state_before=before, state_after=self.state)

    def _record_failure(self) -> None:
        self.instance.consecutive_failures += 1
        if self.failure_limit is not None and self.consecutive_failures >= self.failure_limit:
            if not self.instance.faulted:
                self._log.error(
                    "Game %s faulted after %d consecutive failures", self.instance.game_id, self.consecutive_failures
                )
            self.instance.faulted = True

    def _resolve(self, e: Event) -> str | None:
        token = e.arg(0)
        if token is None:
            return None
        pid = self.directory.resolve(token)
        if pid is None:
            self._log.info("Could not resolve player token %r for %s", token, e.type)
        return pid

    # ---- state-insensitive events ----

    def _handle_state_insensitive(self, e: Event) -> bool:
        if e.type == EventType.ADD_SPECTATOR:
            return self.instance.roster.add_spectator(self._resolve(e))
        if e.type == EventType.GAME_RESET:
            self.hooks.back_to_lobby()
            self._fsm.move("hard_reset", Lobby())
            self.instance.roster.clear()
            self.instance.history.clear()
            self.instance.stats = RoundStats()
            self.instance.faulted = False
            self.instance.consecutive_failures = 0
            return True
        return False

    # ---- state-sensitive dispatch ----

    def _dispatch(self, e: Event) -> bool:
        match self.instance.state:
            case Lobby():
                return self._handle_lobby(e)
            case Starting():
                return self._handle_starting(e)
            case Active():
                return self._handle_active(e)
            case Paused():
                return self._handle_paused(e)
            case Resetting():
                return self._handle_resetting(e)
            case other:
                self._log.error("Invalid game state %r", other)
                raise InvalidStateError(f"Invalid game state {other!r}")

    def _handle_lobby(self, e: Event) -> bool:
        assert self.state == GameState.LOBBY
        match e.type:
            case EventType.ADD_PLAYER:
                return self.instance.roster.add_player(self._resolve(e))
            case EventType.GAME_START:
                self.hooks.lobby_to_game()
                self.instance.round_seed = self._entropy.randrange(1, 2**63)
                self._fsm.move("begin_setup", Starting())
                return True
            case EventType.PAUSE:
                # Reserved: nothing to pause before a round exists.
                return True
        return False

    def _handle_starting(self, e: Event) -> bool:
        assert self.state == GameState.STARTING
        match e.type:
            case EventType.ACTIVATE:
                try:
                    round_data = self._prepare_round()
                except _AbortActivation as ex:
                    self._log.warning("Activation aborted for game %s: %s", self.instance.game_id, ex)
                    self.hooks.back_to_lobby()
                    self._fsm.move("abort_setup", Lobby())
                    return True
                self._fsm.move("activate_round", Active(round=round_data))
                return True
        return False

    def _handle_active(self, e: Event) -> bool:
        assert self.state == GameState.ACTIVE
        state = self.instance.state
        assert isinstance(state, Active)
        match e.type:
            case EventType.DECLARE_INNOCENT_VICTORY:
                self._finish_round(state.round, Outcome.innocents)
                return True
            case EventType.DECLARE_MURDERER_VICTORY:
                self._finish_round(state.round, Outcome.murderers)
                return True
            case EventType.PAUSE:
                self._fsm.move("pause_round", Paused(round=state.round))
                return True
            case EventType.ELIMINATE_PLAYER:
                return self._eliminate(state.round, self._resolve(e))
        return False

    def _handle_paused(self, e: Event) -> bool:
        assert self.state == GameState.PAUSED
        state = self.instance.state
        assert isinstance(state, Paused)
        match e.type:
            case EventType.RESUME:
                self._fsm.move("resume_round", Active(round=state.round))
                return True
        return False

    def _handle_resetting(self, e: Event) -> bool:
        assert self.state == GameState.RESETTING
        match e.type:
            case EventType.RETURN_TO_LOBBY:
                self.hooks.back_to_lobby()
                self._fsm.move("return_to_lobby", Lobby())
                return True
        return False

    # ---- round helpers ----

    def _prepare_round(self) -> RoundData:
        try:
            assignment = assign_roles(
                players=self.instance.roster.players,
                murderer_number=self.instance.murderer_number,
                hunter_number=self.instance.hunter_number,
                rng=self._rng,
            )
        except InsufficientPlayersError as ex:
            raise _AbortActivation(str(ex)) from ex

        player_spawns: dict[str, Location] = {}
        for pid in assignment.players:
            try:
                player_spawns[pid] = self.hooks.get_random_player_spawn()
            except NoSpawnAvailableError as ex:
                raise _AbortActivation(f"no spawn for player {pid}: {ex}") from ex

        scrap: list[Location] = []
        for _ in range(self.instance.scrap_count):
            try:
                scrap.append(self.hooks.get_random_scrap_spawn())
            except NoSpawnAvailableError as ex:
                self._log.warning(
                    "Placed %d of %d scrap for game %s: %s",
                    len(scrap),
                    self.instance.scrap_count,
                    self.instance.game_id,
                    ex,
                )
                break

        return RoundData(assignment=assignment, player_spawns=player_spawns, scrap_spawns=scrap)

    def _eliminate(self, round_data: RoundData, pid: str | None) -> bool:
        if pid is None or pid in round_data.eliminated or round_data.assignment.role_of(pid) is None:
            return False
        round_data.eliminated.append(pid)

        alive = set(round_data.alive())
        murderers = set(round_data.assignment.murderers)
        if not alive & murderers:
            self._finish_round(round_data, Outcome.innocents)
        elif not alive - murderers:
            self._finish_round(round_data, Outcome.murderers)
        return True

    def _finish_round(self, round_data: RoundData, outcome: Outcome) -> None:
        record = RoundRecord(
            outcome=outcome,
            murderers=list(round_data.assignment.murderers),
            hunters=list(round_data.assignment.hunters),
            innocents=list(round_data.assignment.innocents),
            eliminated=list(round_data.eliminated),
            started_at=round_data.started_at,
        )
        self._fsm.move("declare_victory", Resetting(round=round_data, outcome=outcome))
        self.instance.history.append(record)
        self.instance.stats.record(record)
        self._log.info("Game %s round finished: %s win", self.instance.game_id, outcome.value)


def _finite(value: float, name: str) -> float:
    v = float(value)
    if not math.isfinite(v):
        raise ConfigurationError(f"{name} must be a finite number")
    return v
