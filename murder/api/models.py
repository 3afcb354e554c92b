from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from murder.core.state import GameInstance, GameState, Outcome, Resetting, RoundRecord, RoundStats
from murder.machine import EventStatus, ProcessResult
from murder.roles import RoleAssignment
from murder.roster import Roster
from murder.spawns import Location


class GameCreateRequest(BaseModel):
    murderer_number: float | None = None
    hunter_number: float | None = None
    scrap_count: int | None = Field(default=None, ge=0)
    map_name: str | None = None


class QuotaUpdateRequest(BaseModel):
    murderer_number: float | None = None
    hunter_number: float | None = None


class EventRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=64)
    args: list[str] = Field(default_factory=list, max_length=16)


class PlayerConnectRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=64)


class RoundView(BaseModel):
    """Public part of the current round.

    Roles stay private to the mailboxes until the round is decided.
    """

    players: list[str]
    eliminated: list[str]
    player_spawns: dict[str, Location]
    scrap_spawns: list[Location]
    started_at: datetime
    assignment: RoleAssignment | None = None


class GameView(BaseModel):
    """What HTTP clients see of a stored game. Seeds are never exposed."""

    game_id: UUID
    created_at: datetime
    last_updated_at: datetime
    map_name: str
    murderer_number: float
    hunter_number: float
    scrap_count: int
    phase: GameState
    locked: bool
    outcome: Outcome | None = None
    round: RoundView | None = None
    roster: Roster
    history: list[RoundRecord]
    stats: RoundStats
    consecutive_failures: int
    faulted: bool

    @staticmethod
    def from_instance(game: GameInstance) -> "GameView":
        round_view = None
        outcome = None
        round_data = game.current_round()
        if round_data is not None:
            decided = isinstance(game.state, Resetting)
            if decided:
                outcome = game.state.outcome
            round_view = RoundView(
                players=round_data.assignment.players,
                eliminated=list(round_data.eliminated),
                player_spawns=dict(round_data.player_spawns),
                scrap_spawns=list(round_data.scrap_spawns),
                started_at=round_data.started_at,
                assignment=round_data.assignment if decided else None,
            )
        return GameView(
            game_id=game.game_id,
            created_at=game.created_at,
            last_updated_at=game.last_updated_at,
            map_name=game.map_name,
            murderer_number=game.murderer_number,
            hunter_number=game.hunter_number,
            scrap_count=game.scrap_count,
            phase=game.phase,
            locked=game.phase != GameState.LOBBY,
            outcome=outcome,
            round=round_view,
            roster=game.roster,
            history=game.history,
            stats=game.stats,
            consecutive_failures=game.consecutive_failures,
            faulted=game.faulted,
        )


class EventResponse(BaseModel):
    status: EventStatus
    state_before: GameState
    state_after: GameState
    detail: str | None = None
    locked: bool
    game: GameView

    @staticmethod
    def from_result(result: ProcessResult, game: GameInstance) -> "EventResponse":
        return EventResponse(
            status=result.status,
            state_before=result.state_before,
            state_after=result.state_after,
            detail=result.detail,
            locked=game.phase != GameState.LOBBY,
            game=GameView.from_instance(game),
        )


class EnqueueResponse(BaseModel):
    game_id: UUID
    stream_id: str


class GameListResponse(BaseModel):
    games: list[GameView]
