from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from murder.roles import RoleAssignment
from murder.roster import Roster
from murder.spawns import Location


def _now() -> datetime:
    return datetime.now(tz=UTC)


class GameState(StrEnum):
    LOBBY = "LOBBY"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    RESETTING = "RESETTING"


class Outcome(StrEnum):
    innocents = "innocents"
    murderers = "murderers"


class RoundData(BaseModel):
    """Everything that belongs to the round in progress.

    Dropped as soon as the instance goes back to the lobby.
    """

    assignment: RoleAssignment
    eliminated: list[str] = Field(default_factory=list)
    player_spawns: dict[str, Location] = Field(default_factory=dict)
    scrap_spawns: list[Location] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_now)

    def alive(self) -> list[str]:
        gone = set(self.eliminated)
        return [p for p in self.assignment.players if p not in gone]


class Lobby(BaseModel):
    kind: Literal["LOBBY"] = "LOBBY"


class Starting(BaseModel):
    kind: Literal["STARTING"] = "STARTING"


class Active(BaseModel):
    kind: Literal["ACTIVE"] = "ACTIVE"
    round: RoundData


class Paused(BaseModel):
    kind: Literal["PAUSED"] = "PAUSED"
    round: RoundData
    paused_at: datetime = Field(default_factory=_now)


class Resetting(BaseModel):
    kind: Literal["RESETTING"] = "RESETTING"
    round: RoundData
    outcome: Outcome


MachineState = Annotated[Lobby | Starting | Active | Paused | Resetting, Field(discriminator="kind")]


class RoundRecord(BaseModel):
    outcome: Outcome
    murderers: list[str]
    hunters: list[str]
    innocents: list[str]
    eliminated: list[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime = Field(default_factory=_now)


class RoundStats(BaseModel):
    rounds_played: int = 0
    innocent_wins: int = 0
    murderer_wins: int = 0
    player_wins: dict[str, int] = Field(default_factory=dict)

    def record(self, record: RoundRecord) -> None:
        self.rounds_played += 1
        if record.outcome == Outcome.murderers:
            self.murderer_wins += 1
            winners = record.murderers
        else:
            self.innocent_wins += 1
            winners = [*record.hunters, *record.innocents]
        for pid in winners:
            self.player_wins[pid] = self.player_wins.get(pid, 0) + 1


class GameInstance(BaseModel):
    game_id: UUID
    created_at: datetime = Field(default_factory=_now)
    last_updated_at: datetime = Field(default_factory=_now)

    # For reproducibility/debugging.
    seed: int = 0
    # Redrawn on every GAME_START; survives GAME_RESET.
    round_seed: int | None = None

    map_name: str = "default"

    murderer_number: float = 0.0
    hunter_number: float = 0.0
    scrap_count: int = Field(default=0, ge=0)

    state: MachineState = Field(default_factory=Lobby)
    roster: Roster = Field(default_factory=Roster)

    # Round-persistent data: survives RETURN_TO_LOBBY, wiped by GAME_RESET.
    history: list[RoundRecord] = Field(default_factory=list)
    stats: RoundStats = Field(default_factory=RoundStats)

    # Consecutive failed events; `faulted` refuses everything but GAME_RESET.
    consecutive_failures: int = 0
    faulted: bool = False

    @property
    def phase(self) -> GameState:
        return GameState(self.state.kind)

    def current_round(self) -> RoundData | None:
        return getattr(self.state, "round", None)
