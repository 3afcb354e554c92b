from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel


class NoSpawnAvailableError(RuntimeError):
    pass


class Location(BaseModel):
    world: str = "world"
    x: float
    y: float
    z: float

    model_config = {"frozen": True}


class SpawnProvider(Protocol):
    """Supplies spawn locations for players and scrap.

    Either call may raise `NoSpawnAvailableError`; recovery is up to the game
    mode calling it.
    """

    def next_player_spawn(self) -> Location:  # pragma: no cover
        ...

    def next_scrap_spawn(self) -> Location:  # pragma: no cover
        ...
