from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum


class EventType(StrEnum):
    # Hard reset to lobby, wiping round-persistent data as well.
    GAME_RESET = "GAME_RESET"
    # Moves the lobby into the game, closing the window for players to join.
    GAME_START = "GAME_START"
    # Starts the round proper: roles are assigned and spawns placed.
    ACTIVATE = "ACTIVATE"
    DECLARE_INNOCENT_VICTORY = "DECLARE_INNOCENT_VICTORY"
    DECLARE_MURDERER_VICTORY = "DECLARE_MURDERER_VICTORY"
    PAUSE = "PAUSE"
    RESUME = "RESUME"
    # Unlike GAME_RESET, keeps history and stats.
    RETURN_TO_LOBBY = "RETURN_TO_LOBBY"
    ADD_PLAYER = "ADD_PLAYER"
    ADD_SPECTATOR = "ADD_SPECTATOR"
    ELIMINATE_PLAYER = "ELIMINATE_PLAYER"


MURDER_EVENT_TYPES: frozenset[str] = frozenset(t.value for t in EventType)


@dataclass(frozen=True, slots=True)
class Event:
    """A single event delivered by the transport.

    `args` are opaque tokens; ADD_PLAYER / ADD_SPECTATOR / ELIMINATE_PLAYER read
    a player token from `args[0]`.
    """

    type: str
    args: tuple[str, ...] = ()

    @staticmethod
    def of(type: str, *args: str) -> "Event":
        return Event(type=str(type), args=tuple(str(a) for a in args))

    @staticmethod
    def from_parts(type: str, args: Sequence[str] | None = None) -> "Event":
        return Event(type=str(type), args=tuple(str(a) for a in (args or ())))

    def arg(self, index: int) -> str | None:
        if index < 0 or index >= len(self.args):
            return None
        return self.args[index]

    def to_fields(self) -> dict[str, str]:
        """Flatten into redis stream fields."""

        return {"type": self.type, "args": json.dumps(list(self.args))}

    @staticmethod
    def from_fields(fields: dict[str, str]) -> "Event":
        args = json.loads(fields.get("args") or "[]")
        return Event(type=fields.get("type") or "", args=tuple(str(a) for a in args))
