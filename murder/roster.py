from __future__ import annotations

from pydantic import BaseModel, Field


class Roster(BaseModel):
    """Active players and spectators of one game instance.

    A player id is never in both sets. Unresolved ids (`None`) are ignored.
    """

    players: set[str] = Field(default_factory=set)
    spectators: set[str] = Field(default_factory=set)

    def add_player(self, player_id: str | None) -> bool:
        if player_id is None:
            return False
        self.spectators.discard(player_id)
        self.players.add(player_id)
        return True

    def add_spectator(self, player_id: str | None) -> bool:
        if player_id is None:
            return False
        self.players.discard(player_id)
        self.spectators.add(player_id)
        return True

    def clear(self) -> None:
        self.players.clear()
        self.spectators.clear()

    def everyone(self) -> list[str]:
        return sorted(self.players | self.spectators)
