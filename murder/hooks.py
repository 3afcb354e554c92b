from __future__ import annotations

from typing import Protocol

from murder.spawns import Location


class GameModeHooks(Protocol):
    """Capabilities a concrete game mode gives the state machine.

    Hooks are logically synchronous: the machine only transitions after a hook
    returns.
    """

    def lobby_to_game(self) -> None:  # pragma: no cover
        """Prepare the physical environment for a round."""
        ...

    def back_to_lobby(self) -> None:  # pragma: no cover
        """Tear down round state and the physical environment."""
        ...

    def get_random_player_spawn(self) -> Location:  # pragma: no cover
        ...

    def get_random_scrap_spawn(self) -> Location:  # pragma: no cover
        ...


class PlayerDirectory(Protocol):
    """Resolves a transport token (id or display name) to a connected player id."""

    def resolve(self, token: str) -> str | None:  # pragma: no cover
        ...
