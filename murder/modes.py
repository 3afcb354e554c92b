from __future__ import annotations

import logging
import random

from murder.maps.registry import GameMap, MapSpawnProvider
from murder.spawns import Location, SpawnProvider

logger = logging.getLogger(__name__)


class MapGameMode:
    """Default game mode: the lifecycle hooks only rotate the map's spawn pool.

    World mutation (block resets, item drops) belongs to richer modes built on
    the same hooks.
    """

    def __init__(self, *, game_map: GameMap, provider: SpawnProvider | None = None, rng: random.Random | None = None) -> None:
        self.game_map = game_map
        self.provider = provider or MapSpawnProvider(game_map, rng=rng)

    def lobby_to_game(self) -> None:
        logger.info("Preparing map %s for a new round", self.game_map.name)
        self._reset_provider()

    def back_to_lobby(self) -> None:
        logger.info("Returning map %s to the lobby", self.game_map.name)
        self._reset_provider()

    def get_random_player_spawn(self) -> Location:
        return self.provider.next_player_spawn()

    def get_random_scrap_spawn(self) -> Location:
        return self.provider.next_scrap_spawn()

    def _reset_provider(self) -> None:
        reset = getattr(self.provider, "reset", None)
        if callable(reset):
            reset()
