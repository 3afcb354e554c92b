from __future__ import annotations

import os
import random
from collections.abc import Generator
from pathlib import Path
from uuid import uuid4

import fakeredis
import pytest
from fastapi.testclient import TestClient

from murder.core.state import GameInstance
from murder.machine import GameStateMachine
from murder.players import InMemoryPlayerDirectory
from murder.spawns import Location, NoSpawnAvailableError


@pytest.fixture(scope="session", autouse=True)
def _init_maps_from_repo() -> None:
    """Load maps from the repo `maps/` dir and forbid silent fallback."""

    os.environ["MURDER_STRICT_MAPS"] = "1"

    from murder.maps.singleton import init_maps, reset_maps_for_tests

    reset_maps_for_tests()
    init_maps(project_root=Path(__file__).resolve().parents[1])


class RecordingHooks:
    """Game mode double: counts hook calls and serves spawns from fixed lists."""

    def __init__(self, *, player_spawns: int = 32, scrap_spawns: int = 8) -> None:
        self.calls: list[str] = []
        self.player_spawns = [Location(x=float(i), y=64.0, z=0.0) for i in range(player_spawns)]
        self.scrap_spawns = [Location(x=float(i), y=64.0, z=10.0) for i in range(scrap_spawns)]
        self.fail_on: str | None = None

    def lobby_to_game(self) -> None:
        self.calls.append("lobby_to_game")
        if self.fail_on == "lobby_to_game":
            raise RuntimeError("world reset failed")

    def back_to_lobby(self) -> None:
        self.calls.append("back_to_lobby")
        if self.fail_on == "back_to_lobby":
            raise RuntimeError("teardown failed")

    def get_random_player_spawn(self) -> Location:
        if not self.player_spawns:
            raise NoSpawnAvailableError("no player spawns")
        return self.player_spawns.pop(0)

    def get_random_scrap_spawn(self) -> Location:
        if not self.scrap_spawns:
            raise NoSpawnAvailableError("no scrap spawns")
        return self.scrap_spawns.pop(0)

    def count(self, name: str) -> int:
        return self.calls.count(name)


@pytest.fixture()
def hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture()
def directory() -> InMemoryPlayerDirectory:
    return InMemoryPlayerDirectory({f"p{i}": f"Player {i}" for i in range(1, 11)})


@pytest.fixture()
def machine(hooks: RecordingHooks, directory: InMemoryPlayerDirectory) -> GameStateMachine:
    instance = GameInstance(game_id=uuid4(), seed=7)
    return GameStateMachine(instance=instance, hooks=hooks, directory=directory, rng=random.Random(7))


@pytest.fixture()
def client_and_redis() -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient wired to a private fakeredis instance."""

    from murder.api.deps import get_redis
    from murder.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
