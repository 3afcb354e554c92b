from __future__ import annotations

import csv
import os
import random
import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from murder.spawns import Location, NoSpawnAvailableError


class MapLoadError(RuntimeError):
    pass


class SpawnKind(StrEnum):
    player = "player"
    scrap = "scrap"


def _slug_id(s: str) -> str:
    s = s.strip().casefold()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


@dataclass(frozen=True, slots=True)
class SpawnPoint:
    id: str
    kind: SpawnKind
    location: Location


@dataclass(frozen=True, slots=True)
class GameMap:
    name: str
    player_spawns: tuple[SpawnPoint, ...]
    scrap_spawns: tuple[SpawnPoint, ...]

    @staticmethod
    def from_points(name: str, points: list[SpawnPoint]) -> "GameMap":
        seen: set[str] = set()
        for p in points:
            if p.id in seen:
                raise MapLoadError(f"Duplicate spawn id in map {name}: {p.id}")
            seen.add(p.id)
        return GameMap(
            name=name,
            player_spawns=tuple(p for p in points if p.kind == SpawnKind.player),
            scrap_spawns=tuple(p for p in points if p.kind == SpawnKind.scrap),
        )


class MapSpawnProvider:
    """Spawn provider backed by a `GameMap`.

    Player spawns are handed out without replacement until `reset()`; scrap
    spawns are drawn with replacement.
    """

    def __init__(self, game_map: GameMap, rng: random.Random | None = None) -> None:
        self.game_map = game_map
        self._rng = rng or random.Random()
        self._player_pool: list[SpawnPoint] = []
        self.reset()

    def reset(self) -> None:
        self._player_pool = list(self.game_map.player_spawns)
        self._rng.shuffle(self._player_pool)

    def next_player_spawn(self) -> Location:
        if not self._player_pool:
            raise NoSpawnAvailableError(f"Map {self.game_map.name} has no free player spawns left")
        return self._player_pool.pop().location

    def next_scrap_spawn(self) -> Location:
        if not self.game_map.scrap_spawns:
            raise NoSpawnAvailableError(f"Map {self.game_map.name} has no scrap spawns")
        return self._rng.choice(self.game_map.scrap_spawns).location


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            rows = [[c.strip() for c in row] for row in csv.reader(f)]
    except FileNotFoundError as e:
        raise MapLoadError(f"Map file not found: {path}") from e

    return [row for row in rows if any(cell.strip() for cell in row)]


def load_map_csv(path: Path) -> GameMap:
    rows = _read_csv_rows(path)
    if not rows:
        raise MapLoadError(f"Empty map CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:6] != ["id", "kind", "world", "x", "y", "z"]:
        raise MapLoadError(f"Unexpected header in {path}: {rows[0]}")

    points: list[SpawnPoint] = []
    for lineno, row in enumerate(rows[1:], start=2):
        if len(row) < 6:
            continue
        rid, kind, world = row[0], row[1].casefold(), row[2] or "world"
        try:
            spawn_kind = SpawnKind(kind)
            x, y, z = (float(c) for c in row[3:6])
        except ValueError as e:
            raise MapLoadError(f"Bad spawn row {lineno} in {path}: {row}") from e
        if not rid:
            rid = f"{spawn_kind.value}-{_slug_id(f'{x} {y} {z}')}"
        points.append(SpawnPoint(id=rid, kind=spawn_kind, location=Location(world=world, x=x, y=y, z=z)))

    return GameMap.from_points(path.stem, points)


def _fallback_map() -> GameMap:
    """Tiny built-in arena used when no map files are shipped."""

    points = [
        SpawnPoint(id=f"player-{i}", kind=SpawnKind.player, location=Location(x=float(8 * i), y=64.0, z=0.0))
        for i in range(16)
    ]
    points += [
        SpawnPoint(id=f"scrap-{i}", kind=SpawnKind.scrap, location=Location(x=float(8 * i), y=64.0, z=16.0))
        for i in range(4)
    ]
    return GameMap.from_points("default", points)


@dataclass(frozen=True, slots=True)
class MapRegistry:
    maps: dict[str, GameMap]

    def get(self, name: str) -> GameMap:
        try:
            return self.maps[name]
        except KeyError as e:
            raise MapLoadError(f"Unknown map: {name}") from e

    def names(self) -> list[str]:
        return sorted(self.maps)


def load_maps(*, root: Path) -> MapRegistry:
    maps_dir = root / "maps"

    # Missing or broken map files fall back to the built-in arena unless
    # MURDER_STRICT_MAPS=1.
    strict = os.getenv("MURDER_STRICT_MAPS", "").strip().lower() in {"1", "true", "yes"}

    maps: dict[str, GameMap] = {}
    paths = sorted(maps_dir.glob("*.csv")) if maps_dir.is_dir() else []
    for path in paths:
        try:
            m = load_map_csv(path)
        except MapLoadError:
            if strict:
                raise
            continue
        maps[m.name] = m

    if not maps and strict:
        raise MapLoadError(f"No map files under {maps_dir}")
    maps.setdefault("default", _fallback_map())
    return MapRegistry(maps=maps)
