from __future__ import annotations

import math
import random
from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel, Field


class Role(StrEnum):
    murderer = "murderer"
    hunter = "hunter"
    innocent = "innocent"


class InsufficientPlayersError(ValueError):
    pass


def quota(n: int, v: float) -> int:
    """Number of role holders for a roster of `n` players.

    - `v <= 0`: one holder (zero for an empty roster).
    - `0 < v < 1`: proportion of the roster, rounded half up, clamped to [1, n].
    - `v >= 1`: absolute count, capped at `n`.
    """

    if n <= 0:
        return 0
    if v <= 0:
        return 1
    if v < 1:
        return max(1, min(n, math.floor(v * n + 0.5)))
    return min(math.floor(v), n)


class RoleAssignment(BaseModel):
    murderers: list[str] = Field(default_factory=list)
    hunters: list[str] = Field(default_factory=list)
    innocents: list[str] = Field(default_factory=list)

    def role_of(self, player_id: str) -> Role | None:
        if player_id in self.murderers:
            return Role.murderer
        if player_id in self.hunters:
            return Role.hunter
        if player_id in self.innocents:
            return Role.innocent
        return None

    @property
    def players(self) -> list[str]:
        return sorted([*self.murderers, *self.hunters, *self.innocents])


class RoleAssigner:
    """Partitions a roster into murderers, hunters and innocents.

    Each group is a uniform sample without replacement. Inject a seeded
    `random.Random` for reproducible assignments.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def assign(self, players: Iterable[str], murderer_quota: int, hunter_quota: int) -> RoleAssignment:
        # Sorted so a seeded rng picks the same players whatever the set order.
        pool = sorted(set(players))
        if not pool:
            raise InsufficientPlayersError("No players to assign roles to")

        n_murderers = min(max(murderer_quota, 0), len(pool))
        murderers = self._rng.sample(pool, k=n_murderers)

        taken = set(murderers)
        remaining = [p for p in pool if p not in taken]
        n_hunters = min(max(hunter_quota, 0), len(remaining))
        hunters = self._rng.sample(remaining, k=n_hunters)

        taken.update(hunters)
        return RoleAssignment(
            murderers=sorted(murderers),
            hunters=sorted(hunters),
            innocents=[p for p in pool if p not in taken],
        )


def assign_roles(
    *,
    players: Iterable[str],
    murderer_number: float,
    hunter_number: float,
    rng: random.Random,
) -> RoleAssignment:
    """Compute quotas from configured numbers and assign roles in one go."""

    pool = set(players)
    n = len(pool)
    return RoleAssigner(rng).assign(pool, quota(n, murderer_number), quota(n, hunter_number))
