from __future__ import annotations

from collections.abc import Mapping

import redis


ONLINE_PLAYERS_KEY = "murder:online"


def _norm(s: str) -> str:
    return " ".join(s.split()).casefold()


class InMemoryPlayerDirectory:
    """Connected players held in memory, keyed by id with display names."""

    def __init__(self, players: Mapping[str, str] | None = None) -> None:
        self._players: dict[str, str] = dict(players or {})

    def connect(self, player_id: str, display_name: str | None = None) -> None:
        self._players[player_id] = display_name or player_id

    def disconnect(self, player_id: str) -> None:
        self._players.pop(player_id, None)

    def resolve(self, token: str) -> str | None:
        if token in self._players:
            return token
        key = _norm(token)
        return next((pid for pid, name in self._players.items() if _norm(name) == key), None)


class RedisPlayerDirectory:
    """Connected players stored in a redis hash (player_id -> display name)."""

    def __init__(self, r: redis.Redis, key: str = ONLINE_PLAYERS_KEY) -> None:
        self.r = r
        self.key = key

    def connect(self, player_id: str, display_name: str | None = None) -> None:
        self.r.hset(self.key, player_id, display_name or player_id)

    def disconnect(self, player_id: str) -> None:
        self.r.hdel(self.key, player_id)

    def online(self) -> dict[str, str]:
        return dict(self.r.hgetall(self.key))

    def resolve(self, token: str) -> str | None:
        if self.r.hexists(self.key, token):
            return token
        key = _norm(token)
        return next((pid for pid, name in self.online().items() if _norm(name) == key), None)
