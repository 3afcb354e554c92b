from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, cast

import redis

from murder.core.events import Event


@dataclass(frozen=True, slots=True)
class Mailbox:
    game_id: str
    player_id: str

    @property
    def key(self) -> str:
        return f"mailbox:{self.game_id}:{self.player_id}"


@dataclass(frozen=True, slots=True)
class Inbox:
    """Per-game event queue; consumed by exactly one worker at a time."""

    game_id: str

    @property
    def key(self) -> str:
        return f"inbox:{self.game_id}"


def enqueue_event(*, r: redis.Redis, inbox: Inbox, event: Event) -> str:
    stream_id = r.xadd(inbox.key, event.to_fields())
    return cast(str, stream_id)


def publish_many(*, r: redis.Redis, entries: Sequence[tuple[str, Mapping[str, str]]]) -> list[str]:
    ids: list[str] = []
    for key, fields in entries:
        stream_id = r.xadd(key, {str(k): str(v) for k, v in fields.items()})
        ids.append(cast(str, stream_id))
    return ids
