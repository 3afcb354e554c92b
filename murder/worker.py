from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

import redis

from murder.core.events import Event
from murder.dispatch import dispatch_event
from murder.game_store import GameNotFoundError
from murder.lock import GameBusyError
from murder.streams import Inbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkerConfig:
    # How long to block waiting for an inbox entry.
    block_ms: int = 250
    # Max entries to read per iteration.
    count: int = 10
    failure_limit: int | None = None


def _group_name_for(*, game_id: str) -> str:
    return f"workers:{game_id}"


CONSUMER_NAME = "worker"


def ensure_inbox_group(*, r: redis.Redis, stream_key: str, group: str) -> None:
    """Ensure a consumer group exists for the given stream.

    Uses MKSTREAM so missing streams are created.
    """

    try:
        r.xgroup_create(stream_key, group, id="0", mkstream=True)
    except redis.ResponseError as e:
        # BUSYGROUP is expected if it already exists.
        if "BUSYGROUP" not in str(e):
            raise


async def run_inbox_once(*, r: redis.Redis, game_id: str, config: WorkerConfig | None = None) -> int:
    """Drain up to `config.count` queued events for one game, in order.

    Entries are acked once dispatched, whatever the outcome: a failed event is
    reported by the machine and must not be replayed. Returns how many entries
    were dispatched.
    """

    cfg = config or WorkerConfig()
    stream_key = Inbox(game_id=game_id).key
    group = _group_name_for(game_id=game_id)

    ensure_inbox_group(r=r, stream_key=stream_key, group=group)

    def _read(start_id: str, block: int | None):
        return r.xreadgroup(group, CONSUMER_NAME, {stream_key: start_id}, count=cfg.count, block=block)

    # Entries deferred by an earlier pass stay pending for this consumer; finish those first.
    resp = _read("0", None)
    if not any(messages for _stream, messages in resp or []):
        resp = _read(">", cfg.block_ms or None)
    if not resp:
        return 0

    handled = 0
    gid = UUID(game_id)
    for _stream, messages in resp:
        for msg_id, fields in messages:
            if not fields:
                r.xack(stream_key, group, msg_id)
                continue
            event = Event.from_fields(fields)
            try:
                dispatch_event(r=r, game_id=gid, event=event, failure_limit=cfg.failure_limit)
            except GameBusyError:
                # Leave it pending; the next pass picks it up again via the PEL.
                logger.info("Game %s busy, deferring inbox entry %s", game_id, msg_id)
                return handled
            except GameNotFoundError:
                logger.warning("Dropping inbox entry %s for missing game %s", msg_id, game_id)
                r.xack(stream_key, group, msg_id)
                continue
            r.xack(stream_key, group, msg_id)
            handled += 1

    return handled


async def serve_inbox(
    *,
    r: redis.Redis,
    game_id: str,
    stop: asyncio.Event,
    config: WorkerConfig | None = None,
) -> None:
    """Consume one game's inbox until `stop` is set."""

    while not stop.is_set():
        await run_inbox_once(r=r, game_id=game_id, config=config)
        await asyncio.sleep(0)
