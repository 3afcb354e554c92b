from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import redis

from murder.core.events import Event
from murder.core.state import Active, GameInstance, GameState
from murder.game_store import build_machine, require_game, save_game
from murder.lock import game_lock
from murder.machine import ProcessResult
from murder.streams import Mailbox, publish_many

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    state: GameInstance
    result: ProcessResult
    mailbox_entry_ids: list[str]


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _mailbox_entries_for_state_changed(
    *, state: GameInstance, result: ProcessResult, recipients: list[str]
) -> list[tuple[str, dict[str, str]]]:
    gid = str(state.game_id)
    payload = {
        "type": "state_changed",
        "game_id": gid,
        "event": result.event.type,
        "from_state": result.state_before.value,
        "state": result.state_after.value,
        "ts": _now_iso(),
    }
    return [(Mailbox(game_id=gid, player_id=pid).key, payload) for pid in recipients]


def _mailbox_entries_for_roles(*, state: GameInstance) -> list[tuple[str, dict[str, str]]]:
    """Private role reveal for everyone dealt into the new round."""

    if not isinstance(state.state, Active):
        return []

    gid = str(state.game_id)
    round_data = state.state.round
    entries: list[tuple[str, dict[str, str]]] = []
    for pid in round_data.assignment.players:
        fields = {
            "type": "role_assigned",
            "game_id": gid,
            "player_id": pid,
            "role": str(round_data.assignment.role_of(pid)),
            "ts": _now_iso(),
        }
        spawn = round_data.player_spawns.get(pid)
        if spawn is not None:
            fields["spawn"] = f"{spawn.world}:{spawn.x}:{spawn.y}:{spawn.z}"
        # Murderers know each other.
        if pid in round_data.assignment.murderers:
            fields["murderers"] = ",".join(round_data.assignment.murderers)
        entries.append((Mailbox(game_id=gid, player_id=pid).key, fields))
    return entries


def dispatch_event(
    *,
    r: redis.Redis,
    game_id: UUID,
    event: Event,
    failure_limit: int | None = None,
) -> DispatchResult:
    """Deliver one event to a stored game instance.

    - acquires the per-game lock (one event at a time per instance)
    - rebuilds the machine from the stored snapshot
    - processes the event and persists the result
    - notifies roster mailboxes of state changes and new roles
    """

    gid_str = str(game_id)

    with game_lock(r=r, game_id=gid_str):
        state = require_game(r=r, game_id=game_id)
        recipients = set(state.roster.everyone())

        machine = build_machine(r=r, state=state, failure_limit=failure_limit)
        result = machine.process_event(event)
        state = machine.instance
        save_game(r=r, state=state)

        if not result.ok:
            logger.warning("Event %s failed for game %s: %s", event.type, gid_str, result.detail)

        entries: list[tuple[str, dict[str, str]]] = []
        if result.state_changed:
            recipients.update(state.roster.everyone())
            entries.extend(_mailbox_entries_for_state_changed(state=state, result=result, recipients=sorted(recipients)))
        if result.state_before == GameState.STARTING and result.state_after == GameState.ACTIVE:
            entries.extend(_mailbox_entries_for_roles(state=state))

        ids = publish_many(r=r, entries=entries)
        return DispatchResult(state=state, result=result, mailbox_entry_ids=ids)
