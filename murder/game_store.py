from __future__ import annotations

import random
from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from murder.config import Settings, validate_quota_config
from murder.core.state import GameInstance
from murder.lock import game_lock
from murder.machine import GameStateMachine
from murder.maps.singleton import get_maps
from murder.modes import MapGameMode
from murder.players import RedisPlayerDirectory


GAMES_SET_KEY = "murder:games"
GAME_KEY_PREFIX = "murder:game:"  # + {uuid}


class GameNotFoundError(LookupError):
    pass


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _game_key(game_id: UUID) -> str:
    return f"{GAME_KEY_PREFIX}{game_id}"


def save_game(*, r: redis.Redis, state: GameInstance) -> None:
    state.last_updated_at = _now()
    r.set(_game_key(state.game_id), state.model_dump_json())


def get_game(*, r: redis.Redis, game_id: UUID) -> GameInstance | None:
    raw = r.get(_game_key(game_id))
    if not raw:
        return None
    return GameInstance.model_validate_json(raw)


def require_game(*, r: redis.Redis, game_id: UUID) -> GameInstance:
    state = get_game(r=r, game_id=game_id)
    if state is None:
        raise GameNotFoundError(f"Game not found: {game_id}")
    return state


def build_machine(*, r: redis.Redis, state: GameInstance, failure_limit: int | None = None) -> GameStateMachine:
    """Rebuild the controller for a stored instance.

    The rng is derived from the round seed drawn at GAME_START, so replaying
    the same events against the same snapshot yields the same roles.
    """

    rng = random.Random(state.seed if state.round_seed is None else state.round_seed)
    mode = MapGameMode(game_map=get_maps().get(state.map_name), rng=rng)
    return GameStateMachine(
        instance=state,
        hooks=mode,
        directory=RedisPlayerDirectory(r),
        rng=rng,
        failure_limit=failure_limit,
    )


def create_game(
    *,
    r: redis.Redis,
    settings: Settings,
    murderer_number: float | None = None,
    hunter_number: float | None = None,
    scrap_count: int | None = None,
    map_name: str | None = None,
) -> GameInstance:
    m = settings.murderer_number if murderer_number is None else murderer_number
    h = settings.hunter_number if hunter_number is None else hunter_number
    validate_quota_config(m, h)

    name = map_name or settings.map_name
    # Fail early on unknown maps rather than on the first ACTIVATE.
    get_maps().get(name)

    state = GameInstance(
        game_id=uuid4(),
        seed=random.SystemRandom().randint(1, 2**31 - 1),
        map_name=name,
        murderer_number=m,
        hunter_number=h,
        scrap_count=settings.scrap_count if scrap_count is None else scrap_count,
    )

    build_machine(r=r, state=state, failure_limit=settings.failure_limit).load()

    save_game(r=r, state=state)
    r.sadd(GAMES_SET_KEY, str(state.game_id))
    return state


def update_quotas(
    *,
    r: redis.Redis,
    game_id: UUID,
    murderer_number: float | None = None,
    hunter_number: float | None = None,
) -> GameInstance:
    with game_lock(r=r, game_id=str(game_id)):
        state = require_game(r=r, game_id=game_id)
        m = state.murderer_number if murderer_number is None else murderer_number
        h = state.hunter_number if hunter_number is None else hunter_number
        validate_quota_config(m, h)

        machine = build_machine(r=r, state=state)
        machine.murderer_number = m
        machine.hunter_number = h
        save_game(r=r, state=machine.instance)
        return machine.instance


def delete_game(*, r: redis.Redis, game_id: UUID) -> bool:
    with game_lock(r=r, game_id=str(game_id)):
        removed = r.delete(_game_key(game_id))
        r.srem(GAMES_SET_KEY, str(game_id))
    return bool(removed)


def list_games(*, r: redis.Redis) -> list[GameInstance]:
    ids = sorted(r.smembers(GAMES_SET_KEY))
    out: list[GameInstance] = []
    for sid in ids:
        try:
            gid = UUID(sid)
        except ValueError:
            continue
        state = get_game(r=r, game_id=gid)
        if state is not None:
            out.append(state)
    out.sort(key=lambda s: s.created_at, reverse=True)
    return out
