from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status
import redis

from murder.api.deps import get_redis, get_settings
from murder.api.models import (
    EnqueueResponse,
    EventRequest,
    EventResponse,
    GameCreateRequest,
    GameListResponse,
    GameView,
    PlayerConnectRequest,
    QuotaUpdateRequest,
)
from murder.config import Settings
from murder.core.events import Event
from murder.dispatch import dispatch_event
from murder.game_store import (
    GameNotFoundError,
    create_game,
    delete_game,
    get_game,
    list_games,
    require_game,
    update_quotas,
)
from murder.lock import GameBusyError
from murder.maps.registry import MapLoadError
from murder.players import RedisPlayerDirectory
from murder.streams import Inbox, enqueue_event
from murder.websocket_hub import hub
from murder.worker import WorkerConfig, run_inbox_once

router = APIRouter()


def _unprocessable(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.websocket("/ws/game/{game_id}")
async def game_updates_ws(websocket: WebSocket, game_id: UUID) -> None:
    gid = str(game_id)
    await hub.connect(gid, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(gid, websocket)
    except Exception:
        await hub.disconnect(gid, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/games", response_model=GameView, status_code=status.HTTP_201_CREATED)
async def create_game_route(
    payload: GameCreateRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> GameView:
    try:
        state = create_game(
            r=r,
            settings=settings,
            murderer_number=payload.murderer_number,
            hunter_number=payload.hunter_number,
            scrap_count=payload.scrap_count,
            map_name=payload.map_name,
        )
    except (ValueError, MapLoadError) as e:
        raise _unprocessable(e) from e
    return GameView.from_instance(state)


@router.get("/games", response_model=GameListResponse)
async def list_games_route(r: redis.Redis = Depends(get_redis)) -> GameListResponse:
    return GameListResponse(games=[GameView.from_instance(g) for g in list_games(r=r)])


@router.get("/games/{game_id}", response_model=GameView)
async def get_game_route(game_id: UUID, r: redis.Redis = Depends(get_redis)) -> GameView:
    state = get_game(r=r, game_id=game_id)
    if state is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return GameView.from_instance(state)


@router.delete("/games/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game_route(game_id: UUID, r: redis.Redis = Depends(get_redis)) -> Response:
    try:
        deleted = delete_game(r=r, game_id=game_id)
    except GameBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/games/{game_id}/quotas", response_model=GameView)
async def update_quotas_route(
    game_id: UUID,
    payload: QuotaUpdateRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameView:
    try:
        state = update_quotas(
            r=r,
            game_id=game_id,
            murderer_number=payload.murderer_number,
            hunter_number=payload.hunter_number,
        )
    except GameNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except GameBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ValueError as e:
        raise _unprocessable(e) from e
    return GameView.from_instance(state)


@router.post("/games/{game_id}/events", response_model=EventResponse)
async def post_event_route(
    game_id: UUID,
    payload: EventRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> EventResponse:
    """Deliver one event synchronously and return the machine's verdict."""

    event = Event.from_parts(payload.type, payload.args)
    try:
        dispatched = dispatch_event(r=r, game_id=game_id, event=event, failure_limit=settings.failure_limit)
    except GameNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except GameBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    if dispatched.result.state_changed:
        await hub.game_updated(str(game_id), state=dispatched.result.state_after.value, event=event.type)
    return EventResponse.from_result(dispatched.result, dispatched.state)


@router.post("/games/{game_id}/inbox", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_event_route(
    game_id: UUID,
    payload: EventRequest,
    r: redis.Redis = Depends(get_redis),
) -> EnqueueResponse:
    """Queue an event for the game's inbox worker."""

    try:
        require_game(r=r, game_id=game_id)
    except GameNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    stream_id = enqueue_event(r=r, inbox=Inbox(game_id=str(game_id)), event=Event.from_parts(payload.type, payload.args))
    return EnqueueResponse(game_id=game_id, stream_id=stream_id)


@router.post("/games/{game_id}/worker/run_once")
async def run_worker_once_route(
    game_id: UUID,
    count: int = 10,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> dict[str, object]:
    """Dev endpoint: drain the game's inbox once without a separate worker process."""

    if count < 1 or count > 100:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be 1..100")

    gid = str(game_id)
    handled = await run_inbox_once(
        r=r,
        game_id=gid,
        config=WorkerConfig(block_ms=0, count=count, failure_limit=settings.failure_limit),
    )

    state = get_game(r=r, game_id=game_id)
    if handled and state is not None:
        await hub.game_updated(gid, state=state.phase.value)

    return {"game_id": gid, "handled": handled, "state": state.phase.value if state else None}


@router.put("/players/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def connect_player_route(
    player_id: str,
    payload: PlayerConnectRequest,
    r: redis.Redis = Depends(get_redis),
) -> Response:
    RedisPlayerDirectory(r).connect(player_id, payload.display_name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/players/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_player_route(player_id: str, r: redis.Redis = Depends(get_redis)) -> Response:
    RedisPlayerDirectory(r).disconnect(player_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/players")
async def list_players_route(r: redis.Redis = Depends(get_redis)) -> dict[str, str]:
    return RedisPlayerDirectory(r).online()


@router.get("/games/{game_id}/players/{player_id}/mailbox")
async def get_player_mailbox_route(
    game_id: UUID,
    player_id: str,
    count: int = 20,
    start: str = "-",
    end: str = "+",
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read a player's mailbox Redis Stream."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    stream_key = f"mailbox:{game_id}:{player_id}"
    try:
        entries = r.xrange(stream_key, min=start, max=end, count=count)
    except redis.ResponseError as e:
        raise _unprocessable(e) from e

    messages = [{"id": mid, "fields": fields} for mid, fields in entries]
    return {"game_id": str(game_id), "player_id": player_id, "stream": stream_key, "messages": messages}
