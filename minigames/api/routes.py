from __future__ import annotations

import logging
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from minigames.api.deps import get_app_settings, get_redis
from minigames.api.models import (
    ActivityEntry,
    ActivityResponse,
    AutoFlipRequest,
    CoinGame,
    CoinGameCreateRequest,
    CoinGamePublic,
    CoinSession,
    CoinSessionView,
    FlipRequest,
    GuessRequest,
    JoinRequest,
)
from minigames.coin_store import (
    auto_flip_tick,
    create_game,
    flip,
    get_game,
    join_game,
    normalize_code,
    require_session,
    reset_session,
    session_view,
    set_auto_flipping,
    submit_guess,
)
from minigames.lock import SessionBusyError
from minigames.settings import Settings
from minigames.streams import ActivityLog, read_activity
from minigames.websocket_hub import coin_channel, hub

logger = logging.getLogger(__name__)

router = APIRouter()

CREATE_FAILED = "Failed to create the game. Please try again."
JOIN_FAILED = "Failed to join the game. Check your connection."
STORE_FAILED = "The game store is unavailable. Please try again."
INVALID_CODE = "Invalid game code. Please check the code and try again."


async def _publish_session(session: CoinSession) -> CoinSessionView:
    view = session_view(session)
    await hub.broadcast(
        coin_channel(session.session_id),
        {"type": "session_updated", "session": view.model_dump(mode="json")},
    )
    return view


def _session_error(e: Exception) -> HTTPException:
    if isinstance(e, SessionBusyError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, redis.RedisError):
        logger.exception("coin session store failure")
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_FAILED)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.websocket("/ws/coin/{session_id}")
async def coin_updates_ws(websocket: WebSocket, session_id: UUID) -> None:
    channel = coin_channel(session_id)
    await hub.connect(channel, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(channel, websocket)
    except Exception:
        await hub.disconnect(channel, websocket)
        raise


@router.post("/coin/games", response_model=CoinGame, status_code=status.HTTP_201_CREATED)
async def create_game_route(
    payload: CoinGameCreateRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinGame:
    try:
        return create_game(
            r=r,
            app_id=settings.app_id,
            probability=payload.probability,
            max_guesses=payload.max_guesses,
            creator_id=payload.creator_id,
        )
    except redis.RedisError as e:
        logger.exception("coin game creation failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=CREATE_FAILED) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.get("/coin/games/{code}", response_model=CoinGamePublic)
async def get_game_route(
    code: str,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinGamePublic:
    try:
        game = get_game(r=r, app_id=settings.app_id, code=code)
    except redis.RedisError as e:
        logger.exception("coin game lookup failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_FAILED) from e
    if game is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_CODE)
    return CoinGamePublic(code=game.code, max_guesses=game.max_guesses, timestamp=game.timestamp)


@router.get("/coin/games/{code}/activity", response_model=ActivityResponse)
async def game_activity_route(
    code: str,
    count: int = 50,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> ActivityResponse:
    """Joins and finished rounds on a game, newest first. Lets the maker follow the class."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    code = normalize_code(code)
    try:
        if get_game(r=r, app_id=settings.app_id, code=code) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_CODE)
        entries = read_activity(r=r, log=ActivityLog(app_id=settings.app_id, code=code), count=count)
    except redis.RedisError as e:
        logger.exception("coin activity read failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_FAILED) from e

    return ActivityResponse(code=code, entries=[ActivityEntry(id=eid, fields=fields) for eid, fields in entries])


@router.post("/coin/sessions", response_model=CoinSessionView, status_code=status.HTTP_201_CREATED)
async def join_game_route(
    payload: JoinRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinSessionView:
    try:
        session = join_game(r=r, app_id=settings.app_id, code=payload.code, ttl_s=settings.session_ttl_s)
    except redis.RedisError as e:
        logger.exception("coin game join failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=JOIN_FAILED) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_CODE)
    return session_view(session)


@router.get("/coin/sessions/{session_id}", response_model=CoinSessionView)
async def get_session_route(
    session_id: UUID,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinSessionView:
    try:
        session = require_session(r=r, app_id=settings.app_id, session_id=session_id)
    except (LookupError, redis.RedisError) as e:
        raise _session_error(e) from e
    return session_view(session)


@router.post("/coin/sessions/{session_id}/flip", response_model=CoinSessionView)
async def flip_route(
    session_id: UUID,
    payload: FlipRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinSessionView:
    try:
        session = flip(
            r=r,
            app_id=settings.app_id,
            session_id=session_id,
            count=payload.count,
            ttl_s=settings.session_ttl_s,
        )
    except (LookupError, ValueError, redis.RedisError) as e:
        raise _session_error(e) from e
    return await _publish_session(session)


@router.post("/coin/sessions/{session_id}/auto", response_model=CoinSessionView)
async def auto_flip_route(
    session_id: UUID,
    payload: AutoFlipRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinSessionView:
    try:
        session = set_auto_flipping(
            r=r,
            app_id=settings.app_id,
            session_id=session_id,
            enabled=payload.enabled,
            ttl_s=settings.session_ttl_s,
        )
    except (LookupError, ValueError, redis.RedisError) as e:
        raise _session_error(e) from e
    return await _publish_session(session)


@router.post("/coin/sessions/{session_id}/auto/tick", response_model=CoinSessionView)
async def auto_flip_tick_route(
    session_id: UUID,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinSessionView:
    """One auto-flip batch. Clients call this on their auto-flip interval while `auto_flipping` is true."""

    try:
        session = auto_flip_tick(r=r, app_id=settings.app_id, session_id=session_id, ttl_s=settings.session_ttl_s)
    except (LookupError, ValueError, redis.RedisError) as e:
        raise _session_error(e) from e
    return await _publish_session(session)


@router.post("/coin/sessions/{session_id}/guess", response_model=CoinSessionView)
async def guess_route(
    session_id: UUID,
    payload: GuessRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> CoinSessionView:
    try:
        session = submit_guess(
            r=r,
            app_id=settings.app_id,
            session_id=session_id,
            guess=payload.guess,
            ttl_s=settings.session_ttl_s,
        )
    except (LookupError, ValueError, redis.RedisError) as e:
        raise _session_error(e) from e
    return await _publish_session(session)


@router.delete("/coin/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session_route(
    session_id: UUID,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    try:
        deleted = reset_session(r=r, app_id=settings.app_id, session_id=session_id)
    except redis.RedisError as e:
        raise _session_error(e) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
