from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from minigames.api.deps import get_app_settings
from minigames.api.models import PrimeDropCommand, PrimeDropCreateRequest, PrimeDropSnapshot, TickRequest
from minigames.prime_drop.registry import registry
from minigames.prime_drop.runner import play
from minigames.prime_drop.session import PrimeDropSession
from minigames.settings import Settings

router = APIRouter(prefix="/prime-drop")
ws_router = APIRouter()


def _require(session_id: str) -> PrimeDropSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.post("/sessions", response_model=PrimeDropSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session_route(payload: PrimeDropCreateRequest | None = None) -> PrimeDropSnapshot:
    try:
        session = await registry.create(seed=payload.seed if payload else None)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    return session.snapshot()


@router.get("/sessions/{session_id}", response_model=PrimeDropSnapshot)
async def get_session_route(session_id: str) -> PrimeDropSnapshot:
    return _require(session_id).snapshot()


@router.post("/sessions/{session_id}/commands", response_model=PrimeDropSnapshot)
async def command_route(session_id: str, payload: PrimeDropCommand) -> PrimeDropSnapshot:
    session = _require(session_id)
    try:
        session.apply(payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return session.snapshot(events=session.drain_events())


@router.post("/sessions/{session_id}/tick", response_model=PrimeDropSnapshot)
async def tick_route(session_id: str, payload: TickRequest) -> PrimeDropSnapshot:
    """Advance the run by `steps` fixed steps. For clients that drive their own clock, and for replays."""

    session = _require(session_id)
    for _ in range(payload.steps):
        session.tick(payload.delta_ms)
    return session.snapshot(events=session.drain_events())


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_session_route(session_id: str) -> Response:
    if not await registry.discard(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@ws_router.websocket("/ws/prime-drop/{session_id}")
async def prime_drop_ws(websocket: WebSocket, session_id: str, settings: Settings = Depends(get_app_settings)) -> None:
    # One socket per run, so a single loop drives it.
    session = await registry.attach(session_id)
    if session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    try:
        await play(session, receive=websocket.receive_json, send=websocket.send_json, tick_ms=settings.tick_ms)
    except WebSocketDisconnect:
        pass
    finally:
        await registry.detach(session_id)
