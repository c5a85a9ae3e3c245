"""
FastAPI transport for Coalition.
REST endpoints create and inspect rooms; each seated player holds a
WebSocket that carries intents in and personalized snapshots out.
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

import pydantic
from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from .auth import create_seat_token, get_seat_token_optional, seat_for_room
from .schemas import CreateRoomRequest, JoinRoomRequest, parse_intent, to_action

from coalition.engine.actions import Action, join_room, player_disconnected
from coalition.engine.definitions import load_static_definitions
from coalition.engine.errors import (
    AuthorizationError,
    EngineError,
    EngineHaltedError,
    ResourceExhaustedError,
    StateConflictError,
    ValidationError,
)
from coalition.engine.events import GameEvent
from coalition.engine.queries import visible_events
from coalition.engine.session import GameSession, SessionRegistry

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 1.0

# WebSocket close codes
WS_ROOM_NOT_FOUND = 4404
WS_BAD_SEAT = 4401
WS_ROOM_CLOSED = 4410

# Rejection type -> HTTP status
ERROR_STATUS = {
    ValidationError: 400,
    AuthorizationError: 403,
    StateConflictError: 409,
    ResourceExhaustedError: 409,
}

defs = load_static_definitions()
registry = SessionRegistry(defs)


class ConnectionHub:
    """Open WebSockets per room and player. A player may hold several (tabs)."""

    def __init__(self):
        self.rooms: dict[str, dict[str, set[WebSocket]]] = {}

    def connect(self, room_id: str, player_id: str, websocket: WebSocket) -> None:
        self.rooms.setdefault(room_id, {}).setdefault(player_id, set()).add(websocket)

    def disconnect(self, room_id: str, player_id: str, websocket: WebSocket) -> bool:
        """Forget a socket. True when it was the player's last one in the room."""
        players = self.rooms.get(room_id, {})
        sockets = players.get(player_id, set())
        sockets.discard(websocket)
        if sockets:
            return False
        players.pop(player_id, None)
        if not players:
            self.rooms.pop(room_id, None)
        return True

    async def _send(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError):
            # Socket already closing; its receive loop will clean up
            pass

    async def send_error(self, websocket: WebSocket, error: EngineError) -> None:
        await self._send(websocket, {"type": "error", "payload": error.to_dict()})

    async def broadcast(self, session: GameSession, events: list[GameEvent]) -> None:
        """Send every connected player their own snapshot plus the events, filtered for them."""
        for player_id, sockets in list(self.rooms.get(session.room_id, {}).items()):
            snapshot = await run_in_threadpool(session.snapshot, player_id)
            filtered = visible_events(events, player_id)
            for websocket in list(sockets):
                if filtered:
                    await self._send(websocket, {"type": "events", "payload": filtered})
                await self._send(websocket, {"type": "room_state", "payload": snapshot})

    async def close_room(self, room_id: str, reason: str) -> None:
        for sockets in list(self.rooms.pop(room_id, {}).values()):
            for websocket in list(sockets):
                try:
                    await websocket.close(code=WS_ROOM_CLOSED, reason=reason)
                except RuntimeError:
                    pass


hub = ConnectionHub()


async def submit_and_broadcast(
    session: GameSession,
    action: Action,
    origin: WebSocket | None = None,
) -> list[GameEvent] | None:
    """
    Apply an intent and fan out the result.
    Rejections go back to the originating socket only; a halt is broadcast to everyone.
    """
    try:
        events = await run_in_threadpool(session.submit, action)
    except EngineError as e:
        if origin is not None:
            await hub.send_error(origin, e)
            return None
        raise
    except EngineHaltedError:
        await hub.broadcast(session, [session.failure_event()])
        return None
    await hub.broadcast(session, events)
    return events


async def _tick_loop():
    """Fire due fairness timeouts and drop expired rooms."""
    while True:
        await asyncio.sleep(TICK_INTERVAL_SECONDS)
        try:
            fired = await run_in_threadpool(registry.tick_all)
            for room_id, events in fired.items():
                session = registry.get(room_id)
                if session is not None:
                    await hub.broadcast(session, events)
            for room_id in await run_in_threadpool(registry.expire_idle):
                await hub.close_room(room_id, "expired")
        except Exception:
            logger.exception("tick loop iteration failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(_tick_loop())
    try:
        yield
    finally:
        task.cancel()


app = FastAPI(
    title="Coalition API",
    description="Turn-resolution server for Coalition, a 3-5 player political strategy game",
    version="1.0.0",
    lifespan=lifespan,
)

CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[500] %s %s", method, path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", method, path)
        raise


# ===== Helper Functions =====

def get_session(room_id: str) -> GameSession:
    session = registry.get(room_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Room {room_id} not found")
    return session


def http_error(e: EngineError) -> HTTPException:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(e, cls)), 400)
    return HTTPException(status_code=status, detail=e.to_dict())


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Coalition API", "version": "1.0.0"}


@app.post("/rooms", status_code=201)
def create_room(request: CreateRoomRequest | None = None):
    """Create an empty room. The first player to join becomes host."""
    room_id = request.room_id if request else None
    try:
        session = registry.create(room_id)
    except EngineError as e:
        raise http_error(e)
    return {"room_id": session.room_id}


@app.post("/rooms/{room_id}/join")
async def join(
    room_id: str,
    request: JoinRoomRequest,
    token: str | None = Depends(get_seat_token_optional),
):
    """
    Take a seat, or reclaim one with an existing seat token (Authorization: Bearer).
    Returns the player id and the seat token to use on the WebSocket.
    """
    session = get_session(room_id)
    player_id = seat_for_room(token, room_id) or str(uuid.uuid4())
    try:
        await submit_and_broadcast(session, join_room(player_id, request.display_name))
    except EngineError as e:
        raise http_error(e)
    return {
        "room_id": room_id,
        "player_id": player_id,
        "seat_token": create_seat_token(room_id, player_id),
        "state": await run_in_threadpool(session.snapshot, player_id),
    }


@app.get("/rooms/{room_id}")
def get_room(room_id: str, token: str | None = Depends(get_seat_token_optional)):
    """Current snapshot. With a seat token the viewer sees their own exact influence."""
    session = get_session(room_id)
    return session.snapshot(seat_for_room(token, room_id))


@app.get("/rooms/{room_id}/history")
def get_history(room_id: str):
    return get_session(room_id).history()


@app.post("/rooms/{room_id}/validate")
def validate(room_id: str, message: dict[str, Any], token: str | None = Depends(get_seat_token_optional)):
    """Dry-run an intent for the seat holder without applying it."""
    session = get_session(room_id)
    player_id = seat_for_room(token, room_id)
    if player_id is None:
        raise HTTPException(status_code=401, detail="Seat token required")
    try:
        intent = parse_intent(message)
    except pydantic.ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session.validate(to_action(intent, player_id)).to_dict()


@app.delete("/rooms/{room_id}")
async def delete_room(room_id: str):
    if not registry.destroy(room_id):
        raise HTTPException(status_code=404, detail=f"Room {room_id} not found")
    await hub.close_room(room_id, "deleted")
    return {"deleted": room_id}


@app.websocket("/rooms/{room_id}/ws")
async def room_socket(websocket: WebSocket, room_id: str, token: str | None = None):
    session = registry.get(room_id)
    if session is None:
        await websocket.close(code=WS_ROOM_NOT_FOUND)
        return
    player_id = seat_for_room(token, room_id)
    player = session.state.players.get(player_id) if player_id else None
    if player is None:
        await websocket.close(code=WS_BAD_SEAT)
        return

    await websocket.accept()
    hub.connect(room_id, player_id, websocket)
    logger.info("room %s: socket opened for %s", room_id, player_id)
    # Re-joining marks the seat connected and pushes a fresh snapshot
    await submit_and_broadcast(session, join_room(player_id, player.display_name), origin=websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                intent = parse_intent(json.loads(raw))
            except (ValueError, pydantic.ValidationError) as e:
                await hub.send_error(websocket, ValidationError(f"Malformed message: {e}"))
                continue
            await submit_and_broadcast(session, to_action(intent, player_id), origin=websocket)
    except WebSocketDisconnect:
        pass
    finally:
        last = hub.disconnect(room_id, player_id, websocket)
        logger.info("room %s: socket closed for %s", room_id, player_id)
        if last and registry.get(room_id) is session:
            try:
                await submit_and_broadcast(session, player_disconnected(player_id))
            except EngineError as e:
                logger.debug("room %s: disconnect of %s not applied: %s", room_id, player_id, e)
