"""FastAPI WebSocket server for Gin Rummy."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from ai import get_all_profiles
from config import config
from handlers import HANDLERS, ConnectionContext, handle_player_leave, send_error
from logging_config import player_id_var, setup_logging
from models.messages import CreateSessionRequest, CreateSessionResponse
from room import SessionRegistry
from routers.health import router as health_router
from routers.health import set_health_dependencies
from stores.session_store import SessionStore, create_session_store

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Services (initialized in lifespan)
# =============================================================================

_store: Optional[SessionStore] = None
registry = SessionRegistry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    global _store
    _store = await create_session_store(config.REDIS_URL)
    registry.store = _store

    set_health_dependencies(store=_store, registry=registry)

    logger.info(f"Gin Rummy server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    await registry.close_all()
    await _store.close()
    logger.info("Shutdown complete")


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(registry.rooms.values()):
        for player in room.players.values():
            if player.websocket and not player.is_cpu:
                try:
                    await player.websocket.close(code=1001, reason="Server shutting down")
                except Exception as e:
                    logger.debug(f"Socket for {player.id} already closed: {e}")
    logger.info("All WebSocket connections closed")


app = FastAPI(
    title="Gin Rummy",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)


# =============================================================================
# REST Endpoints
# =============================================================================

@app.post("/api/sessions", response_model=CreateSessionResponse)
async def create_session(request: CreateSessionRequest):
    """
    Open and deal a session for one human against CPU opponents.

    The returned player_id is passed as a query parameter when opening the
    WebSocket, followed by a join_room message with the room code.
    """
    room = registry.create_room()
    player_id = str(uuid.uuid4())
    room.add_player(player_id, request.player_name)

    for _ in range(request.cpu_opponents):
        if not room.add_cpu_player(f"cpu_{uuid.uuid4().hex[:8]}", request.difficulty):
            await registry.remove_room(room.code)
            raise HTTPException(status_code=409, detail="CPU profile not available")

    await room.start_game(request.seed)
    logger.info(f"Session {room.code} opened for {request.player_name}")

    return CreateSessionResponse(
        room_code=room.code,
        player_id=player_id,
        players=room.player_list(),
    )


@app.get("/api/sessions/{room_code}")
async def get_session(room_code: str):
    """Public view of a session: no hidden cards until it is finished."""
    room = await registry.get_or_restore(room_code)
    if not room:
        raise HTTPException(status_code=404, detail="Session not found")
    summary = room.end_summary()
    return {
        "room_code": room.code,
        "players": room.player_list(),
        "game_state": room.game.get_state(None),
        "result": summary.to_dict() if summary else None,
    }


@app.get("/api/cpu-profiles")
async def list_cpu_profiles():
    return {"profiles": get_all_profiles()}


# =============================================================================
# WebSocket
# =============================================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    # A known player id lets a client reclaim its seat after reconnecting
    connection_id = str(uuid.uuid4())
    player_id = websocket.query_params.get("player_id") or connection_id
    player_id_var.set(player_id)
    logger.debug(f"WebSocket connected as {player_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=player_id,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(registry=registry)

    try:
        while True:
            data = await websocket.receive_json()
            handler = HANDLERS.get(data.get("type"))
            if handler:
                await handler(data, ctx, **handler_deps)
            else:
                await send_error(ctx, f"Unknown message type: {data.get('type')}")
    except WebSocketDisconnect:
        if ctx.current_room:
            await handle_player_leave(ctx.current_room, ctx.player_id, registry)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Gin Rummy server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
