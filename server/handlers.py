"""WebSocket message handlers for Gin Rummy.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict in main.py and receive the
SessionRegistry as a keyword argument.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket
from pydantic import ValidationError

from ai import get_all_profiles
from constants import MAX_PLAYERS, MIN_PLAYERS
from game import AIDifficulty, GamePhase
from logging_config import get_logger
from models.messages import GameActionMessage
from room import Room

logger = get_logger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    current_room: Optional[Room] = None


async def send_error(ctx: ConnectionContext, message: str, **extra) -> None:
    await ctx.websocket.send_json({"type": "error", "message": message, **extra})


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(data: dict, ctx: ConnectionContext, *, registry, **kw) -> None:
    player_name = data.get("player_name", "Player")
    room = registry.create_room()
    room.add_player(ctx.player_id, player_name, ctx.websocket)
    ctx.current_room = room

    await ctx.websocket.send_json({
        "type": "room_created",
        "room_code": room.code,
        "player_id": ctx.player_id,
    })

    await room.broadcast({
        "type": "player_joined",
        "players": room.player_list(),
    })


async def handle_join_room(data: dict, ctx: ConnectionContext, *, registry, **kw) -> None:
    room_code = str(data.get("room_code", ""))
    player_name = data.get("player_name", "Player")

    room = await registry.get_or_restore(room_code)
    if not room:
        await send_error(ctx, "Room not found")
        return

    # Rejoining an existing seat (reconnect)
    if room.attach(ctx.player_id, ctx.websocket):
        ctx.current_room = room
        await ctx.websocket.send_json({
            "type": "room_joined",
            "room_code": room.code,
            "player_id": ctx.player_id,
        })
        await room.send_to(ctx.player_id, {
            "type": "game_state",
            "game_state": room.game.get_state(ctx.player_id),
        })
        return

    if room.game.state.phase != GamePhase.WAITING:
        await send_error(ctx, "Game already in progress")
        return

    if len(room.players) >= MAX_PLAYERS:
        await send_error(ctx, "Room is full")
        return

    room.add_player(ctx.player_id, player_name, ctx.websocket)
    ctx.current_room = room

    await ctx.websocket.send_json({
        "type": "room_joined",
        "room_code": room.code,
        "player_id": ctx.player_id,
    })

    await room.broadcast({
        "type": "player_joined",
        "players": room.player_list(),
    })


async def handle_get_cpu_profiles(data: dict, ctx: ConnectionContext, **kw) -> None:
    await ctx.websocket.send_json({
        "type": "cpu_profiles",
        "profiles": get_all_profiles(),
    })


async def handle_add_cpu(data: dict, ctx: ConnectionContext, **kw) -> None:
    if not ctx.current_room:
        return

    room_player = ctx.current_room.get_player(ctx.player_id)
    if not room_player or not room_player.is_host:
        await send_error(ctx, "Only the host can add CPU players")
        return

    if len(ctx.current_room.players) >= MAX_PLAYERS:
        await send_error(ctx, "Room is full")
        return

    difficulty = data.get("difficulty")
    try:
        difficulty = AIDifficulty(difficulty) if difficulty else None
    except ValueError:
        await send_error(ctx, f"Unknown difficulty: {difficulty}")
        return

    cpu_id = f"cpu_{uuid.uuid4().hex[:8]}"
    cpu_player = ctx.current_room.add_cpu_player(cpu_id, difficulty)
    if not cpu_player:
        await send_error(ctx, "CPU profile not available")
        return

    await ctx.current_room.broadcast({
        "type": "player_joined",
        "players": ctx.current_room.player_list(),
    })


# ---------------------------------------------------------------------------
# Game lifecycle handlers
# ---------------------------------------------------------------------------

async def handle_start_game(data: dict, ctx: ConnectionContext, **kw) -> None:
    if not ctx.current_room:
        return

    room_player = ctx.current_room.get_player(ctx.player_id)
    if not room_player or not room_player.is_host:
        await send_error(ctx, "Only the host can start the game")
        return

    if len(ctx.current_room.players) < MIN_PLAYERS:
        await send_error(ctx, f"Need at least {MIN_PLAYERS} players")
        return

    try:
        await ctx.current_room.start_game(data.get("seed"))
    except ValueError as e:
        await send_error(ctx, str(e))


async def handle_game_action(data: dict, ctx: ConnectionContext, **kw) -> None:
    if not ctx.current_room:
        await send_error(ctx, "Not in a room")
        return

    try:
        message = GameActionMessage.model_validate(data.get("action", data))
    except ValidationError as e:
        await send_error(ctx, "Malformed action", details=e.errors(include_url=False))
        return

    if message.player_id and message.player_id != ctx.player_id:
        logger.debug(f"Ignoring payload player_id {message.player_id} from {ctx.player_id}")

    outcome = await ctx.current_room.submit(ctx.player_id, message.to_action(ctx.player_id))
    if not outcome.accepted:
        logger.with_context(room_code=ctx.current_room.code, action=message.type).debug(
            f"Action rejected: {outcome.reason}"
        )
        await ctx.websocket.send_json({
            "type": "action_rejected",
            "action": message.type,
            "reason": outcome.reason,
            "kind": outcome.kind.value if outcome.kind else None,
        })


async def handle_get_state(data: dict, ctx: ConnectionContext, **kw) -> None:
    if not ctx.current_room:
        await send_error(ctx, "Not in a room")
        return
    await ctx.websocket.send_json({
        "type": "game_state",
        "game_state": ctx.current_room.game.get_state(ctx.player_id),
    })


# ---------------------------------------------------------------------------
# Leave / End handlers
# ---------------------------------------------------------------------------

async def handle_player_leave(room: Room, player_id: str, registry) -> None:
    """Remove a player; drop the room once no humans remain."""
    if room.closed:
        return
    await room.leave(player_id)
    if room.human_player_count() == 0:
        await registry.remove_room(room.code)


async def handle_leave_room(data: dict, ctx: ConnectionContext, *, registry, **kw) -> None:
    if ctx.current_room:
        await handle_player_leave(ctx.current_room, ctx.player_id, registry)
        ctx.current_room = None


async def handle_end_game(data: dict, ctx: ConnectionContext, *, registry, **kw) -> None:
    if not ctx.current_room:
        return

    room_player = ctx.current_room.get_player(ctx.player_id)
    if not room_player or not room_player.is_host:
        await send_error(ctx, "Only the host can end the game")
        return

    await ctx.current_room.broadcast({
        "type": "room_closed",
        "reason": "Host ended the game",
    })
    await registry.remove_room(ctx.current_room.code)
    ctx.current_room = None


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "get_cpu_profiles": handle_get_cpu_profiles,
    "add_cpu": handle_add_cpu,
    "start_game": handle_start_game,
    "game_action": handle_game_action,
    "get_state": handle_get_state,
    "leave_room": handle_leave_room,
    "end_game": handle_end_game,
}
