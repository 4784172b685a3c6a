"""
Room management for Gin Rummy sessions.

A Room owns one Game and is its only writer. Every mutation (a human
action, a CPU step, a departure, the deal) is a command placed on the
room's asyncio.Queue and run to completion by a single worker task before
the next one starts, so no two changes to a session ever interleave.

CPU turns are scheduled continuations:

    decide step   after CPU_TIMING["decide"]   -> gin / knock / draw
    discard step  after CPU_TIMING["discard"]  -> discard (whenever the CPU holds 11 cards)

A step carries the turn number it was scheduled for and is re-checked when
dequeued (phase, turn owner, turn number, hand size). If anything moved on
during the delay the step does nothing.

A Room contains:
    - A unique numeric code for joining
    - A collection of RoomPlayers (human or CPU)
    - A Game instance with the actual game state
    - An optional SessionStore it saves to after each accepted command
"""

import asyncio
import logging
import random
import string
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fastapi import WebSocket

from actions import ActionOutcome, GameEndSummary, end_for_departure, process_action
from ai import CPU_TIMING, GinAI, PublicView, choose_profile, get_profile, get_thinking_time
from constants import HAND_SIZE, ROOM_CODE_LENGTH
from game import ActionType, AIDifficulty, Game, GameAction, GamePhase, Player
from logging_config import room_code_var
from models.messages import GameEndedPayload
from rules import TurnStep, ValidationResult, turn_step
from stores.session_store import SessionStore

logger = logging.getLogger(__name__)

Command = Callable[[], Awaitable[object]]


@dataclass
class RoomPlayer:
    """
    A player in a game room (lobby-level representation).

    This is separate from game.Player - RoomPlayer tracks the connection,
    while game.Player tracks cards and score.

    Attributes:
        id: Unique player identifier.
        name: Display name.
        websocket: WebSocket connection (None for CPU players or while offline).
        is_host: Whether this player opened the room.
        is_cpu: Whether this is an AI-controlled player.
        style: CPU profile description shown to players.
    """

    id: str
    name: str
    websocket: Optional[WebSocket] = None
    is_host: bool = False
    is_cpu: bool = False
    style: Optional[str] = None


class Room:
    """
    A game room hosting a single Gin Rummy session.

    Attributes:
        code: Numeric room code for joining (e.g., "482913").
        players: Dict mapping player IDs to RoomPlayer objects.
        game: The Game instance containing actual game state.
        store: Where snapshots are saved (None to skip persistence).
    """

    def __init__(
        self,
        code: str,
        store: Optional[SessionStore] = None,
        game: Optional[Game] = None,
        turn_delay: Optional[float] = None,
        discard_delay: Optional[float] = None,
    ) -> None:
        self.code = code
        self.players: dict[str, RoomPlayer] = {}
        self.game = game or Game()
        self.store = store
        self.turn_delay = CPU_TIMING["decide"] if turn_delay is None else turn_delay
        self.discard_delay = CPU_TIMING["discard"] if discard_delay is None else discard_delay

        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._cpu_tasks: set[asyncio.Task] = set()
        self._closed = False

    # -------------------------------------------------------------------------
    # Seating
    # -------------------------------------------------------------------------

    def add_player(
        self,
        player_id: str,
        name: str,
        websocket: Optional[WebSocket] = None,
    ) -> Optional[RoomPlayer]:
        """
        Seat a human player before the deal.

        The first player to join becomes the host.

        Returns:
            The created RoomPlayer, or None if the table is full or dealt.
        """
        if not self.game.add_player(Player(id=player_id, name=name)):
            return None
        room_player = RoomPlayer(
            id=player_id,
            name=name,
            websocket=websocket,
            is_host=len(self.players) == 0,
        )
        self.players[player_id] = room_player
        return room_player

    def add_cpu_player(
        self,
        cpu_id: str,
        difficulty: Optional[AIDifficulty] = None,
    ) -> Optional[RoomPlayer]:
        """
        Seat a CPU player with a profile not already used in this room.

        Args:
            cpu_id: Unique identifier for the CPU player.
            difficulty: Skill tier, or None for any.

        Returns:
            The created RoomPlayer, or None if no profile or seat is free.
        """
        taken = {p.name for p in self.players.values() if p.is_cpu}
        profile = choose_profile(taken, difficulty)
        if not profile:
            return None

        game_player = Player(
            id=cpu_id, name=profile.name, is_cpu=True, difficulty=profile.difficulty
        )
        if not self.game.add_player(game_player):
            return None

        room_player = RoomPlayer(
            id=cpu_id,
            name=profile.name,
            is_cpu=True,
            style=profile.style,
        )
        self.players[cpu_id] = room_player
        return room_player

    def get_player(self, player_id: str) -> Optional[RoomPlayer]:
        """Get a player by ID, or None if not found."""
        return self.players.get(player_id)

    def attach(self, player_id: str, websocket: WebSocket) -> bool:
        """Bind a (re)connected socket to an existing human seat."""
        player = self.players.get(player_id)
        if not player or player.is_cpu:
            return False
        player.websocket = websocket
        return True

    def human_player_count(self) -> int:
        """Count the number of human (non-CPU) players."""
        return sum(1 for p in self.players.values() if not p.is_cpu)

    def player_list(self) -> list[dict]:
        """
        Get list of players for client display.

        Returns:
            List of dicts with id, name, is_host, is_cpu, and style (for CPUs).
        """
        result = []
        for p in self.players.values():
            player_data = {
                "id": p.id,
                "name": p.name,
                "is_host": p.is_host,
                "is_cpu": p.is_cpu,
            }
            if p.is_cpu and p.style:
                player_data["style"] = p.style
            result.append(player_data)
        return result

    # -------------------------------------------------------------------------
    # Actor
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name=f"room-{self.code}")

    async def _run(self) -> None:
        room_code_var.set(self.code)
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                command, future = item
                try:
                    result = await command()
                except Exception as e:
                    if not future.cancelled():
                        future.set_exception(e)
                else:
                    if not future.cancelled():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    def _enqueue(self, command: Command) -> asyncio.Future:
        if self._closed:
            raise RuntimeError(f"Room {self.code} is closed")
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((command, future))
        return future

    async def start_game(self, seed: Optional[int] = None) -> None:
        """
        Deal the session and hand the first turn to whoever sits first.

        Raises:
            ValueError: If the game was already dealt or the seat count is wrong.
        """
        async def command():
            self.game.deal(seed)
            logger.info(
                f"Room {self.code} dealt game {self.game.game_id} "
                f"(seed={self.game.deck_seed}, players={len(self.game.players)})"
            )
            await self._after_change(None)

        await self._enqueue(command)

    async def submit(self, player_id: str, action: GameAction) -> ActionOutcome:
        """
        Queue a human action and wait for its outcome.

        Args:
            player_id: The connection's own player id (never the payload's).
            action: The submitted move.
        """
        if self._closed:
            return ActionOutcome.rejected(ValidationResult.reject("Session closed"))

        async def command():
            outcome = process_action(self.game, player_id, action)
            if outcome.accepted:
                await self._after_change(outcome)
            return outcome

        return await self._enqueue(command)

    async def leave(self, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player. A departure mid-session ends it for everyone.

        Returns:
            The removed RoomPlayer, or None if not seated.
        """
        if self._closed:
            return None

        async def command():
            room_player = self.players.pop(player_id, None)
            if room_player is None:
                return None

            if room_player.is_host and self.players:
                next(iter(self.players.values())).is_host = True

            summary = end_for_departure(self.game, player_id)
            self.game.remove_player(player_id)

            await self.broadcast({
                "type": "player_left",
                "player_id": player_id,
                "player_name": room_player.name,
                "players": self.player_list(),
            })
            if summary is not None:
                await self._after_change(ActionOutcome(accepted=True, summary=summary))
            return room_player

        return await self._enqueue(command)

    async def _after_change(self, outcome: Optional[ActionOutcome]) -> None:
        if self.store is not None:
            await self.store.save(self.code, self.game)

        await self.broadcast_state()
        if outcome is not None and outcome.ended:
            payload = GameEndedPayload.model_validate(outcome.summary.to_dict())
            await self.broadcast({"type": "game_ended", **payload.model_dump()})
            return
        self.schedule_cpu_turn()

    # -------------------------------------------------------------------------
    # CPU Turns
    # -------------------------------------------------------------------------

    def schedule_cpu_turn(self) -> None:
        """
        Schedule the next step for a CPU player holding the turn.

        A CPU at 10 cards gets a decide step, one at 11 cards (after its draw,
        or restored mid-turn) gets a discard step.
        """
        current = self.game.current_player()
        if self.game.state.phase != GamePhase.PLAYING or not current or not current.is_cpu:
            return
        turn_number = self.game.state.turn_number
        step = turn_step(current.hand_size())
        if step == TurnStep.DRAW:
            self._schedule(self.turn_delay, self._cpu_decide, current.id, turn_number)
        elif step == TurnStep.DISCARD:
            self._schedule(self.discard_delay, self._cpu_discard, current.id, turn_number)

    def _schedule(self, delay: float, step, player_id: str, turn_number: int) -> None:
        task = asyncio.create_task(self._run_later(delay, step, player_id, turn_number))
        self._cpu_tasks.add(task)
        task.add_done_callback(self._cpu_tasks.discard)

    async def _run_later(self, delay: float, step, player_id: str, turn_number: int) -> None:
        await asyncio.sleep(get_thinking_time(delay))
        if self._closed:
            return
        try:
            await self._enqueue(lambda: step(player_id, turn_number))
        except Exception:
            logger.exception(f"CPU step for {player_id} failed in room {self.code}")

    def _is_current(self, player_id: str, turn_number: int, hand_size: int) -> Optional[Player]:
        """Return the CPU player if the scheduled step still applies."""
        state = self.game.state
        player = self.game.get_player(player_id)
        if (
            state.phase != GamePhase.PLAYING
            or state.current_player_id != player_id
            or state.turn_number != turn_number
            or player is None
            or player.hand_size() != hand_size
        ):
            logger.debug(f"Dropping stale CPU step for {player_id} (turn {turn_number})")
            return None
        return player

    async def _cpu_decide(self, player_id: str, turn_number: int) -> None:
        player = self._is_current(player_id, turn_number, HAND_SIZE)
        if player is None:
            return

        action = GinAI.decide_action(player, PublicView.from_game(self.game))
        outcome = process_action(self.game, player_id, action)
        if not outcome.accepted:
            logger.warning(f"CPU {player.name} action {action.type} refused: {outcome.reason}")
            action = GameAction(type=ActionType.DRAW.value, player_id=player_id)
            outcome = process_action(self.game, player_id, action)
            if not outcome.accepted:
                logger.error(f"CPU {player.name} cannot draw: {outcome.reason}")
                return

        await self._after_change(outcome)

    async def _cpu_discard(self, player_id: str, turn_number: int) -> None:
        player = self._is_current(player_id, turn_number, HAND_SIZE + 1)
        if player is None:
            return

        action = GinAI.decide_discard(player, PublicView.from_game(self.game))
        outcome = process_action(self.game, player_id, action)
        if not outcome.accepted:
            logger.error(f"CPU {player.name} discard refused: {outcome.reason}")
            return
        await self._after_change(outcome)

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> None:
        """
        Send a message to all connected human players in the room.

        Args:
            message: JSON-serializable message dict.
            exclude: Optional player ID to skip.
        """
        for player_id, player in list(self.players.items()):
            if player_id != exclude and player.websocket and not player.is_cpu:
                await self._send(player, message)

    async def broadcast_state(self) -> None:
        """Send each connected human their own view of the game."""
        for player_id, player in list(self.players.items()):
            if player.websocket and not player.is_cpu:
                await self._send(player, {
                    "type": "game_state",
                    "game_state": self.game.get_state(player_id),
                })

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific player.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        player = self.players.get(player_id)
        if player and player.websocket and not player.is_cpu:
            await self._send(player, message)

    async def _send(self, player: RoomPlayer, message: dict) -> None:
        try:
            await player.websocket.send_json(message)
        except Exception as e:
            logger.debug(f"Dropping message to {player.id} in room {self.code}: {e}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def end_summary(self) -> Optional[GameEndSummary]:
        return GameEndSummary.from_game(self.game)

    async def wait_idle(self) -> None:
        """Wait until no command is queued and no CPU step is pending."""
        while True:
            if self._cpu_tasks:
                await asyncio.gather(*list(self._cpu_tasks), return_exceptions=True)
                continue
            await self._queue.join()
            if not self._cpu_tasks:
                return

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Cancel pending CPU steps and stop the worker."""
        self._closed = True
        for task in list(self._cpu_tasks):
            task.cancel()
        if self._worker is not None and not self._worker.done():
            self._queue.put_nowait(None)
            await self._worker


class SessionRegistry:
    """
    All live rooms of this process, keyed by room code.

    Passed to the transport layer explicitly. Rooms are restored from the
    session store on demand after a restart.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        turn_delay: Optional[float] = None,
        discard_delay: Optional[float] = None,
    ) -> None:
        self.store = store
        self.turn_delay = turn_delay
        self.discard_delay = discard_delay
        self.rooms: dict[str, Room] = {}

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique numeric room code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.digits, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def _new_room(self, code: str, game: Optional[Game] = None) -> Room:
        room = Room(
            code=code,
            store=self.store,
            game=game,
            turn_delay=self.turn_delay,
            discard_delay=self.discard_delay,
        )
        self.rooms[code] = room
        return room

    def create_room(self) -> Room:
        """
        Create a new room with a unique code.

        Returns:
            The newly created Room.
        """
        return self._new_room(self._generate_code())

    def get_room(self, code: str) -> Optional[Room]:
        return self.rooms.get(code)

    async def get_or_restore(self, code: str) -> Optional[Room]:
        """
        Get a live room, or rebuild it from the session store.

        Restored seats have no socket until their players reconnect; a CPU
        holding the turn is rescheduled.
        """
        room = self.rooms.get(code)
        if room is not None or self.store is None:
            return room

        game = await self.store.load(code)
        if game is None:
            return None

        room = self._new_room(code, game)
        for index, player in enumerate(game.players):
            profile = get_profile(player.name) if player.is_cpu else None
            room.players[player.id] = RoomPlayer(
                id=player.id,
                name=player.name,
                is_host=index == 0,
                is_cpu=player.is_cpu,
                style=profile.style if profile else None,
            )
        logger.info(f"Restored room {code} ({game.state.phase.value})")
        room.schedule_cpu_turn()
        return room

    async def remove_room(self, code: str) -> None:
        """
        Close and forget a room, and drop its saved session.

        Args:
            code: The room code to remove.
        """
        room = self.rooms.pop(code, None)
        if room is not None:
            await room.close()
        if self.store is not None:
            await self.store.delete(code)

    async def close_all(self) -> None:
        for room in list(self.rooms.values()):
            await room.close()
        self.rooms.clear()
