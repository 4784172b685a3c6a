"""
Card model and session state for Gin Rummy.

This module holds the value types the rules engine works on: cards and the
deck, players and their hands, and the per-session Game aggregate with its
GameState. Rule decisions (what is legal, what a hand scores) live in
rules.py, melds.py and scoring.py; state transitions live in actions.py.

Gin Rummy Summary:
    - Each player is dealt 10 cards; one card starts the discard pile
    - On your turn: draw from the deck or take the top discard, then discard
    - Melds are sets (3-4 of a rank) or runs (3+ consecutive in a suit)
    - Cards outside melds are deadwood; deadwood <= 10 may knock, 0 is gin
    - The session ends on a knock, on gin, or when the deck runs out

State Invariants:
    deck + discard_pile + every hand == the same 52 cards for the whole session
    hand size is 10 while a player must draw, 11 while they must discard
"""

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from constants import (
    CARD_POINT_VALUES,
    CARD_SORT_VALUES,
    SUIT_ORDER,
    HAND_SIZE,
    MIN_PLAYERS,
    MAX_PLAYERS,
)


class Suit(str, Enum):
    """Card suits for a standard deck."""

    CLUBS = "clubs"
    DIAMONDS = "diamonds"
    HEARTS = "hearts"
    SPADES = "spades"


class Rank(str, Enum):
    """Card ranks with their display values."""

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"


SUIT_SYMBOLS: dict[Suit, str] = {
    Suit.CLUBS: "♣",
    Suit.DIAMONDS: "♦",
    Suit.HEARTS: "♥",
    Suit.SPADES: "♠",
}

# Map Rank enum to point/sort values (derived from constants.py as single source of truth)
RANK_VALUES: dict[Rank, int] = {rank: CARD_POINT_VALUES[rank.value] for rank in Rank}
RANK_SORT_VALUES: dict[Rank, int] = {rank: CARD_SORT_VALUES[rank.value] for rank in Rank}


class AIDifficulty(str, Enum):
    """Skill tiers for CPU players."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


@dataclass(frozen=True, eq=False)
class Card:
    """
    An immutable playing card.

    Two cards are equal only when their ids match; suit and rank are never
    used for identity, so hand and pile lookups are always by id.

    Attributes:
        suit: The card's suit.
        rank: The card's rank.
        id: Unique instance id. Generated from suit/rank when omitted.
    """

    suit: Suit
    rank: Rank
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(
                self, "id", f"{self.suit.value}-{self.rank.value}-{uuid.uuid4().hex[:12]}"
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Card):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"{self.rank.value}{SUIT_SYMBOLS[self.suit]}"

    def value(self) -> int:
        """Deadwood point value (A=1, 2-10 face, J/Q/K=10)."""
        return RANK_VALUES[self.rank]

    def sort_value(self) -> int:
        """Run ordering value (A=1 ... K=13)."""
        return RANK_SORT_VALUES[self.rank]

    def same_face(self, other: "Card") -> bool:
        """True when both cards show the same rank and suit."""
        return self.rank == other.rank and self.suit == other.suit

    def to_dict(self) -> dict:
        return {"suit": self.suit.value, "rank": self.rank.value, "id": self.id}

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(suit=Suit(d["suit"]), rank=Rank(d["rank"]), id=d.get("id", ""))


def card_value(card: Card) -> int:
    """Point value of a card for deadwood counting."""
    return RANK_VALUES[card.rank]


def sort_value(card: Card) -> int:
    """Sort value of a card for run detection."""
    return RANK_SORT_VALUES[card.rank]


def sort_cards(cards: list[Card]) -> list[Card]:
    """Return a new list ordered by suit (clubs, diamonds, hearts, spades), then rank."""
    return sorted(cards, key=lambda c: (SUIT_ORDER[c.suit.value], sort_value(c), c.id))


def create_deck() -> list[Card]:
    """Build the fixed, unshuffled 52-card deck."""
    return [Card(suit, rank) for suit in Suit for rank in Rank]


def shuffle_cards(cards: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a shuffled copy of cards using Fisher-Yates.

    Args:
        cards: Cards to shuffle (left untouched).
        rng: Optional random source, for deterministic deals in tests and replays.
    """
    rng = rng or random.Random()
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class Deck:
    """
    A shuffled 52-card draw pile.

    The deck can be built from a seed for a deterministic shuffle, which
    lets tests and replays reproduce an exact deal.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self.cards: list[Card] = shuffle_cards(create_deck(), random.Random(self.seed))

    def draw(self) -> Optional[Card]:
        """Pop the top card (end of the list), or None if empty."""
        if self.cards:
            return self.cards.pop()
        return None


@dataclass
class Player:
    """
    A seat in a Gin Rummy session.

    Attributes:
        id: Unique identifier for the player.
        name: Display name.
        is_cpu: Whether the seat is played by the automated player.
        difficulty: Skill tier for CPU seats.
        cards: The player's hand, in the order cards were received.
        score: Points awarded when the session ended.
    """

    id: str
    name: str
    is_cpu: bool = False
    difficulty: Optional[AIDifficulty] = None
    cards: list[Card] = field(default_factory=list)
    score: int = 0

    def hand_size(self) -> int:
        return len(self.cards)

    def has_card_id(self, card_id: str) -> bool:
        return any(c.id == card_id for c in self.cards)

    def find_card(self, card: Card) -> Optional[Card]:
        """
        Locate a card in hand by id, falling back to rank and suit.

        The fallback tolerates stale client-side card references; in a single
        52-card deck rank and suit still identify exactly one card.
        """
        for c in self.cards:
            if c.id == card.id:
                return c
        for c in self.cards:
            if c.same_face(card):
                return c
        return None

    def remove_card(self, card: Card) -> Optional[Card]:
        """Remove and return the matching card from hand, or None."""
        found = self.find_card(card)
        if found is not None:
            self.cards.remove(found)
        return found

    def to_dict(self, reveal: bool = True) -> dict:
        """
        Convert player to dictionary for JSON serialization.

        Args:
            reveal: If False, only the hand size is exposed.
        """
        data = {
            "id": self.id,
            "name": self.name,
            "is_cpu": self.is_cpu,
            "difficulty": self.difficulty.value if self.difficulty else None,
            "hand_size": len(self.cards),
            "score": self.score,
        }
        if reveal:
            data["cards"] = [c.to_dict() for c in self.cards]
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "Player":
        difficulty = d.get("difficulty")
        return cls(
            id=d["id"],
            name=d["name"],
            is_cpu=d.get("is_cpu", False),
            difficulty=AIDifficulty(difficulty) if difficulty else None,
            cards=[Card.from_dict(c) for c in d.get("cards", [])],
            score=d.get("score", 0),
        )


class GamePhase(str, Enum):
    """
    Phases of a Gin Rummy session.

    Flow: WAITING -> PLAYING -> FINISHED (terminal)
    """

    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class ActionType(str, Enum):
    DRAW = "draw"
    DISCARD = "discard"
    KNOCK = "knock"
    GIN = "gin"


class EndReason(str, Enum):
    DECK_EMPTY = "deck-empty"
    KNOCK = "knock"
    GIN = "gin"
    PLAYER_LEFT = "player-left"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GameAction:
    """
    A player's submitted move.

    ``type`` is kept as a plain string so unknown types from the wire reach
    the legality checker and get rejected there. ``card`` is required for a
    discard; on a draw it names the discard-pile top being taken.
    """

    type: str
    player_id: str
    card: Optional[Card] = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "type": str(self.type.value if isinstance(self.type, Enum) else self.type),
            "player_id": self.player_id,
            "card": self.card.to_dict() if self.card else None,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GameAction":
        ts = d.get("timestamp")
        return cls(
            type=d["type"],
            player_id=d["player_id"],
            card=Card.from_dict(d["card"]) if d.get("card") else None,
            timestamp=datetime.fromisoformat(ts) if ts else _utcnow(),
        )


@dataclass
class FinalScore:
    """One player's line in the end-of-game results."""

    player_id: str
    player_name: str
    deadwood_value: int
    total_score: int
    is_winner: bool

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "deadwood_value": self.deadwood_value,
            "total_score": self.total_score,
            "is_winner": self.is_winner,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "FinalScore":
        return cls(**d)


@dataclass
class GameState:
    """
    Authoritative per-session state.

    Deck and discard pile are stacks: the last element is the top card.
    Mutated only through actions.py.
    """

    phase: GamePhase = GamePhase.WAITING
    current_player_id: Optional[str] = None
    deck: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    turn_number: int = 0
    last_action: Optional[GameAction] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    end_reason: Optional[EndReason] = None
    final_scores: list[FinalScore] = field(default_factory=list)

    def discard_top(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "current_player_id": self.current_player_id,
            "deck": [c.to_dict() for c in self.deck],
            "discard_pile": [c.to_dict() for c in self.discard_pile],
            "turn_number": self.turn_number,
            "last_action": self.last_action.to_dict() if self.last_action else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "end_reason": self.end_reason.value if self.end_reason else None,
            "final_scores": [s.to_dict() for s in self.final_scores],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GameState":
        return cls(
            phase=GamePhase(d["phase"]),
            current_player_id=d.get("current_player_id"),
            deck=[Card.from_dict(c) for c in d.get("deck", [])],
            discard_pile=[Card.from_dict(c) for c in d.get("discard_pile", [])],
            turn_number=d.get("turn_number", 0),
            last_action=GameAction.from_dict(d["last_action"]) if d.get("last_action") else None,
            started_at=datetime.fromisoformat(d["started_at"]) if d.get("started_at") else None,
            finished_at=datetime.fromisoformat(d["finished_at"]) if d.get("finished_at") else None,
            end_reason=EndReason(d["end_reason"]) if d.get("end_reason") else None,
            final_scores=[FinalScore.from_dict(s) for s in d.get("final_scores", [])],
        )


@dataclass
class Game:
    """
    The session aggregate: seats plus the shared GameState.

    Attributes:
        players: Seats in turn order (2-4).
        state: Phase, turn pointer, deck and discard pile.
        game_id: Unique identifier for logging and storage.
        deck_seed: Seed used for the deal, kept for replay.
    """

    players: list[Player] = field(default_factory=list)
    state: GameState = field(default_factory=GameState)
    game_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    deck_seed: Optional[int] = None

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> bool:
        """
        Seat a player before the deal.

        Returns:
            True if seated, False if the table is full or play has started.
        """
        if self.state.phase != GamePhase.WAITING:
            return False
        if len(self.players) >= MAX_PLAYERS:
            return False
        if self.get_player(player.id):
            return False
        self.players.append(player)
        return True

    def remove_player(self, player_id: str) -> Optional[Player]:
        """Unseat a player. Only allowed before the deal."""
        if self.state.phase != GamePhase.WAITING:
            return None
        player = self.get_player(player_id)
        if player:
            self.players.remove(player)
        return player

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.state.current_player_id is None:
            return None
        return self.get_player(self.state.current_player_id)

    def next_player_id(self, player_id: str) -> str:
        """Seat after ``player_id`` in round-robin order."""
        ids = [p.id for p in self.players]
        index = ids.index(player_id)
        return ids[(index + 1) % len(ids)]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def deal(self, seed: Optional[int] = None) -> None:
        """
        Shuffle, deal 10 cards to each seat and turn one card to start the
        discard pile. Transitions WAITING -> PLAYING.

        Raises:
            ValueError: If the game is not waiting or the seat count is outside 2-4.
        """
        if self.state.phase != GamePhase.WAITING:
            raise ValueError("Game has already been dealt")
        if not (MIN_PLAYERS <= len(self.players) <= MAX_PLAYERS):
            raise ValueError(f"Need {MIN_PLAYERS}-{MAX_PLAYERS} players to deal")

        deck = Deck(seed)
        self.deck_seed = deck.seed

        for player in self.players:
            player.cards = []
            player.score = 0
        for _ in range(HAND_SIZE):
            for player in self.players:
                player.cards.append(deck.draw())

        self.state = GameState(
            phase=GamePhase.PLAYING,
            current_player_id=self.players[0].id,
            deck=deck.cards,
            discard_pile=[deck.draw()],
            turn_number=1,
            started_at=_utcnow(),
        )

    def all_cards(self) -> list[Card]:
        """Every card in the session: deck, discard pile and all hands."""
        cards = list(self.state.deck) + list(self.state.discard_pile)
        for player in self.players:
            cards.extend(player.cards)
        return cards

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def get_state(self, for_player_id: Optional[str]) -> dict:
        """
        Get the game state as seen by one player.

        Opponent hands are hidden until the session is finished; the deck is
        reported only by size.

        Args:
            for_player_id: Viewer whose own cards are always revealed.
        """
        finished = self.state.phase == GamePhase.FINISHED
        top = self.state.discard_top()
        return {
            "game_id": self.game_id,
            "phase": self.state.phase.value,
            "current_player_id": self.state.current_player_id,
            "turn_number": self.state.turn_number,
            "players": [
                p.to_dict(reveal=finished or p.id == for_player_id) for p in self.players
            ],
            "deck_remaining": len(self.state.deck),
            "discard_top": top.to_dict() if top else None,
            "discard_pile_size": len(self.state.discard_pile),
            "last_action": self.state.last_action.to_dict() if self.state.last_action else None,
            "end_reason": self.state.end_reason.value if self.state.end_reason else None,
            "final_scores": [s.to_dict() for s in self.state.final_scores],
        }

    def to_dict(self) -> dict:
        """Full snapshot including every hand, for the session store."""
        return {
            "game_id": self.game_id,
            "deck_seed": self.deck_seed,
            "players": [p.to_dict(reveal=True) for p in self.players],
            "state": self.state.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Game":
        return cls(
            players=[Player.from_dict(p) for p in d.get("players", [])],
            state=GameState.from_dict(d["state"]),
            game_id=d["game_id"],
            deck_seed=d.get("deck_seed"),
        )
