"""
Wire models for the Gin Rummy transport.

Inbound messages are parsed with pydantic before they reach the session;
outbound end-of-game payloads are built from actions.GameEndSummary.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from game import AIDifficulty, Card, GameAction, Rank, Suit


# =============================================================================
# Inbound
# =============================================================================


class CardPayload(BaseModel):
    """A card as the client refers to it."""
    suit: Suit
    rank: Rank
    id: str = ""

    def to_card(self) -> Card:
        return Card(suit=self.suit, rank=self.rank, id=self.id)


class GameActionMessage(BaseModel):
    """
    A submitted move.

    ``type`` is left as free text: unknown types are refused by the rules
    with "Invalid action type" rather than at parse time. ``player_id`` is
    informational only; the connection's own id is what acts.
    """
    type: str = Field(min_length=1)
    player_id: Optional[str] = None
    card: Optional[CardPayload] = None
    timestamp: Optional[datetime] = None

    def to_action(self, player_id: str) -> GameAction:
        return GameAction(
            type=self.type,
            player_id=player_id,
            card=self.card.to_card() if self.card else None,
            timestamp=self.timestamp or datetime.now(timezone.utc),
        )


class CreateSessionRequest(BaseModel):
    """Open a room for one human against CPU opponents."""
    player_name: str = Field(min_length=1, max_length=32)
    cpu_opponents: int = Field(default=1, ge=1, le=3)
    difficulty: Optional[AIDifficulty] = None
    seed: Optional[int] = None


# =============================================================================
# Outbound
# =============================================================================


class FinalScorePayload(BaseModel):
    """One player's line in the end-of-game results."""
    player_id: str
    player_name: str
    deadwood_value: int
    total_score: int
    is_winner: bool


class WinnerPayload(BaseModel):
    id: str
    name: str
    deadwood_value: int
    total_score: int


class GameEndedPayload(BaseModel):
    """Structured payload sent when a session finishes."""
    reason: str
    final_scores: list[FinalScorePayload]
    winners: list[WinnerPayload]


class CreateSessionResponse(BaseModel):
    room_code: str
    player_id: str
    players: list[dict]
