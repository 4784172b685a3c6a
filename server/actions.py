"""
Action processing for Gin Rummy sessions.

process_action() is the only way session state changes during play:

    1. Refuse anything unless the session is PLAYING.
    2. validate_action() (rules.py) checks turn ownership and preconditions.
    3. apply_action() performs the draw / discard / knock / gin.
    4. The action is recorded as last_action and card conservation is checked.

Rejections never mutate state: every precondition apply_action() can still
refuse (a stale discard-pile card, an empty pile) is checked before the
first write.

Terminal transitions:
    knock / gin       score_knock() against the next seat, phase FINISHED
    deck-draw, empty  score_deck_exhaustion() over all seats, phase FINISHED
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from constants import DECK_SIZE
from game import (
    ActionType,
    Card,
    EndReason,
    FinalScore,
    Game,
    GameAction,
    GamePhase,
    Player,
    Rank,
    Suit,
)
from melds import analyze_hand
from rules import InvariantViolation, ValidationResult, ViolationKind, validate_action
from scoring import score_deck_exhaustion, score_knock

logger = logging.getLogger(__name__)

_FULL_DECK_FACES = {(suit, rank) for suit in Suit for rank in Rank}


@dataclass
class GameEndSummary:
    """Structured end-of-game payload handed to the transport layer."""

    reason: EndReason
    final_scores: list[FinalScore] = field(default_factory=list)

    @property
    def winners(self) -> list[FinalScore]:
        return [s for s in self.final_scores if s.is_winner]

    def to_dict(self) -> dict:
        return {
            "reason": self.reason.value,
            "final_scores": [s.to_dict() for s in self.final_scores],
            "winners": [
                {
                    "id": s.player_id,
                    "name": s.player_name,
                    "deadwood_value": s.deadwood_value,
                    "total_score": s.total_score,
                }
                for s in self.winners
            ],
        }

    @classmethod
    def from_game(cls, game: Game) -> Optional["GameEndSummary"]:
        """Rebuild the summary of a finished game, or None if still running."""
        if game.state.phase != GamePhase.FINISHED or game.state.end_reason is None:
            return None
        return cls(reason=game.state.end_reason, final_scores=list(game.state.final_scores))


@dataclass
class ActionOutcome:
    """
    Result of submitting an action.

    Attributes:
        accepted: True if the action was applied.
        reason: Why it was refused (when not accepted).
        kind: Violation category (when not accepted).
        drawn_card: Card added to the hand by a draw.
        summary: End-of-game payload when this action finished the session.
    """

    accepted: bool
    reason: Optional[str] = None
    kind: Optional[ViolationKind] = None
    drawn_card: Optional[Card] = None
    summary: Optional[GameEndSummary] = None

    @property
    def ended(self) -> bool:
        return self.summary is not None

    @classmethod
    def rejected(cls, result: ValidationResult) -> "ActionOutcome":
        return cls(accepted=False, reason=result.reason, kind=result.kind)


# -----------------------------------------------------------------------------
# Invariants
# -----------------------------------------------------------------------------

def check_conservation(game: Game) -> None:
    """
    Verify deck + discard pile + hands is exactly one full deck.

    Raises:
        InvariantViolation: If any card is missing, duplicated or foreign.
    """
    cards = game.all_cards()
    ids = {c.id for c in cards}
    faces = {(c.suit, c.rank) for c in cards}
    if len(cards) != DECK_SIZE or len(ids) != DECK_SIZE or faces != _FULL_DECK_FACES:
        logger.critical(
            f"Card conservation broken in game {game.game_id}: "
            f"{len(cards)} cards, {len(ids)} unique ids, {len(faces)} unique faces"
        )
        raise InvariantViolation(
            f"Expected {DECK_SIZE} distinct cards, found {len(cards)} ({len(ids)} unique)"
        )


# -----------------------------------------------------------------------------
# Turn Actions
# -----------------------------------------------------------------------------

def _advance_turn(game: Game) -> None:
    state = game.state
    state.current_player_id = game.next_player_id(state.current_player_id)
    state.turn_number += 1


def _apply_draw(game: Game, player: Player, action: GameAction) -> ActionOutcome:
    state = game.state

    if action.card is None:
        if not state.deck:
            return ActionOutcome(accepted=True, summary=_finish_deck_exhausted(game))
        card = state.deck.pop()
        player.cards.append(card)
        return ActionOutcome(accepted=True, drawn_card=card)

    top = state.discard_top()
    if top is None:
        return ActionOutcome.rejected(ValidationResult.reject("Discard pile is empty"))
    if top.id != action.card.id:
        return ActionOutcome.rejected(
            ValidationResult.reject("Requested card does not match top of discard pile")
        )
    player.cards.append(state.discard_pile.pop())
    return ActionOutcome(accepted=True, drawn_card=top)


def _apply_discard(game: Game, player: Player, action: GameAction) -> ActionOutcome:
    if action.card is None:
        return ActionOutcome.rejected(ValidationResult.reject("No card specified for discard"))
    card = player.remove_card(action.card)
    if card is None:
        return ActionOutcome.rejected(ValidationResult.reject("Card not in hand"))
    game.state.discard_pile.append(card)
    _advance_turn(game)
    return ActionOutcome(accepted=True)


def _apply_knock(game: Game, knocker: Player, reason: EndReason) -> ActionOutcome:
    if len(game.players) < 2:
        return ActionOutcome.rejected(ValidationResult.reject("No opponent found"))
    return ActionOutcome(accepted=True, summary=_finish_knock(game, knocker, reason))


def apply_action(game: Game, player_id: str, action: GameAction) -> ActionOutcome:
    """
    Apply an already-validated action to the game.

    Args:
        game: Session aggregate to mutate.
        player_id: Acting player (must be seated).
        action: The move to perform.

    Returns:
        ActionOutcome. Draw-from-discard mismatches and unknown cards are
        refused here without touching state.
    """
    player = game.get_player(player_id)
    if player is None:
        return ActionOutcome.rejected(ValidationResult.reject("Player not found"))

    if action.type == ActionType.DRAW:
        return _apply_draw(game, player, action)
    if action.type == ActionType.DISCARD:
        return _apply_discard(game, player, action)
    if action.type == ActionType.KNOCK:
        return _apply_knock(game, player, EndReason.KNOCK)
    if action.type == ActionType.GIN:
        return _apply_knock(game, player, EndReason.GIN)
    return ActionOutcome.rejected(ValidationResult.reject("Invalid action type"))


def process_action(game: Game, player_id: str, action: GameAction) -> ActionOutcome:
    """
    Validate and apply one action as a single step.

    Args:
        game: Session aggregate.
        player_id: Authenticated acting player (not taken from the payload).
        action: The submitted move.

    Returns:
        ActionOutcome describing what happened.

    Raises:
        InvariantViolation: If the action left the 52-card set broken.
    """
    if game.state.phase != GamePhase.PLAYING:
        return ActionOutcome.rejected(ValidationResult.reject("Game is not in progress"))

    validation = validate_action(game, player_id, action)
    if not validation.valid:
        logger.debug(f"Rejected {action.type} from {player_id}: {validation.reason}")
        return ActionOutcome.rejected(validation)

    outcome = apply_action(game, player_id, action)
    if not outcome.accepted:
        logger.debug(f"Refused {action.type} from {player_id}: {outcome.reason}")
        return outcome

    game.state.last_action = action
    check_conservation(game)
    return outcome


# -----------------------------------------------------------------------------
# Session End
# -----------------------------------------------------------------------------

def _finish(game: Game, reason: EndReason, final_scores: list[FinalScore]) -> GameEndSummary:
    state = game.state
    state.phase = GamePhase.FINISHED
    state.finished_at = datetime.now(timezone.utc)
    state.end_reason = reason
    state.final_scores = final_scores

    winners = ", ".join(s.player_name for s in final_scores if s.is_winner) or "none"
    logger.info(f"Game {game.game_id} finished ({reason.value}); winners: {winners}")
    return GameEndSummary(reason=reason, final_scores=final_scores)


def _finish_knock(game: Game, knocker: Player, reason: EndReason) -> GameEndSummary:
    """
    Score a knock or gin against the next seat in turn order.

    With more than two seats the remaining players are reported with their
    deadwood but neither score nor win.
    """
    opponent = game.get_player(game.next_player_id(knocker.id))
    knocker_deadwood = analyze_hand(knocker.cards).deadwood_value
    deadwood = {p.id: analyze_hand(p.cards).deadwood_value for p in game.players}

    result = score_knock(knocker_deadwood, deadwood[opponent.id])
    knocker.score += result.knocker_score
    opponent.score += result.opponent_score
    winner_id = opponent.id if result.undercut else knocker.id

    if result.undercut:
        logger.info(f"{knocker.name} was undercut by {opponent.name}")

    final_scores = [
        FinalScore(
            player_id=p.id,
            player_name=p.name,
            deadwood_value=deadwood[p.id],
            total_score=p.score,
            is_winner=p.id == winner_id,
        )
        for p in game.players
    ]
    return _finish(game, reason, final_scores)


def _finish_deck_exhausted(game: Game) -> GameEndSummary:
    results = {r.player_id: r for r in score_deck_exhaustion([(p.id, p.cards) for p in game.players])}
    final_scores = []
    for player in game.players:
        result = results[player.id]
        player.score += result.award
        final_scores.append(FinalScore(
            player_id=player.id,
            player_name=player.name,
            deadwood_value=result.deadwood_value,
            total_score=player.score,
            is_winner=result.is_winner,
        ))
    return _finish(game, EndReason.DECK_EMPTY, final_scores)


def end_for_departure(game: Game, player_id: str) -> Optional[GameEndSummary]:
    """
    Finish a running session because a player left.

    No points are awarded. Returns None when the session is not playing.
    """
    if game.state.phase != GamePhase.PLAYING:
        return None
    final_scores = [
        FinalScore(
            player_id=p.id,
            player_name=p.name,
            deadwood_value=analyze_hand(p.cards).deadwood_value,
            total_score=p.score,
            is_winner=False,
        )
        for p in game.players
    ]
    logger.info(f"Player {player_id} left game {game.game_id} mid-session")
    return _finish(game, EndReason.PLAYER_LEFT, final_scores)
