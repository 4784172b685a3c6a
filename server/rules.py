"""
Turn legality for Gin Rummy.

The whole session moves WAITING -> PLAYING -> FINISHED. Inside PLAYING a
player's turn has two steps that are never stored, only derived from the
size of their hand:

    10 cards  -> must draw
    11 cards  -> must discard (or may knock / go gin)

validate_action() gates every move against the current Game. It never
mutates anything; failures come back as a ValidationResult carrying the
reason string shown to the player and the kind of violation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from constants import HAND_SIZE
from game import ActionType, Game, GameAction
from melds import analyze_hand


class TurnStep(str, Enum):
    DRAW = "draw"
    DISCARD = "discard"


class ViolationKind(str, Enum):
    """Why an action was refused. All kinds leave state untouched."""

    TURN = "turn"
    PRECONDITION = "precondition"
    CAPABILITY = "capability"


class InvariantViolation(RuntimeError):
    """Raised when session state breaks a structural rule (a core defect)."""


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None
    kind: Optional[ViolationKind] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str, kind: ViolationKind = ViolationKind.PRECONDITION) -> "ValidationResult":
        return cls(valid=False, reason=reason, kind=kind)


def turn_step(hand_size: int) -> Optional[TurnStep]:
    """Derive the turn step from a hand size (None when the size is neither)."""
    if hand_size == HAND_SIZE:
        return TurnStep.DRAW
    if hand_size == HAND_SIZE + 1:
        return TurnStep.DISCARD
    return None


def validate_action(game: Game, player_id: str, action: GameAction) -> ValidationResult:
    """
    Check whether ``player_id`` may perform ``action`` right now.

    Args:
        game: Session aggregate (state plus hands, needed for hand-size checks).
        player_id: The acting player.
        action: The submitted move.

    Returns:
        ValidationResult; ``reason`` is set whenever ``valid`` is False.
    """
    state = game.state
    if state.current_player_id != player_id:
        return ValidationResult.reject("Not your turn", ViolationKind.TURN)

    player = game.get_player(player_id)
    if player is None:
        return ValidationResult.reject("Player not found")

    if action.type == ActionType.DRAW:
        if not state.deck and not state.discard_pile:
            return ValidationResult.reject("No cards available to draw")
        if turn_step(player.hand_size()) != TurnStep.DRAW:
            return ValidationResult.reject(f"Must have exactly {HAND_SIZE} cards to draw")
        return ValidationResult.ok()

    if action.type == ActionType.DISCARD:
        if action.card is None:
            return ValidationResult.reject("No card specified for discard")
        if turn_step(player.hand_size()) != TurnStep.DISCARD:
            return ValidationResult.reject("Must draw a card before discarding")
        if not player.has_card_id(action.card.id):
            return ValidationResult.reject("Card not in hand")
        return ValidationResult.ok()

    if action.type in (ActionType.KNOCK, ActionType.GIN):
        analysis = analyze_hand(player.cards)
        if action.type == ActionType.GIN and not analysis.can_gin:
            return ValidationResult.reject("Cannot go gin with current hand", ViolationKind.CAPABILITY)
        if action.type == ActionType.KNOCK and not analysis.can_knock:
            return ValidationResult.reject(
                "Cannot knock with current deadwood value", ViolationKind.CAPABILITY
            )
        return ValidationResult.ok()

    return ValidationResult.reject("Invalid action type")
