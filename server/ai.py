"""Automated players for Gin Rummy, at four difficulty tiers."""

import logging
import os
import random
from dataclasses import dataclass, field
from typing import Optional

from config import config
from constants import DECK_SIZE, KNOCK_THRESHOLD
from game import (
    ActionType,
    AIDifficulty,
    Card,
    Game,
    GameAction,
    Player,
    RANK_SORT_VALUES,
    Rank,
    Suit,
    card_value,
    sort_value,
)
from melds import HandAnalysis, Meld, analyze_hand


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

# Create a dedicated logger for AI decisions
ai_logger = logging.getLogger("gin.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# CPU Turn Timing Configuration (seconds)
# =============================================================================
# Delays between the steps of a CPU turn. They only pace the table for
# human players; every step re-checks the session before acting.

CPU_TIMING = {
    # Pause before the CPU decides to draw / knock / go gin
    "decide": config.CPU_TURN_DELAY,
    # Pause between drawing and discarding
    "discard": config.CPU_DISCARD_DELAY,
    # Variance multiplier applied to both pauses
    "jitter": (0.8, 1.2),
}


# =============================================================================
# AI Decision Constants
# =============================================================================

# Beginner knocks at or below this deadwood
BEGINNER_KNOCK_MAX = 8

# Intermediate knocks at or below this deadwood (or at the full threshold late)
INTERMEDIATE_KNOCK_MAX = 5
INTERMEDIATE_LATE_PROGRESS = 0.7

# Advanced knocks when this far below the estimated opponent deadwood
ADVANCED_KNOCK_MARGIN = 5

# Expert brackets keyed on game progress
EXPERT_EARLY_PROGRESS = 0.3
EXPERT_MID_PROGRESS = 0.7
EXPERT_EARLY_KNOCK_MAX = 3
EXPERT_MID_KNOCK_MARGIN = 8
EXPERT_LATE_KNOCK_MAX = 7

# Opponent deadwood estimate: starts high, shrinks as the deck is drawn down
OPPONENT_DEADWOOD_START = 20
OPPONENT_DEADWOOD_DECAY = 15
OPPONENT_DEADWOOD_FLOOR = 5

# How many recent discards to inspect for opponent interest
RECENT_DISCARD_WINDOW = 5

# Penalty for discarding a card the opponent probably wants
ADVANCED_NEED_PENALTY = 10
EXPERT_NEED_PENALTY = 15

# Expert adjustments stay below 1 point combined, so they only reorder
# candidates with the same deadwood-plus-penalty score.
DRAW_POTENTIAL_WEIGHT = 0.5
DRAW_POTENTIAL_OUTS_CAP = 20
GAME_STATE_WEIGHT = 0.4

_ALL_FACES = {(suit, rank) for suit in Suit for rank in Rank}


@dataclass
class PublicView:
    """
    What any seat can see of a session: never another player's hand.

    Attributes:
        deck_remaining: Cards left in the draw pile.
        discard_pile: The discard pile, top card last.
        turn_number: Current turn counter.
        num_players: Seats at the table.
    """

    deck_remaining: int
    discard_pile: list[Card] = field(default_factory=list)
    turn_number: int = 1
    num_players: int = 2

    @property
    def discard_top(self) -> Optional[Card]:
        return self.discard_pile[-1] if self.discard_pile else None

    @classmethod
    def from_game(cls, game: Game) -> "PublicView":
        return cls(
            deck_remaining=len(game.state.deck),
            discard_pile=list(game.state.discard_pile),
            turn_number=game.state.turn_number,
            num_players=len(game.players),
        )


# =============================================================================
# Public-information heuristics
# =============================================================================

def estimate_game_progress(view: PublicView) -> float:
    """Fraction of the deck no longer in the draw pile (0.0 - 1.0)."""
    return (DECK_SIZE - view.deck_remaining) / DECK_SIZE


def estimate_opponent_deadwood(view: PublicView) -> float:
    """Guess opponent deadwood: high early, lower late, never below the floor."""
    progress = estimate_game_progress(view)
    return max(OPPONENT_DEADWOOD_START - progress * OPPONENT_DEADWOOD_DECAY, OPPONENT_DEADWOOD_FLOOR)


def card_likely_needed_by_opponent(card: Card, discard_pile: list[Card]) -> bool:
    """
    Guess whether the opponent wants this card.

    Opponents that recently threw away a card of the same rank or suit are
    assumed not to be collecting it. With no recent discards every card is
    treated as wanted.
    """
    recent = discard_pile[-RECENT_DISCARD_WINDOW:]
    return not any(d.rank == card.rank or d.suit == card.suit for d in recent)


def card_completes_obvious_meld(card: Card, hand: list[Card]) -> bool:
    """True if the hand already holds two or more cards of the card's rank."""
    return sum(1 for c in hand if c.rank == card.rank) >= 2


def select_highest_value_card(cards: list[Card]) -> Card:
    """Highest point value; the first one wins ties."""
    best = cards[0]
    for card in cards[1:]:
        if card_value(card) > card_value(best):
            best = card
    return best


def select_lowest_value_card(cards: list[Card]) -> Card:
    best = cards[0]
    for card in cards[1:]:
        if card_value(card) < card_value(best):
            best = card
    return best


def break_least_valuable_meld(melds: list[Meld]) -> Card:
    """Highest card of the meld worth the fewest points."""
    cheapest = min(melds, key=lambda m: m.value())
    return select_highest_value_card(list(cheapest.cards))


def _without(hand: list[Card], card: Card) -> list[Card]:
    return [c for c in hand if c.id != card.id]


def best_discard_for_hand(hand: list[Card]) -> Card:
    """
    Card whose removal leaves the lowest deadwood, with no risk penalty.

    The first card in hand order wins ties.
    """
    best_card = hand[0]
    best_value = None
    for card in hand:
        value = analyze_hand(_without(hand, card)).deadwood_value
        if best_value is None or value < best_value:
            best_card, best_value = card, value
    return best_card


def _unseen_faces(hand: list[Card], view: PublicView) -> set[tuple]:
    seen = {(c.suit, c.rank) for c in hand} | {(c.suit, c.rank) for c in view.discard_pile}
    return _ALL_FACES - seen


def calculate_draw_potential(hand: list[Card], view: PublicView) -> float:
    """
    Weighted count of unseen cards that would pair up deadwood.

    An "out" is an unseen card sharing rank with a deadwood pair, or sitting
    within two ranks of a deadwood card in the same suit. Scaled to
    [0, DRAW_POTENTIAL_WEIGHT].
    """
    deadwood = analyze_hand(hand).deadwood
    unseen = _unseen_faces(hand, view)

    outs = set()
    for suit, rank in unseen:
        same_rank = sum(1 for c in deadwood if c.rank == rank)
        if same_rank >= 2:
            outs.add((suit, rank))
            continue
        value = RANK_SORT_VALUES[rank]
        if any(c.suit == suit and 0 < abs(sort_value(c) - value) <= 2 for c in deadwood):
            outs.add((suit, rank))

    return DRAW_POTENTIAL_WEIGHT * min(len(outs), DRAW_POTENTIAL_OUTS_CAP) / DRAW_POTENTIAL_OUTS_CAP


def calculate_game_state_bonus(card: Card, view: PublicView) -> float:
    """
    Late in the game, favour throwing away high cards.

    Returns a score addition in [0, GAME_STATE_WEIGHT); lower is better.
    """
    progress = estimate_game_progress(view)
    return GAME_STATE_WEIGHT * progress * (10 - card_value(card)) / 10


# =============================================================================
# CPU Profiles
# =============================================================================

@dataclass
class CPUProfile:
    """Pre-defined CPU opponent with a name and skill tier."""
    name: str
    style: str  # Brief description shown to players
    difficulty: AIDifficulty

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "style": self.style,
            "difficulty": self.difficulty.value,
        }


CPU_PROFILES = [
    CPUProfile(name="Sofia", style="Learning the Ropes", difficulty=AIDifficulty.BEGINNER),
    CPUProfile(name="Marcus", style="Steady Eddie", difficulty=AIDifficulty.BEGINNER),
    CPUProfile(name="Priya", style="Careful Collector", difficulty=AIDifficulty.INTERMEDIATE),
    CPUProfile(name="Kenji", style="Late Knocker", difficulty=AIDifficulty.INTERMEDIATE),
    CPUProfile(name="River", style="Card Counter", difficulty=AIDifficulty.ADVANCED),
    CPUProfile(name="Diego", style="Undercut Hunter", difficulty=AIDifficulty.ADVANCED),
    CPUProfile(name="Maya", style="Gin Specialist", difficulty=AIDifficulty.EXPERT),
    CPUProfile(name="Sage", style="Calculated & Patient", difficulty=AIDifficulty.EXPERT),
]


def choose_profile(
    taken: set[str],
    difficulty: Optional[AIDifficulty] = None,
    rng: Optional[random.Random] = None,
) -> Optional[CPUProfile]:
    """
    Pick a random profile whose name is not already seated.

    Args:
        taken: Names already used at the table.
        difficulty: Restrict to one tier, if given.
        rng: Optional random source.
    """
    available = [
        p for p in CPU_PROFILES
        if p.name not in taken and (difficulty is None or p.difficulty == difficulty)
    ]
    if not available:
        return None
    return (rng or random).choice(available)


def get_profile(name: str) -> Optional[CPUProfile]:
    """Look up a profile by its seated name."""
    for profile in CPU_PROFILES:
        if profile.name == name:
            return profile
    return None


def get_all_profiles() -> list[dict]:
    """Get all CPU profiles for display."""
    return [p.to_dict() for p in CPU_PROFILES]


# =============================================================================
# Decisions
# =============================================================================

class GinAI:
    """AI decision-making for Gin Rummy."""

    @staticmethod
    def should_knock(analysis: HandAnalysis, view: PublicView, difficulty: AIDifficulty) -> bool:
        """Knock test for the tier. Never true unless the hand can knock."""
        if not analysis.can_knock:
            return False

        deadwood = analysis.deadwood_value
        progress = estimate_game_progress(view)

        if difficulty == AIDifficulty.BEGINNER:
            return deadwood <= BEGINNER_KNOCK_MAX

        if difficulty == AIDifficulty.INTERMEDIATE:
            if progress > INTERMEDIATE_LATE_PROGRESS:
                return deadwood <= KNOCK_THRESHOLD
            return deadwood <= INTERMEDIATE_KNOCK_MAX

        if difficulty == AIDifficulty.ADVANCED:
            return deadwood < estimate_opponent_deadwood(view) - ADVANCED_KNOCK_MARGIN

        # Expert
        if progress < EXPERT_EARLY_PROGRESS:
            return deadwood <= EXPERT_EARLY_KNOCK_MAX
        if progress < EXPERT_MID_PROGRESS:
            return deadwood < estimate_opponent_deadwood(view) - EXPERT_MID_KNOCK_MARGIN
        return deadwood <= EXPERT_LATE_KNOCK_MAX

    @staticmethod
    def should_take_discard(hand: list[Card], view: PublicView, difficulty: AIDifficulty) -> bool:
        """Decide between the discard-pile top and a blind deck draw."""
        top = view.discard_top
        if top is None:
            return False

        if difficulty == AIDifficulty.BEGINNER:
            return card_completes_obvious_meld(top, hand)

        # Simulate taking it and throwing away the best card afterwards
        current = analyze_hand(hand).deadwood_value
        test_hand = hand + [top]
        follow_up = best_discard_for_hand(test_hand)
        after = analyze_hand(_without(test_hand, follow_up)).deadwood_value
        ai_log(f"  discard {top}: deadwood {current} -> {after} (would throw {follow_up})")
        return after < current

    @staticmethod
    def decide_action(
        player: Player, view: PublicView, difficulty: Optional[AIDifficulty] = None
    ) -> GameAction:
        """
        Choose the start-of-turn action: gin, knock, or a draw.

        Gin is always taken when available, whatever the tier. A draw from
        the discard pile names the top card so the processor can check it.
        """
        difficulty = difficulty or player.difficulty or AIDifficulty.BEGINNER
        analysis = analyze_hand(player.cards)

        if analysis.can_gin:
            ai_log(f"{player.name} ({difficulty.value}): GIN")
            return GameAction(type=ActionType.GIN.value, player_id=player.id)

        if GinAI.should_knock(analysis, view, difficulty):
            ai_log(f"{player.name} ({difficulty.value}): knock with {analysis.deadwood_value}")
            return GameAction(type=ActionType.KNOCK.value, player_id=player.id)

        if GinAI.should_take_discard(player.cards, view, difficulty):
            ai_log(f"{player.name} ({difficulty.value}): take {view.discard_top} from discard")
            return GameAction(type=ActionType.DRAW.value, player_id=player.id, card=view.discard_top)

        ai_log(f"{player.name} ({difficulty.value}): draw from deck")
        return GameAction(type=ActionType.DRAW.value, player_id=player.id)

    @staticmethod
    def _beginner_discard(hand: list[Card]) -> Card:
        analysis = analyze_hand(hand)
        if analysis.deadwood:
            return select_highest_value_card(analysis.deadwood)
        return select_lowest_value_card(hand)

    @staticmethod
    def _intermediate_discard(hand: list[Card], view: PublicView) -> Card:
        """
        Highest safe deadwood card, else highest deadwood, else a meld breaker.

        A card is safe when a recent discard shares its rank or
        suit (see card_likely_needed_by_opponent).
        """
        analysis = analyze_hand(hand)
        if analysis.deadwood:
            safe = [
                c for c in analysis.deadwood
                if not card_likely_needed_by_opponent(c, view.discard_pile)
            ]
            if safe:
                return select_highest_value_card(safe)
            return select_highest_value_card(analysis.deadwood)
        return break_least_valuable_meld(analysis.melds)

    @staticmethod
    def _scored_discard(hand: list[Card], view: PublicView, expert: bool) -> Card:
        """Try every removal and keep the lowest score (first wins ties)."""
        penalty = EXPERT_NEED_PENALTY if expert else ADVANCED_NEED_PENALTY
        best_card = hand[0]
        best_score = None

        for card in hand:
            remaining = _without(hand, card)
            score: float = analyze_hand(remaining).deadwood_value
            if card_likely_needed_by_opponent(card, view.discard_pile):
                score += penalty
            if expert:
                score -= calculate_draw_potential(remaining, view)
                score += calculate_game_state_bonus(card, view)
            if best_score is None or score < best_score:
                best_card, best_score = card, score

        ai_log(f"  scored discard: {best_card} ({best_score:.2f})")
        return best_card

    @staticmethod
    def decide_discard(
        player: Player, view: PublicView, difficulty: Optional[AIDifficulty] = None
    ) -> GameAction:
        """Choose which card to throw away after drawing."""
        difficulty = difficulty or player.difficulty or AIDifficulty.BEGINNER
        hand = list(player.cards)

        if difficulty == AIDifficulty.BEGINNER:
            card = GinAI._beginner_discard(hand)
        elif difficulty == AIDifficulty.INTERMEDIATE:
            card = GinAI._intermediate_discard(hand, view)
        elif difficulty == AIDifficulty.ADVANCED:
            card = GinAI._scored_discard(hand, view, expert=False)
        else:
            card = GinAI._scored_discard(hand, view, expert=True)

        ai_log(f"{player.name} ({difficulty.value}): discard {card}")
        return GameAction(type=ActionType.DISCARD.value, player_id=player.id, card=card)


def get_thinking_time(base: float, rng: Optional[random.Random] = None) -> float:
    """Jittered delay for one CPU step."""
    low, high = CPU_TIMING["jitter"]
    return base * (rng or random).uniform(low, high)
