"""
Scoring rules for the end of a Gin Rummy session.

Two ways a session is scored:
    - Knock / gin: score_knock() compares the knocker's deadwood with one
      opponent's deadwood.
    - Deck exhaustion: score_deck_exhaustion() compares every player's
      deadwood; the lowest value wins and ties share the win.

Both are pure functions of deadwood totals (or hands), with no game state.
"""

import math
from dataclasses import dataclass

from constants import GIN_BONUS, UNDERCUT_BONUS
from game import Card
from melds import analyze_hand


@dataclass(frozen=True)
class KnockScore:
    """Points awarded by a two-party knock or gin."""

    knocker_score: int
    opponent_score: int
    undercut: bool


@dataclass(frozen=True)
class DeadwoodResult:
    """One player's outcome when the deck runs out."""

    player_id: str
    deadwood_value: int
    award: int
    is_winner: bool


def score_knock(knocker_deadwood: int, opponent_deadwood: int) -> KnockScore:
    """
    Score a knock (or gin, when the knocker has no deadwood).

    Rules:
        gin       knocker gets opponent deadwood + GIN_BONUS
        undercut  opponent deadwood <= knocker's: opponent gets the
                  difference + UNDERCUT_BONUS, knocker gets nothing
        knock     knocker gets the difference

    Examples:
        score_knock(0, 14) -> KnockScore(39, 0, False)
        score_knock(8, 5)  -> KnockScore(0, 28, True)
        score_knock(6, 14) -> KnockScore(8, 0, False)
    """
    if knocker_deadwood == 0:
        return KnockScore(
            knocker_score=opponent_deadwood + GIN_BONUS,
            opponent_score=0,
            undercut=False,
        )

    if opponent_deadwood <= knocker_deadwood:
        return KnockScore(
            knocker_score=0,
            opponent_score=(knocker_deadwood - opponent_deadwood) + UNDERCUT_BONUS,
            undercut=True,
        )

    return KnockScore(
        knocker_score=opponent_deadwood - knocker_deadwood,
        opponent_score=0,
        undercut=False,
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def score_deck_exhaustion(players: list[tuple[str, list[Card]]]) -> list[DeadwoodResult]:
    """
    Score a session that ended because the deck ran out.

    Every player achieving the minimum deadwood value is a winner. Each
    winner is awarded the average deadwood of the other players minus their
    own, rounded half up and floored at 0; everyone else gets 0.

    Args:
        players: (player_id, hand) pairs in seat order.

    Returns:
        One DeadwoodResult per player, in the same order.
    """
    values = [(player_id, analyze_hand(hand).deadwood_value) for player_id, hand in players]
    if not values:
        return []

    winning_value = min(v for _, v in values)
    results = []
    for index, (player_id, value) in enumerate(values):
        is_winner = value == winning_value
        award = 0
        others = [v for i, (_, v) in enumerate(values) if i != index]
        if is_winner and others:
            award = max(0, _round_half_up(sum(others) / len(others) - value))
        results.append(DeadwoodResult(
            player_id=player_id,
            deadwood_value=value,
            award=award,
            is_winner=is_winner,
        ))
    return results
