"""
Meld analysis for Gin Rummy hands.

Given a hand, find the non-overlapping sets and runs that leave the least
deadwood. The public entry point is analyze_hand(); everything else is a
building block it (and the AI) can reuse.

Search strategy:
    1. Candidate sets: every 3..n sub-combination of each same-rank group.
    2. Candidate runs: every consecutive slice (length >= 3) of each suit.
    3. Walk the power set of candidates, pruning any branch where two melds
       share a card, and keep the combination with the lowest deadwood.

The walk is exponential in the number of candidates. A 10-11 card hand
produces at most a few dozen candidates, which keeps it fast, but a hand of
11 consecutive cards in one suit already yields 45 runs. The search sits
behind analyze_hand() so it can be replaced by a bitmask DP over the hand's
cards without changing any caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations

from constants import KNOCK_THRESHOLD, MIN_MELD_SIZE
from game import Card, card_value, sort_cards, sort_value


class MeldKind(str, Enum):
    SET = "set"
    RUN = "run"


@dataclass(frozen=True)
class Meld:
    """A set or run of at least three cards."""

    kind: MeldKind
    cards: tuple[Card, ...]

    def value(self) -> int:
        return deadwood_value(self.cards)

    def card_ids(self) -> frozenset[str]:
        return frozenset(c.id for c in self.cards)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "cards": [c.to_dict() for c in self.cards]}


@dataclass
class HandAnalysis:
    """
    Best partition of a hand into melds and deadwood.

    Attributes:
        melds: Non-overlapping melds chosen by the search.
        deadwood: Cards left over.
        deadwood_value: Sum of deadwood point values.
        can_knock: deadwood_value <= KNOCK_THRESHOLD.
        can_gin: deadwood_value == 0.
    """

    melds: list[Meld] = field(default_factory=list)
    deadwood: list[Card] = field(default_factory=list)
    deadwood_value: int = 0
    can_knock: bool = False
    can_gin: bool = False

    def to_dict(self) -> dict:
        return {
            "melds": [m.to_dict() for m in self.melds],
            "deadwood": [c.to_dict() for c in self.deadwood],
            "deadwood_value": self.deadwood_value,
            "can_knock": self.can_knock,
            "can_gin": self.can_gin,
        }


def deadwood_value(cards) -> int:
    """Sum of point values of the given cards."""
    return sum(card_value(c) for c in cards)


def is_set(cards: list[Card]) -> bool:
    """Three or more cards of one rank, all different suits."""
    if len(cards) < MIN_MELD_SIZE:
        return False
    rank = cards[0].rank
    return all(c.rank == rank for c in cards) and len({c.suit for c in cards}) == len(cards)


def is_run(cards: list[Card]) -> bool:
    """Three or more cards of one suit with consecutive sort values (Ace low)."""
    if len(cards) < MIN_MELD_SIZE:
        return False
    suit = cards[0].suit
    if any(c.suit != suit for c in cards):
        return False
    values = sorted(sort_value(c) for c in cards)
    return all(b == a + 1 for a, b in zip(values, values[1:]))


def _group_by(cards: list[Card], key) -> dict:
    groups: dict = {}
    for card in cards:
        groups.setdefault(key(card), []).append(card)
    return groups


def find_all_sets(cards: list[Card]) -> list[Meld]:
    """Every same-rank combination of size 3..group size."""
    sets = []
    for group in _group_by(cards, lambda c: c.rank).values():
        if len(group) < MIN_MELD_SIZE:
            continue
        for size in range(MIN_MELD_SIZE, len(group) + 1):
            for combo in combinations(group, size):
                sets.append(Meld(MeldKind.SET, tuple(combo)))
    return sets


def find_all_runs(cards: list[Card]) -> list[Meld]:
    """Every contiguous slice of length >= 3 forming a run within one suit."""
    runs = []
    for group in _group_by(cards, lambda c: c.suit).values():
        if len(group) < MIN_MELD_SIZE:
            continue
        ordered = sorted(group, key=sort_value)
        for start in range(len(ordered) - MIN_MELD_SIZE + 1):
            for end in range(start + MIN_MELD_SIZE, len(ordered) + 1):
                window = ordered[start:end]
                if sort_value(window[-1]) - sort_value(window[-2]) != 1:
                    # a gap here also breaks every longer window from this start
                    break
                if is_run(window):
                    runs.append(Meld(MeldKind.RUN, tuple(window)))
    return runs


def find_candidate_melds(cards: list[Card]) -> list[Meld]:
    """All candidate sets followed by all candidate runs."""
    return find_all_sets(cards) + find_all_runs(cards)


def _best_meld_combination(
    cards: list[Card], candidates: list[Meld]
) -> tuple[list[Meld], list[Card]]:
    """
    Exhaustive search over non-overlapping candidate combinations.

    Starts from the no-meld baseline, so a hand without melds returns the
    whole hand as deadwood. The first combination reaching the minimum wins.
    """
    candidate_ids = [m.card_ids() for m in candidates]
    covered_value = [m.value() for m in candidates]
    total = deadwood_value(cards)

    best_saved = 0
    best_combo: list[int] = []

    def search(index: int, used: frozenset, saved: int, chosen: list[int]) -> None:
        nonlocal best_saved, best_combo
        if saved > best_saved:
            best_saved = saved
            best_combo = list(chosen)
        for i in range(index, len(candidates)):
            if used.isdisjoint(candidate_ids[i]):
                chosen.append(i)
                search(i + 1, used | candidate_ids[i], saved + covered_value[i], chosen)
                chosen.pop()

    if total > 0:
        search(0, frozenset(), 0, [])

    melds = [candidates[i] for i in best_combo]
    used_ids = set()
    for meld in melds:
        used_ids.update(meld.card_ids())
    deadwood = [c for c in cards if c.id not in used_ids]
    return melds, deadwood


def analyze_hand(cards: list[Card]) -> HandAnalysis:
    """
    Find the meld partition of a hand with the lowest deadwood value.

    Pure and deterministic: the hand is normalised with sort_cards() first,
    so input order never changes the result.

    Args:
        cards: The hand to analyze (any size, including empty).

    Returns:
        HandAnalysis with melds, deadwood and the knock/gin flags.
    """
    ordered = sort_cards(cards)
    melds, deadwood = _best_meld_combination(ordered, find_candidate_melds(ordered))
    value = deadwood_value(deadwood)
    return HandAnalysis(
        melds=melds,
        deadwood=deadwood,
        deadwood_value=value,
        can_knock=value <= KNOCK_THRESHOLD,
        can_gin=value == 0,
    )
