"""
Test suite for meld analysis.

Covers:
- Set and run recognition (Ace low, no wrap-around)
- Candidate generation for sets and runs
- Best partition choice when melds compete for a card
- Partition property over random hands
- Gin / knock flags

Run with: pytest test_melds.py -v
"""

import random

from game import Card, Rank, Suit, create_deck
from melds import (
    MeldKind, analyze_hand, deadwood_value, find_all_runs, find_all_sets,
    is_run, is_set,
)

SUITS = {"c": Suit.CLUBS, "d": Suit.DIAMONDS, "h": Suit.HEARTS, "s": Suit.SPADES}


def card(face: str) -> Card:
    """Build a card from a short code like '10h' or 'Qs'."""
    return Card(SUITS[face[-1]], Rank(face[:-1]))


def hand(*faces: str) -> list[Card]:
    return [card(s) for s in faces]


# =============================================================================
# Meld Recognition
# =============================================================================

class TestMeldRecognition:

    def test_set_of_three(self):
        assert is_set(hand("7c", "7d", "7h"))

    def test_set_needs_distinct_suits(self):
        assert not is_set([card("7c"), card("7c"), card("7h")])

    def test_two_cards_never_meld(self):
        assert not is_set(hand("7c", "7d"))
        assert not is_run(hand("7c", "8c"))

    def test_run_same_suit_consecutive(self):
        assert is_run(hand("9h", "10h", "Jh", "Qh"))

    def test_run_any_order(self):
        assert is_run(hand("Jh", "9h", "10h"))

    def test_run_mixed_suits_rejected(self):
        assert not is_run(hand("9h", "10h", "Js"))

    def test_ace_low_run(self):
        assert is_run(hand("Ac", "2c", "3c"))

    def test_no_wrap_around(self):
        assert not is_run(hand("Qc", "Kc", "Ac"))


# =============================================================================
# Candidate Generation
# =============================================================================

class TestCandidates:

    def test_four_of_a_kind_yields_five_sets(self):
        sets = find_all_sets(hand("8c", "8d", "8h", "8s"))
        assert len(sets) == 5
        assert all(m.kind == MeldKind.SET for m in sets)

    def test_five_card_run_yields_six_runs(self):
        runs = find_all_runs(hand("3s", "4s", "5s", "6s", "7s"))
        assert len(runs) == 6

    def test_gap_splits_runs(self):
        runs = find_all_runs(hand("3s", "4s", "6s", "7s", "8s"))
        assert len(runs) == 1
        assert [c.rank for c in runs[0].cards] == [Rank.SIX, Rank.SEVEN, Rank.EIGHT]

    def test_no_candidates_in_scattered_hand(self):
        scattered = hand("2c", "5d", "9h", "Ks")
        assert find_all_sets(scattered) == []
        assert find_all_runs(scattered) == []


# =============================================================================
# Hand Analysis
# =============================================================================

class TestAnalyzeHand:

    def test_gin_hand(self):
        gin = hand("3c", "3d", "3h", "7s", "7d", "7c", "9h", "10h", "Jh", "Qh")
        analysis = analyze_hand(gin)
        assert analysis.deadwood_value == 0
        assert analysis.deadwood == []
        assert analysis.can_gin
        assert analysis.can_knock

    def test_gin_plus_unmatched_low_card(self):
        cards = hand("3c", "3d", "3h", "7s", "7d", "7c", "9h", "10h", "Jh", "Qh", "2c")
        analysis = analyze_hand(cards)
        assert analysis.deadwood_value == 2
        assert analysis.can_knock
        assert not analysis.can_gin

    def test_no_melds_returns_whole_hand(self):
        cards = hand("2c", "5d", "9h", "Ks", "Jc")
        analysis = analyze_hand(cards)
        assert analysis.melds == []
        assert len(analysis.deadwood) == 5
        assert analysis.deadwood_value == 2 + 5 + 9 + 10 + 10
        assert not analysis.can_knock

    def test_empty_hand(self):
        analysis = analyze_hand([])
        assert analysis.deadwood_value == 0
        assert analysis.melds == []

    def test_prefers_run_over_competing_set(self):
        # 7s belongs to either the set of sevens or the spade run; the run
        # leaves 7d+7c (14) as deadwood, the set leaves 8s+9s (17)
        cards = hand("7s", "7d", "7c", "8s", "9s")
        analysis = analyze_hand(cards)
        assert analysis.deadwood_value == 14
        assert analysis.melds[0].kind == MeldKind.RUN

    def test_four_of_kind_shares_card_with_run(self):
        # 8s+8d+8h set and 6s-7s-8s run can't both use 8s; four eights give
        # the set a spare, so both melds fit
        cards = hand("8c", "8d", "8h", "8s", "6s", "7s")
        analysis = analyze_hand(cards)
        assert analysis.deadwood_value == 0

    def test_knock_threshold_boundary(self):
        ten = analyze_hand(hand("3c", "3d", "3h", "Kc"))
        eleven = analyze_hand(hand("3c", "3d", "3h", "Kc", "Ad"))
        assert ten.deadwood_value == 10 and ten.can_knock
        assert eleven.deadwood_value == 11 and not eleven.can_knock

    def test_input_order_does_not_matter(self):
        cards = hand("4h", "5h", "6h", "6c", "6d", "Ks", "Qs", "2c", "9d", "9s")
        reversed_value = analyze_hand(list(reversed(cards))).deadwood_value
        assert analyze_hand(cards).deadwood_value == reversed_value

    def test_to_dict(self):
        data = analyze_hand(hand("3c", "3d", "3h", "Kc")).to_dict()
        assert data["deadwood_value"] == 10
        assert data["melds"][0]["kind"] == "set"


class TestPartitionProperty:
    """Every card lands in exactly one meld or in deadwood."""

    def test_random_hands_partition(self):
        for seed in range(40):
            rng = random.Random(seed)
            deck = create_deck()
            rng.shuffle(deck)
            cards = deck[:11]

            analysis = analyze_hand(cards)
            meld_ids = [c.id for m in analysis.melds for c in m.cards]
            deadwood_ids = [c.id for c in analysis.deadwood]

            assert len(meld_ids) == len(set(meld_ids)), f"seed {seed}: overlapping melds"
            assert sorted(meld_ids + deadwood_ids) == sorted(c.id for c in cards)
            assert analysis.deadwood_value == deadwood_value(analysis.deadwood)
            for meld in analysis.melds:
                assert is_set(list(meld.cards)) or is_run(list(meld.cards))
