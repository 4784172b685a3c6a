"""
Test suite for CPU decision making in ai.py.

Covers:
- Gin is always taken, at every tier
- Knock thresholds per tier and game progress
- should_take_discard(): beginner pattern match vs simulated improvement
- Discard policies per tier
- Scored discards never increase deadwood beyond the best removal
- Expert adjustment bounds
- Profile selection

Run with: pytest test_ai_decisions.py -v
"""

import random

import pytest
from game import AIDifficulty, Card, Player, Rank, Suit, create_deck
from ai import (
    CPU_PROFILES, CPU_TIMING, DRAW_POTENTIAL_WEIGHT, GAME_STATE_WEIGHT,
    GinAI, PublicView,
    calculate_draw_potential, calculate_game_state_bonus,
    card_completes_obvious_meld, card_likely_needed_by_opponent,
    choose_profile, estimate_game_progress, estimate_opponent_deadwood,
    get_all_profiles, get_thinking_time,
)
from melds import analyze_hand

SUITS = {"c": Suit.CLUBS, "d": Suit.DIAMONDS, "h": Suit.HEARTS, "s": Suit.SPADES}


# =============================================================================
# Helpers
# =============================================================================

def card(face: str) -> Card:
    return Card(SUITS[face[-1]], Rank(face[:-1]))


def hand(*faces: str) -> list[Card]:
    return [card(s) for s in faces]


# Three ten-point melds; one extra low spade (or Qc) becomes the only deadwood
MELDED = ["Kc", "Kd", "Kh", "9h", "10h", "Jh", "10d", "Jd", "Qd"]

DEADWOOD_CARD = {1: "As", 2: "2s", 3: "3s", 4: "4s", 5: "5s", 6: "6s", 7: "7s", 8: "8s", 9: "9s", 10: "Qc"}


def with_deadwood(value: int) -> list[Card]:
    cards = hand(*MELDED, DEADWOOD_CARD[value])
    assert analyze_hand(cards).deadwood_value == value
    return cards


def make_player(cards: list[Card], difficulty: AIDifficulty = AIDifficulty.BEGINNER) -> Player:
    return Player(id="cpu", name="Bot", cards=cards, is_cpu=True, difficulty=difficulty)


def view(deck_remaining: int = 31, discard: tuple = ()) -> PublicView:
    return PublicView(deck_remaining=deck_remaining, discard_pile=hand(*discard))


GIN_HAND = ["3c", "3d", "3h", "7s", "7d", "7c", "9h", "10h", "Jh", "Qh"]


# =============================================================================
# Public Heuristics
# =============================================================================

class TestHeuristics:

    def test_progress_bounds(self):
        assert estimate_game_progress(view(52)) == 0.0
        assert estimate_game_progress(view(0)) == 1.0

    def test_opponent_estimate_shrinks(self):
        assert estimate_opponent_deadwood(view(52)) == 20
        assert estimate_opponent_deadwood(view(31)) == pytest.approx(20 - 15 * 21 / 52)
        assert estimate_opponent_deadwood(view(0)) == 5

    def test_every_card_needed_with_no_discards(self):
        assert card_likely_needed_by_opponent(card("Qh"), [])

    def test_recent_same_suit_discard_is_safe(self):
        assert not card_likely_needed_by_opponent(card("Qh"), hand("5h"))

    def test_recent_same_rank_discard_is_safe(self):
        assert not card_likely_needed_by_opponent(card("Qh"), hand("Qc"))

    def test_only_recent_discards_count(self):
        pile = hand("5h", "2c", "3c", "4c", "5c", "6c")
        assert card_likely_needed_by_opponent(card("Qh"), pile)

    def test_obvious_meld(self):
        cards = hand("7s", "7d", "2c")
        assert card_completes_obvious_meld(card("7h"), cards)
        assert not card_completes_obvious_meld(card("2d"), cards)


# =============================================================================
# Gin / Knock
# =============================================================================

class TestGinAlwaysTaken:

    @pytest.mark.parametrize("difficulty", list(AIDifficulty))
    def test_gin_hand(self, difficulty):
        player = make_player(hand(*GIN_HAND), difficulty)
        for deck_remaining in (40, 31, 5):
            action = GinAI.decide_action(player, view(deck_remaining, ("Ac",)))
            assert action.type == "gin"
            assert action.player_id == "cpu"


class TestKnockThresholds:

    def knocks(self, value: int, difficulty: AIDifficulty, deck_remaining: int) -> bool:
        analysis = analyze_hand(with_deadwood(value))
        return GinAI.should_knock(analysis, view(deck_remaining), difficulty)

    def test_beginner(self):
        assert self.knocks(8, AIDifficulty.BEGINNER, 31)
        assert not self.knocks(9, AIDifficulty.BEGINNER, 31)

    def test_intermediate_early(self):
        assert self.knocks(5, AIDifficulty.INTERMEDIATE, 31)
        assert not self.knocks(6, AIDifficulty.INTERMEDIATE, 31)

    def test_intermediate_late_uses_full_threshold(self):
        assert self.knocks(10, AIDifficulty.INTERMEDIATE, 10)

    def test_advanced_compares_with_opponent_estimate(self):
        # deck 31: estimate ~13.94, knock below ~8.94
        assert self.knocks(8, AIDifficulty.ADVANCED, 31)
        assert not self.knocks(9, AIDifficulty.ADVANCED, 31)

    def test_expert_early(self):
        assert self.knocks(3, AIDifficulty.EXPERT, 40)
        assert not self.knocks(4, AIDifficulty.EXPERT, 40)

    def test_expert_mid(self):
        # deck 31: estimate ~13.94, knock below ~5.94
        assert self.knocks(5, AIDifficulty.EXPERT, 31)
        assert not self.knocks(6, AIDifficulty.EXPERT, 31)

    def test_expert_late(self):
        assert self.knocks(7, AIDifficulty.EXPERT, 10)
        assert not self.knocks(8, AIDifficulty.EXPERT, 10)

    @pytest.mark.parametrize("difficulty", list(AIDifficulty))
    def test_never_knocks_above_threshold(self, difficulty):
        analysis = analyze_hand(hand(*MELDED, "Qc", "As"))
        assert analysis.deadwood_value == 11
        for deck_remaining in (45, 31, 2):
            assert not GinAI.should_knock(analysis, view(deck_remaining), difficulty)

    def test_decide_action_knocks(self):
        player = make_player(with_deadwood(2), AIDifficulty.BEGINNER)
        assert GinAI.decide_action(player, view()).type == "knock"


# =============================================================================
# Draw Source
# =============================================================================

# Deadwood 58: 5s 6s Kc Qd Jh 9c 8d
DRAW_HAND = ["3c", "3d", "3h", "5s", "6s", "Kc", "Qd", "Jh", "9c", "8d"]


class TestTakeDiscard:

    def test_beginner_takes_set_completer(self):
        cards = hand("Kc", "Kd", "Kh", "10d", "Jd", "Qd", "9c", "9d", "2s", "4c")
        assert GinAI.should_take_discard(cards, view(discard=("9h",)), AIDifficulty.BEGINNER)

    def test_beginner_ignores_run_completer(self):
        cards = hand(*DRAW_HAND)
        assert not GinAI.should_take_discard(cards, view(discard=("7s",)), AIDifficulty.BEGINNER)

    @pytest.mark.parametrize("difficulty", [
        AIDifficulty.INTERMEDIATE, AIDifficulty.ADVANCED, AIDifficulty.EXPERT,
    ])
    def test_takes_card_that_lowers_deadwood(self, difficulty):
        cards = hand(*DRAW_HAND)
        assert analyze_hand(cards).deadwood_value == 58
        assert GinAI.should_take_discard(cards, view(discard=("7s",)), difficulty)

    @pytest.mark.parametrize("difficulty", [
        AIDifficulty.INTERMEDIATE, AIDifficulty.ADVANCED, AIDifficulty.EXPERT,
    ])
    def test_skips_card_that_does_not_help(self, difficulty):
        cards = hand(*DRAW_HAND)
        assert not GinAI.should_take_discard(cards, view(discard=("Kh",)), difficulty)

    def test_empty_discard_pile(self):
        cards = hand(*DRAW_HAND)
        assert not GinAI.should_take_discard(cards, view(), AIDifficulty.EXPERT)

    def test_decide_action_names_discard_top(self):
        player = make_player(hand(*DRAW_HAND), AIDifficulty.ADVANCED)
        public = view(discard=("Ah", "7s"))
        action = GinAI.decide_action(player, public)
        assert action.type == "draw"
        assert action.card == public.discard_top

    def test_decide_action_deck_draw(self):
        player = make_player(hand(*DRAW_HAND), AIDifficulty.ADVANCED)
        action = GinAI.decide_action(player, view(discard=("Kh",)))
        assert action.type == "draw"
        assert action.card is None


# =============================================================================
# Discard Policies
# =============================================================================

class TestDiscardPolicies:

    def test_beginner_throws_highest_deadwood(self):
        player = make_player(hand(*MELDED, "2s", "Qc"), AIDifficulty.BEGINNER)
        action = GinAI.decide_discard(player, view())
        assert action.type == "discard"
        assert action.card.same_face(card("Qc"))

    def test_intermediate_prefers_safe_card(self):
        cards = hand("3c", "3d", "3h", "7s", "7d", "7c", "9s", "10s", "Js", "Qh", "Kc")
        player = make_player(cards, AIDifficulty.INTERMEDIATE)
        assert GinAI.decide_discard(player, view(discard=("5h",))).card.same_face(card("Qh"))
        assert GinAI.decide_discard(player, view(discard=("5c",))).card.same_face(card("Kc"))

    def test_intermediate_breaks_cheapest_meld(self):
        cards = hand("Ac", "2c", "3c", "4d", "4h", "4s", "5s", "6s", "7s", "8s", "9s")
        player = make_player(cards, AIDifficulty.INTERMEDIATE)
        assert GinAI.decide_discard(player, view()).card.same_face(card("3c"))

    def test_advanced_avoids_card_opponent_wants(self):
        # Kc and Qh both leave the same deadwood; only Qh shares a suit with
        # the recent discards
        cards = hand("3c", "3d", "3h", "7s", "7d", "7c", "9s", "10s", "Js", "Kc", "Qh")
        player = make_player(cards, AIDifficulty.ADVANCED)
        assert GinAI.decide_discard(player, view(discard=("5h",))).card.same_face(card("Qh"))

    @pytest.mark.parametrize("difficulty", list(AIDifficulty))
    def test_discard_comes_from_hand(self, difficulty):
        deck = create_deck()
        random.Random(3).shuffle(deck)
        player = make_player(deck[:11], difficulty)
        action = GinAI.decide_discard(player, view(20, tuple()))
        assert player.has_card_id(action.card.id)


class TestScoredDiscardMonotonic:
    """With no card flagged as wanted, advanced and expert pick a best removal."""

    @pytest.mark.parametrize("difficulty", [AIDifficulty.ADVANCED, AIDifficulty.EXPERT])
    def test_random_hands(self, difficulty):
        for seed in range(25):
            deck = create_deck()
            random.Random(seed).shuffle(deck)
            cards = deck[:11]

            # One discard of each suit makes every card look safe
            pile = []
            for suit in Suit:
                pile.append(next(c for c in deck[11:] if c.suit == suit and c not in pile))
            public = PublicView(deck_remaining=52 - 11 - len(pile), discard_pile=pile)

            player = make_player(cards, difficulty)
            chosen = GinAI.decide_discard(player, public).card

            best = min(
                analyze_hand([c for c in cards if c.id != other.id]).deadwood_value
                for other in cards
            )
            after = analyze_hand([c for c in cards if c.id != chosen.id]).deadwood_value
            assert after == best, f"seed {seed}: {chosen} left {after}, best {best}"


class TestExpertAdjustments:

    def test_bounds(self):
        for seed in range(20):
            rng = random.Random(seed)
            deck = create_deck()
            rng.shuffle(deck)
            public = PublicView(deck_remaining=rng.randint(0, 31), discard_pile=deck[10:13])
            cards = deck[:10]

            potential = calculate_draw_potential(cards, public)
            assert 0 <= potential <= DRAW_POTENTIAL_WEIGHT
            for c in cards:
                bonus = calculate_game_state_bonus(c, public)
                assert 0 <= bonus < GAME_STATE_WEIGHT

    def test_adjustments_below_one_point(self):
        assert DRAW_POTENTIAL_WEIGHT + GAME_STATE_WEIGHT < 1

    def test_game_state_bonus_favours_high_cards_late(self):
        late = view(5)
        assert calculate_game_state_bonus(card("Kc"), late) == 0
        assert calculate_game_state_bonus(card("2c"), late) > 0

    def test_draw_potential_zero_for_gin(self):
        assert calculate_draw_potential(hand(*GIN_HAND), view()) == 0


# =============================================================================
# Profiles and Timing
# =============================================================================

class TestProfiles:

    def test_two_profiles_per_tier(self):
        for difficulty in AIDifficulty:
            assert sum(1 for p in CPU_PROFILES if p.difficulty == difficulty) == 2

    def test_choose_skips_taken_names(self):
        taken = {p.name for p in CPU_PROFILES[1:]}
        assert choose_profile(taken).name == CPU_PROFILES[0].name

    def test_choose_by_difficulty(self):
        rng = random.Random(1)
        for _ in range(10):
            profile = choose_profile(set(), AIDifficulty.EXPERT, rng)
            assert profile.difficulty == AIDifficulty.EXPERT

    def test_none_left(self):
        assert choose_profile({p.name for p in CPU_PROFILES}) is None

    def test_profiles_for_display(self):
        profiles = get_all_profiles()
        assert len(profiles) == len(CPU_PROFILES)
        assert set(profiles[0]) == {"name", "style", "difficulty"}

    def test_thinking_time_jitter(self):
        low, high = CPU_TIMING["jitter"]
        for seed in range(10):
            delay = get_thinking_time(1.0, random.Random(seed))
            assert low <= delay <= high
