"""
Test suite for knock, gin and deck-exhaustion scoring.

Run with: pytest test_scoring.py -v
"""

from game import Card, Rank, Suit
from scoring import KnockScore, score_deck_exhaustion, score_knock

SUITS = {"c": Suit.CLUBS, "d": Suit.DIAMONDS, "h": Suit.HEARTS, "s": Suit.SPADES}


def hand(*faces: str) -> list[Card]:
    return [Card(SUITS[s[-1]], Rank(s[:-1])) for s in faces]


# =============================================================================
# Knock / Gin
# =============================================================================

class TestScoreKnock:

    def test_gin(self):
        assert score_knock(0, 14) == KnockScore(knocker_score=39, opponent_score=0, undercut=False)

    def test_undercut(self):
        assert score_knock(8, 5) == KnockScore(knocker_score=0, opponent_score=28, undercut=True)

    def test_plain_knock(self):
        assert score_knock(6, 14) == KnockScore(knocker_score=8, opponent_score=0, undercut=False)

    def test_tie_is_undercut(self):
        result = score_knock(5, 5)
        assert result.undercut
        assert result.opponent_score == 25
        assert result.knocker_score == 0

    def test_gin_cannot_be_undercut(self):
        result = score_knock(0, 0)
        assert not result.undercut
        assert result.knocker_score == 25


# =============================================================================
# Deck Exhaustion
# =============================================================================

class TestScoreDeckExhaustion:

    def test_single_winner_two_players(self):
        results = score_deck_exhaustion([
            ("p0", hand("Kc")),          # 10
            ("p1", hand("Kd", "Qd")),    # 20
        ])
        assert [r.is_winner for r in results] == [True, False]
        assert results[0].award == 10
        assert results[1].award == 0

    def test_tie_shares_win(self):
        results = score_deck_exhaustion([
            ("p0", hand("Kc")),
            ("p1", hand("Kd")),
        ])
        assert all(r.is_winner for r in results)
        assert all(r.award == 0 for r in results)

    def test_award_rounds_half_up(self):
        # winner 4, others 9 and 10: 9.5 - 4 = 5.5 -> 6
        results = score_deck_exhaustion([
            ("p0", hand("Ac", "3d")),
            ("p1", hand("9s")),
            ("p2", hand("10h")),
        ])
        assert results[0].is_winner
        assert results[0].award == 6
        assert results[1].award == results[2].award == 0

    def test_melds_count_before_comparing(self):
        results = score_deck_exhaustion([
            ("p0", hand("5c", "5d", "5h", "Ks")),  # set melds, deadwood 10
            ("p1", hand("6c", "2d")),              # deadwood 8
        ])
        assert results[0].deadwood_value == 10
        assert results[1].is_winner
        assert results[1].award == 2

    def test_one_entry_per_player_in_order(self):
        players = [(f"p{i}", hand("Kc")) for i in range(4)]
        results = score_deck_exhaustion(players)
        assert [r.player_id for r in results] == ["p0", "p1", "p2", "p3"]

    def test_single_player_gets_nothing(self):
        results = score_deck_exhaustion([("p0", hand("Kc"))])
        assert results[0].is_winner
        assert results[0].award == 0

    def test_empty(self):
        assert score_deck_exhaustion([]) == []
