"""
Card and rule constants for Gin Rummy.

This module is the single source of truth for card point values, run
ordering and the knock/gin thresholds. Rule numbers come from config.py
so they can be tuned via environment variables.

Standard Gin scoring:
    - Ace: 1 point
    - 2-10: Face value
    - Jack, Queen, King: 10 points
    - Deadwood <= 10 may knock, deadwood == 0 is gin
"""

from config import config


# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

CARD_POINT_VALUES: dict[str, int] = {
    'A': 1,
    '2': 2,
    '3': 3,
    '4': 4,
    '5': 5,
    '6': 6,
    '7': 7,
    '8': 8,
    '9': 9,
    '10': 10,
    'J': 10,
    'Q': 10,
    'K': 10,
}

# Ace low, King high; used for run detection only, never for scoring
CARD_SORT_VALUES: dict[str, int] = {
    'A': 1,
    '2': 2,
    '3': 3,
    '4': 4,
    '5': 5,
    '6': 6,
    '7': 7,
    '8': 8,
    '9': 9,
    '10': 10,
    'J': 11,
    'Q': 12,
    'K': 13,
}

# Suit display/sort order (clubs, diamonds, hearts, spades)
SUIT_ORDER: dict[str, int] = {
    'clubs': 0,
    'diamonds': 1,
    'hearts': 2,
    'spades': 3,
}


# =============================================================================
# Game Constants
# =============================================================================

DECK_SIZE = 52
MIN_MELD_SIZE = 3

HAND_SIZE = config.rules.HAND_SIZE
KNOCK_THRESHOLD = config.rules.KNOCK_THRESHOLD
GIN_BONUS = config.rules.GIN_BONUS
UNDERCUT_BONUS = config.rules.UNDERCUT_BONUS

MIN_PLAYERS = config.MIN_PLAYERS
MAX_PLAYERS = config.MAX_PLAYERS
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH

