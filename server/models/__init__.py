"""Models package for Gin Rummy wire messages."""

from .messages import (
    CardPayload,
    CreateSessionRequest,
    CreateSessionResponse,
    FinalScorePayload,
    GameActionMessage,
    GameEndedPayload,
    WinnerPayload,
)

__all__ = [
    "CardPayload",
    "GameActionMessage",
    "CreateSessionRequest",
    "CreateSessionResponse",
    "FinalScorePayload",
    "WinnerPayload",
    "GameEndedPayload",
]
