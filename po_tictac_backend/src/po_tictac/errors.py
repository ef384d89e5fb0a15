"""
PoTicTac error hierarchy.

All engine errors inherit from TicTacError so the HTTP layer can map them
to status codes in one place.

Usage:
    from .errors import IllegalMoveError

    try:
        state = apply_move(state, move)
    except IllegalMoveError as e:
        logger.warning("Rejected move: %s", e.message)
"""

from typing import Any, Dict, Optional

__all__ = [
    "IllegalMoveError",
    "InvalidBoardError",
    "NoLegalMoveError",
    "NotYourTurnError",
    "PlayerNotFoundError",
    "SessionClosedError",
    "SessionNotFoundError",
    "TicTacError",
    "UnknownDifficultyError",
]


class TicTacError(Exception):
    """Base exception for all PoTicTac errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "TICTAC_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Game Rules Errors
# =============================================================================


class IllegalMoveError(TicTacError):
    """Move targets an occupied or out-of-bounds cell, or carries the wrong mark.

    Recoverable: the session keeps its state and the caller re-prompts.
    """
    code: str = "ILLEGAL_MOVE"


class NotYourTurnError(IllegalMoveError):
    """A move was submitted by someone other than the current turn owner."""
    code: str = "NOT_YOUR_TURN"


class NoLegalMoveError(TicTacError):
    """AI strategy was asked to move on a terminal board.

    This is a caller bug, not a user error.
    """
    code: str = "NO_LEGAL_MOVE"


class UnknownDifficultyError(TicTacError):
    """Requested AI difficulty is not one of the known variants."""
    code: str = "UNKNOWN_DIFFICULTY"


class InvalidBoardError(TicTacError):
    """Board dimensions or a board layout are not valid."""
    code: str = "INVALID_BOARD"


# =============================================================================
# Session / Statistics Errors
# =============================================================================


class SessionNotFoundError(TicTacError):
    code: str = "SESSION_NOT_FOUND"


class SessionClosedError(TicTacError):
    """The session was torn down and accepts no further input."""
    code: str = "SESSION_CLOSED"


class PlayerNotFoundError(TicTacError):
    code: str = "PLAYER_NOT_FOUND"
