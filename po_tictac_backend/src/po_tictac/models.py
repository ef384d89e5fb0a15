from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional, Literal


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys; accepts snake_case too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Player statistics
# =============================================================================


# PUBLIC_INTERFACE
class DifficultyStats(CamelModel):
    """Results against one AI difficulty."""
    games: int = Field(default=0, description="Games played against this difficulty.")
    wins: int = 0
    losses: int = 0
    draws: int = 0
    win_rate: float = Field(default=0.0, description="wins / games, 0 when no games.")


# PUBLIC_INTERFACE
class PlayerStats(CamelModel):
    """Running totals for one player."""
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    current_streak: int = Field(default=0, description="Positive for a win streak, negative for a loss streak.")
    longest_win_streak: int = 0
    win_rate: float = 0.0
    total_moves: int = Field(default=0, description="Moves made by the player across all games.")
    average_moves_per_game: float = 0.0
    by_difficulty: Dict[str, DifficultyStats] = Field(
        default_factory=dict, description="Breakdown keyed by AI difficulty label."
    )


# PUBLIC_INTERFACE
class PlayerStatsDto(CamelModel):
    name: str = Field(..., description="The player's display name.")
    stats: PlayerStats = Field(default_factory=PlayerStats)


# PUBLIC_INTERFACE
class StatsSummaryModel(CamelModel):
    """Aggregate figures across all players."""
    player_count: int = 0
    total_games: int = Field(default=0, description="Completed games, each counted once.")
    total_wins: int = 0
    total_losses: int = 0
    total_draws: int = Field(default=0, description="Drawn games, each counted once.")
    average_win_rate: float = 0.0
    top_player_name: str = "N/A"
    top_player_win_rate: float = 0.0
    longest_win_streak: int = 0


# =============================================================================
# Auth
# =============================================================================


# PUBLIC_INTERFACE
class TokenRequest(CamelModel):
    """Request a bearer token for a player name."""
    player_name: str = Field(..., min_length=1, max_length=64, description="Unique player name.")


# PUBLIC_INTERFACE
class TokenResponse(CamelModel):
    """Returned authentication token."""
    access_token: str = Field(..., description="JWT access token for future requests.")
    token_type: str = Field(default="bearer", description="Type of the token.")


# =============================================================================
# Game sessions
# =============================================================================


# PUBLIC_INTERFACE
class GameStartRequest(CamelModel):
    """Request model to start a new game."""
    opponent_type: Literal["human", "ai"] = Field(..., description="Play against another player (human) or vs AI.")
    opponent_name: Optional[str] = Field(None, description="If human, the opponent's player name.")
    difficulty: Optional[str] = Field(
        None, description="AI difficulty: random, heuristic, optimal (or easy, medium, hard)."
    )
    board_size: int = Field(default=3, ge=1, le=10, description="Board is board_size x board_size.")
    win_length: Optional[int] = Field(None, ge=1, le=10, description="Marks in a row needed to win; defaults to board_size.")
    ai_first: bool = Field(default=False, description="If vs AI, let the AI play X and move first.")


# PUBLIC_INTERFACE
class MoveRequest(CamelModel):
    """Request model for making a move; give either index or row and col."""
    index: Optional[int] = Field(None, ge=0, description="Row-major cell index.")
    row: Optional[int] = Field(None, ge=0, description="Row in board.")
    col: Optional[int] = Field(None, ge=0, description="Col in board.")


# PUBLIC_INTERFACE
class SeatModel(CamelModel):
    name: str
    mark: str
    difficulty: Optional[str] = None


# PUBLIC_INTERFACE
class SessionResponse(CamelModel):
    """Session state after a move; includes board, status and messages."""
    session_id: str
    board: List[List[Optional[str]]]
    status: Literal["continue", "won", "draw"]
    move_count: int
    players: List[SeatModel]
    winner: Optional[str] = None
    winning_line: Optional[List[int]] = None
    next_turn: Optional[str] = None
    turn_owner: Optional[str] = None
    last_move: Optional[int] = None
    message: Optional[str] = None


# PUBLIC_INTERFACE
class HintResponse(CamelModel):
    index: int
    row: int
    col: int
    mark: str
    difficulty: str


# PUBLIC_INTERFACE
class LeaderboardResponse(CamelModel):
    leaderboard: List[PlayerStatsDto]
