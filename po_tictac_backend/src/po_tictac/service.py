"""
Service facade used by the HTTP layer.

Owns the live sessions (isolated from each other) and the shared
statistics aggregator. Finished sessions report their result to the
aggregator exactly once.
"""

import asyncio
import logging
import random
import threading
from typing import Dict, List, Optional, Union

from .ai import Difficulty, parse_difficulty
from .config import Settings, get_settings
from .core import Mark, Move
from .errors import InvalidBoardError, SessionNotFoundError
from .models import PlayerStatsDto, StatsSummaryModel
from .session import GameSession, PlayerSeat, SessionSnapshot
from .stats import StatisticsAggregator

logger = logging.getLogger(__name__)


class GameService:

    def __init__(
        self,
        aggregator: Optional[StatisticsAggregator] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.stats = aggregator or StatisticsAggregator()
        self.settings = settings or get_settings()
        self._rng = rng
        self._sessions: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    # PUBLIC_INTERFACE
    def start_session(
        self,
        player_name: str,
        opponent: Optional[str] = None,
        difficulty: Union[str, Difficulty, None] = None,
        size: int = 3,
        win_length: Optional[int] = None,
        ai_first: bool = False,
    ) -> SessionSnapshot:
        """Start a game vs another player (``opponent``) or vs AI (no opponent).

        The starting player plays X unless ``ai_first`` is set for an AI game.
        """
        session = self._open_session(player_name, opponent, difficulty, size, win_length, ai_first)
        return session.advance()

    # PUBLIC_INTERFACE
    async def start_session_async(
        self,
        player_name: str,
        opponent: Optional[str] = None,
        difficulty: Union[str, Difficulty, None] = None,
        size: int = 3,
        win_length: Optional[int] = None,
        ai_first: bool = False,
    ) -> SessionSnapshot:
        """Like ``start_session``; an AI opening move is searched off the event loop."""
        session = self._open_session(player_name, opponent, difficulty, size, win_length, ai_first)
        return await session.advance_async(self.settings.ai_think_time)

    def _open_session(self, player_name, opponent, difficulty, size, win_length, ai_first) -> GameSession:
        if opponent is not None:
            if opponent == player_name:
                raise InvalidBoardError("A player cannot play against themselves.", context={"player": player_name})
            seats = [PlayerSeat(player_name, Mark.X), PlayerSeat(opponent, Mark.O)]
        else:
            level = parse_difficulty(difficulty or self.settings.default_difficulty)
            ai_mark = Mark.X if ai_first else Mark.O
            seats = [
                PlayerSeat(player_name, ai_mark.opponent),
                PlayerSeat(f"AI ({level.value})", ai_mark, level),
            ]

        session = GameSession(
            seats,
            size=size,
            win_length=win_length,
            on_terminal=self.stats.record_game,
            rng=self._rng,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    # PUBLIC_INTERFACE
    def get_session(self, session_id: str) -> GameSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            logger.warning("Unknown session %s", session_id)
            raise SessionNotFoundError("Game not found", context={"session": session_id})
        return session

    def _move_for(self, session: GameSession, index: int) -> Move:
        return Move(index, session.state.current_turn)

    # PUBLIC_INTERFACE
    def submit_move(self, session_id: str, index: int, player_name: Optional[str] = None) -> SessionSnapshot:
        """Apply a human move, then let any AI seat reply."""
        session = self.get_session(session_id)
        session.submit_move(self._move_for(session, index), player_name)
        return session.advance()

    # PUBLIC_INTERFACE
    async def submit_move_async(self, session_id: str, index: int, player_name: Optional[str] = None) -> SessionSnapshot:
        session = self.get_session(session_id)
        await session.submit_move_async(self._move_for(session, index), player_name)
        return await session.advance_async(self.settings.ai_think_time)

    # PUBLIC_INTERFACE
    def get_ai_move(self, session_id: str, difficulty: Union[str, Difficulty, None] = None) -> Move:
        """Hint for the player to move; the board is left untouched."""
        return self.get_session(session_id).hint(difficulty)

    # PUBLIC_INTERFACE
    async def get_ai_move_async(self, session_id: str, difficulty: Union[str, Difficulty, None] = None) -> Move:
        session = self.get_session(session_id)
        return await asyncio.to_thread(session.hint, difficulty)

    # PUBLIC_INTERFACE
    def end_session(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError("Game not found", context={"session": session_id})
        session.close()
        return session.snapshot()

    # PUBLIC_INTERFACE
    def get_stats(self, player_name: str) -> PlayerStatsDto:
        return self.stats.get(player_name)

    # PUBLIC_INTERFACE
    def get_leaderboard(self, limit: Optional[int] = None) -> List[PlayerStatsDto]:
        return self.stats.leaderboard(self.settings.leaderboard_limit if limit is None else limit)

    # PUBLIC_INTERFACE
    def get_summary(self) -> StatsSummaryModel:
        return self.stats.summary()

    # PUBLIC_INTERFACE
    def all_stats(self) -> List[PlayerStatsDto]:
        return self.stats.players()
