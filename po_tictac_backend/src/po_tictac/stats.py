"""
Player statistics aggregation.

The aggregator consumes finished-game records and keeps per-player
counters, streaks and rates. It is the only state shared between game
sessions; every update happens under one lock so readers never observe a
half-applied result.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import PlayerNotFoundError
from .models import DifficultyStats, PlayerStats, PlayerStatsDto, StatsSummaryModel

logger = logging.getLogger(__name__)


class GameResultKind(str, Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


@dataclass(frozen=True)
class PlayerResult:
    """One participant's view of a finished game."""
    name: str
    result: GameResultKind
    is_ai: bool = False
    opponent_difficulty: Optional[str] = None
    moves: int = 0


@dataclass(frozen=True)
class GameResult:
    """A finished game, emitted once per session."""
    participants: Tuple[PlayerResult, ...]
    total_moves: int = 0
    session_id: Optional[str] = None

    @property
    def is_draw(self) -> bool:
        return all(p.result is GameResultKind.DRAW for p in self.participants)


def _rate(wins: int, games: int) -> float:
    return wins / games if games else 0.0


def leaderboard_key(dto: PlayerStatsDto):
    """Win rate descending, then games played descending, then name ascending."""
    return (-dto.stats.win_rate, -dto.stats.games_played, dto.name)


class StatisticsAggregator:
    """In-memory statistics for all players seen by this process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._players: Dict[str, PlayerStats] = {}
        self._games = 0
        self._drawn_games = 0

    # PUBLIC_INTERFACE
    def record_outcome(
        self,
        player_name: str,
        result,
        opponent_difficulty: Optional[str] = None,
        moves: int = 0,
    ) -> PlayerStats:
        """Record a single-player result (one game event) and return the updated snapshot."""
        result = GameResultKind(result)
        with self._lock:
            self._games += 1
            if result is GameResultKind.DRAW:
                self._drawn_games += 1
            stats = self._apply(player_name, result, opponent_difficulty, moves)
            return stats.model_copy(deep=True)

    # PUBLIC_INTERFACE
    def record_game(self, game: GameResult) -> List[PlayerStats]:
        """Record a finished game once, updating every human participant."""
        with self._lock:
            self._games += 1
            if game.is_draw:
                self._drawn_games += 1
            updated = [
                self._apply(p.name, p.result, p.opponent_difficulty, p.moves).model_copy(deep=True)
                for p in game.participants
                if not p.is_ai
            ]
        logger.info(
            "Recorded game %s: %s",
            game.session_id or "-",
            ", ".join(f"{p.name}={p.result.value}" for p in game.participants),
        )
        return updated

    def _apply(
        self,
        name: str,
        result: GameResultKind,
        opponent_difficulty: Optional[str],
        moves: int,
    ) -> PlayerStats:
        stats = self._players.get(name)
        if stats is None:
            stats = PlayerStats()
            self._players[name] = stats
            logger.debug("Created stats for player %s", name)

        stats.games_played += 1
        if result is GameResultKind.WIN:
            stats.wins += 1
            stats.current_streak = stats.current_streak + 1 if stats.current_streak > 0 else 1
        elif result is GameResultKind.LOSS:
            stats.losses += 1
            stats.current_streak = stats.current_streak - 1 if stats.current_streak < 0 else -1
        else:
            stats.draws += 1
            stats.current_streak = 0
        if stats.current_streak > 0:
            stats.longest_win_streak = max(stats.longest_win_streak, stats.current_streak)
        stats.win_rate = _rate(stats.wins, stats.games_played)
        stats.total_moves += moves
        stats.average_moves_per_game = stats.total_moves / stats.games_played

        if opponent_difficulty:
            breakdown = stats.by_difficulty.setdefault(opponent_difficulty, DifficultyStats())
            breakdown.games += 1
            if result is GameResultKind.WIN:
                breakdown.wins += 1
            elif result is GameResultKind.LOSS:
                breakdown.losses += 1
            else:
                breakdown.draws += 1
            breakdown.win_rate = _rate(breakdown.wins, breakdown.games)
        return stats

    # PUBLIC_INTERFACE
    def get(self, player_name: str) -> PlayerStatsDto:
        with self._lock:
            stats = self._players.get(player_name)
            if stats is None:
                raise PlayerNotFoundError(
                    f"No statistics for player {player_name!r}",
                    context={"player": player_name},
                )
            return PlayerStatsDto(name=player_name, stats=stats.model_copy(deep=True))

    def _snapshots(self) -> List[PlayerStatsDto]:
        # Caller holds the lock.
        return [
            PlayerStatsDto(name=name, stats=stats.model_copy(deep=True))
            for name, stats in sorted(self._players.items())
        ]

    # PUBLIC_INTERFACE
    def players(self) -> List[PlayerStatsDto]:
        """Snapshots of every player, sorted by name."""
        with self._lock:
            return self._snapshots()

    # PUBLIC_INTERFACE
    def leaderboard(self, limit: Optional[int] = None) -> List[PlayerStatsDto]:
        return rank(self.players(), limit)

    # PUBLIC_INTERFACE
    def summary(self) -> StatsSummaryModel:
        """Aggregate figures; counters and player records are read together."""
        with self._lock:
            games, drawn = self._games, self._drawn_games
            players = self._snapshots()
        if not players:
            return StatsSummaryModel(total_games=games, total_draws=drawn)
        return summarize(players, total_games=games, total_draws=drawn)


# PUBLIC_INTERFACE
def rank(players: Iterable[PlayerStatsDto], limit: Optional[int] = None) -> List[PlayerStatsDto]:
    ordered = sorted(players, key=leaderboard_key)
    return ordered if limit is None else ordered[:max(limit, 0)]


# PUBLIC_INTERFACE
def summarize(
    players: Iterable[PlayerStatsDto],
    total_games: Optional[int] = None,
    total_draws: Optional[int] = None,
) -> StatsSummaryModel:
    """Dashboard figures for a set of players.

    ``total_games`` and ``total_draws`` should come from game events. When
    omitted they fall back to per-player sums, which count a game between
    two tracked players twice.
    """
    players = list(players)
    if not players:
        return StatsSummaryModel(total_games=total_games or 0, total_draws=total_draws or 0)

    ranked = rank(players)
    top = ranked[0]
    return StatsSummaryModel(
        player_count=len(players),
        total_games=sum(p.stats.games_played for p in players) if total_games is None else total_games,
        total_wins=sum(p.stats.wins for p in players),
        total_losses=sum(p.stats.losses for p in players),
        total_draws=sum(p.stats.draws for p in players) if total_draws is None else total_draws,
        average_win_rate=sum(p.stats.win_rate for p in players) / len(players),
        top_player_name=top.name,
        top_player_win_rate=top.stats.win_rate,
        longest_win_streak=max(p.stats.longest_win_streak for p in players),
    )
