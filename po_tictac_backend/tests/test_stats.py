"""
Statistics aggregation, leaderboard and summary tests.
"""

import threading

import pytest

from po_tictac.errors import PlayerNotFoundError
from po_tictac.models import PlayerStats, PlayerStatsDto
from po_tictac.stats import (
    GameResult,
    GameResultKind,
    PlayerResult,
    StatisticsAggregator,
    rank,
    summarize,
)


def record_many(aggregator, name, results, difficulty=None):
    for result in results:
        aggregator.record_outcome(name, result, difficulty)


def dto(name, wins=0, losses=0, draws=0):
    games = wins + losses + draws
    return PlayerStatsDto(
        name=name,
        stats=PlayerStats(
            games_played=games, wins=wins, losses=losses, draws=draws,
            win_rate=wins / games if games else 0.0,
        ),
    )


class TestRecordOutcome:
    def test_alice_win_rate(self, aggregator):
        record_many(aggregator, "Alice", ["win", "win", "loss", "draw", "win"])
        stats = aggregator.get("Alice").stats
        assert stats.games_played == 5
        assert (stats.wins, stats.losses, stats.draws) == (3, 1, 1)
        assert stats.win_rate == pytest.approx(0.6)

    def test_additive(self, aggregator):
        results = ["win", "loss", "draw"] * 7
        for k, result in enumerate(results, start=1):
            stats = aggregator.record_outcome("bob", result)
            assert stats.games_played == k
            assert stats.wins + stats.losses + stats.draws == stats.games_played

    def test_streaks(self, aggregator):
        expected = [1, 2, -1, -2, -3, 1, 0, -1, 1, 2, 3]
        results = ["win", "win", "loss", "loss", "loss", "win", "draw", "loss", "win", "win", "win"]
        seen = []
        for result in results:
            seen.append(aggregator.record_outcome("carol", result).current_streak)
        assert seen == expected
        stats = aggregator.get("carol").stats
        assert stats.longest_win_streak == 3
        assert stats.longest_win_streak >= max(seen)

    def test_longest_streak_survives_losses(self, aggregator):
        record_many(aggregator, "dave", ["win", "win", "win", "loss"])
        stats = aggregator.get("dave").stats
        assert stats.current_streak == -1
        assert stats.longest_win_streak == 3

    def test_difficulty_breakdown(self, aggregator):
        record_many(aggregator, "erin", ["win", "loss"], "hard")
        record_many(aggregator, "erin", ["draw"], "easy")
        aggregator.record_outcome("erin", "win")
        stats = aggregator.get("erin").stats
        assert set(stats.by_difficulty) == {"hard", "easy"}
        assert stats.by_difficulty["hard"].games == 2
        assert stats.by_difficulty["hard"].win_rate == pytest.approx(0.5)
        assert stats.by_difficulty["easy"].draws == 1
        assert stats.games_played == 4

    def test_moves_average(self, aggregator):
        aggregator.record_outcome("finn", "win", moves=3)
        aggregator.record_outcome("finn", "loss", moves=4)
        stats = aggregator.get("finn").stats
        assert stats.total_moves == 7
        assert stats.average_moves_per_game == pytest.approx(3.5)

    def test_snapshots_are_detached(self, aggregator):
        snap = aggregator.record_outcome("gina", "win")
        snap.wins = 100
        assert aggregator.get("gina").stats.wins == 1

    def test_unknown_player(self, aggregator):
        with pytest.raises(PlayerNotFoundError):
            aggregator.get("nobody")

    def test_unknown_result(self, aggregator):
        with pytest.raises(ValueError):
            aggregator.record_outcome("hank", "forfeit")

    def test_concurrent_updates(self, aggregator):
        def worker():
            for _ in range(200):
                aggregator.record_outcome("ivy", "win")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        stats = aggregator.get("ivy").stats
        assert stats.games_played == 1600
        assert stats.current_streak == 1600
        assert aggregator.summary().total_games == 1600


class TestRecordGame:
    def test_two_humans_count_one_game(self, aggregator):
        aggregator.record_game(GameResult(participants=(
            PlayerResult("alice", GameResultKind.WIN),
            PlayerResult("bob", GameResultKind.LOSS),
        )))
        summary = aggregator.summary()
        assert summary.total_games == 1
        assert summary.player_count == 2
        assert summary.total_wins == 1
        assert summary.total_losses == 1

    def test_draw_counted_once(self, aggregator):
        aggregator.record_game(GameResult(participants=(
            PlayerResult("alice", GameResultKind.DRAW),
            PlayerResult("bob", GameResultKind.DRAW),
        )))
        summary = aggregator.summary()
        assert summary.total_draws == 1
        assert aggregator.get("alice").stats.draws == 1
        assert aggregator.get("bob").stats.draws == 1

    def test_ai_participants_not_tracked(self, aggregator):
        updated = aggregator.record_game(GameResult(participants=(
            PlayerResult("alice", GameResultKind.LOSS, opponent_difficulty="optimal"),
            PlayerResult("AI (optimal)", GameResultKind.WIN, is_ai=True),
        )))
        assert len(updated) == 1
        assert [p.name for p in aggregator.players()] == ["alice"]
        assert aggregator.get("alice").stats.by_difficulty["optimal"].losses == 1


class TestLeaderboard:
    def test_ordering(self, aggregator):
        record_many(aggregator, "zoe", ["win", "win"])
        record_many(aggregator, "amy", ["win", "loss"])
        record_many(aggregator, "bea", ["win", "loss", "win", "loss"])
        record_many(aggregator, "cal", ["win", "loss"])
        record_many(aggregator, "dan", ["loss"])
        names = [p.name for p in aggregator.leaderboard()]
        assert names == ["zoe", "bea", "amy", "cal", "dan"]

    def test_limit(self, aggregator):
        for name in "abcde":
            aggregator.record_outcome(name, "win")
        assert len(aggregator.leaderboard(3)) == 3
        assert aggregator.leaderboard(0) == []

    def test_total_order(self):
        players = [dto("b", 1, 1), dto("a", 1, 1), dto("c", 2, 2), dto("d", 3), dto("e", 0, 3)]
        ranked = rank(players)
        for higher, lower in zip(ranked, ranked[1:]):
            hs, ls = higher.stats, lower.stats
            assert (hs.win_rate, hs.games_played, -ord(higher.name)) > (ls.win_rate, ls.games_played, -ord(lower.name))


class TestSummary:
    def test_empty(self, aggregator):
        summary = aggregator.summary()
        assert summary.player_count == 0
        assert summary.total_games == 0
        assert summary.top_player_name == "N/A"
        assert summary.top_player_win_rate == 0
        assert summary.longest_win_streak == 0

    def test_figures(self, aggregator):
        record_many(aggregator, "alice", ["win", "win", "loss"])
        record_many(aggregator, "bob", ["loss", "draw"])
        summary = aggregator.summary()
        assert summary.player_count == 2
        assert summary.total_games == 5
        assert summary.total_wins == 2
        assert summary.total_draws == 1
        assert summary.average_win_rate == pytest.approx((2 / 3 + 0) / 2)
        assert summary.top_player_name == "alice"
        assert summary.top_player_win_rate == pytest.approx(2 / 3)
        assert summary.longest_win_streak == 2

    def test_consistent_under_concurrent_writes(self, aggregator):
        # Every event is one win, so a consistent read has games == wins.
        done = threading.Event()

        def writer():
            for i in range(2000):
                aggregator.record_outcome(f"p{i % 5}", "win")
            done.set()

        thread = threading.Thread(target=writer)
        thread.start()
        mismatches = []
        while not done.is_set():
            summary = aggregator.summary()
            if summary.total_games != summary.total_wins:
                mismatches.append((summary.total_games, summary.total_wins))
        thread.join()
        assert mismatches == []
        assert aggregator.summary().total_games == 2000

    def test_summarize_without_events_sums_players(self):
        summary = summarize([dto("a", 2, 1), dto("b", 1, 2)])
        assert summary.total_games == 6
        assert summary.top_player_name == "a"


class TestWireFormat:
    def test_camel_case_keys(self, aggregator):
        aggregator.record_outcome("alice", "win", "hard")
        data = aggregator.get("alice").model_dump(by_alias=True)
        assert data["name"] == "alice"
        stats = data["stats"]
        for key in ("gamesPlayed", "currentStreak", "longestWinStreak", "winRate", "byDifficulty"):
            assert key in stats
        assert stats["byDifficulty"]["hard"]["games"] == 1

    def test_accepts_camel_case_input(self):
        parsed = PlayerStatsDto.model_validate({"name": "x", "stats": {"gamesPlayed": 2, "wins": 1}})
        assert parsed.stats.games_played == 2
