"""
AI opponents.

Three difficulty variants share a single dispatch function, ``select_move``:

- RANDOM: uniform choice among legal moves.
- HEURISTIC: win, block, then center / corners / edges.
- OPTIMAL: exhaustive minimax; never loses on a 3x3 board. Larger boards
  fall back to a depth-limited alpha-beta search once too many cells are
  empty for the full tree.
"""

import asyncio
import logging
import random
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple, Union

from .core import BoardState, Mark, Move, evaluate, legal_moves, line_winner, winning_lines
from .errors import NoLegalMoveError, UnknownDifficultyError

logger = logging.getLogger(__name__)

# Empty cells up to which OPTIMAL searches the full game tree.
EXHAUSTIVE_LIMIT = 9
# Bounded search for bigger positions: plies searched (root move included)
# and candidate cells tried at the root and below it.
SEARCH_DEPTH = 4
ROOT_BRANCHES = 10
INNER_BRANCHES = 8


class Difficulty(str, Enum):
    RANDOM = "random"
    HEURISTIC = "heuristic"
    OPTIMAL = "optimal"


# Labels used by the web client.
_ALIASES = {
    "easy": Difficulty.RANDOM,
    "medium": Difficulty.HEURISTIC,
    "hard": Difficulty.OPTIMAL,
}


# PUBLIC_INTERFACE
def parse_difficulty(value: Union[str, Difficulty]) -> Difficulty:
    """Resolve a difficulty label (or easy/medium/hard alias). Raises UnknownDifficultyError."""
    if isinstance(value, Difficulty):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return Difficulty(key)
        except ValueError:
            pass
    raise UnknownDifficultyError(
        f"Unknown difficulty: {value!r}",
        context={"known": [d.value for d in Difficulty] + sorted(_ALIASES)},
    )


# PUBLIC_INTERFACE
def select_move(
    state: BoardState,
    difficulty: Union[str, Difficulty],
    rng: Optional[random.Random] = None,
) -> Move:
    """Pick a legal move for the player to move.

    Raises NoLegalMoveError when the state is already terminal and
    UnknownDifficultyError for an unrecognised variant.
    """
    difficulty = parse_difficulty(difficulty)
    if evaluate(state).is_terminal:
        raise NoLegalMoveError(
            "No legal move: the game is already over.",
            context={"move_count": state.move_count},
        )
    moves = list(legal_moves(state))
    rng = rng or random

    if difficulty is Difficulty.RANDOM:
        move = rng.choice(moves)
    elif difficulty is Difficulty.HEURISTIC:
        move = _heuristic_move(state, moves, rng)
    elif difficulty is Difficulty.OPTIMAL:
        move = _optimal_move(state)
    else:
        raise UnknownDifficultyError(f"Unhandled difficulty: {difficulty!r}")

    logger.debug(
        "AI %s (%s) selects cell %d at move %d",
        state.current_turn.value, difficulty.value, move.index, state.move_count,
    )
    return move


# PUBLIC_INTERFACE
async def select_move_async(
    state: BoardState,
    difficulty: Union[str, Difficulty],
    think_time: float = 0.0,
    rng: Optional[random.Random] = None,
) -> Move:
    """Like ``select_move`` but off the event loop, after an optional thinking delay."""
    difficulty = parse_difficulty(difficulty)
    if evaluate(state).is_terminal:
        raise NoLegalMoveError("No legal move: the game is already over.")
    if think_time > 0:
        await asyncio.sleep(think_time)
    return await asyncio.to_thread(select_move, state, difficulty, rng)


# =============================================================================
# Heuristic
# =============================================================================


def _completing_move(state: BoardState, mark: Mark, empties: Iterable[int]) -> Optional[int]:
    """Lowest empty cell that completes a line for ``mark``."""
    lines = winning_lines(state.size, state.win_length)
    for i in empties:
        cells = state.cells[:i] + (mark,) + state.cells[i + 1:]
        found = line_winner(cells, lines)
        if found and found[0] is mark:
            return i
    return None


def preference_tiers(size: int) -> Tuple[Tuple[int, ...], Tuple[int, ...], Tuple[int, ...]]:
    """Center, corner and edge cells of a board, each in ascending order.

    Even boards have four center cells.
    """
    mid = size // 2
    if size % 2:
        center = {mid * size + mid}
    else:
        center = {r * size + c for r in (mid - 1, mid) for c in (mid - 1, mid)}
    last = size - 1
    corners = {0, last, last * size, last * size + last} - center
    edges = {
        r * size + c
        for r in range(size)
        for c in range(size)
        if r in (0, last) or c in (0, last)
    } - corners - center
    return tuple(sorted(center)), tuple(sorted(corners)), tuple(sorted(edges))


def _heuristic_move(state: BoardState, moves: List[Move], rng) -> Move:
    mark = state.current_turn
    empties = [m.index for m in moves]

    idx = _completing_move(state, mark, empties)
    if idx is None:
        idx = _completing_move(state, mark.opponent, empties)
    if idx is None:
        free = set(empties)
        for tier in preference_tiers(state.size):
            candidates = [i for i in tier if i in free]
            if candidates:
                idx = candidates[0]
                break
    if idx is None:
        idx = rng.choice(empties)
    return Move(idx, mark)


# =============================================================================
# Optimal (minimax)
# =============================================================================


@lru_cache(maxsize=1 << 20)
def _negamax(cells: Tuple[Mark, ...], size: int, win_length: int, to_move: Mark) -> int:
    """Value of a position for the side to move.

    A win is worth ``size**2 + 1 - plies`` where ``plies`` is the number of
    marks on the board, so quicker wins and slower losses score higher.
    """
    found = line_winner(cells, winning_lines(size, win_length))
    plies = sum(1 for c in cells if c is not Mark.EMPTY)
    if found:
        score = size * size + 1 - plies
        return score if found[0] is to_move else -score
    if plies == len(cells):
        return 0

    best = None
    other = to_move.opponent
    for i, c in enumerate(cells):
        if c is not Mark.EMPTY:
            continue
        child = cells[:i] + (to_move,) + cells[i + 1:]
        value = -_negamax(child, size, win_length, other)
        if best is None or value > best:
            best = value
    return best


# PUBLIC_INTERFACE
def score_moves(state: BoardState) -> List[Tuple[int, int]]:
    """Minimax score of every legal move for the player to move, as (index, score).

    Searches the full tree, so keep it to positions with few empty cells.
    """
    mark = state.current_turn
    return [
        (m.index, -_negamax(
            state.cells[:m.index] + (mark,) + state.cells[m.index + 1:],
            state.size, state.win_length, mark.opponent,
        ))
        for m in legal_moves(state)
    ]


def _optimal_move(state: BoardState) -> Move:
    if len(state.empty_cells()) > EXHAUSTIVE_LIMIT:
        return _search_move(state)
    best_idx, best_score = None, None
    # Strict comparison keeps the lowest index among equal scores.
    for idx, score in score_moves(state):
        if best_score is None or score > best_score:
            best_idx, best_score = idx, score
    return Move(best_idx, state.current_turn)


# =============================================================================
# Bounded search (large boards)
# =============================================================================


@lru_cache(maxsize=None)
def _lines_through(size: int, win_length: int) -> Tuple[Tuple[Tuple[int, ...], ...], ...]:
    """For each cell, the winning lines that contain it."""
    through = [[] for _ in range(size * size)]
    for line in winning_lines(size, win_length):
        for i in line:
            through[i].append(line)
    return tuple(tuple(lines) for lines in through)


def line_score(cells: Tuple[Mark, ...], lines, mark: Mark) -> int:
    """Static value of a position for ``mark``.

    Each line holding only ``mark`` counts +10**n for its n marks; each
    line holding only the opponent counts -10**n. Mixed lines count 0.
    """
    other = mark.opponent
    score = 0
    for line in lines:
        mine = theirs = 0
        for i in line:
            c = cells[i]
            if c is mark:
                mine += 1
            elif c is other:
                theirs += 1
        if mine and not theirs:
            score += 10 ** mine
        elif theirs and not mine:
            score -= 10 ** theirs
    return score


def candidate_cells(cells: Tuple[Mark, ...], size: int, limit: int) -> List[int]:
    """Empty cells most worth searching: next to existing marks, then nearest the center."""
    center = (size - 1) / 2

    def priority(i):
        r, c = divmod(i, size)
        neighbours = 0
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                rr, cc = r + dr, c + dc
                if (dr or dc) and 0 <= rr < size and 0 <= cc < size and cells[rr * size + cc] is not Mark.EMPTY:
                    neighbours += 1
        return (-(50 * neighbours - abs(r - center) - abs(c - center)), i)

    empties = [i for i, c in enumerate(cells) if c is Mark.EMPTY]
    return sorted(empties, key=priority)[:limit]


def _search_move(state: BoardState) -> Move:
    """Win, block, else alpha-beta negamax to ``SEARCH_DEPTH`` plies."""
    mark = state.current_turn
    empties = state.empty_cells()
    idx = _completing_move(state, mark, empties)
    if idx is None:
        idx = _completing_move(state, mark.opponent, empties)
    if idx is not None:
        return Move(idx, mark)

    size, total = state.size, len(state.cells)
    lines = winning_lines(size, state.win_length)
    through = _lines_through(size, state.win_length)
    # Any win outscores any static evaluation.
    win_score = len(lines) * 10 ** (state.win_length + 1)

    def negamax(cells, to_move, last, depth, alpha, beta, plies):
        # ``last`` was just played by the opponent of ``to_move``.
        played = cells[last]
        if any(all(cells[j] is played for j in line) for line in through[last]):
            return -(win_score - plies)
        if plies == total:
            return 0
        if depth == 0:
            return line_score(cells, lines, to_move)
        best = -win_score - 1
        for i in candidate_cells(cells, size, INNER_BRANCHES):
            child = cells[:i] + (to_move,) + cells[i + 1:]
            value = -negamax(child, to_move.opponent, i, depth - 1, -beta, -alpha, plies + 1)
            if value > best:
                best = value
            if best > alpha:
                alpha = best
            if alpha >= beta:
                break
        return best

    alpha, beta = -win_score - 1, win_score + 1
    best_idx = None
    for i in candidate_cells(state.cells, size, ROOT_BRANCHES):
        child = state.cells[:i] + (mark,) + state.cells[i + 1:]
        value = -negamax(child, mark.opponent, i, SEARCH_DEPTH - 1, -beta, -alpha, state.move_count + 1)
        if best_idx is None or value > alpha:
            best_idx, alpha = i, value
    logger.debug("Bounded search picked cell %d (score %d)", best_idx, alpha)
    return Move(best_idx, mark)
