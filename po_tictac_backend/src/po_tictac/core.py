from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from .errors import IllegalMoveError, InvalidBoardError

DEFAULT_SIZE = 3

Line = Tuple[int, ...]


class Mark(str, Enum):
    """Content of a board cell."""
    EMPTY = "_"
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Mark":
        if self is Mark.X:
            return Mark.O
        if self is Mark.O:
            return Mark.X
        raise ValueError("EMPTY has no opponent")

    @property
    def symbol(self) -> Optional[str]:
        return None if self is Mark.EMPTY else self.value


class OutcomeKind(str, Enum):
    IN_PROGRESS = "in_progress"
    WIN = "win"
    DRAW = "draw"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    winner: Optional[Mark] = None
    line: Optional[Line] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not OutcomeKind.IN_PROGRESS


IN_PROGRESS = Outcome(OutcomeKind.IN_PROGRESS)
DRAW = Outcome(OutcomeKind.DRAW)


@dataclass(frozen=True)
class Move:
    """A mark placed on a single cell, addressed by row-major index."""
    index: int
    mark: Mark

    @classmethod
    def at(cls, row: int, col: int, mark: Mark, size: int = DEFAULT_SIZE) -> "Move":
        if not (0 <= row < size and 0 <= col < size):
            raise IllegalMoveError(
                "Cell is outside the board.",
                context={"row": row, "col": col, "size": size},
            )
        return cls(row * size + col, mark)

    def row(self, size: int = DEFAULT_SIZE) -> int:
        return self.index // size

    def col(self, size: int = DEFAULT_SIZE) -> int:
        return self.index % size


@dataclass(frozen=True)
class BoardState:
    """Immutable snapshot of an N x N grid and whose turn it is.

    Equality and hashing cover the position (cells, turn and geometry);
    ``history`` is a replay log and does not take part.
    """
    size: int
    cells: Tuple[Mark, ...]
    current_turn: Mark = Mark.X
    win_length: Optional[int] = None
    history: Tuple[Move, ...] = field(default=(), compare=False, hash=False)

    def __post_init__(self):
        if self.size < 1:
            raise InvalidBoardError("Board size must be positive.", context={"size": self.size})
        if self.win_length is None:
            object.__setattr__(self, "win_length", self.size)
        if not 1 <= self.win_length <= self.size:
            raise InvalidBoardError(
                "Win length must be between 1 and the board size.",
                context={"size": self.size, "win_length": self.win_length},
            )
        if len(self.cells) != self.size * self.size:
            raise InvalidBoardError(
                "Cell count does not match board size.",
                context={"size": self.size, "cells": len(self.cells)},
            )
        if self.current_turn is Mark.EMPTY:
            raise InvalidBoardError("Current turn must be X or O.")

    # PUBLIC_INTERFACE
    @classmethod
    def new(cls, size: int = DEFAULT_SIZE, win_length: Optional[int] = None) -> "BoardState":
        """Empty board with X to move."""
        if size < 1:
            raise InvalidBoardError("Board size must be positive.", context={"size": size})
        return cls(size, (Mark.EMPTY,) * (size * size), Mark.X, win_length)

    # PUBLIC_INTERFACE
    @classmethod
    def from_rows(
        cls,
        rows: Union[str, Sequence[str]],
        current_turn: Optional[Mark] = None,
        win_length: Optional[int] = None,
    ) -> "BoardState":
        """Build a state from text rows such as ``["XX_", "OO_", "___"]`` or ``"XX_/OO_/___"``.

        ``_``, ``.``, ``-`` and space are empty cells. When ``current_turn``
        is omitted it is derived from the mark counts.
        """
        if isinstance(rows, str):
            rows = rows.split("/")
        size = len(rows)
        cells: List[Mark] = []
        for row in rows:
            if len(row) != size:
                raise InvalidBoardError("Board rows must form a square.", context={"row": row})
            for ch in row.upper():
                if ch in "_.- ":
                    cells.append(Mark.EMPTY)
                elif ch in ("X", "O"):
                    cells.append(Mark(ch))
                else:
                    raise InvalidBoardError("Unknown cell character.", context={"char": ch})
        if current_turn is None:
            xs, os_ = cells.count(Mark.X), cells.count(Mark.O)
            if xs == os_:
                current_turn = Mark.X
            elif xs == os_ + 1:
                current_turn = Mark.O
            else:
                raise InvalidBoardError(
                    "Mark counts are not reachable by alternating play.",
                    context={"x": xs, "o": os_},
                )
        return cls(size, tuple(cells), current_turn, win_length)

    @property
    def move_count(self) -> int:
        return sum(1 for c in self.cells if c is not Mark.EMPTY)

    def index(self, row: int, col: int) -> int:
        return row * self.size + col

    def coords(self, index: int) -> Tuple[int, int]:
        return divmod(index, self.size)

    def empty_cells(self) -> List[int]:
        return [i for i, c in enumerate(self.cells) if c is Mark.EMPTY]

    # PUBLIC_INTERFACE
    def rows(self) -> List[List[Optional[str]]]:
        """Grid as nested lists of 'X', 'O' or None, for serialization."""
        n = self.size
        return [[c.symbol for c in self.cells[r * n:(r + 1) * n]] for r in range(n)]

    def pretty(self) -> str:
        n = self.size
        lines = [" ".join(c.value for c in self.cells[r * n:(r + 1) * n]) for r in range(n)]
        return "\n".join(lines)


# PUBLIC_INTERFACE
@lru_cache(maxsize=None)
def winning_lines(size: int, win_length: Optional[int] = None) -> Tuple[Line, ...]:
    """All lines of ``win_length`` cells: rows, columns, down-diagonals, up-diagonals."""
    k = size if win_length is None else win_length
    lines: List[Line] = []
    # Rows
    for r in range(size):
        for c in range(size - k + 1):
            lines.append(tuple(r * size + c + i for i in range(k)))
    # Columns
    for c in range(size):
        for r in range(size - k + 1):
            lines.append(tuple((r + i) * size + c for i in range(k)))
    # Diagonals (top-left to bottom-right)
    for r in range(size - k + 1):
        for c in range(size - k + 1):
            lines.append(tuple((r + i) * size + c + i for i in range(k)))
    # Diagonals (top-right to bottom-left)
    for r in range(size - k + 1):
        for c in range(k - 1, size):
            lines.append(tuple((r + i) * size + c - i for i in range(k)))
    return tuple(lines)


def line_winner(cells: Sequence[Mark], lines: Sequence[Line]) -> Optional[Tuple[Mark, Line]]:
    """First line held entirely by one mark, with that mark."""
    for line in lines:
        first = cells[line[0]]
        if first is not Mark.EMPTY and all(cells[i] is first for i in line):
            return first, line
    return None


class LegalMoves:
    """Restartable view of the legal moves of a state, in ascending cell order."""

    def __init__(self, state: BoardState):
        self._state = state
        self._indices = tuple(state.empty_cells())

    def __iter__(self) -> Iterator[Move]:
        turn = self._state.current_turn
        return (Move(i, turn) for i in self._indices)

    def __len__(self) -> int:
        return len(self._indices)

    def __contains__(self, move) -> bool:
        return (
            isinstance(move, Move)
            and move.mark is self._state.current_turn
            and move.index in self._indices
        )

    def __repr__(self) -> str:
        return f"LegalMoves({list(self._indices)!r})"


# PUBLIC_INTERFACE
def legal_moves(state: BoardState) -> LegalMoves:
    """Every empty cell paired with the mark of the player to move."""
    return LegalMoves(state)


# PUBLIC_INTERFACE
def apply_move(state: BoardState, move: Move) -> BoardState:
    """Return the state after ``move``. Raises IllegalMoveError; never mutates ``state``."""
    if not 0 <= move.index < len(state.cells):
        raise IllegalMoveError(
            "Cell is outside the board.",
            context={"index": move.index, "size": state.size},
        )
    if move.mark is not state.current_turn:
        raise IllegalMoveError(
            "Not this mark's turn.",
            context={"mark": move.mark.value, "current_turn": state.current_turn.value},
        )
    if state.cells[move.index] is not Mark.EMPTY:
        raise IllegalMoveError("Cell already taken.", context={"index": move.index})
    if evaluate(state).is_terminal:
        raise IllegalMoveError("Game is already over.", context={"index": move.index})

    cells = state.cells[:move.index] + (move.mark,) + state.cells[move.index + 1:]
    return BoardState(
        size=state.size,
        cells=cells,
        current_turn=state.current_turn.opponent,
        win_length=state.win_length,
        history=state.history + (move,),
    )


# PUBLIC_INTERFACE
def evaluate(state: BoardState) -> Outcome:
    """Win with the first completed line, else Draw on a full grid, else InProgress."""
    found = line_winner(state.cells, winning_lines(state.size, state.win_length))
    if found:
        mark, line = found
        return Outcome(OutcomeKind.WIN, mark, line)
    if Mark.EMPTY not in state.cells:
        return DRAW
    return IN_PROGRESS
