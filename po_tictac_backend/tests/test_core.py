"""
Board state and rules engine tests.
"""

from collections import deque

import pytest

from po_tictac.core import (
    BoardState,
    Mark,
    Move,
    OutcomeKind,
    apply_move,
    evaluate,
    legal_moves,
    winning_lines,
)
from po_tictac.errors import IllegalMoveError, InvalidBoardError


def reachable_states(size=3):
    """Every state reachable by legal play, each visited once."""
    start = BoardState.new(size)
    seen = {start}
    queue = deque([start])
    while queue:
        state = queue.popleft()
        yield state
        if evaluate(state).is_terminal:
            continue
        for move in legal_moves(state):
            child = apply_move(state, move)
            if child not in seen:
                seen.add(child)
                queue.append(child)


class TestBoardState:
    def test_new_board_is_empty_with_x_to_move(self, empty_board):
        assert empty_board.size == 3
        assert empty_board.win_length == 3
        assert empty_board.current_turn is Mark.X
        assert empty_board.move_count == 0
        assert all(c is Mark.EMPTY for c in empty_board.cells)

    def test_from_rows_derives_turn(self):
        state = BoardState.from_rows("XXX/OO_/___")
        assert state.current_turn is Mark.O
        assert state.move_count == 5
        assert BoardState.from_rows(["X__", "_O_", "___"]).current_turn is Mark.X

    def test_from_rows_rejects_unreachable_counts(self):
        with pytest.raises(InvalidBoardError):
            BoardState.from_rows("XXX/X__/___")

    def test_from_rows_rejects_ragged_rows(self):
        with pytest.raises(InvalidBoardError):
            BoardState.from_rows(["XX", "O__", "___"])

    def test_invalid_win_length(self):
        with pytest.raises(InvalidBoardError):
            BoardState.new(3, win_length=4)

    def test_rows_serialization(self):
        state = BoardState.from_rows("X__/_O_/___")
        assert state.rows() == [["X", None, None], [None, "O", None], [None, None, None]]

    def test_equality_ignores_move_order(self, empty_board):
        a = empty_board
        for idx in (0, 4, 8):
            a = apply_move(a, Move(idx, a.current_turn))
        b = empty_board
        for idx in (8, 4, 0):
            b = apply_move(b, Move(idx, b.current_turn))
        assert a == b
        assert hash(a) == hash(b)
        assert a.history != b.history

    def test_move_at(self):
        assert Move.at(1, 2, Mark.X).index == 5
        assert Move.at(1, 2, Mark.X, size=4).index == 6
        with pytest.raises(IllegalMoveError):
            Move.at(0, 3, Mark.X)


class TestWinningLines:
    def test_standard_board_has_eight_lines(self):
        lines = winning_lines(3)
        assert len(lines) == 8
        assert lines[0] == (0, 1, 2)
        assert (0, 4, 8) in lines
        assert (2, 4, 6) in lines

    def test_shorter_win_length(self):
        # rows 4*2 + cols 4*2 + two diagonal directions 2*2 each
        assert len(winning_lines(4, 3)) == 24


class TestLegalMoves:
    def test_center_opening(self, empty_board):
        state = apply_move(empty_board, Move(4, Mark.X))
        assert evaluate(state).kind is OutcomeKind.IN_PROGRESS
        moves = legal_moves(state)
        assert [m.index for m in moves] == [0, 1, 2, 3, 5, 6, 7, 8]
        assert all(m.mark is Mark.O for m in moves)
        assert len(moves) == 8

    def test_restartable(self, empty_board):
        moves = legal_moves(empty_board)
        assert list(moves) == list(moves)
        assert Move(0, Mark.X) in moves
        assert Move(0, Mark.O) not in moves

    def test_won_board_still_lists_empty_cells(self):
        state = BoardState.from_rows("XXX/OO_/___")
        moves = legal_moves(state)
        assert len(moves) == 9 - state.move_count == 4
        assert [m.index for m in moves] == [5, 6, 7, 8]
        assert evaluate(state).is_terminal
        with pytest.raises(IllegalMoveError):
            apply_move(state, Move(5, state.current_turn))


class TestApplyMove:
    def test_returns_new_state(self, empty_board):
        state = apply_move(empty_board, Move(0, Mark.X))
        assert state is not empty_board
        assert state.cells[0] is Mark.X
        assert state.current_turn is Mark.O
        assert state.move_count == 1
        assert state.history == (Move(0, Mark.X),)
        assert empty_board.move_count == 0

    def test_deterministic(self, empty_board):
        assert apply_move(empty_board, Move(3, Mark.X)) == apply_move(empty_board, Move(3, Mark.X))

    @pytest.mark.parametrize("move", [Move(4, Mark.O), Move(4, Mark.X), Move(9, Mark.O), Move(-1, Mark.O)])
    def test_illegal_moves_leave_state_unchanged(self, move):
        state = BoardState.from_rows("___/_X_/___")
        before = state.cells
        with pytest.raises(IllegalMoveError):
            apply_move(state, move)
        assert state.cells == before
        assert state.current_turn is Mark.O

    def test_no_move_after_win(self):
        state = BoardState.from_rows("XXX/OO_/___")
        with pytest.raises(IllegalMoveError):
            apply_move(state, Move(5, Mark.O))


class TestEvaluate:
    def test_top_row_win(self):
        outcome = evaluate(BoardState.from_rows("XXX/OO_/___"))
        assert outcome.kind is OutcomeKind.WIN
        assert outcome.winner is Mark.X
        assert outcome.line == (0, 1, 2)
        assert outcome.is_terminal

    def test_column_and_diagonal_wins(self):
        assert evaluate(BoardState.from_rows("OX_/OX_/_X_")).line == (1, 4, 7)
        assert evaluate(BoardState.from_rows("XO_/OX_/__X")).line == (0, 4, 8)
        assert evaluate(BoardState.from_rows("XXO/_O_/O_X")).line == (2, 4, 6)

    def test_full_board_draw(self):
        outcome = evaluate(BoardState.from_rows("XOX/XOO/OXX"))
        assert outcome.kind is OutcomeKind.DRAW
        assert outcome.winner is None
        assert outcome.is_terminal

    def test_in_progress(self, empty_board):
        assert evaluate(empty_board).kind is OutcomeKind.IN_PROGRESS
        assert not evaluate(empty_board).is_terminal

    def test_win_length_four_on_six_by_six(self):
        state = BoardState.new(6, win_length=4)
        for idx in (0, 6, 1, 7, 2, 8, 3):
            state = apply_move(state, Move(idx, state.current_turn))
        outcome = evaluate(state)
        assert outcome.winner is Mark.X
        assert outcome.line == (0, 1, 2, 3)


class TestReachableStates:
    def test_invariants_hold_for_every_reachable_state(self):
        count = 0
        for state in reachable_states():
            count += 1
            outcome = evaluate(state)
            empties = state.empty_cells()
            assert state.move_count == 9 - len(empties)
            if outcome.kind is OutcomeKind.WIN:
                assert outcome.winner is not None and outcome.line is not None
            assert [m.index for m in legal_moves(state)] == empties
            assert len(legal_moves(state)) == 9 - state.move_count
            if outcome.kind is OutcomeKind.IN_PROGRESS:
                assert empties
            if outcome.kind is OutcomeKind.DRAW:
                assert not empties
        assert count == 5478
