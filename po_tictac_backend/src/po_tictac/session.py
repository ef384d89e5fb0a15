"""
Game session controller.

A session is a two-state machine: AWAITING_MOVE (someone is to move) and
TERMINAL (won or drawn, absorbing). Moves go through the rules engine;
AI seats get their moves from the AI strategy. When the game ends the
session emits one GameResult to its ``on_terminal`` callback.
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, Union

from .ai import Difficulty, parse_difficulty, select_move, select_move_async
from .core import BoardState, Mark, Move, Outcome, OutcomeKind, apply_move, evaluate
from .errors import (
    IllegalMoveError,
    InvalidBoardError,
    NoLegalMoveError,
    NotYourTurnError,
    SessionClosedError,
)
from .stats import GameResult, GameResultKind, PlayerResult

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    AWAITING_MOVE = "awaiting_move"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class PlayerSeat:
    name: str
    mark: Mark
    difficulty: Optional[Difficulty] = None

    @property
    def is_ai(self) -> bool:
        return self.difficulty is not None


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    status: SessionStatus
    state: BoardState
    outcome: Outcome
    players: Tuple[PlayerSeat, ...]
    turn_owner: Optional[PlayerSeat]
    closed: bool = False

    @property
    def last_move(self) -> Optional[Move]:
        return self.state.history[-1] if self.state.history else None


class GameSession:
    """One game between two seats (human or AI)."""

    def __init__(
        self,
        players: Sequence[PlayerSeat],
        size: int = 3,
        win_length: Optional[int] = None,
        on_terminal: Optional[Callable[[GameResult], None]] = None,
        session_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        marks = sorted(seat.mark.value for seat in players)
        if marks != ["O", "X"]:
            raise InvalidBoardError("A session needs exactly one X seat and one O seat.")
        self.session_id = session_id or uuid.uuid4().hex
        self.players: Tuple[PlayerSeat, ...] = tuple(sorted(players, key=lambda s: s.mark.value, reverse=True))
        self._seats = {seat.mark: seat for seat in players}
        self._state = BoardState.new(size, win_length)
        self._outcome = evaluate(self._state)
        self._status = SessionStatus.AWAITING_MOVE
        self._closed = False
        self._on_terminal = on_terminal
        self._rng = rng
        self._lock = asyncio.Lock()
        self.created_at = datetime.now(timezone.utc)
        self.completed_at: Optional[datetime] = None
        logger.info(
            "Session %s started: %s",
            self.session_id,
            " vs ".join(f"{s.name}({s.mark.value})" for s in self.players),
        )

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def outcome(self) -> Outcome:
        return self._outcome

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def turn_owner(self) -> Optional[PlayerSeat]:
        if self._status is SessionStatus.TERMINAL:
            return None
        return self._seats[self._state.current_turn]

    def seat_for(self, name: str) -> Optional[PlayerSeat]:
        for seat in self.players:
            if seat.name == name:
                return seat
        return None

    # PUBLIC_INTERFACE
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            status=self._status,
            state=self._state,
            outcome=self._outcome,
            players=self.players,
            turn_owner=self.turn_owner,
            closed=self._closed,
        )

    def _ensure_accepting(self):
        if self._closed:
            raise SessionClosedError("Session has been closed.", context={"session": self.session_id})
        if self._status is SessionStatus.TERMINAL:
            raise IllegalMoveError("Game is over.", context={"session": self.session_id})

    # PUBLIC_INTERFACE
    def submit_move(self, move: Move, player_name: Optional[str] = None) -> SessionSnapshot:
        """Apply a human move. On IllegalMoveError the session is unchanged."""
        self._ensure_accepting()
        owner = self.turn_owner
        if owner.is_ai:
            raise NotYourTurnError("It is the AI's turn.", context={"turn": owner.mark.value})
        if player_name is not None and player_name != owner.name:
            raise NotYourTurnError(
                f"It is {owner.name}'s turn.",
                context={"player": player_name, "turn": owner.mark.value},
            )
        return self._apply(move)

    def _apply(self, move: Move) -> SessionSnapshot:
        try:
            new_state = apply_move(self._state, move)
        except IllegalMoveError as e:
            logger.warning("Session %s rejected move: %s", self.session_id, e)
            raise
        self._state = new_state
        self._outcome = evaluate(new_state)
        if self._outcome.is_terminal:
            self._finish()
        return self.snapshot()

    def _finish(self):
        self._status = SessionStatus.TERMINAL
        self.completed_at = datetime.now(timezone.utc)
        outcome = self._outcome
        logger.info(
            "Session %s finished: %s%s",
            self.session_id,
            outcome.kind.value,
            f" ({outcome.winner.value})" if outcome.winner else "",
        )
        if self._on_terminal is not None:
            self._on_terminal(self.result())

    # PUBLIC_INTERFACE
    def result(self) -> GameResult:
        """Outcome of a finished game from each participant's point of view."""
        if self._status is not SessionStatus.TERMINAL:
            raise IllegalMoveError("Game is still in progress.", context={"session": self.session_id})
        participants = []
        for seat in self.players:
            if self._outcome.kind is OutcomeKind.DRAW:
                kind = GameResultKind.DRAW
            elif self._outcome.winner is seat.mark:
                kind = GameResultKind.WIN
            else:
                kind = GameResultKind.LOSS
            opponent = self._seats[seat.mark.opponent]
            participants.append(PlayerResult(
                name=seat.name,
                result=kind,
                is_ai=seat.is_ai,
                opponent_difficulty=opponent.difficulty.value if opponent.is_ai else None,
                moves=sum(1 for m in self._state.history if m.mark is seat.mark),
            ))
        return GameResult(
            participants=tuple(participants),
            total_moves=len(self._state.history),
            session_id=self.session_id,
        )

    # PUBLIC_INTERFACE
    def play_ai_turn(self) -> SessionSnapshot:
        """Let the AI seat that owns the turn pick and apply its move."""
        self._ensure_accepting()
        owner = self.turn_owner
        if not owner.is_ai:
            raise NotYourTurnError(f"It is {owner.name}'s turn.", context={"turn": owner.mark.value})
        move = select_move(self._state, owner.difficulty, self._rng)
        return self._apply(move)

    # PUBLIC_INTERFACE
    def advance(self) -> SessionSnapshot:
        """Play AI turns until a human is to move or the game ends."""
        while not self._closed and self._status is SessionStatus.AWAITING_MOVE and self.turn_owner.is_ai:
            self.play_ai_turn()
        return self.snapshot()

    # PUBLIC_INTERFACE
    async def submit_move_async(self, move: Move, player_name: Optional[str] = None) -> SessionSnapshot:
        async with self._lock:
            return self.submit_move(move, player_name)

    # PUBLIC_INTERFACE
    async def play_ai_turn_async(self, think_time: float = 0.0) -> SessionSnapshot:
        """Async AI turn; the move is dropped if the session changed or closed meanwhile."""
        async with self._lock:
            self._ensure_accepting()
            owner = self.turn_owner
            if not owner.is_ai:
                raise NotYourTurnError(f"It is {owner.name}'s turn.", context={"turn": owner.mark.value})
            state = self._state
            move = await select_move_async(state, owner.difficulty, think_time, self._rng)
            if self._closed or self._state is not state:
                logger.info("Session %s: discarding stale AI move %d", self.session_id, move.index)
                return self.snapshot()
            return self._apply(move)

    # PUBLIC_INTERFACE
    async def advance_async(self, think_time: float = 0.0) -> SessionSnapshot:
        while not self._closed and self._status is SessionStatus.AWAITING_MOVE and self.turn_owner.is_ai:
            await self.play_ai_turn_async(think_time)
        return self.snapshot()

    # PUBLIC_INTERFACE
    def hint(self, difficulty: Union[str, Difficulty, None] = None) -> Move:
        """Suggested move for whoever is to move; nothing is applied."""
        if self._status is SessionStatus.TERMINAL:
            raise NoLegalMoveError("No legal move: the game is already over.", context={"session": self.session_id})
        chosen = Difficulty.OPTIMAL if difficulty is None else parse_difficulty(difficulty)
        return select_move(self._state, chosen, self._rng)

    # PUBLIC_INTERFACE
    def close(self):
        """Tear the session down; pending AI moves are discarded."""
        if not self._closed:
            self._closed = True
            logger.info("Session %s closed", self.session_id)
