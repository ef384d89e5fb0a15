import logging
from typing import List, Optional

import jwt
from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from starlette.websockets import WebSocketState

from .ai import parse_difficulty
from .config import get_settings
from .core import Move, OutcomeKind
from .errors import (
    IllegalMoveError,
    InvalidBoardError,
    NoLegalMoveError,
    NotYourTurnError,
    PlayerNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
    TicTacError,
    UnknownDifficultyError,
)
from .models import (
    GameStartRequest,
    HintResponse,
    LeaderboardResponse,
    MoveRequest,
    PlayerStatsDto,
    SeatModel,
    SessionResponse,
    StatsSummaryModel,
    TokenRequest,
    TokenResponse,
)
from .security import create_access_token, decode_player_name
from .service import GameService
from .session import SessionSnapshot

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

app = FastAPI(
    title="PoTicTac API",
    description="Tic Tac Toe game engine with AI opponents, player statistics, leaderboard and real-time WS.",
    version="0.2.0",
    openapi_tags=[
        {"name": "auth", "description": "Player tokens"},
        {"name": "game", "description": "Start/play Tic Tac Toe games"},
        {"name": "statistics", "description": "Player statistics, leaderboard and summary"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service = GameService(settings=settings)

# Most specific first.
_ERROR_STATUS = (
    (NotYourTurnError, 403),
    (IllegalMoveError, 409),
    (NoLegalMoveError, 409),
    (UnknownDifficultyError, 422),
    (InvalidBoardError, 422),
    (SessionNotFoundError, 404),
    (PlayerNotFoundError, 404),
    (SessionClosedError, 410),
)


def get_service() -> GameService:
    return _service


@app.exception_handler(TicTacError)
async def tictac_error_handler(request: Request, exc: TicTacError):
    status_code = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 500)
    if isinstance(exc, NoLegalMoveError):
        logger.error("AI requested on a finished game: %s", exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


async def get_current_player(token: str = Depends(oauth2_scheme)) -> str:
    """Decode JWT and return the player name. Raises on error."""
    try:
        return decode_player_name(token, settings)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Could not validate credentials")


##---- Utility Functions ----##
_STATUS_LABELS = {
    OutcomeKind.IN_PROGRESS: "continue",
    OutcomeKind.WIN: "won",
    OutcomeKind.DRAW: "draw",
}


def to_response(snapshot: SessionSnapshot, message: Optional[str] = None) -> SessionResponse:
    state, outcome = snapshot.state, snapshot.outcome
    last = snapshot.last_move
    owner = snapshot.turn_owner
    if message is None:
        if outcome.kind is OutcomeKind.WIN:
            message = f"Winner is {outcome.winner.value}"
        elif outcome.kind is OutcomeKind.DRAW:
            message = "It's a draw."
        else:
            message = "Continue playing."
    return SessionResponse(
        session_id=snapshot.session_id,
        board=state.rows(),
        status=_STATUS_LABELS[outcome.kind],
        move_count=state.move_count,
        players=[
            SeatModel(name=s.name, mark=s.mark.value, difficulty=s.difficulty.value if s.is_ai else None)
            for s in snapshot.players
        ],
        winner=outcome.winner.value if outcome.winner else None,
        winning_line=list(outcome.line) if outcome.line else None,
        next_turn=state.current_turn.value if owner else None,
        turn_owner=owner.name if owner else None,
        last_move=last.index if last else None,
        message=message,
    )


@app.get("/", tags=["health"])
def health_check():
    """Health check route for backend"""
    return {"message": "Healthy"}


# PUBLIC_INTERFACE
@app.post("/token", response_model=TokenResponse, tags=["auth"], summary="Issue player token")
async def issue_token(request: TokenRequest):
    """Issue a bearer token identifying a player by name.

    Args:
        request (TokenRequest): Player name.
    Returns:
        TokenResponse: Authentication JWT token.
    """
    token = create_access_token({"sub": request.player_name}, settings=settings)
    return TokenResponse(access_token=token, token_type="bearer")


# PUBLIC_INTERFACE
@app.post(
    "/sessions", response_model=SessionResponse, response_model_exclude_none=True,
    tags=["game"], summary="Start new game",
)
async def start_game(
    request: GameStartRequest,
    player: str = Depends(get_current_player),
    service: GameService = Depends(get_service),
):
    """Start a new game vs another player or vs AI.

    - If human: opponent_name is required and must hold their own token to move.
    - If ai_first: the AI plays X and its opening move is already on the board.
    """
    if request.opponent_type == "human":
        if not request.opponent_name:
            raise HTTPException(status_code=422, detail="opponent_name is required for human games")
        snapshot = await service.start_session_async(
            player, opponent=request.opponent_name,
            size=request.board_size, win_length=request.win_length,
        )
    else:
        snapshot = await service.start_session_async(
            player, difficulty=request.difficulty,
            size=request.board_size, win_length=request.win_length, ai_first=request.ai_first,
        )
    return to_response(snapshot, message="Game started.")


# PUBLIC_INTERFACE
@app.post(
    "/sessions/{session_id}/moves", response_model=SessionResponse, response_model_exclude_none=True,
    tags=["game"], summary="Make a move",
)
async def make_move(
    session_id: str,
    request: MoveRequest,
    player: str = Depends(get_current_player),
    service: GameService = Depends(get_service),
):
    """Play a move in an active game. The AI reply, if any, is included in the returned state."""
    session = service.get_session(session_id)
    if session.seat_for(player) is None:
        raise HTTPException(status_code=403, detail="You are not a player in this game.")
    if request.index is not None:
        index = request.index
    elif request.row is not None and request.col is not None:
        index = Move.at(request.row, request.col, session.state.current_turn, session.state.size).index
    else:
        raise HTTPException(status_code=422, detail="Give either index or row and col.")
    snapshot = await service.submit_move_async(session_id, index, player_name=player)
    return to_response(snapshot)


# PUBLIC_INTERFACE
@app.get(
    "/sessions/{session_id}", response_model=SessionResponse, response_model_exclude_none=True,
    tags=["game"], summary="Get current game state",
)
async def get_game_state(session_id: str, service: GameService = Depends(get_service)):
    """Get board state and info for a game."""
    return to_response(service.get_session(session_id).snapshot())


# PUBLIC_INTERFACE
@app.get("/sessions/{session_id}/hint", response_model=HintResponse, tags=["game"], summary="Suggest a move")
async def get_hint(
    session_id: str,
    difficulty: Optional[str] = None,
    service: GameService = Depends(get_service),
):
    """Ask the AI which move it would play for whoever is to move."""
    session = service.get_session(session_id)
    move = await service.get_ai_move_async(session_id, difficulty)
    row, col = session.state.coords(move.index)
    return HintResponse(
        index=move.index, row=row, col=col, mark=move.mark.value,
        difficulty=parse_difficulty(difficulty).value if difficulty else "optimal",
    )


# PUBLIC_INTERFACE
@app.delete(
    "/sessions/{session_id}", response_model=SessionResponse, response_model_exclude_none=True,
    tags=["game"], summary="End a game",
)
async def end_game(
    session_id: str,
    player: str = Depends(get_current_player),
    service: GameService = Depends(get_service),
):
    """Tear down a session. Unfinished games are not recorded."""
    if service.get_session(session_id).seat_for(player) is None:
        raise HTTPException(status_code=403, detail="You are not a player in this game.")
    return to_response(service.end_session(session_id), message="Session closed.")


# PUBLIC_INTERFACE
@app.get(
    "/players/{player_name}/stats", response_model=PlayerStatsDto, response_model_exclude_none=True,
    tags=["statistics"], summary="Get a player's statistics",
)
async def get_player_stats(player_name: str, service: GameService = Depends(get_service)):
    return service.get_stats(player_name)


# PUBLIC_INTERFACE
@app.get(
    "/statistics", response_model=List[PlayerStatsDto], response_model_exclude_none=True,
    tags=["statistics"], summary="Get all player statistics",
)
async def get_all_statistics(service: GameService = Depends(get_service)):
    return service.all_stats()


# PUBLIC_INTERFACE
@app.get(
    "/statistics/leaderboard", response_model=LeaderboardResponse, response_model_exclude_none=True,
    tags=["statistics"], summary="Get top players leaderboard",
)
async def get_leaderboard(limit: Optional[int] = None, service: GameService = Depends(get_service)):
    """Players ranked by win rate, then games played, then name."""
    return LeaderboardResponse(leaderboard=service.get_leaderboard(limit))


# PUBLIC_INTERFACE
@app.get(
    "/statistics/summary", response_model=StatsSummaryModel,
    tags=["statistics"], summary="Get aggregate statistics",
)
async def get_summary(service: GameService = Depends(get_service)):
    return service.get_summary()


# PUBLIC_INTERFACE
@app.websocket("/ws/sessions/{session_id}")
async def websocket_game_updates(websocket: WebSocket, session_id: str, service: GameService = Depends(get_service)):
    """
    WebSocket for game state updates. Usage: connect to ws://host/ws/sessions/{session_id}.
    Send 'ping' for a pong, or any text to get the latest state.
    """
    await websocket.accept()
    try:
        while True:
            if websocket.application_state != WebSocketState.CONNECTED:
                break
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
                continue
            try:
                snapshot = service.get_session(session_id).snapshot()
            except SessionNotFoundError:
                await websocket.send_json({"detail": "Game not found", "code": SessionNotFoundError.code})
                continue
            await websocket.send_json(to_response(snapshot).model_dump(by_alias=True, exclude_none=True))
    except WebSocketDisconnect:
        logger.debug("WebSocket for session %s disconnected", session_id)
