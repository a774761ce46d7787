from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from ...core.game import Game
from ...core.move import square_to_str, str_to_square
from .session import InMemorySessionStore


logger = logging.getLogger(__name__)


class CreateGameRequest(BaseModel):
    fen: Optional[str] = Field(default=None, description="FEN string (default: startpos)")


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class SetPositionRequest(BaseModel):
    fen: str = Field(..., description="FEN string")


class MoveRequest(BaseModel):
    move: str = Field(..., description="UCI move string, e.g., e2e4 or e7e8q")


class CastlingState(BaseModel):
    white_king_side: bool
    white_queen_side: bool
    black_king_side: bool
    black_queen_side: bool


class GameState(BaseModel):
    game_id: str
    fen: str
    board: list[int] = Field(..., description="64 cells a8..h1; 0 empty, odd black, even white")
    white_to_move: bool
    castling: CastlingState
    en_passant: Optional[str]
    legal_moves: list[str]
    in_check: bool
    checkmate: bool
    stalemate: bool
    draw: bool
    last_move: Optional[str]
    move_history: list[str]


class SquareMoves(BaseModel):
    square: str
    moves: list[str]


def create_app(log_level: str = "INFO") -> FastAPI:
    app = FastAPI(title="Chess Position API", version="0.1.0")

    logging.basicConfig(level=log_level.upper())

    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    store = InMemorySessionStore()
    app.state.sessions = store

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game(req: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        game = Game.new() if req is None or req.fen is None else _load(req.fen)
        game_id = store.create(game)
        logger.info("game created", extra={"game_id": game_id})
        return CreateGameResponse(game_id=game_id, fen=game.to_fen())

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    async def get_state(game_id: str) -> GameState:
        return _state(game_id, _require_game(store, game_id))

    @app.post("/api/games/{game_id}/position", response_model=GameState)
    async def set_position(game_id: str, req: SetPositionRequest) -> GameState:
        _require_game(store, game_id)
        store.replace(game_id, _load(req.fen))
        return _state(game_id, _require_game(store, game_id))

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    async def make_move(game_id: str, req: MoveRequest) -> GameState:
        game = _require_game(store, game_id)
        if game.is_over():
            raise HTTPException(status_code=409, detail="game is over")
        try:
            game.apply_uci(req.move)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _state(game_id, game)

    @app.get("/api/games/{game_id}/moves/{square}", response_model=SquareMoves)
    async def moves_from(game_id: str, square: str) -> SquareMoves:
        game = _require_game(store, game_id)
        try:
            sq = str_to_square(square)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return SquareMoves(square=square, moves=[m.to_uci() for m in game.moves_from(sq)])

    @app.delete("/api/games/{game_id}", status_code=204)
    async def delete_game(game_id: str) -> Response:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return Response(status_code=204)

    return app


def _load(fen: str) -> Game:
    try:
        return Game.from_fen(fen, strict=True)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid FEN: {e}")


def _require_game(store: InMemorySessionStore, game_id: str) -> Game:
    game = store.get(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="game not found")
    return game


def _state(game_id: str, game: Game) -> GameState:
    position = game.position
    rights = position.castle_rights
    ep = position.get_en_passant_square()
    last = game.last_move()
    return GameState(
        game_id=game_id,
        fen=game.to_fen(),
        board=game.board(),
        white_to_move=position.white_to_move(),
        castling=CastlingState(
            white_king_side=rights.white_king_side,
            white_queen_side=rights.white_queen_side,
            black_king_side=rights.black_king_side,
            black_queen_side=rights.black_queen_side,
        ),
        en_passant=square_to_str(ep) if ep is not None else None,
        legal_moves=[m.to_uci() for m in game.legal_moves()],
        in_check=game.in_check(),
        checkmate=game.checkmate(),
        stalemate=game.stalemate(),
        draw=game.is_draw(),
        last_move=last.to_uci() if last is not None else None,
        move_history=game.move_history_uci(),
    )
