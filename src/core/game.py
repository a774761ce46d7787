from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .attacks import classify_move, possible_moves_from_square
from .move import ChessMove, Square, parse_uci
from .position import STARTPOS_FEN, Position
from .status import is_stalemate


logger = logging.getLogger(__name__)


@dataclass
class Game:
    """Game wrapper around a position with helper operations.

    Responsibility: own the position, expose legal moves, apply only legal
    moves, and report the terminal state.
    """

    position: Position
    move_stack: List[ChessMove] = field(default_factory=list)

    @classmethod
    def new(cls) -> "Game":
        return cls(position=Position.startpos())

    @classmethod
    def from_fen(cls, fen: str, *, strict: bool = False) -> "Game":
        return cls(position=Position.from_fen(fen, strict=strict))

    def reset(self) -> None:
        self.position.load_fen(STARTPOS_FEN)
        self.move_stack.clear()

    def to_fen(self) -> str:
        return self.position.to_fen()

    def board(self) -> List[int]:
        return self.position.get_current_position()

    def moves_from(self, square: Square) -> List[ChessMove]:
        """Legal moves of the side to move starting on ``square``."""
        if not self.position.is_occupied_by(square, self.position.white_to_move()):
            return []
        return possible_moves_from_square(self.position, square)

    def legal_moves(self) -> List[ChessMove]:
        moves: List[ChessMove] = []
        for square in self.position.all_occupied_squares(self.position.white_to_move()):
            moves.extend(possible_moves_from_square(self.position, square))
        return moves

    def is_move_legal(self, src: Square, dest: Square) -> bool:
        return any(m.dest == dest for m in self.moves_from(src))

    def apply_move(self, move: ChessMove) -> None:
        """Apply ``move`` after checking it against the legal moves.

        Raises:
            ValueError: If ``move`` is not legal in the current position.
        """
        if move not in self.moves_from(move.src):
            raise ValueError("illegal move")
        self.position.apply_move(move)
        self.move_stack.append(move)
        if self.checkmate():
            logger.info("checkmate after %s", move.to_uci())
        elif self.is_draw():
            logger.info("draw after %s", move.to_uci())

    def apply_uci(self, uci: str) -> ChessMove:
        """Parse, classify and apply a UCI move; return the applied move.

        Raises:
            ValueError: If the text is malformed or the move is illegal.
        """
        src, dest, promotion = parse_uci(uci)
        if not self.position.is_occupied_by(src, self.position.white_to_move()):
            raise ValueError("illegal move")
        move = classify_move(self.position, src, dest, promotion)
        self.apply_move(move)
        return move

    # --- State flags for protocol ---
    def in_check(self) -> bool:
        return self.position.is_check()

    def checkmate(self) -> bool:
        return self.position.is_checkmate()

    def stalemate(self) -> bool:
        return is_stalemate(self.position)

    def is_draw(self) -> bool:
        return self.position.is_draw()

    def is_over(self) -> bool:
        return self.checkmate() or self.is_draw()

    def last_move(self) -> Optional[ChessMove]:
        return self.move_stack[-1] if self.move_stack else None

    def move_history_uci(self) -> List[str]:
        return [m.to_uci() for m in self.move_stack]
