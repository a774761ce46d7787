"""Check, checkmate and draw decisions for a :class:`Position`.

Every probe runs on a clone, so none of these functions mutate their input.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .attacks import (
    is_square_attacked,
    king_standard_moves,
    pieces_attacking_square,
    pieces_moving_to_square,
    possible_moves_from_square,
)
from .move import ChessMove, MoveType, Square, is_on_board

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


logger = logging.getLogger(__name__)


def is_check(position: "Position") -> bool:
    """Return True if the side to move has its king attacked."""
    king = position.get_king_square()
    if king is None or not is_on_board(king):
        return False
    return is_square_attacked(position, king, not position.white_to_move())


def is_checkmate(position: "Position") -> bool:
    """Return True if the side to move is in check and cannot get out of it.

    Tried in order: a king step to an unattacked square, capturing a checking
    piece, then blocking a sliding check. Any capture or block counts only if
    the own king is safe once it is played, which also rules out a king
    taking a defended checker.
    """
    if not is_check(position):
        return False
    is_white = position.white_to_move()
    king = position.get_king_square()
    assert king is not None

    # The king must not shield its own escape squares from a slider
    without_king = position.clone()
    without_king.clear_square(king)
    for step in king_standard_moves(position, king, is_white, castling_only=False):
        if not is_square_attacked(without_king, step.dest, not is_white):
            logger.debug("not mate: king escapes to %s", step.dest)
            return False

    for attack in pieces_attacking_square(position, king, not is_white):
        for capture in _captures_of(position, attack, is_white):
            if _king_safe_after(position, capture, is_white):
                logger.debug("not mate: %s captures the checker", capture.to_uci())
                return False
        if attack.piece.lower() not in ("r", "b", "q"):
            continue
        for square in _squares_between(attack.src, king):
            for block in pieces_moving_to_square(position, square, is_white):
                if _king_safe_after(position, block, is_white):
                    logger.debug("not mate: %s blocks the check", block.to_uci())
                    return False
    return True


def is_stalemate(position: "Position") -> bool:
    """Return True if the side to move is not in check and has no legal move."""
    if is_check(position):
        return False
    for square in position.all_occupied_squares(position.white_to_move()):
        if possible_moves_from_square(position, square):
            return False
    return True


def is_draw(position: "Position") -> bool:
    """Return True on threefold repetition or stalemate."""
    if position.history.has_threefold_repetition():
        return True
    return is_stalemate(position)


def _captures_of(position: "Position", attack: ChessMove, is_white: bool) -> list[ChessMove]:
    captures = pieces_attacking_square(position, attack.src, is_white)
    # A checking pawn that just advanced two ranks can also be taken en passant
    ep = position.get_en_passant_square()
    behind = (attack.src[0] + (1 if is_white else -1), attack.src[1])
    if attack.piece.lower() == "p" and ep == behind:
        pawn = "P" if is_white else "p"
        for candidate in pieces_attacking_square(position, ep, is_white):
            if candidate.piece == pawn:
                captures.append(ChessMove(candidate.src, ep, pawn, MoveType.EN_PASSANT))
    return captures


def _king_safe_after(position: "Position", move: ChessMove, is_white: bool) -> bool:
    probe = position.clone()
    probe.move_piece(move.src, move.dest)
    if move.move_type is MoveType.EN_PASSANT:
        rank, file = move.dest
        probe.clear_square((rank - 1, file) if is_white else (rank + 1, file))
    king = probe.get_king_square(is_white)
    return king is not None and not is_square_attacked(probe, king, not is_white)


def _squares_between(src: Square, dest: Square) -> list[Square]:
    dr = (dest[0] > src[0]) - (dest[0] < src[0])
    df = (dest[1] > src[1]) - (dest[1] < src[1])
    squares = []
    rank, file = src[0] + dr, src[1] + df
    while (rank, file) != dest:
        squares.append((rank, file))
        rank, file = rank + dr, file + df
    return squares
