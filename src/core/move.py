from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple


# (rank, file), both 1..8; a1 == (1, 1), h8 == (8, 8)
Square = Tuple[int, int]


class MoveType(IntEnum):
    """Classification of a move, decided before it reaches the position."""

    STANDARD = 0
    CASTLE_KING_SIDE = 1
    CASTLE_QUEEN_SIDE = 2
    EN_PASSANT = 3
    PROMOTE_TO_QUEEN = 4
    PROMOTE_TO_ROOK = 5
    PROMOTE_TO_BISHOP = 6
    PROMOTE_TO_KNIGHT = 7
    INVALID = 8

    @property
    def is_promotion(self) -> bool:
        return self in PROMOTION_KINDS


# Promotion move type -> lowercase piece letter
PROMOTION_KINDS = {
    MoveType.PROMOTE_TO_QUEEN: "q",
    MoveType.PROMOTE_TO_ROOK: "r",
    MoveType.PROMOTE_TO_BISHOP: "b",
    MoveType.PROMOTE_TO_KNIGHT: "n",
}
PROMOTION_BY_LETTER = {v: k for k, v in PROMOTION_KINDS.items()}


@dataclass(frozen=True)
class ChessMove:
    """Move descriptor handed to :meth:`Position.apply_move`.

    Attributes:
        src (Square): Origin square as ``(rank, file)``.
        dest (Square): Destination square as ``(rank, file)``.
        piece (str): Moving piece letter; uppercase is white, lowercase black.
        move_type (MoveType): Classification tag used for dispatch.
    """

    src: Square
    dest: Square
    piece: str
    move_type: MoveType = MoveType.STANDARD

    @property
    def is_white_piece(self) -> bool:
        return self.piece.isupper()

    def to_uci(self) -> str:
        """Serialize the move into long algebraic UCI form.

        Returns:
            str: Move encoded like ``"e2e4"`` or ``"e7e8q"``.
        """
        promo = PROMOTION_KINDS.get(self.move_type, "")
        return square_to_str(self.src) + square_to_str(self.dest) + promo


def parse_uci(uci: str) -> Tuple[Square, Square, Optional[str]]:
    """Parse a UCI move string into its squares and promotion letter.

    Args:
        uci (str): Move encoded in long algebraic notation (e.g. ``"e2e4"``).

    Returns:
        Tuple[Square, Square, Optional[str]]: Source, destination and the
            lowercase promotion letter (``None`` when absent).

    Raises:
        ValueError: If the string has an invalid length, squares, or promotion
            piece.
    """
    if len(uci) not in (4, 5):
        raise ValueError(f"invalid UCI move length: {uci!r}")
    src = str_to_square(uci[0:2])
    dest = str_to_square(uci[2:4])
    promo: Optional[str] = None
    if len(uci) == 5:
        promo = uci[4].lower()
        if promo not in PROMOTION_BY_LETTER:
            raise ValueError(f"invalid promotion piece: {promo!r}")
    return src, dest, promo


def is_on_board(square: Square) -> bool:
    rank, file = square
    return 1 <= rank <= 8 and 1 <= file <= 8


def square_index(square: Square) -> int:
    """Return the cell index of ``square``; index 0 is a8 and 63 is h1.

    Raises:
        ValueError: If ``square`` is off the board.
    """
    if not is_on_board(square):
        raise ValueError(f"invalid square: {square!r}")
    rank, file = square
    return (8 - rank) * 8 + (file - 1)


def index_to_square(idx: int) -> Square:
    if idx < 0 or idx > 63:
        raise ValueError(f"invalid square index: {idx}")
    return 8 - idx // 8, idx % 8 + 1


def str_to_square(s: str) -> Square:
    """Convert algebraic notation into a ``(rank, file)`` square.

    Args:
        s (str): Square name such as ``"e4"``.

    Returns:
        Square: ``(rank, file)`` with both components in 1..8.

    Raises:
        ValueError: If ``s`` is not a valid square.
    """
    if len(s) != 2 or s[0] < "a" or s[0] > "h" or s[1] < "1" or s[1] > "8":
        raise ValueError(f"invalid square: {s!r}")
    return int(s[1]), ord(s[0]) - ord("a") + 1


def square_to_str(square: Square) -> str:
    """Convert a ``(rank, file)`` square into algebraic notation.

    Raises:
        ValueError: If ``square`` is off the board.
    """
    if not is_on_board(square):
        raise ValueError(f"invalid square: {square!r}")
    rank, file = square
    return chr(ord("a") + file - 1) + str(rank)
