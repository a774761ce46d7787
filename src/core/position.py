from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from . import status
from .history import PositionHistory
from .move import (
    PROMOTION_KINDS,
    ChessMove,
    MoveType,
    Square,
    is_on_board,
    square_index,
    square_to_str,
)


logger = logging.getLogger(__name__)


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

PIECE_LETTERS = "PNBRQKpnbrqk"

# 0 = empty; odd = black, even = white, paired per kind
PIECE_CODES = {
    "p": 1,
    "P": 2,
    "n": 3,
    "N": 4,
    "b": 5,
    "B": 6,
    "r": 7,
    "R": 8,
    "q": 9,
    "Q": 10,
    "k": 11,
    "K": 12,
}

# (corner, rook letter, is_white, king_side)
_ROOK_CORNERS = (
    ((1, 1), "R", True, False),
    ((1, 8), "R", True, True),
    ((8, 1), "r", False, False),
    ((8, 8), "r", False, True),
)


class PositionConsistencyError(RuntimeError):
    """A move contradicts the position it was applied to.

    Signals a broken caller contract (e.g. a castle without its rook, or a
    move that was never classified). The position is left untouched.
    """


@dataclass
class CastleRights:
    """Four independent castling flags; a cleared flag is never set again."""

    white_king_side: bool = True
    white_queen_side: bool = True
    black_king_side: bool = True
    black_queen_side: bool = True

    def king_side(self, is_white: bool) -> bool:
        return self.white_king_side if is_white else self.black_king_side

    def queen_side(self, is_white: bool) -> bool:
        return self.white_queen_side if is_white else self.black_queen_side

    def revoke(self, is_white: bool, *, king_side: bool = True, queen_side: bool = True) -> None:
        if is_white:
            if king_side:
                self.white_king_side = False
            if queen_side:
                self.white_queen_side = False
        else:
            if king_side:
                self.black_king_side = False
            if queen_side:
                self.black_queen_side = False

    def revoke_all(self) -> None:
        self.revoke(True)
        self.revoke(False)

    def to_fen(self) -> str:
        flags = (
            ("K", self.white_king_side),
            ("Q", self.white_queen_side),
            ("k", self.black_king_side),
            ("q", self.black_queen_side),
        )
        return "".join(ch for ch, on in flags if on) or "-"


class _FenPhase(Enum):
    PLACEMENT = "placement"
    SIDE_TO_MOVE = "side_to_move"
    CASTLING = "castling"
    # En-passant field and move counters: read past, never parsed
    EN_PASSANT = "en_passant"


@dataclass
class Position:
    """Mailbox board plus the state needed to apply moves and judge results.

    Notes:
    - ``cells`` holds 64 entries, index 0 = a8 .. 63 = h1; ``None`` is empty,
      otherwise a piece letter (uppercase white, lowercase black).
    - King squares are a cache updated by every placement that moves a king.
    - ``==`` is repetition equality: cells, side to move, en-passant target
      and castling flags. History and the king cache do not take part.
    """

    cells: List[Optional[str]] = field(default_factory=lambda: [None] * 64)
    is_white_to_move: bool = True
    en_passant_sq: Optional[Square] = None
    castle_rights: CastleRights = field(default_factory=CastleRights)
    white_king_sq: Optional[Square] = field(default=None, compare=False)
    black_king_sq: Optional[Square] = field(default=None, compare=False)
    history: PositionHistory = field(default_factory=PositionHistory, repr=False, compare=False)

    @classmethod
    def startpos(cls) -> "Position":
        return cls.from_fen(STARTPOS_FEN)

    @classmethod
    def from_fen(cls, fen: str, *, strict: bool = False) -> "Position":
        """Create a position from a FEN string.

        See :meth:`load_fen` for the parsing rules.
        """
        position = cls()
        position.load_fen(fen, strict=strict)
        return position

    def load_fen(self, fen: str, *, strict: bool = False) -> None:
        """Reset this position from a FEN string and restart its history.

        Args:
            fen (str): Placement, optionally followed by side to move and
                castling rights. Further fields are accepted and ignored.
            strict (bool): Validate the text first instead of skipping
                characters that do not fit.

        Raises:
            ValueError: Only when ``strict`` is set and ``fen`` is malformed.

        Notes:
            Castling rights stay enabled when the string has no space at all;
            the first space disables them until ``KQkq`` letters re-grant them.
            The en-passant field is not parsed, so the target is always unset
            after loading.
        """
        if strict:
            fen = fen.strip()
            _validate_fen(fen)

        self.history.clear()
        self.cells = [None] * 64
        self.is_white_to_move = True
        self.en_passant_sq = None
        self.castle_rights = CastleRights()
        self.white_king_sq = None
        self.black_king_sq = None

        phase = _FenPhase.PLACEMENT
        rank, file = 8, 1
        for ch in fen:
            if phase is _FenPhase.PLACEMENT:
                if "0" <= ch <= "9":
                    file += int(ch)
                elif ch in PIECE_LETTERS:
                    if is_on_board((rank, file)):
                        self.set_piece((rank, file), ch)
                    file += 1
                elif ch == "/":
                    rank -= 1
                    file = 1
                elif ch == " ":
                    self.castle_rights.revoke_all()
                    phase = _FenPhase.SIDE_TO_MOVE
            elif phase is _FenPhase.SIDE_TO_MOVE:
                if ch == "w":
                    self.is_white_to_move = True
                elif ch == "b":
                    self.is_white_to_move = False
                elif ch == " ":
                    phase = _FenPhase.CASTLING
            elif phase is _FenPhase.CASTLING:
                if ch == "K":
                    self.castle_rights.white_king_side = True
                elif ch == "Q":
                    self.castle_rights.white_queen_side = True
                elif ch == "k":
                    self.castle_rights.black_king_side = True
                elif ch == "q":
                    self.castle_rights.black_queen_side = True
                elif ch == " ":
                    phase = _FenPhase.EN_PASSANT
            else:
                # TODO: parse the en-passant target square (two characters)
                # into en_passant_sq; needed to resume games mid double push.
                break

        self.history.add_position(self)

    def to_fen(self) -> str:
        """Serialize placement, side to move, castling and en-passant fields."""
        rows: List[str] = []
        for rank in range(8, 0, -1):
            run = 0
            row = []
            for file in range(1, 9):
                piece = self.get_piece_on_square((rank, file))
                if piece is None:
                    run += 1
                    continue
                if run > 0:
                    row.append(str(run))
                    run = 0
                row.append(piece)
            if run > 0:
                row.append(str(run))
            rows.append("".join(row))
        stm = "w" if self.is_white_to_move else "b"
        ep = square_to_str(self.en_passant_sq) if self.en_passant_sq is not None else "-"
        return f"{'/'.join(rows)} {stm} {self.castle_rights.to_fen()} {ep}"

    def clone(self) -> "Position":
        """Return an independent copy with an empty history."""
        return Position(
            cells=list(self.cells),
            is_white_to_move=self.is_white_to_move,
            en_passant_sq=self.en_passant_sq,
            castle_rights=replace(self.castle_rights),
            white_king_sq=self.white_king_sq,
            black_king_sq=self.black_king_sq,
        )

    # --- Queries ---
    def white_to_move(self) -> bool:
        return self.is_white_to_move

    def set_white_to_move(self, is_white_to_move: bool) -> None:
        self.is_white_to_move = is_white_to_move

    def get_piece_on_square(self, square: Square) -> Optional[str]:
        return self.cells[square_index(square)]

    def get_en_passant_square(self) -> Optional[Square]:
        return self.en_passant_sq

    def is_castle_king_side_available(self, is_white: bool) -> bool:
        return self.castle_rights.king_side(is_white)

    def is_castle_queen_side_available(self, is_white: bool) -> bool:
        return self.castle_rights.queen_side(is_white)

    def get_king_square(self, is_white: Optional[bool] = None) -> Optional[Square]:
        """Return the cached king square (default: side to move), if any."""
        if is_white is None:
            is_white = self.is_white_to_move
        return self.white_king_sq if is_white else self.black_king_sq

    def is_occupied(self, square: Square) -> bool:
        return self.get_piece_on_square(square) is not None

    def is_occupied_by(self, square: Square, is_white: bool) -> bool:
        piece = self.get_piece_on_square(square)
        return piece is not None and piece.isupper() == is_white

    def all_occupied_squares(self, is_white: bool) -> List[Square]:
        """Return squares holding ``is_white`` pieces, rank 1 first, a-file first."""
        return [
            (rank, file)
            for rank in range(1, 9)
            for file in range(1, 9)
            if self.is_occupied_by((rank, file), is_white)
        ]

    def get_current_position(self) -> List[int]:
        """Return the 64 cells encoded as ints (see ``PIECE_CODES``)."""
        return [PIECE_CODES.get(piece, 0) if piece else 0 for piece in self.cells]

    # --- Terminal state ---
    def is_check(self) -> bool:
        return status.is_check(self)

    def is_checkmate(self) -> bool:
        return status.is_checkmate(self)

    def is_draw(self) -> bool:
        return status.is_draw(self)

    # --- Square edits ---
    def set_piece(self, square: Square, piece: str) -> None:
        """Place ``piece`` on ``square`` without making a move."""
        idx = square_index(square)
        self._forget_king(self.cells[idx])
        self.cells[idx] = piece
        if piece == "K":
            self.white_king_sq = square
        elif piece == "k":
            self.black_king_sq = square

    def clear_square(self, square: Square) -> None:
        """Empty ``square`` without making a move."""
        idx = square_index(square)
        self._forget_king(self.cells[idx])
        self.cells[idx] = None

    def move_piece(self, src: Square, dest: Square) -> None:
        """Move whatever stands on ``src`` to ``dest``, leaving ``src`` empty."""
        piece = self.get_piece_on_square(src)
        self.clear_square(src)
        if piece is None:
            self.clear_square(dest)
        else:
            self.set_piece(dest, piece)

    def _forget_king(self, piece: Optional[str]) -> None:
        if piece == "K":
            self.white_king_sq = None
        elif piece == "k":
            self.black_king_sq = None

    # --- Move application ---
    def apply_move(self, move: ChessMove) -> None:
        """Apply a classified move in place and record the new position.

        A move by the side not to move is ignored.

        Raises:
            PositionConsistencyError: If the move type is ``INVALID``, the
                moving piece is not on ``move.src``, a castle lacks its rook,
                or an en-passant capture is not made by a pawn. Nothing is
                changed in that case.
        """
        if move.is_white_piece != self.is_white_to_move:
            logger.debug("ignoring %s: wrong side to move", move.to_uci())
            return
        self._check_move_preconditions(move)

        self.move_piece(move.src, move.dest)
        self.en_passant_sq = None

        if move.move_type is MoveType.STANDARD:
            self._after_standard_move(move)
        elif move.move_type in (MoveType.CASTLE_KING_SIDE, MoveType.CASTLE_QUEEN_SIDE):
            self._after_castle(move)
        elif move.move_type is MoveType.EN_PASSANT:
            rank, file = move.dest
            captured = (rank - 1, file) if move.is_white_piece else (rank + 1, file)
            self.clear_square(captured)
        elif move.move_type.is_promotion:
            letter = PROMOTION_KINDS[move.move_type]
            self.set_piece(move.dest, letter.upper() if move.is_white_piece else letter)
        self._revalidate_castle_rights()

        self.is_white_to_move = not self.is_white_to_move
        self.history.add_position(self)

    def _check_move_preconditions(self, move: ChessMove) -> None:
        problem: Optional[str] = None
        if move.move_type is MoveType.INVALID:
            problem = "unclassified move"
        elif not is_on_board(move.src) or not is_on_board(move.dest):
            problem = "square off the board"
        elif self.get_piece_on_square(move.src) != move.piece:
            problem = f"{move.piece!r} is not on {square_to_str(move.src)}"
        elif move.move_type in (MoveType.CASTLE_KING_SIDE, MoveType.CASTLE_QUEEN_SIDE):
            corner = _castle_rook_squares(move)[0]
            rook = "R" if move.is_white_piece else "r"
            if self.get_piece_on_square(corner) != rook:
                problem = f"no {rook!r} on {square_to_str(corner)} to castle with"
        elif move.move_type is MoveType.EN_PASSANT:
            if move.piece.lower() != "p":
                problem = "en passant by a non-pawn"
            elif not 2 <= move.dest[0] <= 7:
                problem = "en passant onto a back rank"
        if problem is not None:
            logger.error("cannot apply %s (%s): %s", move.to_uci(), move.move_type.name, problem)
            raise PositionConsistencyError(f"cannot apply {move.to_uci()}: {problem}")

    def _after_standard_move(self, move: ChessMove) -> None:
        kind = move.piece.lower()
        (src_rank, src_file), (dest_rank, _) = move.src, move.dest
        if kind == "p":
            home = 2 if move.is_white_piece else 7
            if src_rank == home and abs(dest_rank - src_rank) == 2:
                self.en_passant_sq = ((src_rank + dest_rank) // 2, src_file)
        elif kind == "k":
            self.castle_rights.revoke(move.is_white_piece)

    def _after_castle(self, move: ChessMove) -> None:
        rook_src, rook_dest = _castle_rook_squares(move)
        self.move_piece(rook_src, rook_dest)
        self.castle_rights.revoke(move.is_white_piece)

    def _revalidate_castle_rights(self) -> None:
        # Every corner is checked on its own; a missing rook drops only its flag.
        for corner, rook, is_white, king_side in _ROOK_CORNERS:
            if self.get_piece_on_square(corner) != rook:
                self.castle_rights.revoke(is_white, king_side=king_side, queen_side=not king_side)


def _castle_rook_squares(move: ChessMove) -> tuple[Square, Square]:
    home_rank = move.src[0]
    if move.move_type is MoveType.CASTLE_KING_SIDE:
        return (home_rank, 8), (home_rank, 6)
    return (home_rank, 1), (home_rank, 4)


def _validate_fen(fen: str) -> None:
    """Raise ValueError unless ``fen`` is well formed (en passant unchecked)."""
    if not fen or not isinstance(fen, str):
        raise ValueError("FEN must be a non-empty string")
    parts = fen.split(" ")
    if any(not part for part in parts):
        raise ValueError("FEN fields must be separated by single spaces")
    if len(parts) > 6:
        raise ValueError("FEN has too many fields")

    ranks = parts[0].split("/")
    if len(ranks) != 8:
        raise ValueError("FEN board must have 8 ranks")
    for rank in ranks:
        squares = 0
        for ch in rank:
            if "1" <= ch <= "8":
                squares += int(ch)
            elif ch in PIECE_LETTERS:
                squares += 1
            else:
                raise ValueError(f"invalid piece in FEN: {ch!r}")
        if squares != 8:
            raise ValueError("rank does not sum to 8 squares in FEN")

    if len(parts) > 1 and parts[1] not in ("w", "b"):
        raise ValueError("side to move must be 'w' or 'b'")
    if len(parts) > 2 and parts[2] != "-":
        if any(ch not in "KQkq" for ch in parts[2]):
            raise ValueError("invalid castling rights")
