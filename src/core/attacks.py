from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from .move import PROMOTION_BY_LETTER, PROMOTION_KINDS, ChessMove, MoveType, Square, is_on_board

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


KNIGHT_STEPS = ((1, 2), (2, 1), (2, -1), (1, -2), (-1, -2), (-2, -1), (-2, 1), (-1, 2))
KING_STEPS = ((1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1))
DIAGONALS = ((1, 1), (1, -1), (-1, 1), (-1, -1))
ORTHOGONALS = ((1, 0), (-1, 0), (0, 1), (0, -1))
SLIDER_DIRECTIONS = {
    "b": DIAGONALS,
    "r": ORTHOGONALS,
    "q": DIAGONALS + ORTHOGONALS,
}


def _step(square: Square, dr: int, df: int) -> Optional[Square]:
    target = (square[0] + dr, square[1] + df)
    return target if is_on_board(target) else None


def _letter(kind: str, is_white: bool) -> str:
    return kind.upper() if is_white else kind


def _ray(position: "Position", square: Square, dr: int, df: int) -> Tuple[List[Square], Optional[Square]]:
    """Walk from ``square``; return the empty squares passed and the first occupied one."""
    empty: List[Square] = []
    target = _step(square, dr, df)
    while target is not None:
        if position.is_occupied(target):
            return empty, target
        empty.append(target)
        target = _step(target, dr, df)
    return empty, None


def pieces_attacking_square(position: "Position", square: Square, by_white: bool) -> List[ChessMove]:
    """Return capture-shaped moves of every ``by_white`` piece hitting ``square``.

    Whatever stands on ``square`` is irrelevant: own-defended squares count
    as attacked. Each move has ``src`` = attacker and ``dest`` = ``square``.
    """
    attackers: List[ChessMove] = []

    # A white pawn attacks upward, so it sits one rank below the target
    pawn = _letter("p", by_white)
    pawn_dr = -1 if by_white else 1
    for df in (-1, 1):
        origin = _step(square, pawn_dr, df)
        if origin is not None and position.get_piece_on_square(origin) == pawn:
            attackers.append(ChessMove(origin, square, pawn))

    for steps, kind in ((KNIGHT_STEPS, "n"), (KING_STEPS, "k")):
        piece = _letter(kind, by_white)
        for dr, df in steps:
            origin = _step(square, dr, df)
            if origin is not None and position.get_piece_on_square(origin) == piece:
                attackers.append(ChessMove(origin, square, piece))

    for dr, df in DIAGONALS + ORTHOGONALS:
        _, blocker = _ray(position, square, dr, df)
        if blocker is None:
            continue
        piece = position.get_piece_on_square(blocker)
        if piece is None or piece.isupper() != by_white:
            continue
        if (dr, df) in SLIDER_DIRECTIONS.get(piece.lower(), ()):
            attackers.append(ChessMove(blocker, square, piece))

    return attackers


def is_square_attacked(position: "Position", square: Square, by_white: bool) -> bool:
    return bool(pieces_attacking_square(position, square, by_white))


def pieces_moving_to_square(position: "Position", square: Square, by_white: bool) -> List[ChessMove]:
    """Return non-capturing moves of ``by_white`` pieces onto empty ``square``.

    Used to find blockers for a sliding attack. Pawns reach by pushing, every
    other piece by its normal movement.
    """
    if position.is_occupied(square):
        return []
    movers: List[ChessMove] = []

    pawn = _letter("p", by_white)
    back = -1 if by_white else 1
    one_back = _step(square, back, 0)
    if one_back is not None:
        occupant = position.get_piece_on_square(one_back)
        if occupant == pawn:
            movers.append(ChessMove(one_back, square, pawn))
        elif occupant is None and square[0] == (4 if by_white else 5):
            two_back = _step(one_back, back, 0)
            if two_back is not None and position.get_piece_on_square(two_back) == pawn:
                movers.append(ChessMove(two_back, square, pawn))

    for steps, kind in ((KNIGHT_STEPS, "n"), (KING_STEPS, "k")):
        piece = _letter(kind, by_white)
        for dr, df in steps:
            origin = _step(square, dr, df)
            if origin is not None and position.get_piece_on_square(origin) == piece:
                movers.append(ChessMove(origin, square, piece))

    for dr, df in DIAGONALS + ORTHOGONALS:
        _, blocker = _ray(position, square, dr, df)
        if blocker is None:
            continue
        piece = position.get_piece_on_square(blocker)
        if piece is None or piece.isupper() != by_white:
            continue
        if (dr, df) in SLIDER_DIRECTIONS.get(piece.lower(), ()):
            movers.append(ChessMove(blocker, square, piece))

    return movers


def king_standard_moves(
    position: "Position", king_square: Square, is_white: bool, castling_only: bool = False
) -> List[ChessMove]:
    """Return the king's one-step moves, or only its castling moves.

    One-step moves exclude squares held by friendly pieces but are not checked
    for attacks. Castling moves are fully validated: rights, rook on its
    corner, empty path, and no attacked square on the king's way.
    """
    king = _letter("k", is_white)
    if castling_only:
        return _castling_moves(position, king_square, is_white)
    moves: List[ChessMove] = []
    for dr, df in KING_STEPS:
        dest = _step(king_square, dr, df)
        if dest is not None and not position.is_occupied_by(dest, is_white):
            moves.append(ChessMove(king_square, dest, king))
    return moves


def _castling_moves(position: "Position", king_square: Square, is_white: bool) -> List[ChessMove]:
    king = _letter("k", is_white)
    rook = _letter("r", is_white)
    home = 1 if is_white else 8
    if king_square != (home, 5) or position.get_piece_on_square(king_square) != king:
        return []
    enemy = not is_white
    if is_square_attacked(position, king_square, enemy):
        return []

    moves: List[ChessMove] = []
    if (
        position.is_castle_king_side_available(is_white)
        and position.get_piece_on_square((home, 8)) == rook
        and not any(position.is_occupied((home, f)) for f in (6, 7))
        and not any(is_square_attacked(position, (home, f), enemy) for f in (6, 7))
    ):
        moves.append(ChessMove(king_square, (home, 7), king, MoveType.CASTLE_KING_SIDE))
    if (
        position.is_castle_queen_side_available(is_white)
        and position.get_piece_on_square((home, 1)) == rook
        and not any(position.is_occupied((home, f)) for f in (2, 3, 4))
        and not any(is_square_attacked(position, (home, f), enemy) for f in (3, 4))
    ):
        moves.append(ChessMove(king_square, (home, 3), king, MoveType.CASTLE_QUEEN_SIDE))
    return moves


def _pawn_moves(src: Square, dest: Square, pawn: str, move_type: MoveType = MoveType.STANDARD) -> List[ChessMove]:
    last_rank = 8 if pawn.isupper() else 1
    if dest[0] == last_rank:
        return [ChessMove(src, dest, pawn, promo) for promo in PROMOTION_KINDS]
    return [ChessMove(src, dest, pawn, move_type)]


def _pseudo_moves(position: "Position", square: Square, piece: str) -> List[ChessMove]:
    """Moves obeying piece movement only; own-king safety is not considered."""
    is_white = piece.isupper()
    kind = piece.lower()
    moves: List[ChessMove] = []

    if kind == "p":
        forward = 1 if is_white else -1
        one = _step(square, forward, 0)
        if one is not None and not position.is_occupied(one):
            moves.extend(_pawn_moves(square, one, piece))
            two = _step(one, forward, 0)
            if square[0] == (2 if is_white else 7) and two is not None and not position.is_occupied(two):
                moves.append(ChessMove(square, two, piece))
        for df in (-1, 1):
            target = _step(square, forward, df)
            if target is None:
                continue
            if position.is_occupied_by(target, not is_white):
                moves.extend(_pawn_moves(square, target, piece))
            elif target == position.get_en_passant_square():
                captured = (square[0], target[1])
                if position.get_piece_on_square(captured) == _letter("p", not is_white):
                    moves.append(ChessMove(square, target, piece, MoveType.EN_PASSANT))
    elif kind in ("n", "k"):
        for dr, df in KNIGHT_STEPS if kind == "n" else KING_STEPS:
            dest = _step(square, dr, df)
            if dest is not None and not position.is_occupied_by(dest, is_white):
                moves.append(ChessMove(square, dest, piece))
        if kind == "k":
            moves.extend(king_standard_moves(position, square, is_white, castling_only=True))
    else:
        for dr, df in SLIDER_DIRECTIONS.get(kind, ()):
            empty, blocker = _ray(position, square, dr, df)
            moves.extend(ChessMove(square, dest, piece) for dest in empty)
            if blocker is not None and position.is_occupied_by(blocker, not is_white):
                moves.append(ChessMove(square, blocker, piece))
    return moves


def possible_moves_from_square(position: "Position", square: Square) -> List[ChessMove]:
    """Return the legal moves of the piece on ``square`` (empty list if none).

    Each candidate is played on a clone; it is kept only if the mover's king
    is not attacked afterwards. The caller's position is never touched.
    """
    piece = position.get_piece_on_square(square)
    if piece is None:
        return []
    is_white = piece.isupper()
    legal: List[ChessMove] = []
    for move in _pseudo_moves(position, square, piece):
        probe = position.clone()
        probe.set_white_to_move(is_white)
        probe.apply_move(move)
        king = probe.get_king_square(is_white)
        if king is None or not is_square_attacked(probe, king, not is_white):
            legal.append(move)
    return legal


def classify_move(
    position: "Position", src: Square, dest: Square, promotion: Optional[str] = None
) -> ChessMove:
    """Build the move descriptor for moving the piece on ``src`` to ``dest``.

    Args:
        position (Position): Position the move is played in.
        src (Square): Origin square.
        dest (Square): Destination square.
        promotion (Optional[str]): Promotion letter; a pawn reaching the last
            rank without one promotes to a queen.

    Returns:
        ChessMove: Tagged move. Shapes that cannot be classified (promotion
            letter on a non-promoting move) are tagged ``INVALID``.

    Raises:
        ValueError: If ``src`` is empty.
    """
    piece = position.get_piece_on_square(src)
    if piece is None:
        raise ValueError("no piece on source square")
    kind = piece.lower()
    promo = promotion.lower() if promotion else None

    if kind == "p":
        last_rank = 8 if piece.isupper() else 1
        if dest[0] == last_rank:
            move_type = PROMOTION_BY_LETTER.get(promo or "q", MoveType.INVALID)
            return ChessMove(src, dest, piece, move_type)
        if promo is not None:
            return ChessMove(src, dest, piece, MoveType.INVALID)
        if (
            dest == position.get_en_passant_square()
            and dest[1] != src[1]
            and not position.is_occupied(dest)
        ):
            return ChessMove(src, dest, piece, MoveType.EN_PASSANT)
        return ChessMove(src, dest, piece)

    if promo is not None:
        return ChessMove(src, dest, piece, MoveType.INVALID)
    if kind == "k":
        home = 1 if piece.isupper() else 8
        if src == (home, 5) and dest == (home, 7):
            return ChessMove(src, dest, piece, MoveType.CASTLE_KING_SIDE)
        if src == (home, 5) and dest == (home, 3):
            return ChessMove(src, dest, piece, MoveType.CASTLE_QUEEN_SIDE)
    return ChessMove(src, dest, piece)
