from __future__ import annotations

import pytest

from src.core.move import ChessMove, MoveType, square_index, str_to_square
from src.core.position import Position, PositionConsistencyError


def _mv(position: Position, uci: str, move_type: MoveType = MoveType.STANDARD) -> ChessMove:
    src, dest = str_to_square(uci[0:2]), str_to_square(uci[2:4])
    piece = position.get_piece_on_square(src)
    assert piece is not None
    return ChessMove(src, dest, piece, move_type)


def _changed_squares(before: Position, after: Position) -> set[int]:
    return {i for i in range(64) if before.cells[i] != after.cells[i]}


def test_standard_move_relocates_piece_and_flips_side(start: Position) -> None:
    before = start.clone()
    start.apply_move(_mv(start, "g1f3"))
    assert start.get_piece_on_square((3, 6)) == "N"
    assert start.get_piece_on_square((1, 7)) is None
    assert not start.white_to_move()
    assert _changed_squares(before, start) == {square_index((1, 7)), square_index((3, 6))}
    assert len(start.history) == 2


def test_double_push_sets_en_passant_target_for_one_ply(start: Position) -> None:
    start.apply_move(_mv(start, "e2e4"))
    assert start.get_en_passant_square() == (3, 5)
    start.apply_move(_mv(start, "g8f6"))
    assert start.get_en_passant_square() is None
    start.apply_move(_mv(start, "d2d3"))
    assert start.get_en_passant_square() is None
    start.apply_move(_mv(start, "c7c5"))
    assert start.get_en_passant_square() == (6, 3)


def test_wrong_side_to_move_is_a_no_op(start: Position) -> None:
    before = start.clone()
    start.apply_move(_mv(start, "e7e5"))
    assert start == before
    assert len(start.history) == 1


def test_king_move_clears_both_castling_rights() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    p.apply_move(_mv(p, "e1f1"))
    assert p.get_king_square(True) == (1, 6)
    assert not p.is_castle_king_side_available(True)
    assert not p.is_castle_queen_side_available(True)
    assert p.is_castle_king_side_available(False)
    assert p.is_castle_queen_side_available(False)


def test_each_missing_corner_rook_is_checked_independently() -> None:
    # Rooks already gone from a1 and h8; rights granted anyway
    p = Position.from_fen("r3k3/8/8/8/8/8/P7/4K2R w KQkq - 0 1")
    p.apply_move(_mv(p, "a2a3"))
    assert not p.is_castle_queen_side_available(True)
    assert not p.is_castle_king_side_available(False)
    assert p.is_castle_king_side_available(True)
    assert p.is_castle_queen_side_available(False)


def test_rook_leaving_corner_drops_only_that_side() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    p.apply_move(_mv(p, "h1h5"))
    assert not p.is_castle_king_side_available(True)
    assert p.is_castle_queen_side_available(True)
    # Returning to the corner never restores the right
    p.apply_move(_mv(p, "a8a7"))
    p.apply_move(_mv(p, "h5h1"))
    assert not p.is_castle_king_side_available(True)
    assert not p.is_castle_queen_side_available(False)


@pytest.mark.parametrize(
    "uci,move_type,rook_from,rook_to",
    [
        ("e1g1", MoveType.CASTLE_KING_SIDE, (1, 8), (1, 6)),
        ("e1c1", MoveType.CASTLE_QUEEN_SIDE, (1, 1), (1, 4)),
    ],
)
def test_white_castling_moves_rook(uci, move_type, rook_from, rook_to) -> None:  # type: ignore[no-untyped-def]
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    before = p.clone()
    p.apply_move(_mv(p, uci, move_type))
    assert p.get_piece_on_square(rook_to) == "R"
    assert p.get_piece_on_square(rook_from) is None
    assert p.get_king_square(True) == str_to_square(uci[2:4])
    assert not p.is_castle_king_side_available(True)
    assert not p.is_castle_queen_side_available(True)
    assert p.is_castle_king_side_available(False)
    assert p.is_castle_queen_side_available(False)
    assert len(_changed_squares(before, p)) == 4


def test_black_queen_side_castle_clears_black_rights_only() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1")
    p.apply_move(_mv(p, "e8c8", MoveType.CASTLE_QUEEN_SIDE))
    assert p.get_piece_on_square((8, 4)) == "r"
    assert p.get_king_square(False) == (8, 3)
    assert not p.is_castle_king_side_available(False)
    assert not p.is_castle_queen_side_available(False)
    assert p.is_castle_king_side_available(True)
    assert p.is_castle_queen_side_available(True)


def test_castle_without_rook_fails_and_leaves_board_untouched() -> None:
    p = Position.from_fen("4k3/8/8/8/8/8/8/4K1N1 w KQkq - 0 1")
    before = p.clone()
    with pytest.raises(PositionConsistencyError):
        p.apply_move(_mv(p, "e1g1", MoveType.CASTLE_KING_SIDE))
    assert p == before
    assert p.get_piece_on_square((1, 7)) == "N"
    assert len(p.history) == 1


def test_invalid_move_type_is_fatal(start: Position) -> None:
    with pytest.raises(PositionConsistencyError):
        start.apply_move(_mv(start, "e2e4", MoveType.INVALID))
    assert start == Position.startpos()


def test_move_from_wrong_square_is_fatal(start: Position) -> None:
    with pytest.raises(PositionConsistencyError):
        start.apply_move(ChessMove((3, 3), (4, 3), "P"))


def test_en_passant_removes_captured_pawn() -> None:
    p = Position.from_fen("4k3/3p4/8/4P3/8/8/8/4K3 b - - 0 1")
    p.apply_move(_mv(p, "d7d5"))
    assert p.get_en_passant_square() == (6, 4)
    before = p.clone()
    p.apply_move(_mv(p, "e5d6", MoveType.EN_PASSANT))
    assert p.get_piece_on_square((6, 4)) == "P"
    assert p.get_piece_on_square((5, 4)) is None
    assert p.get_piece_on_square((5, 5)) is None
    assert _changed_squares(before, p) == {
        square_index((5, 5)),
        square_index((6, 4)),
        square_index((5, 4)),
    }


def test_black_en_passant_removes_pawn_above_destination() -> None:
    p = Position.from_fen("4k3/8/8/8/3p4/8/4P3/4K3 w - - 0 1")
    p.apply_move(_mv(p, "e2e4"))
    p.apply_move(_mv(p, "d4e3", MoveType.EN_PASSANT))
    assert p.get_piece_on_square((3, 5)) == "p"
    assert p.get_piece_on_square((4, 5)) is None


@pytest.mark.parametrize(
    "move_type,expected",
    [
        (MoveType.PROMOTE_TO_QUEEN, "Q"),
        (MoveType.PROMOTE_TO_ROOK, "R"),
        (MoveType.PROMOTE_TO_BISHOP, "B"),
        (MoveType.PROMOTE_TO_KNIGHT, "N"),
    ],
)
def test_white_promotion(move_type: MoveType, expected: str) -> None:
    p = Position.from_fen("6k1/1P6/8/8/8/8/8/4K3 w - - 0 1")
    p.apply_move(_mv(p, "b7b8", move_type))
    assert p.get_piece_on_square((8, 2)) == expected
    assert p.get_piece_on_square((7, 2)) is None


def test_black_promotion_with_capture_keeps_colour() -> None:
    p = Position.from_fen("4k3/8/8/8/8/8/6p1/4K2R b K - 0 1")
    p.apply_move(_mv(p, "g2h1", MoveType.PROMOTE_TO_KNIGHT))
    assert p.get_piece_on_square((1, 8)) == "n"
    # The captured corner rook takes white's king-side right with it
    assert not p.is_castle_king_side_available(True)


def test_history_snapshots_are_detached(start: Position) -> None:
    start.apply_move(_mv(start, "e2e4"))
    snapshots = list(start.history)
    assert len(snapshots) == 2
    assert all(len(s.history) == 0 for s in snapshots)
    assert snapshots[-1] == start
    assert snapshots[-1] is not start
    start.apply_move(_mv(start, "e7e5"))
    assert snapshots[-1] != start
