from __future__ import annotations

from src.core.history import PositionHistory
from src.core.move import ChessMove
from src.core.position import Position


def _play(p: Position, src, dest) -> None:  # type: ignore[no-untyped-def]
    piece = p.get_piece_on_square(src)
    assert piece is not None
    p.apply_move(ChessMove(src, dest, piece))


def test_rook_shuffle_threefold() -> None:
    p = Position.from_fen("5rk1/5pbp/6p1/8/8/6P1/5PBP/5RK1 ")
    assert not p.is_draw()
    draws = []
    for _ in range(2):
        for src, dest in (((1, 6), (1, 5)), ((8, 6), (8, 5)), ((1, 5), (1, 6)), ((8, 5), (8, 6))):
            _play(p, src, dest)
            draws.append(p.is_draw())
    # Initial arrangement recurs after ply 4 (second time) and ply 8 (third)
    assert draws == [False] * 7 + [True]


def test_king_walk_threefold_from_startpos(start: Position) -> None:
    _play(start, (2, 5), (3, 5))
    _play(start, (7, 5), (6, 5))
    assert not start.is_draw()

    out = (((1, 5), (2, 5)), ((8, 5), (7, 5)))
    back = (((2, 5), (1, 5)), ((7, 5), (8, 5)))
    results = []
    for leg in (out, back, out, back, out):
        for src, dest in leg:
            _play(start, src, dest)
        results.append(start.is_draw())
    # Kings-forward position: first, second, then third occurrence
    assert results == [False, False, False, False, True]


def test_castling_rights_distinguish_positions(start: Position) -> None:
    # Knights out and back twice: arrangement repeats but only with rights intact
    for _ in range(2):
        _play(start, (1, 7), (3, 6))
        _play(start, (8, 7), (6, 6))
        _play(start, (3, 6), (1, 7))
        _play(start, (6, 6), (8, 7))
    assert start.is_draw()

    other = Position.startpos()
    _play(other, (1, 7), (3, 6))
    _play(other, (8, 7), (6, 6))
    _play(other, (1, 8), (1, 7))  # rook steps off h1
    _play(other, (8, 8), (8, 7))
    _play(other, (1, 7), (1, 8))
    _play(other, (8, 7), (8, 8))
    _play(other, (3, 6), (1, 7))
    _play(other, (6, 6), (8, 7))
    # Same cells as the start, but king-side rights are gone
    assert other.cells == Position.startpos().cells
    assert other != Position.startpos()
    assert other.history.count(other) == 1


def test_en_passant_target_distinguishes_positions() -> None:
    a = Position.from_fen("4k3/8/8/8/4P3/8/8/4K3 b - - 0 1")
    b = Position.from_fen("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1")
    b.apply_move(ChessMove((2, 5), (4, 5), "P"))
    assert a.cells == b.cells
    assert a != b


def test_history_needs_three_entries() -> None:
    history = PositionHistory()
    p = Position.startpos()
    history.add_position(p)
    history.add_position(p)
    assert not history.has_threefold_repetition()
    history.add_position(p)
    assert history.has_threefold_repetition()
    history.clear()
    assert len(history) == 0
    assert not history.has_threefold_repetition()
