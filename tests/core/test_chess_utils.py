# tests/core/test_chess_utils.py
import chess
import pytest

from chess_insights.config.settings import AccuracyBandsModel
from chess_insights.core.chess_utils import (accuracy_for_drop, calculate_eval_drop, get_material_balance,
                                             get_material_value, identify_endgame_type, result_outcome)


def test_get_material_value():
    board = chess.Board()
    assert get_material_value(board, chess.WHITE) == pytest.approx(40.0)


def test_get_material_balance():
    board = chess.Board()
    assert get_material_balance(board) == 0
    board.remove_piece_at(chess.D8)
    assert get_material_balance(board) == 9.0


def test_calculate_eval_drop_is_in_centipawns_and_never_negative():
    assert calculate_eval_drop(1.5, 0.5) == 100.0
    assert calculate_eval_drop(0.5, 1.5) == 0.0


@pytest.mark.parametrize("drop, expected", [
    (0, 100), (10, 100), (11, 95), (25, 95), (50, 85), (100, 70), (200, 50),
    (250, 50), (300, 40), (1000, 20),
])
def test_accuracy_for_drop(drop, expected):
    assert accuracy_for_drop(drop, AccuracyBandsModel()) == expected


@pytest.mark.parametrize("fen, expected", [
    ("4k3/8/8/8/8/8/8/3QK3 w - - 0 1", "Queen endgame"),
    ("4k3/8/8/8/8/8/4P3/R3K3 w - - 0 1", "Rook endgame"),
    ("4k3/8/8/8/8/8/4P3/2B1K1N1 w - - 0 1", "Minor piece endgame"),
    ("4k3/4p3/8/8/8/8/4P3/4K3 w - - 0 1", "Pawn endgame"),
    (chess.STARTING_FEN, None),
])
def test_identify_endgame_type(fen, expected):
    assert identify_endgame_type(chess.Board(fen)) == expected


@pytest.mark.parametrize("code, expected", [
    ("win", "win"),
    ("agreed", "draw"), ("stalemate", "draw"), ("repetition", "draw"),
    ("insufficient", "draw"), ("timevsinsufficient", "draw"), ("50move", "draw"),
    ("checkmated", "loss"), ("resigned", "loss"), ("timeout", "loss"), ("abandoned", "loss"),
    (None, None), ("", None),
])
def test_result_outcome(code, expected):
    assert result_outcome(code) == expected
