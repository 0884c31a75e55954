# tests/core/test_pgn_parser.py
import chess
import pytest

from chess_insights.core.pgn_parser import get_opening_name, parse_game_pgn
from chess_insights.exceptions import EvaluationError, PgnParsingError

SIMPLE_PGN = """
[Event "Test Game"]
[White "Player A"]
[Black "Player B"]
[Result "*"]

1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 *
"""


def test_parse_simple_game():
    parsed = parse_game_pgn(SIMPLE_PGN)

    assert parsed.headers["White"] == "Player A"
    assert len(parsed.slices) == 6
    assert [s.san for s in parsed.slices] == ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6"]
    assert [s.move_number for s in parsed.slices] == [1, 1, 2, 2, 3, 3]
    assert [s.is_white_move for s in parsed.slices] == [True, False] * 3


def test_slices_chain_positions():
    parsed = parse_game_pgn(SIMPLE_PGN)

    assert parsed.slices[0].fen_before == chess.STARTING_FEN
    for previous, current in zip(parsed.slices, parsed.slices[1:]):
        assert current.fen_before == previous.fen_after
    assert parsed.final_fen == parsed.slices[-1].fen_after


def test_parse_game_from_fen_with_black_to_move():
    pgn = """
[Event "Test Game From FEN"]
[White "Player A"]
[Black "Player B"]
[Result "*"]
[FEN "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"]
[SetUp "1"]

1... e5 2. Nf3 *
"""
    parsed = parse_game_pgn(pgn)

    assert [s.san for s in parsed.slices] == ["e5", "Nf3"]
    assert [s.move_number for s in parsed.slices] == [1, 2]
    assert parsed.slices[0].is_white_move is False


def test_illegal_move_is_rejected():
    pgn = "[Event \"Live Chess\"]\n[Result \"*\"]\n\n1. e4 e5 2. Ke3 *\n"
    with pytest.raises(PgnParsingError):
        parse_game_pgn(pgn)


@pytest.mark.parametrize("pgn", ["", "   \n"])
def test_empty_pgn_is_rejected(pgn):
    with pytest.raises(PgnParsingError):
        parse_game_pgn(pgn)


def test_game_without_moves_is_rejected():
    pgn = '[Event "Abandoned"]\n[Result "*"]\n\n*\n'
    with pytest.raises(PgnParsingError, match="no moves"):
        parse_game_pgn(pgn)


def test_parsing_errors_are_evaluation_errors():
    # The analysis pipeline skips games on EvaluationError.
    assert issubclass(PgnParsingError, EvaluationError)


@pytest.mark.parametrize("headers, expected", [
    ({"Opening": "Sicilian Defense", "ECO": "B20"}, "Sicilian Defense"),
    ({"ECOUrl": "https://www.chess.com/openings/Italian-Game-Two-Knights-Defense"}, "Italian Game Two Knights Defense"),
    ({"Opening": "?", "ECO": "C20"}, "C20"),
    ({"ECO": "?"}, None),
    ({}, None),
])
def test_get_opening_name(headers, expected):
    assert get_opening_name(headers) == expected
