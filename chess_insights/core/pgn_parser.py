# chess_insights/core/pgn_parser.py
"""
Parses PGN movetext into the application's internal data contracts.

This module is the boundary between `python-chess` and the rest of the
application: it turns a provider's PGN string into a `ParsedGame` made of
`GameSlice` objects, one per half-move, each carrying the position before and
after the move. Anything that makes a game unusable (unparseable text, an
illegal move, no moves at all) is reported as `PgnParsingError`, which the
analysis pipeline treats as "skip this game".
"""
import io
from typing import Dict, List, Optional
from urllib.parse import urlparse

import chess
import chess.pgn
import structlog

from chess_insights.exceptions import PgnParsingError
from chess_insights.types import GameSlice, ParsedGame

logger = structlog.get_logger(__name__)


def _get_move_number(ply: int, starting_fullmove: int = 1) -> int:
    """Calculates the 1-indexed move number from a 0-indexed ply."""
    return starting_fullmove + ply // 2


def _read_single_game(pgn: str) -> chess.pgn.Game:
    """Reads the first game from `pgn`, rejecting anything python-chess had to repair."""
    if not pgn or not pgn.strip():
        raise PgnParsingError("Game record has no PGN.")
    try:
        game = chess.pgn.read_game(io.StringIO(pgn))
    except (ValueError, UnicodeDecodeError) as e:
        raise PgnParsingError(f"Unreadable PGN: {e}") from e
    if game is None:
        raise PgnParsingError("PGN contains no game.")
    # python-chess does not raise on illegal or unparseable moves; it records
    # them here and stops reading the mainline.
    if game.errors:
        raise PgnParsingError(f"Corrupt movetext: {game.errors[0]}")
    return game


def parse_game_pgn(pgn: str) -> ParsedGame:
    """
    Parses a PGN string into a structured `ParsedGame`.

    Games that start from a custom position (``[FEN]``/``[SetUp]`` headers) are
    supported; move numbers continue from the position's fullmove counter.

    Raises:
        PgnParsingError: If the PGN cannot be read, contains an illegal move,
            or has no moves.
    """
    game = _read_single_game(pgn)
    board = game.board()
    starting_fullmove = board.fullmove_number
    starting_ply_offset = 0 if board.turn == chess.WHITE else 1

    slices: List[GameSlice] = []
    try:
        for index, node in enumerate(game.mainline()):
            move = node.move
            fen_before = board.fen()
            san = board.san(move)
            is_white_move = board.turn == chess.WHITE
            board.push(move)
            slices.append(
                GameSlice(
                    ply=index,
                    move_number=_get_move_number(index + starting_ply_offset, starting_fullmove),
                    is_white_move=is_white_move,
                    san=san,
                    fen_before=fen_before,
                    fen_after=board.fen(),
                    move=move,
                )
            )
    except (AssertionError, chess.IllegalMoveError, ValueError) as e:
        raise PgnParsingError(f"Illegal move in game record: {e}") from e

    if not slices:
        raise PgnParsingError("Game record contains no moves.")

    return ParsedGame(headers=dict(game.headers), slices=slices, final_fen=board.fen())


def get_opening_name(headers: Dict[str, str]) -> Optional[str]:
    """
    Derives a readable opening name from PGN headers.

    Prefers the ``Opening`` tag, then the last path segment of Chess.com's
    ``ECOUrl`` tag, then the bare ``ECO`` code.
    """
    opening = headers.get("Opening")
    if opening and opening != "?":
        return opening

    eco_url = headers.get("ECOUrl")
    if eco_url:
        slug = urlparse(eco_url).path.rstrip("/").rsplit("/", 1)[-1]
        if slug:
            return slug.replace("-", " ")

    eco = headers.get("ECO")
    if eco and eco != "?":
        return eco
    return None
