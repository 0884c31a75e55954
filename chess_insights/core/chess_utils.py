# chess_insights/core/chess_utils.py
"""
Provides a collection of pure, stateless functions for chess-related calculations.

This module is the "math library" of the chess domain: material counting,
evaluation-drop and accuracy arithmetic, endgame typing and result mapping.
Its functions are deterministic and have no I/O.
"""

from typing import Dict, Final, Optional, TYPE_CHECKING

import chess

if TYPE_CHECKING:
    from chess_insights.config.settings import AccuracyBandsModel

# A constant dictionary mapping piece types to their standard pawn-unit values.
PIECE_VALUES: Final[Dict[chess.PieceType, float]] = {
    chess.PAWN: 1.0,
    chess.KNIGHT: 3.2,
    chess.BISHOP: 3.3,
    chess.ROOK: 5.0,
    chess.QUEEN: 9.0,
    chess.KING: 0.0,
}

# Chess.com result codes that denote a drawn game.
DRAW_RESULT_CODES: Final = frozenset(
    {"agreed", "stalemate", "repetition", "insufficient", "50move", "timevsinsufficient"}
)


def get_material_value(board: chess.Board, color: chess.Color) -> float:
    """
    Calculates the total material value for a given color on the board.
    """
    material: float = 0.0
    for piece_type, value in PIECE_VALUES.items():
        material += len(board.pieces(piece_type, color)) * value
    return material


def get_material_balance(board: chess.Board) -> float:
    """Material difference in pawn units, positive when White is ahead."""
    return round(get_material_value(board, chess.WHITE) - get_material_value(board, chess.BLACK), 2)


def calculate_eval_drop(best_score: float, played_score: float) -> float:
    """
    Evaluation lost by a move, in centipawns, never negative.

    Both scores are in pawn units from the mover's point of view.
    """
    return max(0.0, round((best_score - played_score) * 100, 1))


def accuracy_for_drop(drop: float, bands: "AccuracyBandsModel") -> float:
    """
    Maps a move's evaluation drop (centipawns) to an accuracy score in [floor, 100].

    The first band whose threshold is not exceeded wins; beyond the last band the
    score falls linearly with the drop.
    """
    for max_drop, accuracy in bands.bands:
        if drop <= max_drop:
            return float(accuracy)
    return max(bands.floor, 100.0 - drop / bands.divisor)


def identify_endgame_type(board: chess.Board) -> Optional[str]:
    """
    Names the endgame reached in `board`, or None if too much material remains.

    With four or fewer non-king pieces on the board, the heaviest piece type
    present decides the name.
    """
    pieces = [piece.piece_type for piece in board.piece_map().values() if piece.piece_type != chess.KING]
    if len(pieces) > 4:
        return None
    if chess.QUEEN in pieces:
        return "Queen endgame"
    if chess.ROOK in pieces:
        return "Rook endgame"
    if chess.BISHOP in pieces or chess.KNIGHT in pieces:
        return "Minor piece endgame"
    return "Pawn endgame"


def result_outcome(result_code: Optional[str]) -> Optional[str]:
    """Collapses a Chess.com result code into 'win', 'draw' or 'loss'."""
    if not result_code:
        return None
    if result_code == "win":
        return "win"
    if result_code in DRAW_RESULT_CODES:
        return "draw"
    return "loss"
