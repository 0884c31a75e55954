# chess_insights/core/move_evaluator.py
"""
A lightweight, engine-free `MoveEvaluator` built on python-chess.

Positions are scored with a handful of static terms (material, mobility,
development, centre occupation, check) in pawn units from White's point of
view. The best move is found with a one-ply search over every legal move, and
the played move's "evaluation drop" is how far its resulting position falls
short of the best one from the mover's point of view.

The evaluator is deliberately cheap and deterministic; it is identified by
`version` so that stored analyses can be invalidated when it changes.
"""

from typing import Optional, Tuple, TYPE_CHECKING

import chess

from chess_insights.core.chess_utils import calculate_eval_drop, get_material_balance
from chess_insights.core.move_classifier import MoveClassifier
from chess_insights.core.phrasing import pick_variant
from chess_insights.exceptions import EvaluationError
from chess_insights.types import FEN, MoveClassification, MoveEvaluation

if TYPE_CHECKING:
    from chess_insights.config.settings import AnalysisSettings

_CENTER_SQUARES = (chess.D4, chess.D5, chess.E4, chess.E5)

_EXPLANATIONS = {
    MoveClassification.EXCELLENT: (
        "Excellent choice! {move} is the best move in this position.",
        "Perfect move! {move} maintains the evaluation and follows good chess principles.",
        "Outstanding! {move} is exactly what the position calls for.",
    ),
    MoveClassification.GOOD: (
        "Good move! {move} is close to optimal and maintains a solid position.",
        "Solid choice! {move} follows good chess principles with minimal evaluation loss.",
        "Nice move! {move} keeps you in the game with good practical chances.",
    ),
    MoveClassification.INACCURACY: (
        "Inaccurate. {move} loses about {drop} centipawns. Consider more careful evaluation.",
        "Not the most precise. {move} gives away a small advantage but the position remains playable.",
        "Slightly inaccurate. {move} could be improved with better calculation.",
    ),
    MoveClassification.MISTAKE: (
        "Mistake! {move} loses significant evaluation (~{drop} centipawns).",
        "This was a mistake. {move} gives away too much advantage.",
        "Poor choice. {move} significantly worsens your position.",
    ),
    MoveClassification.BLUNDER: (
        "Major blunder! {move} loses ~{drop} centipawns.",
        "Terrible mistake! {move} throws away the game.",
        "Critical error! {move} changes the evaluation dramatically.",
    ),
}


class HeuristicMoveEvaluator:
    """Scores moves with a static evaluation and a one-ply best-move search."""

    def __init__(self, settings: "AnalysisSettings", classifier: Optional[MoveClassifier] = None):
        self._weights = settings.evaluator
        self._seed = settings.fallback_seed
        self._classifier = classifier or MoveClassifier(settings.classification_thresholds)
        self.version = settings.evaluator_version

    def evaluate_position(self, board: chess.Board) -> float:
        """Static score of `board` in pawn units, positive when White is better."""
        weights = self._weights
        if board.is_checkmate():
            return -weights.mate_score if board.turn == chess.WHITE else weights.mate_score
        if board.is_stalemate() or board.is_insufficient_material():
            return 0.0

        to_move_sign = 1.0 if board.turn == chess.WHITE else -1.0
        score = get_material_balance(board)
        score += board.legal_moves.count() * weights.mobility * to_move_sign
        if board.is_check():
            score -= weights.in_check * to_move_sign

        for square in _CENTER_SQUARES:
            piece = board.piece_at(square)
            if piece is not None:
                score += weights.center_occupation if piece.color == chess.WHITE else -weights.center_occupation

        for color, back_rank in ((chess.WHITE, 0), (chess.BLACK, 7)):
            undeveloped = sum(
                1 for piece_type in (chess.KNIGHT, chess.BISHOP)
                for square in board.pieces(piece_type, color)
                if chess.square_rank(square) == back_rank
            )
            penalty = undeveloped * weights.undeveloped_minor
            score += -penalty if color == chess.WHITE else penalty

        return round(score, 3)

    def _score_for(self, board: chess.Board, mover: chess.Color) -> float:
        score = self.evaluate_position(board)
        return score if mover == chess.WHITE else -score

    def find_best_move(self, board: chess.Board) -> Tuple[Optional[str], float]:
        """
        One-ply search: the legal move whose resulting position scores best for the mover.

        Ties are broken by SAN so the result does not depend on move generation order.
        """
        mover = board.turn
        best_san: Optional[str] = None
        best_score = float("-inf")
        for move in list(board.legal_moves):
            san = board.san(move)
            board.push(move)
            score = self._score_for(board, mover)
            board.pop()
            if score > best_score or (score == best_score and best_san is not None and san < best_san):
                best_san, best_score = san, score
        return best_san, best_score

    def evaluate_move(self, fen_before: FEN, move_san: str, fen_after: FEN) -> MoveEvaluation:
        """
        Judges one played move.

        Raises:
            EvaluationError: If a FEN is invalid or the move is not legal in `fen_before`.
        """
        try:
            board = chess.Board(fen_before)
            board.parse_san(move_san)
            after = chess.Board(fen_after)
        except ValueError as e:
            raise EvaluationError(f"Cannot evaluate {move_san!r} in {fen_before!r}: {e}") from e

        mover = board.turn
        best_san, best_score = self.find_best_move(board)
        played_score = self._score_for(after, mover)
        drop = 0.0 if best_san is None else calculate_eval_drop(best_score, played_score)

        classification = self._classifier.classify(move_san, best_san, drop)
        template = pick_variant(_EXPLANATIONS[classification], fen_before, move_san, seed=self._seed)
        return MoveEvaluation(
            classification=classification,
            best_move=best_san,
            evaluation_drop=drop,
            evaluation=round(self.evaluate_position(after) * 100, 1),
            explanation=template.format(move=move_san, drop=round(drop)),
        )
