# chess_insights/exceptions.py
"""
Defines custom exceptions for the Chess Insights application.

Every error the application raises on purpose derives from `ChessInsightsError`,
so callers can distinguish expected failures (an unreachable game source, a
malformed game record, a failed durable write) from programming errors.
"""

from typing import List, Optional


class ChessInsightsError(Exception):
    """Base class for all application-specific, catchable errors."""
    pass


class SourceUnavailableError(ChessInsightsError):
    """
    Raised when the external game source cannot deliver the requested data.

    Covers transport failures, timeouts and non-success HTTP responses. The
    cache layer never converts this into an empty result; it reaches the caller
    unmodified.
    """
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PlayerNotFoundError(SourceUnavailableError):
    """Raised when the game source reports that the requested player does not exist."""
    pass


class StorageError(ChessInsightsError):
    """Base class for all durable-storage errors."""
    pass


class StorageConnectionError(StorageError):
    """Raised when unable to open or initialize the durable store."""
    pass



class StorageWriteError(StorageError):
    """
    Raised when a write to the durable store fails after all retries.

    Attributes:
        failed_keys: The record keys that could not be written, when known.
    """
    def __init__(self, message: str, failed_keys: Optional[List[str]] = None):
        super().__init__(message)
        self.failed_keys = failed_keys or []


class EvaluationError(ChessInsightsError):
    """
    Raised when a single game cannot be analyzed.

    The analysis pipeline treats this as "skip this game": it is logged and
    counted, never retried.
    """
    pass


class PgnParsingError(EvaluationError):
    """
    Raised for game-level PGN integrity errors, such as malformed movetext,
    illegal moves, or a game record that contains no moves at all.
    """
    pass


class PlayerNotInGameError(EvaluationError):
    """Raised when the requested player is neither White nor Black in a game."""
    pass


class SummaryGenerationError(ChessInsightsError):
    """Raised when the natural-language summary generator fails or returns unusable output."""
    pass


class AnalysisCancelledError(ChessInsightsError):
    """Raised when the caller signals cancellation of an analysis run."""
    pass
