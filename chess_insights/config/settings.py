# chess_insights/config/settings.py
"""
Configuration settings for the Chess Insights application, powered by Pydantic.

This module centralizes all tunable parameters: cache lifetimes, the game
source endpoint, the summary generator, and the move-quality thresholds used
by the analysis pipeline. Values can be overridden through environment
variables, e.g. `CHESS_INSIGHTS_CACHE__CURRENT_MONTH_TTL_SECONDS=60`.
"""
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Nested Models for Configuration Schemas ---

class ClassificationThresholdsModel(BaseModel):
    """
    Evaluation-drop thresholds (in centipawns) for move classification.

    A move whose drop exceeds the `mistake` threshold is a blunder.
    """
    excellent: float = Field(5.0, description="Maximum drop for a move to be classified as 'excellent'.")
    good: float = Field(15.0, description="Maximum drop for a move to be classified as 'good'.")
    inaccuracy: float = Field(35.0, description="Maximum drop for a move to be classified as an 'inaccuracy'.")
    mistake: float = Field(80.0, description="Maximum drop for a move to be classified as a 'mistake'.")

    @model_validator(mode='after')
    def validate_thresholds_are_sorted(self) -> 'ClassificationThresholdsModel':
        """Ensures that the thresholds are sorted in ascending order."""
        values = [self.excellent, self.good, self.inaccuracy, self.mistake]
        if not all(values[i] <= values[i + 1] for i in range(len(values) - 1)):
            raise ValueError("Configuration error: classification thresholds must be sorted.")
        return self


class AccuracyBandsModel(BaseModel):
    """Maps a move's evaluation drop to a per-move accuracy score."""
    bands: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(10, 100), (25, 95), (50, 85), (100, 70), (200, 50)],
        description="(max_drop, accuracy) pairs checked in order.",
    )
    floor: float = Field(20.0, description="Lowest accuracy a single move can score.")
    divisor: float = Field(5.0, description="Beyond the last band, accuracy is 100 - drop / divisor.")


class EvaluatorWeightsModel(BaseModel):
    """Weights for the heuristic position evaluator, in pawn units."""
    mobility: float = Field(0.05, description="Value of each legal move available to the side to move.")
    center_occupation: float = Field(0.1, description="Value of a piece standing on d4, d5, e4 or e5.")
    undeveloped_minor: float = Field(0.1, description="Penalty for a knight or bishop still on its back rank.")
    in_check: float = Field(0.5, description="Penalty for the side to move being in check.")
    mate_score: float = Field(100.0, description="Score assigned to a checkmated position.")


class CacheSettings(BaseModel):
    """Configuration for the durable store and the ephemeral cache."""
    db_filepath: str = Field("data/chess_cache.db", description="The file path for the SQLite database.")
    profile_ttl_seconds: float = Field(3600.0, description="Lifetime of a cached player profile.")
    current_month_ttl_seconds: float = Field(300.0, description="Lifetime of the cached game list for the current calendar month.")
    past_month_ttl_seconds: float = Field(86400.0, description="Lifetime of the cached game list for any other month.")
    archive_list_ttl_seconds: float = Field(300.0, description="Lifetime of the cached list of months a player has games in.")


class SourceSettings(BaseModel):
    """Configuration for the Chess.com public API client."""
    base_url: str = Field("https://api.chess.com/pub", description="Root URL of the public API.")
    user_agent: str = Field("chess-insights/0.1 (game analysis cache)", description="User-Agent header sent with every request.")
    request_timeout_seconds: float = Field(15.0, description="Total timeout for a single HTTP request.")
    inter_request_delay_seconds: float = Field(0.1, description="Pause between consecutive monthly archive requests.")


class SummarySettings(BaseModel):
    """Configuration for the natural-language game summary generator."""
    api_key: Optional[str] = Field(None, description="Anthropic API key. Without it, only rule-based summaries are produced.")
    model: str = Field("claude-3-5-sonnet-20241022", description="Model used for generated summaries.")
    max_tokens: int = Field(2000, description="Upper bound on the generated summary length.")
    temperature: float = Field(0.7, description="Sampling temperature for generated summaries.")
    timeout_seconds: float = Field(60.0, description="Timeout for a single summary request.")


class AnalysisSettings(BaseModel):
    """Groups all settings related to the per-game analysis logic."""
    classification_thresholds: ClassificationThresholdsModel = Field(default_factory=ClassificationThresholdsModel)
    accuracy: AccuracyBandsModel = Field(default_factory=AccuracyBandsModel)
    evaluator: EvaluatorWeightsModel = Field(default_factory=EvaluatorWeightsModel)

    evaluator_version: str = Field("heuristic-1", description="Identifier of the move evaluator. Stored analyses with another version are recomputed.")
    max_mistake_examples: int = Field(10, description="Maximum number of mistake examples kept per game.")
    max_recommendations: int = Field(6, description="Maximum number of recommendations kept per game.")
    opening_window_moves: int = Field(15, description="Moves at the start of a game inspected for cross-game opening patterns.")
    endgame_window_moves: int = Field(15, description="Moves at the end of a game inspected for cross-game endgame patterns.")
    time_pressure_window_moves: int = Field(10, description="Moves at the end of a game inspected for time-pressure mistakes.")
    analysis_concurrency: int = Field(1, ge=1, description="Number of cache misses analyzed at once. 1 keeps strict input order.")
    fallback_seed: int = Field(0, description="Seed mixed into the deterministic choice of fallback phrasing.")


class RunConfig(BaseModel):
    """
    Encapsulates all configuration for a single "analyze this player" run.

    This object is constructed at application startup from command-line
    arguments and the main settings.
    """
    username: str
    game_limit: int = 20
    cache_settings: CacheSettings = Field(default_factory=CacheSettings)
    source_settings: SourceSettings = Field(default_factory=SourceSettings)
    summary_settings: SummarySettings = Field(default_factory=SummarySettings)
    analysis_settings: AnalysisSettings = Field(default_factory=AnalysisSettings)

# --- Main Application Settings Class ---

class Settings(BaseSettings):
    """
    Main configuration class for the application.

    It loads settings from environment variables with the prefix 'CHESS_INSIGHTS_'.
    Nested models can be configured using a double underscore delimiter, e.g.,
    `CHESS_INSIGHTS_SUMMARY__API_KEY=...`.
    """
    model_config = SettingsConfigDict(env_prefix='CHESS_INSIGHTS_', env_nested_delimiter='__')

    cache: CacheSettings = Field(default_factory=CacheSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    summary: SummarySettings = Field(default_factory=SummarySettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    default_game_limit: int = 20
    default_log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[Path] = None

    def to_run_config(self, username: str, game_limit: Optional[int] = None) -> RunConfig:
        """Builds the configuration for one run from the process-wide settings."""
        return RunConfig(
            username=username,
            game_limit=game_limit or self.default_game_limit,
            cache_settings=self.cache,
            source_settings=self.source,
            summary_settings=self.summary,
            analysis_settings=self.analysis,
        )
