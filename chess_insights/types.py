# chess_insights/types.py
"""
A central module for shared data structures and service interfaces (Protocols).

Records that are persisted or cached (`GameRecord`, `AnalysisRecord`,
`ProfileSummary`) are Pydantic models so that they are validated whenever they
are loaded back from storage. In-process working data uses plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple,
                    TYPE_CHECKING, TypeAlias, runtime_checkable)

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    import asyncio

    import chess
    from chess_insights.config.settings import AnalysisSettings

FEN: TypeAlias = str

# Bumped whenever the shape of `AnalysisRecord` changes. Stored analyses with a
# different version are treated as cache misses and recomputed.
ANALYSIS_SCHEMA_VERSION: int = 1


class MoveClassification(str, Enum):
    EXCELLENT = "excellent"; GOOD = "good"; INACCURACY = "inaccuracy"
    MISTAKE = "mistake"; BLUNDER = "blunder"

class PlayerColor(str, Enum):
    WHITE = "white"; BLACK = "black"

class SummarySource(str, Enum):
    GENERATED = "generated"; FALLBACK = "fallback"

class PatternType(str, Enum):
    TACTICAL = "tactical"; POSITIONAL = "positional"; OPENING = "opening"
    ENDGAME = "endgame"; TIME_MANAGEMENT = "time_management"

class Severity(str, Enum):
    MINOR = "minor"; MODERATE = "moderate"; MAJOR = "major"

class Priority(str, Enum):
    HIGH = "high"; MEDIUM = "medium"; LOW = "low"

class AnalysisState(str, Enum):
    """Lifecycle of a single game inside the analysis pipeline."""
    PENDING = "pending"
    FETCHING_CACHE = "fetching_cache"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    EVALUATING = "evaluating"
    SUMMARIZING = "summarizing"
    PERSISTING = "persisting"
    DONE = "done"
    SKIPPED = "skipped"


# --- PERSISTED RECORDS ---

class GameRecord(BaseModel):
    """
    One completed game as delivered by the game source.

    `payload` is the provider's JSON, kept verbatim. Identity is `uuid`.
    `year`/`month` come from the UTC completion timestamp, or 0/0 when the
    provider did not send one.
    """
    model_config = ConfigDict(frozen=True)

    uuid: str
    username: str
    year: int = 0
    month: int = 0
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("username")
    @classmethod
    def _lowercase_username(cls, value: str) -> str:
        return value.lower()

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], username: str) -> "GameRecord":
        """
        Builds a record from a raw provider game.

        Raises:
            ValueError: If the payload carries no usable identifier.
        """
        game_uuid = payload.get("uuid") or payload.get("url")
        if not game_uuid:
            raise ValueError("Game payload has neither 'uuid' nor 'url'.")
        year, month = 0, 0
        end_time = payload.get("end_time")
        if end_time:
            finished = datetime.fromtimestamp(int(end_time), tz=timezone.utc)
            year, month = finished.year, finished.month
        return cls(uuid=str(game_uuid), username=username, year=year, month=month, payload=payload)

    @property
    def pgn(self) -> str:
        return self.payload.get("pgn") or ""

    @property
    def white_username(self) -> str:
        return (self.payload.get("white") or {}).get("username", "")

    @property
    def black_username(self) -> str:
        return (self.payload.get("black") or {}).get("username", "")

    @property
    def time_class(self) -> Optional[str]:
        return self.payload.get("time_class")

    def player_color(self, username: str) -> Optional[PlayerColor]:
        """Returns the side `username` played, compared case-insensitively, or None."""
        name = username.lower()
        if self.white_username.lower() == name:
            return PlayerColor.WHITE
        if self.black_username.lower() == name:
            return PlayerColor.BLACK
        return None

    def player_result(self, color: PlayerColor) -> Optional[str]:
        """The provider's result code for one side, e.g. 'win', 'checkmated', 'agreed'."""
        return (self.payload.get(color.value) or {}).get("result")


class MoveRecord(BaseModel):
    """A single half-move. Only the analyzed player's moves carry an evaluation."""
    ply: int
    move_number: int
    san: str
    is_white_move: bool
    fen_before: FEN
    fen_after: FEN
    classification: Optional[MoveClassification] = None
    best_move: Optional[str] = None
    evaluation: Optional[float] = None
    evaluation_drop: Optional[float] = None
    explanation: Optional[str] = None


class MistakeExample(BaseModel):
    move_number: int
    move: str
    type: MoveClassification
    position: FEN
    best_move: str = ""
    game_uuid: str = ""
    explanation: str = ""
    pattern: Optional[str] = None


class PatternExample(BaseModel):
    game_uuid: str
    move_number: int
    position: FEN
    explanation: str


class MistakePattern(BaseModel):
    type: PatternType
    description: str
    frequency: int
    severity: Severity
    examples: List[PatternExample] = Field(default_factory=list)


class CommonPattern(BaseModel):
    pattern: str
    description: str
    frequency: int
    examples: List[MistakeExample] = Field(default_factory=list)


class ImprovementPlan(BaseModel):
    immediate: List[str] = Field(default_factory=list)
    short_term: List[str] = Field(default_factory=list)
    long_term: List[str] = Field(default_factory=list)


class GameSummary(BaseModel):
    """Structured natural-language summary of one game."""
    summary: str
    key_moments: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    advice: List[str] = Field(default_factory=list)
    improvement_plan: ImprovementPlan = Field(default_factory=ImprovementPlan)
    mistake_examples: List[MistakeExample] = Field(default_factory=list)
    common_patterns: List[CommonPattern] = Field(default_factory=list)


class AnalysisRecord(BaseModel):
    """
    The memoized result of analyzing one game from one player's perspective.

    Keyed by `(game_uuid, username)`. Never expires; a mismatching
    `schema_version` or `evaluator_version` makes it a cache miss instead.
    """
    game_uuid: str
    username: str
    player_color: PlayerColor
    moves: List[MoveRecord] = Field(default_factory=list)
    accuracy: float = 0.0
    classification_counts: Dict[MoveClassification, int] = Field(default_factory=dict)
    mistake_examples: List[MistakeExample] = Field(default_factory=list)
    mistake_patterns: List[MistakePattern] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    opening_name: Optional[str] = None
    endgame_type: Optional[str] = None
    time_class: Optional[str] = None
    player_result: Optional[str] = None
    summary: Optional[GameSummary] = None
    summary_source: SummarySource = SummarySource.FALLBACK
    schema_version: int = ANALYSIS_SCHEMA_VERSION
    evaluator_version: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("username")
    @classmethod
    def _lowercase_username(cls, value: str) -> str:
        return value.lower()

    def count(self, classification: MoveClassification) -> int:
        return self.classification_counts.get(classification, 0)


class ProfileSummary(BaseModel):
    """Snapshot of a player's public profile."""
    model_config = ConfigDict(extra="ignore")

    username: str
    player_id: Optional[int] = None
    name: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    avatar: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None
    followers: Optional[int] = None
    joined: Optional[int] = None
    last_online: Optional[int] = None
    is_streamer: bool = False
    verified: bool = False


# --- IN-PROCESS DATA CONTRACTS ---

@dataclass(frozen=True, slots=True)
class MoveEvaluation:
    """Result of evaluating one played move against the position before it."""
    classification: MoveClassification
    best_move: Optional[str]
    evaluation_drop: float
    evaluation: float
    explanation: str

@dataclass(frozen=True, slots=True)
class GameSlice:
    ply: int; move_number: int; is_white_move: bool; san: str
    fen_before: FEN; fen_after: FEN; move: "chess.Move"

@dataclass(frozen=True)
class ParsedGame:
    headers: Dict[str, str]; slices: List[GameSlice]; final_fen: FEN

@dataclass(frozen=True)
class GameStatistics:
    """Per-game aggregates handed to the summary generator."""
    accuracy: float
    blunders: int
    mistakes: int
    inaccuracies: int
    opening_name: Optional[str] = None
    mistake_examples: List[MistakeExample] = field(default_factory=list)

@dataclass(frozen=True, slots=True)
class StoreStats:
    game_count: int; analysis_count: int; storage_size_bytes: int

@dataclass(frozen=True, slots=True)
class EphemeralStats:
    profile_count: int; monthly_batch_count: int

@dataclass(frozen=True, slots=True)
class CacheStats:
    durable: StoreStats; ephemeral: EphemeralStats

@dataclass(frozen=True)
class ImprovementArea:
    category: str
    description: str
    priority: Priority
    action_items: List[str] = field(default_factory=list)
    study_resources: List[str] = field(default_factory=list)

@dataclass
class TimeClassStats:
    games: int = 0; wins: int = 0; losses: int = 0; draws: int = 0
    average_accuracy: float = 0.0

@dataclass
class AnalysisContext:
    """Mutable state passed from one pipeline stage to the next for a single game."""
    game: GameRecord
    username: str
    settings: "AnalysisSettings"
    cancel_event: Optional["asyncio.Event"] = None
    state: AnalysisState = AnalysisState.PENDING
    player_color: Optional[PlayerColor] = None
    parsed_game: Optional[ParsedGame] = None
    moves: List[MoveRecord] = field(default_factory=list)
    statistics: Optional[GameStatistics] = None
    record: Optional[AnalysisRecord] = None
    summary: Optional[GameSummary] = None
    summary_source: SummarySource = SummarySource.FALLBACK

@dataclass
class PlayerReport:
    """Everything one "analyze this player" run produced."""
    username: str
    analyses: List[AnalysisRecord]
    profile: Optional[ProfileSummary] = None
    cached_count: int = 0
    computed_count: int = 0
    skipped_count: int = 0
    win_rate: float = 0.0
    average_accuracy: float = 0.0
    time_class_stats: Dict[str, TimeClassStats] = field(default_factory=dict)
    mistake_patterns: List[MistakePattern] = field(default_factory=list)
    improvement_areas: List[ImprovementArea] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def games_analyzed(self) -> int:
        return len(self.analyses)


GamesFetcher: TypeAlias = Callable[[], Awaitable[List[GameRecord]]]
MonthsFetcher: TypeAlias = Callable[[], Awaitable[List[Tuple[int, int]]]]
ProfileFetcher: TypeAlias = Callable[[], Awaitable[ProfileSummary]]
AnalysisComputer: TypeAlias = Callable[[str], Awaitable[Optional[AnalysisRecord]]]


# --- PROTOCOLS: Abstract Interfaces for Services ---

@runtime_checkable
class GameSource(Protocol):
    """Defines the abstract interface for the external game provider."""
    async def fetch_archive_list(self, username: str) -> List[str]: ...
    async def fetch_month(self, username: str, year: int, month: int) -> List[GameRecord]: ...
    async def fetch_profile(self, username: str) -> ProfileSummary: ...

@runtime_checkable
class MoveEvaluator(Protocol):
    """Defines the abstract interface for judging the quality of one move."""
    version: str
    def evaluate_move(self, fen_before: FEN, move_san: str, fen_after: FEN) -> MoveEvaluation: ...

@runtime_checkable
class SummaryGenerator(Protocol):
    """Defines the abstract interface for producing a game summary."""
    async def summarize(self, game: GameRecord, player_color: PlayerColor, statistics: GameStatistics) -> GameSummary: ...

@runtime_checkable
class DurableStore(Protocol):
    """Defines the abstract interface for the persistent game and analysis store."""
    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def get_game(self, uuid: str) -> Optional[GameRecord]: ...
    async def known_months(self, username: str) -> List[Tuple[int, int]]: ...
    async def get_month_games(self, username: str, year: int, month: int) -> List[GameRecord]: ...
    async def put_game(self, record: GameRecord) -> None: ...
    async def put_games(self, records: List[GameRecord]) -> None: ...
    async def get_analysis(self, game_uuid: str, username: str) -> Optional[AnalysisRecord]: ...
    async def put_analysis(self, game_uuid: str, username: str, record: AnalysisRecord) -> None: ...
    async def get_analyses_bulk(self, username: str, game_uuids: List[str]) -> Dict[str, AnalysisRecord]: ...
    async def stats(self) -> StoreStats: ...
    async def clear(self, username: Optional[str] = None) -> None: ...

class ProcessingStage(Protocol):
    """Protocol for a single, named stage in the game analysis pipeline."""
    async def execute(self, context: AnalysisContext) -> AnalysisContext: ...
