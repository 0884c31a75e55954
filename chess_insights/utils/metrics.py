"""
Centralized Prometheus metrics definitions for the Chess Insights application.

All counters and histograms the application updates are declared here, which
gives a single overview of its instrumentation points.
"""
from prometheus_client import Counter, Histogram

# A common prefix for all application-specific metrics.
PREFIX = "chess_insights"

# --- Cache Metrics ---

CACHE_LOOKUPS_TOTAL = Counter(
    f"{PREFIX}_cache_lookups_total",
    "Total number of cache lookups, by tier, record kind and result.",
    ["tier", "kind", "result"],  # e.g., tier="ephemeral", kind="monthly_batch", result="hit"
)

CACHE_WRITE_FAILURES_TOTAL = Counter(
    f"{PREFIX}_cache_write_failures_total",
    "Total number of durable writes that failed and were swallowed by the coordinator.",
    ["kind"],  # e.g., kind="game", "analysis"
)

DB_TRANSIENT_ERRORS_TOTAL = Counter(
    f"{PREFIX}_db_transient_errors_total",
    "Total number of transient database errors that triggered a retry.",
    ["db_type"],
)

DB_WRITE_DURATION_SECONDS = Histogram(
    f"{PREFIX}_db_write_duration_seconds",
    "Histogram of the time taken to write records to the durable store.",
    ["kind"],
)

# --- Source Metrics ---

SOURCE_REQUESTS_TOTAL = Counter(
    f"{PREFIX}_source_requests_total",
    "Total number of requests sent to the external game source.",
    ["endpoint", "outcome"],  # e.g., endpoint="month", outcome="ok" / "error"
)

# --- Analysis Metrics ---

ANALYSES_COMPUTED_TOTAL = Counter(
    f"{PREFIX}_analyses_computed_total",
    "Total number of game analyses computed on a cache miss.",
)

GAMES_SKIPPED_TOTAL = Counter(
    f"{PREFIX}_games_skipped_total",
    "Total number of games skipped by the analysis pipeline.",
    ["reason"],  # e.g., reason="PgnParsingError", "PlayerNotInGameError"
)

SUMMARY_FALLBACKS_TOTAL = Counter(
    f"{PREFIX}_summary_fallbacks_total",
    "Total number of game summaries produced by the rule-based fallback.",
    ["reason"],  # e.g., reason="not_configured", "generation_failed"
)

GAME_ANALYSIS_DURATION_SECONDS = Histogram(
    f"{PREFIX}_game_analysis_duration_seconds",
    "Histogram of the time taken to analyze a single game on a cache miss.",
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
)
