# main.py
"""
Command-line entry point for Chess Insights.

    chess-insights analyze <username> [--limit N]
    chess-insights --cache-stats
    chess-insights --clear-cache [username]
"""
import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from chess_insights.config.settings import Settings
from chess_insights.containers import get_container
from chess_insights.exceptions import AnalysisCancelledError, ChessInsightsError
from chess_insights.orchestration.orchestrator import PlayerAnalysisOrchestrator
from chess_insights.services.cache_coordinator import CacheCoordinator
from chess_insights.services.chesscom_client import ChessComClient
from chess_insights.types import PlayerReport
from chess_insights.utils.logging_config import setup_logging
from chess_insights.utils.signal_manager import CancelOnSignal

logger = structlog.get_logger(__name__)

_ALL_USERS = "*"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chess-insights", description="Analyze a Chess.com player's recent games.")
    parser.add_argument("--log-level", default=None, help="Overrides the configured log level.")
    parser.add_argument("--cache-stats", action="store_true", help="Print record counts for every cache tier and exit.")
    parser.add_argument(
        "--clear-cache", nargs="?", const=_ALL_USERS, default=None, metavar="USERNAME",
        help="Clear every cache tier, or only the entries of USERNAME, and exit.",
    )
    subparsers = parser.add_subparsers(dest="command")
    analyze = subparsers.add_parser("analyze", help="Analyze a player's recent games.")
    analyze.add_argument("username")
    analyze.add_argument("--limit", type=int, default=None, help="Number of recent games to analyze.")
    return parser


def _print_report(report: PlayerReport) -> None:
    print(f"Player:            {report.username}")
    print(f"Games analyzed:    {report.games_analyzed} ({report.cached_count} cached, "
          f"{report.computed_count} new, {report.skipped_count} skipped)")
    print(f"Win rate:          {report.win_rate:.1%}")
    print(f"Average accuracy:  {report.average_accuracy:.1f}%")
    for time_class, stats in sorted(report.time_class_stats.items()):
        print(f"  {time_class:<10} {stats.games:>3} games  +{stats.wins} ={stats.draws} -{stats.losses}  "
              f"{stats.average_accuracy:.1f}%")
    for pattern in report.mistake_patterns:
        print(f"Pattern [{pattern.severity.value}]: {pattern.description} ({pattern.frequency} games)")
    for area in report.improvement_areas:
        print(f"Improve [{area.priority.value}]: {area.category} - {area.description}")
    for line in report.recommendations:
        print(f"  * {line}")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    username = getattr(args, "username", None) or ""
    run_config = settings.to_run_config(username, getattr(args, "limit", None))
    container = get_container(run_config)

    async with container.resolve(CacheCoordinator) as coordinator:
        if args.cache_stats:
            stats = await coordinator.stats()
            print(f"Durable games:      {stats.durable.game_count}")
            print(f"Durable analyses:   {stats.durable.analysis_count}")
            print(f"Storage size:       {stats.durable.storage_size_bytes} bytes")
            print(f"Cached profiles:    {stats.ephemeral.profile_count}")
            print(f"Cached months:      {stats.ephemeral.monthly_batch_count}")
            return 0

        if args.clear_cache is not None:
            scope = None if args.clear_cache == _ALL_USERS else args.clear_cache
            await coordinator.clear(scope)
            print(f"Cache cleared for {scope or 'all players'}.")
            return 0

        cancel_event = asyncio.Event()
        async with container.resolve(ChessComClient), CancelOnSignal(cancel_event):
            orchestrator = container.resolve(PlayerAnalysisOrchestrator)
            report = await orchestrator.run(username, run_config.game_limit, cancel_event)
        _print_report(report)
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not (args.cache_stats or args.clear_cache is not None or args.command == "analyze"):
        parser.print_help()
        return 2

    settings = Settings()
    setup_logging(
        log_level=args.log_level or settings.default_log_level,
        json_console=settings.log_json,
        log_file=settings.log_file,
    )
    try:
        return asyncio.run(_run(args, settings))
    except AnalysisCancelledError:
        logger.warning("Analysis cancelled; finished games remain cached.")
        return 130
    except ChessInsightsError as e:
        logger.error("Run failed.", error=str(e), error_type=type(e).__name__)
        return 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
