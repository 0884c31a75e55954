# chess_insights/utils/logging_config.py
"""
Structured logging for the command line run.

Application events go through structlog; records from aiosqlite, aiohttp and the
Anthropic SDK pass through the same processor chain so a run reads as one
stream. Progress lines go to stderr so that the printed report on stdout stays
clean when piped.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.types import Processor

# Chatty at INFO (one line per HTTP request or SQL statement).
_THIRD_PARTY_LOGGERS = ("aiosqlite", "aiohttp.access", "aiohttp.client", "anthropic", "httpx", "httpcore")


def _shared_chain() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%H:%M:%S" if sys.stderr.isatty() else "iso", utc=not sys.stderr.isatty()),
        structlog.processors.format_exc_info,
    ]


def _handler(stream_or_path, render_json: bool, chain: List[Processor]) -> logging.Handler:
    if isinstance(stream_or_path, Path):
        stream_or_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(stream_or_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(stream_or_path)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if render_json
        else structlog.dev.ConsoleRenderer(colors=stream_or_path is sys.stderr and sys.stderr.isatty())
    )
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))
    return handler


def setup_logging(log_level: str = "INFO", json_console: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Routes structlog and stdlib logging to stderr, plus an optional JSON-lines file.

    Args:
        log_level: Root level name, e.g. "DEBUG".
        json_console: Render stderr lines as JSON instead of the console format.
        log_file: When set, every record is also appended there as JSON.
    """
    chain = _shared_chain()
    structlog.configure(
        processors=chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = [_handler(sys.stderr, json_console, chain)]
    if log_file is not None:
        handlers.append(_handler(log_file, True, chain))
    logging.basicConfig(handlers=handlers, level=log_level.upper(), force=True)

    floor = max(logging.WARNING, logging.getLogger().level)
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(floor)
