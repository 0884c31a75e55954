# tests/conftest.py
from datetime import datetime, timezone

import pytest

from chess_insights.config.settings import AnalysisSettings, CacheSettings
from chess_insights.types import GameRecord

SCHOLARS_MATE_PGN = """[Event "Live Chess"]
[Site "Chess.com"]
[White "Alice"]
[Black "Bob"]
[Result "1-0"]
[ECO "C20"]
[ECOUrl "https://www.chess.com/openings/Kings-Pawn-Opening-Wayward-Queen-Attack"]

1. e4 e5 2. Bc4 Nc6 3. Qh5 Nf6 4. Qxf7# 1-0
"""


def _timestamp(year: int, month: int, day: int = 15) -> int:
    return int(datetime(year, month, day, 12, 0, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def make_game():
    """Factory for `GameRecord`s shaped like Chess.com monthly-archive entries."""
    def _make(
        uuid: str,
        username: str = "bob",
        white: str = "Alice",
        black: str = "Bob",
        pgn: str = SCHOLARS_MATE_PGN,
        year: int = 2024,
        month: int = 3,
        day: int = 15,
        white_result: str = "win",
        black_result: str = "checkmated",
        time_class: str = "blitz",
    ) -> GameRecord:
        payload = {
            "uuid": uuid,
            "url": f"https://www.chess.com/game/live/{uuid}",
            "pgn": pgn,
            "end_time": _timestamp(year, month, day),
            "time_class": time_class,
            "white": {"username": white, "result": white_result, "rating": 1500},
            "black": {"username": black, "result": black_result, "rating": 1480},
        }
        return GameRecord.from_payload(payload, username)
    return _make


@pytest.fixture
def analysis_settings() -> AnalysisSettings:
    return AnalysisSettings()


@pytest.fixture
def cache_settings(tmp_path) -> CacheSettings:
    return CacheSettings(db_filepath=str(tmp_path / "cache.db"))
