# tests/services/test_chesscom_client.py
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from chess_insights.config.settings import SourceSettings
from chess_insights.exceptions import PlayerNotFoundError, SourceUnavailableError
from chess_insights.services.chesscom_client import ChessComClient, parse_archive_url


def _session(status: int = 200, body: Any = None, error: Exception = None) -> MagicMock:
    """A stand-in for `aiohttp.ClientSession` whose `get` yields one canned response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=body)

    context = MagicMock()
    if error is not None:
        context.__aenter__ = AsyncMock(side_effect=error)
    else:
        context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.get = MagicMock(return_value=context)
    return session


@pytest.mark.parametrize("url, expected", [
    ("https://api.chess.com/pub/player/bob/games/2024/03", (2024, 3)),
    ("https://api.chess.com/pub/player/bob/games/2023/12/", (2023, 12)),
    ("https://api.chess.com/pub/player/bob/games/archives", None),
])
def test_parse_archive_url(url, expected):
    assert parse_archive_url(url) == expected


@pytest.mark.asyncio
class TestChessComClient:
    async def test_fetch_month_builds_records(self, make_game):
        payloads = [make_game("g1").payload, {"pgn": "no identifier"}, make_game("g2").payload]
        session = _session(body={"games": payloads})
        client = ChessComClient(SourceSettings(), session=session)

        games = await client.fetch_month("Bob", 2024, 3)

        assert [g.uuid for g in games] == ["g1", "g2"]
        assert all(g.username == "bob" for g in games)
        session.get.assert_called_once_with("https://api.chess.com/pub/player/bob/games/2024/03")

    async def test_fetch_archive_list(self):
        archives = ["https://api.chess.com/pub/player/bob/games/2024/02", "https://api.chess.com/pub/player/bob/games/2024/03"]
        client = ChessComClient(SourceSettings(), session=_session(body={"archives": archives}))

        assert await client.fetch_archive_list("bob") == archives

    async def test_fetch_profile(self):
        body = {"player_id": 42, "followers": 3, "status": "premium", "unknown_field": True}
        client = ChessComClient(SourceSettings(), session=_session(body=body))

        profile = await client.fetch_profile("Bob")

        assert profile.username == "Bob"
        assert profile.player_id == 42

    async def test_404_is_player_not_found(self):
        client = ChessComClient(SourceSettings(), session=_session(status=404))

        with pytest.raises(PlayerNotFoundError) as exc_info:
            await client.fetch_archive_list("nobody")

        assert exc_info.value.status == 404

    async def test_server_error_is_source_unavailable(self):
        client = ChessComClient(SourceSettings(), session=_session(status=503))

        with pytest.raises(SourceUnavailableError) as exc_info:
            await client.fetch_month("bob", 2024, 3)

        assert exc_info.value.status == 503

    async def test_transport_error_is_source_unavailable(self):
        client = ChessComClient(SourceSettings(), session=_session(error=aiohttp.ClientConnectionError("reset")))

        with pytest.raises(SourceUnavailableError):
            await client.fetch_month("bob", 2024, 3)

    async def test_injected_session_is_not_closed(self):
        session = _session(body={})
        session.close = AsyncMock()

        async with ChessComClient(SourceSettings(), session=session):
            pass

        session.close.assert_not_awaited()
