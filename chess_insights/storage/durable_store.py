# chess_insights/storage/durable_store.py
"""
Provides the SQLite-backed durable store for fetched games and computed analyses.

Two tables are kept: `games`, keyed by the provider's game uuid, and `analyses`,
keyed by `(game_uuid, username)`. Records never expire; they are removed only
by an explicit `clear()`.

Reads are forgiving: an I/O error, a closed connection, corrupt JSON or a
record that no longer validates against the current schema is logged and
reported as "not found", so the caller simply recomputes. Writes retry on
SQLite lock contention and then raise `StorageWriteError`.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TYPE_CHECKING

import aiosqlite
import structlog
from pydantic import ValidationError

from chess_insights.exceptions import StorageConnectionError, StorageError, StorageWriteError
from chess_insights.types import ANALYSIS_SCHEMA_VERSION, AnalysisRecord, GameRecord, StoreStats
from chess_insights.utils import metrics
from chess_insights.utils.retry import is_lock_contention, retry_with_backoff

if TYPE_CHECKING:
    from chess_insights.config.settings import CacheSettings

logger = structlog.get_logger(__name__)

# Only lock contention among these is retried; see `is_lock_contention`.
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    aiosqlite.OperationalError,
)

# Errors that turn a read into a miss. aiosqlite raises ValueError once the
# connection has been closed.
_READ_ERRORS: Tuple[Type[Exception], ...] = (aiosqlite.Error, StorageError, ValueError)

# SQLite's default limit on bound parameters is 999; stay well below it.
_BULK_CHUNK_SIZE = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS games (
    uuid TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    game_json TEXT NOT NULL,
    cached_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_games_username_date ON games (username, year, month);

CREATE TABLE IF NOT EXISTS analyses (
    game_uuid TEXT NOT NULL,
    username TEXT NOT NULL,
    schema_version INTEGER NOT NULL,
    evaluator_version TEXT NOT NULL,
    analysis_json TEXT NOT NULL,
    cached_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (game_uuid, username)
);
CREATE INDEX IF NOT EXISTS idx_analyses_username ON analyses (username);
"""

_UPSERT_GAME_SQL = """
INSERT INTO games (uuid, username, year, month, game_json, cached_at)
VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT(uuid) DO UPDATE SET
    username = excluded.username,
    year = excluded.year,
    month = excluded.month,
    game_json = excluded.game_json,
    cached_at = excluded.cached_at
"""

_UPSERT_ANALYSIS_SQL = """
INSERT INTO analyses (game_uuid, username, schema_version, evaluator_version, analysis_json, cached_at)
VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT(game_uuid, username) DO UPDATE SET
    schema_version = excluded.schema_version,
    evaluator_version = excluded.evaluator_version,
    analysis_json = excluded.analysis_json,
    cached_at = excluded.cached_at
"""


def _game_row(record: GameRecord) -> Tuple[Any, ...]:
    return (record.uuid, record.username, record.year, record.month, json.dumps(record.payload))


def _decode_game(row: aiosqlite.Row) -> Optional[GameRecord]:
    try:
        return GameRecord(
            uuid=row["uuid"], username=row["username"], year=row["year"], month=row["month"],
            payload=json.loads(row["game_json"]),
        )
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.warning("Corrupt game record in durable store, ignoring.", game_uuid=row["uuid"], error=str(e))
        return None


class SqliteDurableStore:
    """
    A `DurableStore` implementation using a local SQLite database.

    This class is an async context manager, managing its own database connection
    lifecycle.
    """

    def __init__(
        self,
        settings: "CacheSettings",
        evaluator_version: Optional[str] = None,
        schema_version: int = ANALYSIS_SCHEMA_VERSION,
    ):
        """
        Args:
            settings: The cache configuration containing the database file path.
            evaluator_version: When given, stored analyses produced by another
                evaluator version are reported as missing.
            schema_version: Stored analyses with another schema version are
                reported as missing.
        """
        self._db_path = Path(settings.db_filepath)
        self._evaluator_version = evaluator_version
        self._schema_version = schema_version
        self._connection: Optional[aiosqlite.Connection] = None

    async def __aenter__(self) -> "SqliteDurableStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> None:
        """Opens the database connection and creates the schema."""
        if self._connection is not None:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path, timeout=10.0)
            self._connection.row_factory = aiosqlite.Row
            # WAL lets readers proceed while a write is in progress.
            await self._connection.execute("PRAGMA journal_mode=WAL;")
            await self._connection.executescript(_SCHEMA)
            await self._connection.commit()
        except aiosqlite.Error as e:
            raise StorageConnectionError(f"Failed to initialize SQLite store at {self._db_path}: {e}") from e
        logger.debug("Durable store opened.", path=str(self._db_path))

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Durable store closed.", path=str(self._db_path))

    def _ensure_connected(self) -> aiosqlite.Connection:
        """Internal helper to ensure the database connection is active."""
        if self._connection is None:
            raise StorageConnectionError("Durable store is not connected.")
        return self._connection

    # --- Write helpers ---

    @retry_with_backoff(RETRYABLE_EXCEPTIONS, retry_if=is_lock_contention)
    async def _execute_write(self, query: str, rows: Sequence[Sequence[Any]]) -> None:
        """Runs one write statement for every row in a single transaction."""
        conn = self._ensure_connected()
        try:
            await conn.executemany(query, rows)
            await conn.commit()
        except aiosqlite.Error:
            await conn.rollback()
            raise

    async def _write(self, kind: str, query: str, rows: Sequence[Sequence[Any]], keys: List[str]) -> None:
        started = time.perf_counter()
        try:
            await self._execute_write(query, rows)
        except (aiosqlite.Error, ValueError) as e:
            logger.error("Durable write failed.", kind=kind, keys=keys[:5], count=len(keys), error=str(e))
            raise StorageWriteError(f"Failed to write {kind} records: {e}", failed_keys=keys) from e
        finally:
            metrics.DB_WRITE_DURATION_SECONDS.labels(kind=kind).observe(time.perf_counter() - started)

    # --- Games ---

    async def get_game(self, uuid: str) -> Optional[GameRecord]:
        """Returns the stored game with this uuid, or None."""
        try:
            conn = self._ensure_connected()
            async with conn.execute(
                "SELECT uuid, username, year, month, game_json FROM games WHERE uuid = ?", (uuid,)
            ) as cursor:
                row = await cursor.fetchone()
        except _READ_ERRORS as e:
            logger.warning("Failed to read game from durable store.", game_uuid=uuid, error=str(e))
            return None
        return _decode_game(row) if row is not None else None

    async def known_months(self, username: str) -> List[Tuple[int, int]]:
        """Distinct months with stored games for the player, newest first."""
        try:
            conn = self._ensure_connected()
            async with conn.execute(
                "SELECT DISTINCT year, month FROM games WHERE username = ? AND year > 0 ORDER BY year DESC, month DESC",
                (username.lower(),),
            ) as cursor:
                rows = await cursor.fetchall()
        except _READ_ERRORS as e:
            logger.warning("Failed to list stored months.", username=username, error=str(e))
            return []
        return [(row["year"], row["month"]) for row in rows]

    async def get_month_games(self, username: str, year: int, month: int) -> List[GameRecord]:
        """Every stored game of the player for one calendar month; corrupt rows are left out."""
        try:
            conn = self._ensure_connected()
            async with conn.execute(
                "SELECT uuid, username, year, month, game_json FROM games WHERE username = ? AND year = ? AND month = ?",
                (username.lower(), year, month),
            ) as cursor:
                rows = await cursor.fetchall()
        except _READ_ERRORS as e:
            logger.warning("Failed to read stored monthly games.", username=username, year=year, month=month, error=str(e))
            return []
        return [game for game in map(_decode_game, rows) if game is not None]

    async def put_game(self, record: GameRecord) -> None:
        """Inserts or replaces a single game. Repeating the call is harmless."""
        self._ensure_connected()
        await self._write("game", _UPSERT_GAME_SQL, [_game_row(record)], [record.uuid])

    async def put_games(self, records: Iterable[GameRecord]) -> None:
        """
        Upserts many games.

        The batch is first written in one transaction. If that fails, every row
        is retried on its own so that one bad row cannot block the others; the
        uuids that still fail are reported through `StorageWriteError`.
        """
        records = list(records)
        if not records:
            return
        self._ensure_connected()
        try:
            await self._write("game", _UPSERT_GAME_SQL, [_game_row(r) for r in records], [r.uuid for r in records])
            return
        except StorageWriteError:
            if len(records) == 1:
                raise
            logger.warning("Batch game write failed, retrying row by row.", count=len(records))

        failed: List[str] = []
        for record in records:
            try:
                await self._write("game", _UPSERT_GAME_SQL, [_game_row(record)], [record.uuid])
            except StorageWriteError:
                failed.append(record.uuid)
        if failed:
            raise StorageWriteError(f"Failed to write {len(failed)} of {len(records)} games.", failed_keys=failed)

    # --- Analyses ---

    def _decode_analysis(self, row: aiosqlite.Row) -> Optional[AnalysisRecord]:
        """Validates a stored analysis and rejects records from another schema or evaluator version."""
        if row["schema_version"] != self._schema_version or (
            self._evaluator_version is not None and row["evaluator_version"] != self._evaluator_version
        ):
            logger.debug(
                "Stored analysis is from another version, treating as missing.",
                game_uuid=row["game_uuid"],
                stored_schema=row["schema_version"],
                stored_evaluator=row["evaluator_version"],
            )
            return None
        try:
            return AnalysisRecord.model_validate_json(row["analysis_json"])
        except ValidationError as e:
            logger.warning("Corrupt analysis in durable store, ignoring.", game_uuid=row["game_uuid"], error=str(e))
            return None

    async def get_analysis(self, game_uuid: str, username: str) -> Optional[AnalysisRecord]:
        """Returns the stored analysis of `game_uuid` for `username`, or None."""
        try:
            conn = self._ensure_connected()
            async with conn.execute(
                "SELECT game_uuid, schema_version, evaluator_version, analysis_json "
                "FROM analyses WHERE game_uuid = ? AND username = ?",
                (game_uuid, username.lower()),
            ) as cursor:
                row = await cursor.fetchone()
        except _READ_ERRORS as e:
            logger.warning("Failed to read analysis from durable store.", game_uuid=game_uuid, error=str(e))
            return None
        return self._decode_analysis(row) if row is not None else None

    async def put_analysis(self, game_uuid: str, username: str, record: AnalysisRecord) -> None:
        """Inserts or replaces the analysis stored under `(game_uuid, username)`."""
        self._ensure_connected()
        row = (game_uuid, username.lower(), record.schema_version, record.evaluator_version, record.model_dump_json())
        await self._write("analysis", _UPSERT_ANALYSIS_SQL, [row], [game_uuid])

    async def get_analyses_bulk(self, username: str, game_uuids: Sequence[str]) -> Dict[str, AnalysisRecord]:
        """
        Looks up many analyses for one player in as few queries as possible.

        Returns:
            A dictionary mapping each found uuid to its analysis. Uuids with no
            valid stored analysis are omitted.
        """
        unique_uuids = list(dict.fromkeys(game_uuids))
        if not unique_uuids:
            return {}

        rows: List[aiosqlite.Row] = []
        try:
            conn = self._ensure_connected()
            for start in range(0, len(unique_uuids), _BULK_CHUNK_SIZE):
                chunk = unique_uuids[start:start + _BULK_CHUNK_SIZE]
                placeholders = ", ".join("?" * len(chunk))
                query = (
                    "SELECT game_uuid, schema_version, evaluator_version, analysis_json FROM analyses "
                    f"WHERE username = ? AND game_uuid IN ({placeholders})"
                )
                async with conn.execute(query, [username.lower(), *chunk]) as cursor:
                    rows.extend(await cursor.fetchall())
        except _READ_ERRORS as e:
            logger.warning("Bulk analysis lookup failed, treating all as missing.", username=username, error=str(e))
            return {}

        results: Dict[str, AnalysisRecord] = {}
        for row in rows:
            record = self._decode_analysis(row)
            if record is not None:
                results[row["game_uuid"]] = record
        return results

    # --- Maintenance ---

    async def stats(self) -> StoreStats:
        """Returns record counts and the on-disk size of the database."""
        game_count = analysis_count = 0
        try:
            conn = self._ensure_connected()
            async with conn.execute("SELECT COUNT(*) FROM games") as cursor:
                game_count = (await cursor.fetchone())[0]
            async with conn.execute("SELECT COUNT(*) FROM analyses") as cursor:
                analysis_count = (await cursor.fetchone())[0]
        except _READ_ERRORS as e:
            logger.warning("Failed to read durable store statistics.", error=str(e))

        size = 0
        for path in (self._db_path, self._db_path.with_name(self._db_path.name + "-wal")):
            if path.exists():
                size += path.stat().st_size
        return StoreStats(game_count=game_count, analysis_count=analysis_count, storage_size_bytes=size)

    async def clear(self, username: Optional[str] = None) -> None:
        """Deletes every game and analysis, or only those owned by `username`."""
        conn = self._ensure_connected()
        if username is None:
            statements = [("DELETE FROM games", ()), ("DELETE FROM analyses", ())]
        else:
            name = username.lower()
            statements = [
                ("DELETE FROM games WHERE username = ?", (name,)),
                ("DELETE FROM analyses WHERE username = ?", (name,)),
            ]
        try:
            await self._clear_statements(conn, statements)
        except (aiosqlite.Error, ValueError) as e:
            raise StorageWriteError(f"Failed to clear durable store: {e}") from e
        logger.info("Durable store cleared.", username=username or "*")

    @retry_with_backoff(RETRYABLE_EXCEPTIONS, retry_if=is_lock_contention)
    async def _clear_statements(self, conn: aiosqlite.Connection, statements: List[Tuple[str, tuple]]) -> None:
        try:
            for query, params in statements:
                await conn.execute(query, params)
            await conn.commit()
        except aiosqlite.Error:
            await conn.rollback()
            raise
