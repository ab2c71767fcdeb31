# src/cache/sqlite_store.py - v1
"""SQLite-based cache store (CACHE_BACKEND=sqlite, warm tier of tiered).

Uses stdlib sqlite3, no external dependency. Tables mirror the
`contact_hashes` / `contact_search_history` layout. Counters are updated
with single INSERT ... ON CONFLICT DO UPDATE statements, so concurrent
writers (including other processes on the same file) never lose increments.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from contactcache.cache.base_cache_store import BaseCacheStore, StoreUnavailableError
from contactcache.cache.models import (
    CacheRecord,
    EnrichmentResult,
    PurgeResult,
    SearchHistoryRecord,
    SearchOutcome,
)
from contactcache.cache.records import utcnow

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS contact_hashes (
    contact_hash TEXT PRIMARY KEY,
    original_input TEXT NOT NULL,
    found_email TEXT,
    found_name TEXT,
    linkedin_url TEXT,
    verification_status TEXT
        CHECK (verification_status IN ('verified', 'unverified', 'risky', 'invalid')),
    api_source TEXT NOT NULL DEFAULT 'findymail'
        CHECK (api_source IN ('findymail', 'contactout', 'manual')),
    email_provider TEXT,
    times_found INTEGER NOT NULL DEFAULT 1,
    last_accessed TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_contact_hashes_created ON contact_hashes(created_at);
CREATE INDEX IF NOT EXISTS idx_contact_hashes_accessed ON contact_hashes(last_accessed);

CREATE TABLE IF NOT EXISTS contact_search_history (
    contact_hash TEXT PRIMARY KEY,
    times_searched INTEGER NOT NULL DEFAULT 0,
    successful_finds INTEGER NOT NULL DEFAULT 0,
    failed_searches INTEGER NOT NULL DEFAULT 0,
    first_search TEXT NOT NULL,
    last_api_call TEXT
);
CREATE INDEX IF NOT EXISTS idx_search_history_last_call
    ON contact_search_history(last_api_call);
"""

_RECORD_COLUMNS = (
    "contact_hash, original_input, found_email, found_name, linkedin_url, "
    "verification_status, api_source, email_provider, times_found, "
    "last_accessed, created_at, updated_at"
)
_HISTORY_COLUMNS = (
    "contact_hash, times_searched, successful_finds, failed_searches, "
    "first_search, last_api_call"
)

# Refresh keeps created_at and times_found; COALESCE keeps previous
# values when the new provider result leaves a field empty.
_UPSERT_RECORD = f"""
INSERT INTO contact_hashes ({_RECORD_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
ON CONFLICT (contact_hash) DO UPDATE SET
    original_input = excluded.original_input,
    found_email = COALESCE(excluded.found_email, contact_hashes.found_email),
    found_name = COALESCE(excluded.found_name, contact_hashes.found_name),
    linkedin_url = COALESCE(excluded.linkedin_url, contact_hashes.linkedin_url),
    verification_status = COALESCE(
        excluded.verification_status, contact_hashes.verification_status
    ),
    api_source = excluded.api_source,
    email_provider = COALESCE(excluded.email_provider, contact_hashes.email_provider),
    last_accessed = excluded.last_accessed,
    updated_at = excluded.updated_at
"""

_UPSERT_HISTORY = f"""
INSERT INTO contact_search_history ({_HISTORY_COLUMNS})
VALUES (?, 1, ?, ?, ?, ?)
ON CONFLICT (contact_hash) DO UPDATE SET
    times_searched = contact_search_history.times_searched + 1,
    successful_finds = contact_search_history.successful_finds + excluded.successful_finds,
    failed_searches = contact_search_history.failed_searches + excluded.failed_searches,
    last_api_call = COALESCE(excluded.last_api_call, contact_search_history.last_api_call)
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed warm tier."""

    backend_name = "sqlite"

    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) == ":memory:":
            self._db_path: Path | None = None
            target = ":memory:"
        else:
            self._db_path = Path(db_path).expanduser()
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)
        try:
            self._conn = sqlite3.connect(target, timeout=30.0)
            self._conn.row_factory = sqlite3.Row
            if self._db_path is not None:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreUnavailableError(self.backend_name, "connect", e) from e

    async def get(self, identity_hash: str) -> CacheRecord | None:
        row = self._fetchone(
            f"SELECT {_RECORD_COLUMNS} FROM contact_hashes WHERE contact_hash = ?",
            (identity_hash,),
            operation="get",
        )
        return _row_to_record(row) if row is not None else None

    async def put(
        self,
        identity_hash: str,
        original_input: str,
        result: EnrichmentResult,
        now: datetime | None = None,
    ) -> CacheRecord:
        ts = _ts(now or utcnow())
        self._write(
            _UPSERT_RECORD,
            (
                identity_hash,
                original_input,
                result.email,
                result.name,
                result.linkedin_url,
                result.verification_status,
                result.provider_source,
                result.email_provider,
                ts,
                ts,
                ts,
            ),
            operation="put",
        )
        record = await self.get(identity_hash)
        if record is None:
            raise StoreUnavailableError(self.backend_name, "put")
        return record

    async def touch(
        self, identity_hash: str, now: datetime | None = None
    ) -> CacheRecord | None:
        updated = self._write(
            """UPDATE contact_hashes
               SET times_found = times_found + 1, last_accessed = ?
               WHERE contact_hash = ?""",
            (_ts(now or utcnow()), identity_hash),
            operation="touch",
        )
        if updated == 0:
            return None
        return await self.get(identity_hash)

    async def record_search(
        self,
        identity_hash: str,
        outcome: SearchOutcome,
        now: datetime | None = None,
    ) -> SearchHistoryRecord:
        ts = _ts(now or utcnow())
        self._write(
            _UPSERT_HISTORY,
            (
                identity_hash,
                1 if outcome == "success" else 0,
                1 if outcome == "failure" else 0,
                ts,
                ts if outcome != "hit" else None,
            ),
            operation="record_search",
        )
        history = await self.get_search_history(identity_hash)
        if history is None:
            raise StoreUnavailableError(self.backend_name, "record_search")
        return history

    async def get_search_history(self, identity_hash: str) -> SearchHistoryRecord | None:
        row = self._fetchone(
            f"SELECT {_HISTORY_COLUMNS} FROM contact_search_history WHERE contact_hash = ?",
            (identity_hash,),
            operation="get_search_history",
        )
        return _row_to_history(row) if row is not None else None

    async def save_record(self, record: CacheRecord) -> None:
        self._write(
            f"INSERT OR REPLACE INTO contact_hashes ({_RECORD_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.identity_hash,
                record.original_input,
                record.resolved_email,
                record.resolved_name,
                record.resolved_linkedin_url,
                record.verification_status,
                record.provider_source,
                record.email_provider,
                record.hit_count,
                _ts(record.last_accessed_at),
                _ts(record.created_at),
                _ts(record.updated_at),
            ),
            operation="save_record",
        )

    async def delete(self, identity_hash: str) -> None:
        self._write(
            "DELETE FROM contact_hashes WHERE contact_hash = ?",
            (identity_hash,),
            operation="delete",
        )

    async def list_records(self) -> list[CacheRecord]:
        rows = self._fetchall(
            f"SELECT {_RECORD_COLUMNS} FROM contact_hashes", operation="list_records"
        )
        records: list[CacheRecord] = []
        for row in rows:
            try:
                records.append(_row_to_record(row))
            except ValueError as e:
                logger.warning("Skipping malformed cache row %s: %s", row["contact_hash"], e)
        return records

    async def list_search_history(self) -> list[SearchHistoryRecord]:
        rows = self._fetchall(
            f"SELECT {_HISTORY_COLUMNS} FROM contact_search_history",
            operation="list_search_history",
        )
        return [_row_to_history(row) for row in rows]

    async def purge_expired(
        self,
        record_cutoff: datetime,
        idle_cutoff: datetime,
        history_cutoff: datetime,
    ) -> PurgeResult:
        records_deleted = self._write(
            "DELETE FROM contact_hashes WHERE updated_at < ? AND last_accessed < ?",
            (_ts(record_cutoff), _ts(idle_cutoff)),
            operation="purge_expired",
        )
        history_deleted = self._write(
            "DELETE FROM contact_search_history "
            "WHERE COALESCE(last_api_call, first_search) < ?",
            (_ts(history_cutoff),),
            operation="purge_expired",
        )
        return PurgeResult(records_deleted=records_deleted, history_deleted=history_deleted)

    async def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- helpers ---

    def _write(self, sql: str, params: tuple, operation: str) -> int:
        try:
            with self._conn:
                cursor = self._conn.execute(sql, params)
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreUnavailableError(self.backend_name, operation, e) from e

    def _fetchone(self, sql: str, params: tuple, operation: str) -> sqlite3.Row | None:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(self.backend_name, operation, e) from e

    def _fetchall(self, sql: str, operation: str) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailableError(self.backend_name, operation, e) from e


def _ts(value: datetime) -> str:
    """Fixed-width UTC ISO string so SQL string comparison orders correctly."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_record(row: sqlite3.Row) -> CacheRecord:
    return CacheRecord(
        identity_hash=row["contact_hash"],
        original_input=row["original_input"],
        resolved_email=row["found_email"],
        resolved_name=row["found_name"],
        resolved_linkedin_url=row["linkedin_url"],
        verification_status=row["verification_status"],
        provider_source=row["api_source"],
        email_provider=row["email_provider"],
        hit_count=row["times_found"],
        last_accessed_at=datetime.fromisoformat(row["last_accessed"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_history(row: sqlite3.Row) -> SearchHistoryRecord:
    last_call = row["last_api_call"]
    return SearchHistoryRecord(
        identity_hash=row["contact_hash"],
        times_searched=row["times_searched"],
        successful_finds=row["successful_finds"],
        failed_searches=row["failed_searches"],
        first_searched_at=datetime.fromisoformat(row["first_search"]),
        last_provider_call_at=datetime.fromisoformat(last_call) if last_call else None,
    )
