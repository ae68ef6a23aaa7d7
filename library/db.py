import asyncio
import datetime as dt
import json
import logging
from pathlib import Path

import aiosqlite

from core.exceptions import DuplicateRecordError, StoreError
from core.normalize import name_keys, normalize_name
from library.models import CanonicalRecord, EntityType, RecordStatus, record_class

logger = logging.getLogger(__name__)

# Default path to SQLite database (relative to project root)
DEFAULT_DB_PATH = Path(__file__).parent.parent / "library.db"

JSON_COLUMNS = ("external_ids", "alternate_names", "image_urls", "tags", "urls")

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        entity_type TEXT NOT NULL,
        scope TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL,
        sort_name TEXT,
        sort_key TEXT,
        artist_name TEXT,
        artist_id INTEGER REFERENCES records(id),
        profile TEXT,
        date TEXT,
        external_ids TEXT NOT NULL DEFAULT '{}',
        alternate_names TEXT NOT NULL DEFAULT '[]',
        image_urls TEXT NOT NULL DEFAULT '[]',
        thumbnail_url TEXT,
        tags TEXT NOT NULL DEFAULT '[]',
        urls TEXT NOT NULL DEFAULT '[]',
        status TEXT NOT NULL DEFAULT 'active',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS record_names (
        entity_type TEXT NOT NULL,
        scope TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL,
        record_id INTEGER NOT NULL REFERENCES records(id),
        UNIQUE (entity_type, scope, name)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_records_sort_key ON records (entity_type, scope, sort_key)",
)


class LibraryDB:
    """Async SQLite store for canonical artist and release records.

    Every normalized name and alternate name of a record is written to
    record_names, whose UNIQUE constraint backs the engine's own
    pre-insert check.
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or DEFAULT_DB_PATH
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self):
        """Open database connection and create the schema if missing."""
        try:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            for statement in SCHEMA:
                await self._conn.execute(statement)
            await self._conn.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to open library database: {e}", {"path": str(self.db_path)}) from e

        logger.info(f"Connected to SQLite database: {self.db_path}")

    async def is_available(self) -> bool:
        """Check if the database connection is alive."""
        try:
            if self._conn is None:
                return False
            async with self._conn.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
                return row is not None
        except Exception:
            return False

    async def close(self):
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("Closed SQLite connection")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("Database not connected")
        return self._conn

    def _row_to_record(self, row: aiosqlite.Row) -> CanonicalRecord:
        data = dict(row)
        for column in JSON_COLUMNS:
            data[column] = json.loads(data[column]) if data.get(column) else None
        data = {k: v for k, v in data.items() if v is not None and k not in ("scope", "sort_key")}
        return record_class(EntityType(data["entity_type"])).model_validate(data)

    async def _fetch_one(self, sql: str, params: tuple) -> CanonicalRecord | None:
        conn = self._require_conn()
        try:
            async with conn.execute(sql, params) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Library query failed: {e}") from e
        return self._row_to_record(row) if row is not None else None

    async def find_by_normalized_name(
        self,
        entity_type: EntityType,
        name: str | None,
        scope: str = "",
    ) -> CanonicalRecord | None:
        """Find a record whose primary, alternate or sort name normalizes to the same key.

        Args:
            entity_type: Artist or release
            name: Name to look up (normalized here)
            scope: Uniqueness scope; the normalized artist name for releases

        Returns:
            The matching non-deleted record, or None
        """
        key = normalize_name(name)
        if not key:
            return None

        record = await self._fetch_one(
            """
            SELECT r.* FROM records r
            JOIN record_names n ON n.record_id = r.id
            WHERE n.entity_type = ? AND n.scope = ? AND n.name = ? AND r.status != ?
            LIMIT 1
            """,
            (entity_type.value, scope, key, RecordStatus.DELETED.value),
        )
        if record is not None:
            return record

        return await self._fetch_one(
            """
            SELECT * FROM records
            WHERE entity_type = ? AND scope = ? AND sort_key = ? AND status != ?
            ORDER BY id
            LIMIT 1
            """,
            (entity_type.value, scope, key, RecordStatus.DELETED.value),
        )

    async def get_by_id(self, record_id: int) -> CanonicalRecord | None:
        """Fetch a record by its identifier."""
        return await self._fetch_one("SELECT * FROM records WHERE id = ?", (record_id,))

    async def insert(self, record: CanonicalRecord) -> int:
        """Insert a new record and claim all its normalized names.

        Sets created_at and updated_at.

        Returns:
            The new record id

        Raises:
            DuplicateRecordError: If one of the record's names is already taken
            StoreError: On any other database failure
        """
        conn = self._require_conn()
        keys = name_keys(record.name, record.alternate_names)
        if not keys:
            raise StoreError("Cannot insert a record without a name", {"name": record.name})

        now = dt.datetime.now(dt.timezone.utc).isoformat()
        data = record.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})
        row = {
            "entity_type": record.entity_type.value,
            "scope": record.scope,
            "name": record.name,
            "sort_name": record.sort_name,
            "sort_key": normalize_name(record.sort_name) or None,
            "artist_name": data.get("artist_name"),
            "artist_id": data.get("artist_id"),
            "profile": record.profile,
            "date": data["date"],
            "thumbnail_url": record.thumbnail_url,
            "status": record.status.value,
            "created_at": now,
            "updated_at": now,
            **{column: json.dumps(data[column]) for column in JSON_COLUMNS},
        }
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)

        async with self._write_lock:
            try:
                cursor = await conn.execute(
                    f"INSERT INTO records ({columns}) VALUES ({placeholders})",
                    tuple(row.values()),
                )
                record_id = cursor.lastrowid
                await conn.executemany(
                    "INSERT INTO record_names (entity_type, scope, name, record_id) VALUES (?, ?, ?, ?)",
                    [(row["entity_type"], row["scope"], key, record_id) for key in keys],
                )
                await conn.commit()
            except aiosqlite.IntegrityError as e:
                await conn.rollback()
                raise DuplicateRecordError(
                    f"{record.entity_type} name already exists: '{record.name}'",
                    {"entity_type": record.entity_type.value, "scope": record.scope, "names": keys},
                ) from e
            except aiosqlite.Error as e:
                await conn.rollback()
                raise StoreError(f"Failed to insert {record.entity_type} '{record.name}': {e}") from e

        assert record_id is not None
        logger.info(f"Inserted {record.entity_type} {record_id} '{record.name}'")
        return record_id

    async def count(self, entity_type: EntityType | None = None) -> int:
        """Number of stored records, optionally of one entity type."""
        conn = self._require_conn()
        if entity_type is None:
            sql, params = "SELECT COUNT(*) FROM records", ()
        else:
            sql, params = "SELECT COUNT(*) FROM records WHERE entity_type = ?", (entity_type.value,)
        async with conn.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
