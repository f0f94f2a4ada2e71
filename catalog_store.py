"""
SQLite Artifact Catalog

Local table of every coordinate ever synced, keyed by
(groupId, artifactId, version). Writes are insert-or-replace and committed one
record at a time, so a failed or cancelled batch keeps the records written
before it. Reads are offset pages in a stable key order.
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from artifact_coordinates import CatalogRecord
from cancellation import CancellationToken
from catalog_errors import StorageError

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS artifacts (
    groupId TEXT,
    artifactId TEXT,
    version TEXT,
    lastUpdated INTEGER,
    PRIMARY KEY (groupId, artifactId, version)
)
"""


@dataclass
class UpsertResult:
    applied: int


@dataclass
class PageResult:
    records: List[CatalogRecord] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10


class CatalogStore:
    """SQLite-backed catalog of artifact coordinates

    Use ":memory:" as the path for a throwaway store.
    """

    def __init__(self, path: Union[str, Path], wal_mode: bool = True):
        self.path = str(path)
        self._lock = threading.RLock()

        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)

            # Autocommit: every statement is its own transaction
            self.conn = sqlite3.connect(
                self.path, check_same_thread=False, timeout=30.0, isolation_level=None
            )
            self.conn.row_factory = sqlite3.Row

            if wal_mode and self.path != ":memory:":
                self.conn.execute("PRAGMA journal_mode=WAL")
                self.conn.execute("PRAGMA synchronous=NORMAL")
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to open catalog database {self.path}: {e}")
            raise StorageError(f"Failed to open catalog database {self.path}: {e}") from e

        logger.info(f"Opened artifact catalog at {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def ensure_schema(self) -> None:
        """Create the artifacts table if it does not exist yet"""
        with self._lock:
            try:
                self.conn.execute(SCHEMA_SQL)
            except sqlite3.Error as e:
                logger.error(f"Failed to create artifacts table: {e}")
                raise StorageError(f"Failed to create artifacts table: {e}") from e
        logger.debug("Artifacts table ensured")

    def upsert_batch(
        self,
        records: Iterable[CatalogRecord],
        cancel_token: Optional[CancellationToken] = None,
    ) -> UpsertResult:
        """Insert or replace each record, in order

        Not atomic: a failure raises StorageError with `applied` set to the
        number of records already committed, and those stay committed. The
        same holds for cancellation, checked before every record.
        """
        applied = 0
        with self._lock:
            for record in records:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled(applied=applied)
                try:
                    self.conn.execute(
                        "INSERT OR REPLACE INTO artifacts (groupId, artifactId, version, lastUpdated) "
                        "VALUES (?, ?, ?, ?)",
                        (record.group_id, record.artifact_id, record.version, record.last_updated_millis),
                    )
                except sqlite3.Error as e:
                    logger.error(f"Failed to upsert {record.key} after {applied} records: {e}")
                    raise StorageError(f"Failed to upsert {record.key}: {e}", applied=applied) from e
                applied += 1

        logger.debug(f"Upserted {applied} artifact records")
        return UpsertResult(applied=applied)

    def list_page(self, page: int, limit: int) -> PageResult:
        """Return page `page` (1-based) of `limit` records plus the total row count"""
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        offset = (page - 1) * limit
        with self._lock:
            try:
                rows = self.conn.execute(
                    "SELECT groupId, artifactId, version, lastUpdated FROM artifacts "
                    "ORDER BY groupId, artifactId, version LIMIT ? OFFSET ?",
                    (limit, offset),
                ).fetchall()
                total = self.conn.execute("SELECT COUNT(*) FROM artifacts").fetchone()[0]
            except sqlite3.Error as e:
                logger.error(f"Failed to read catalog page {page} (limit {limit}): {e}")
                raise StorageError(f"Failed to read catalog page {page}: {e}") from e

        records = [
            CatalogRecord(row["groupId"], row["artifactId"], row["version"], row["lastUpdated"])
            for row in rows
        ]
        return PageResult(records=records, total=total, page=page, limit=limit)

    def count(self) -> int:
        with self._lock:
            try:
                return self.conn.execute("SELECT COUNT(*) FROM artifacts").fetchone()[0]
            except sqlite3.Error as e:
                raise StorageError(f"Failed to count catalog rows: {e}") from e
