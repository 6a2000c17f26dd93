import sqlite3
import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Sequence

from ..exceptions import PersistenceError
from ..models import FileRecord, Statistics

_COLUMNS = """
    id, file_path, file_name, file_size, file_hash, hash_algorithm, extension,
    created_at, modified_at, is_duplicate, duplicate_count
"""


def _row_to_record(row) -> FileRecord:
    (rid, path, name, size, file_hash, algo, ext,
     created, modified, is_dup, dup_count) = row
    return FileRecord(
        id=rid,
        file_path=path,
        file_name=name,
        file_size=size,
        file_hash=file_hash,
        hash_algorithm=algo,
        extension=ext,
        created_at=datetime.fromisoformat(created) if created else None,
        modified_at=datetime.fromisoformat(modified),
        is_duplicate=bool(is_dup),
        duplicate_count=dup_count,
    )


class DBOperations:
    """
    CRUD and batch access to the `files` catalog.

    Every batch write runs in a single transaction: it either lands
    completely or not at all, which keeps retried flushes from
    double-inserting. Any sqlite3 failure surfaces as PersistenceError.
    """
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Cursor]:
        try:
            with self.conn:
                yield self.conn.cursor()
        except sqlite3.Error as e:
            logging.error(f"Database {action} failed: {e}")
            raise PersistenceError(f"{action} failed: {e}") from e

    def _query(self, sql: str, params: Sequence = ()) -> List[FileRecord]:
        try:
            cur = self.conn.execute(sql, params)
            return [_row_to_record(r) for r in cur.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(f"query failed: {e}") from e

    # --- Lookups ---

    def exists_by_path(self, path: str) -> bool:
        try:
            cur = self.conn.execute("SELECT 1 FROM files WHERE file_path = ? LIMIT 1", (str(path),))
            return cur.fetchone() is not None
        except sqlite3.Error as e:
            raise PersistenceError(f"lookup failed: {e}") from e

    def get_by_path(self, path: str) -> Optional[FileRecord]:
        rows = self._query(f"SELECT {_COLUMNS} FROM files WHERE file_path = ?", (str(path),))
        return rows[0] if rows else None

    def get_by_id(self, record_id: int) -> Optional[FileRecord]:
        rows = self._query(f"SELECT {_COLUMNS} FROM files WHERE id = ?", (record_id,))
        return rows[0] if rows else None

    def get_all(self) -> List[FileRecord]:
        return self._query(f"SELECT {_COLUMNS} FROM files ORDER BY file_name, file_path")

    def get_by_hash(self, file_hash: str) -> List[FileRecord]:
        return self._query(
            f"SELECT {_COLUMNS} FROM files WHERE file_hash = ? ORDER BY file_name, file_path",
            (file_hash,),
        )

    def get_duplicates(self) -> List[FileRecord]:
        """Records flagged as duplicates, ordered by hash then name."""
        return self._query(
            f"SELECT {_COLUMNS} FROM files WHERE is_duplicate = 1 "
            "ORDER BY file_hash, file_name, file_path"
        )

    def statistics(self) -> Statistics:
        try:
            cur = self.conn.execute("""
                SELECT COUNT(*),
                       COALESCE(SUM(is_duplicate), 0),
                       COALESCE(SUM(file_size), 0)
                FROM files
            """)
            total, dups, size = cur.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"statistics failed: {e}") from e
        return Statistics(total_records=total, duplicate_records=dups, total_bytes=size)

    # --- Writes ---

    def add(self, rec: FileRecord) -> FileRecord:
        return self.add_batch([rec])[0]

    def add_batch(self, records: Iterable[FileRecord]) -> List[FileRecord]:
        """
        Inserts new records and returns copies carrying their assigned id and
        created_at. Path uniqueness is not re-checked here; a duplicate path
        violates the UNIQUE constraint and fails the whole batch.
        """
        records = list(records)
        if not records:
            return []

        now = datetime.now()
        stored: List[FileRecord] = []
        with self._transaction("add_batch") as cur:
            for rec in records:
                created = rec.created_at or now
                cur.execute("""
                    INSERT INTO files (
                        file_path, file_name, file_size, file_hash, hash_algorithm, extension,
                        created_at, modified_at, is_duplicate, duplicate_count
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    rec.file_path, rec.file_name, rec.file_size, rec.file_hash, rec.hash_algorithm,
                    rec.extension, created.isoformat(), rec.modified_at.isoformat(),
                    int(rec.is_duplicate), rec.duplicate_count,
                ))
                if cur.lastrowid is None:
                    raise PersistenceError("Database INSERT failed to return a row ID.")
                stored.append(replace(rec, id=cur.lastrowid, created_at=created))

        logging.debug(f"Added {len(stored)} records.")
        return stored

    def update(self, rec: FileRecord) -> FileRecord:
        self.update_batch([rec])
        return rec

    def update_batch(self, records: Iterable[FileRecord]):
        """
        Writes back the mutable columns of existing records, matched by id.
        created_at is never rewritten.
        """
        rows = []
        for rec in records:
            if rec.id is None:
                raise PersistenceError(f"Cannot update unsaved record: {rec.file_path}")
            rows.append((
                rec.file_path, rec.file_name, rec.file_size, rec.file_hash, rec.hash_algorithm,
                rec.extension, rec.modified_at.isoformat(), int(rec.is_duplicate),
                rec.duplicate_count, rec.id,
            ))
        if not rows:
            return

        with self._transaction("update_batch") as cur:
            cur.executemany("""
                UPDATE files
                SET file_path = ?, file_name = ?, file_size = ?, file_hash = ?, hash_algorithm = ?,
                    extension = ?, modified_at = ?, is_duplicate = ?, duplicate_count = ?
                WHERE id = ?
            """, rows)
        logging.debug(f"Updated {len(rows)} records.")

    def delete(self, record_id: int) -> bool:
        with self._transaction("delete") as cur:
            cur.execute("DELETE FROM files WHERE id = ?", (record_id,))
            return cur.rowcount > 0

    def delete_batch(self, ids: Iterable[int]) -> bool:
        """Returns False when none of the ids matched a record."""
        params = [(i,) for i in ids]
        if not params:
            return False
        with self._transaction("delete_batch") as cur:
            cur.executemany("DELETE FROM files WHERE id = ?", params)
            return cur.rowcount > 0

    def clear_all(self):
        with self._transaction("clear_all") as cur:
            cur.execute("DELETE FROM files")
        logging.info("Catalog cleared.")
