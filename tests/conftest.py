import pytest
import sqlite3
from datetime import datetime
from duplicate_finder.database.schema import init_schema
from duplicate_finder.database.ops import DBOperations
from duplicate_finder.models import FileRecord

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)

@pytest.fixture
def make_record():
    """Factory for unsaved FileRecords with sensible defaults."""
    def _make(path: str, file_hash="h1", size=10, **kwargs):
        name = path.rsplit("/", 1)[-1]
        return FileRecord(
            file_path=path,
            file_name=name,
            file_size=size,
            modified_at=kwargs.pop("modified_at", datetime(2024, 1, 1, 12, 0, 0)),
            file_hash=file_hash,
            extension=kwargs.pop("extension", "." + name.rsplit(".", 1)[-1] if "." in name else None),
            **kwargs,
        )
    return _make
