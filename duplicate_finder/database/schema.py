"""
Database schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the catalog schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        # Initialize version if missing
        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. File Catalog
        # One row per distinct path ever observed
        conn.execute("""
        CREATE TABLE IF NOT EXISTS files (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            file_path       TEXT NOT NULL UNIQUE,
            file_name       TEXT NOT NULL,
            file_size       INTEGER NOT NULL,
            file_hash       TEXT,                 -- NULL only if hashing failed
            hash_algorithm  TEXT,
            extension       TEXT,
            created_at      TEXT NOT NULL,        -- first persistence
            modified_at     TEXT NOT NULL,        -- filesystem mtime at scan time
            is_duplicate    INTEGER NOT NULL DEFAULT 0,
            duplicate_count INTEGER NOT NULL DEFAULT 0
        );
        """)

        # 3. Indices for Performance
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_hash ON files(file_hash);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_name ON files(file_name);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_is_duplicate ON files(is_duplicate);")

    logging.debug("Database schema initialized.")
