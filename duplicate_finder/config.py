"""
Configuration constants for the duplicate finder.
"""

# --- Hashing & Performance ---
# One reusable read buffer per hasher; memory use stays O(buffer) for any file size.
HASH_BUFFER_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_ALGORITHM = "md5"

# --- Persistence ---
# New records are flushed to the catalog once this many have accumulated.
DEFAULT_BATCH_SIZE = 50
FLUSH_ATTEMPTS = 3  # total tries per batch before PersistenceError propagates
FLUSH_BACKOFF_SEC = 0.5  # doubled on every further attempt

DEFAULT_DB_NAME = "duplicate_catalog.db"

# --- Display ---
SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]
