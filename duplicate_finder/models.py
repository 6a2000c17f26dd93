import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from . import config


def format_size(num_bytes: int) -> str:
    """Renders a byte count as e.g. '1.5 KB'."""
    number = float(num_bytes)
    unit = 0
    while round(number / 1024) >= 1 and unit < len(config.SIZE_UNITS) - 1:
        number /= 1024
        unit += 1
    return f"{number:.1f} {config.SIZE_UNITS[unit]}"


@dataclass(frozen=True)
class FileRecord:
    """
    One catalog entry per distinct filesystem path ever observed.

    Frozen: the catalog and the duplicate grouper hand out updated copies
    (dataclasses.replace) instead of mutating shared instances.
    """
    file_path: str
    file_name: str
    file_size: int
    modified_at: datetime
    file_hash: Optional[str] = None
    extension: Optional[str] = None
    hash_algorithm: Optional[str] = None

    # Assigned by the catalog on first insert
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    # Derived state, recomputed only by DuplicateGrouper
    is_duplicate: bool = False
    duplicate_count: int = 0

    @classmethod
    def from_path(cls, path: Path, file_hash: Optional[str], algorithm: Optional[str] = None,
                  stat_result: Optional[os.stat_result] = None) -> "FileRecord":
        st = stat_result if stat_result is not None else path.stat()
        return cls(
            file_path=str(path),
            file_name=path.name,
            file_size=st.st_size,
            modified_at=datetime.fromtimestamp(st.st_mtime),
            file_hash=file_hash,
            extension=path.suffix.lower() or None,
            hash_algorithm=algorithm,
        )

    @property
    def size_formatted(self) -> str:
        return format_size(self.file_size)


@dataclass(frozen=True)
class Statistics:
    total_records: int
    duplicate_records: int
    total_bytes: int


@dataclass(frozen=True)
class GroupingResult:
    groups: int             # duplicate groups (size >= 2)
    duplicate_records: int  # records that belong to some group
    updated_records: int    # records whose flags were rewritten


class ScanState(Enum):
    NOT_STARTED = "not_started"
    LISTING = "listing"
    PROCESSING = "processing"
    FLUSHING = "flushing"
    GROUPING_DUPLICATES = "grouping_duplicates"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ScanSummary:
    """Counters for one finished scan pass."""
    root: Path
    discovered: int = 0
    skipped: int = 0
    added: int = 0
    updated: int = 0
    failed: int = 0
    walk_errors: int = 0
    batches: int = 0
    grouping: Optional[GroupingResult] = None
    failures: list[tuple[str, str]] = field(default_factory=list)
