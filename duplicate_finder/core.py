import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .database.db import DBManager
from .database.ops import DBOperations
from .duplicates.grouper import DuplicateGrouper
from .duplicates.remover import FileRemover, RemovalResult
from .models import FileRecord, GroupingResult, ScanSummary, Statistics
from .progress import ProgressSink
from .reporting import ReportGenerator
from .scanning.hasher import FileHasher
from .scanning.scanner import IncrementalScanner
from . import config

class DuplicateFinderApp:
    """
    Entry point tying the catalog to the scan pipeline.

    The hash algorithm is fixed per app instance; build a new one to switch.
    Each call opens the catalog, does its work and closes it again.
    """
    def __init__(self,
                 db_path: Path,
                 algorithm: str = config.DEFAULT_ALGORITHM,
                 batch_size: int = config.DEFAULT_BATCH_SIZE,
                 detect_changes: bool = False):
        self.db_manager = DBManager(db_path)
        # Fail fast on a bad algorithm name, before any catalog work
        self.hasher = FileHasher(algorithm)
        self.batch_size = batch_size
        self.detect_changes = detect_changes

    def scan(self,
             root: Path,
             progress: Optional[ProgressSink] = None,
             cancel_event: Optional[threading.Event] = None) -> ScanSummary:
        with self.db_manager as conn:
            db_ops = DBOperations(conn)
            logging.info(f"Scanning {root} (algorithm={self.hasher.name})...")
            scanner = IncrementalScanner(
                db_ops,
                hasher=self.hasher,
                batch_size=self.batch_size,
                detect_changes=self.detect_changes,
            )
            return scanner.scan(root, progress=progress, cancel_event=cancel_event)

    def regroup(self) -> GroupingResult:
        with self.db_manager as conn:
            return DuplicateGrouper(DBOperations(conn)).regroup()

    def duplicate_groups(self) -> Dict[str, List[FileRecord]]:
        """Flagged duplicates keyed by hash, in catalog order (hash, then name)."""
        with self.db_manager as conn:
            return ReportGenerator(DBOperations(conn)).duplicate_groups()

    def write_report(self, output_csv: Path) -> int:
        with self.db_manager as conn:
            return ReportGenerator(DBOperations(conn)).generate_duplicates_report(output_csv)

    def statistics(self) -> Statistics:
        with self.db_manager as conn:
            return DBOperations(conn).statistics()

    def delete_files(self, record_ids: Iterable[int], dry_run: bool = False) -> RemovalResult:
        with self.db_manager as conn:
            return FileRemover(DBOperations(conn)).remove(record_ids, dry_run=dry_run)

    def clear(self):
        with self.db_manager as conn:
            DBOperations(conn).clear_all()
