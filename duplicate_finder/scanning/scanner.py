import logging
import threading
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .. import config
from ..database.ops import DBOperations
from ..duplicates.grouper import DuplicateGrouper
from ..exceptions import HashIOError, PersistenceError, RootNotFound, ScanCancelled
from ..models import FileRecord, ScanState, ScanSummary
from ..progress import ProgressSink, ScanEvent, ScanEventType
from .filesystem import DiskWalker
from .hasher import FileHasher


class IncrementalScanner:
    """
    One scan pass: list -> (skip-check, hash, accumulate) per file -> flush -> regroup.

    Paths already in the catalog are skipped without being read, so rescanning
    a stable tree costs one lookup per file. With detect_changes=True a known
    path whose size or mtime moved is re-hashed and its record rewritten.
    """
    def __init__(self,
                 db_ops: DBOperations,
                 hasher: Optional[FileHasher] = None,
                 walker: Optional[DiskWalker] = None,
                 grouper: Optional[DuplicateGrouper] = None,
                 batch_size: int = config.DEFAULT_BATCH_SIZE,
                 detect_changes: bool = False,
                 flush_attempts: int = config.FLUSH_ATTEMPTS,
                 flush_backoff: float = config.FLUSH_BACKOFF_SEC,
                 sleep: Callable[[float], None] = time.sleep):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if flush_attempts < 1:
            raise ValueError("flush_attempts must be at least 1")
        self.db = db_ops
        self.hasher = hasher or FileHasher()
        self.walker = walker or DiskWalker()
        self.grouper = grouper or DuplicateGrouper(db_ops)
        self.batch_size = batch_size
        self.detect_changes = detect_changes
        self.flush_attempts = flush_attempts
        self.flush_backoff = flush_backoff
        self._sleep = sleep
        self.state = ScanState.NOT_STARTED

    def scan(self,
             root: Path,
             progress: Optional[ProgressSink] = None,
             cancel_event: Optional[threading.Event] = None) -> ScanSummary:
        """
        Scans `root` and returns a summary of the pass.

        Raises RootNotFound before any file is read, PersistenceError once a
        flush has exhausted its retries, ScanCancelled when `cancel_event` is set.
        Per-file read failures are reported through `progress` and skipped.
        """
        root = Path(root)
        emit = progress or (lambda event: None)
        summary = ScanSummary(root=root)
        self.state = ScanState.NOT_STARTED

        try:
            paths = self._list(root, summary, emit, cancel_event)
            self._process(paths, summary, emit, cancel_event)

            self.state = ScanState.GROUPING_DUPLICATES
            emit(ScanEvent(ScanEventType.GROUPING, "Finding duplicate files...", total=len(paths)))
            summary.grouping = self.grouper.regroup()
        except RootNotFound:
            self.state = ScanState.FAILED
            raise
        except ScanCancelled:
            self.state = ScanState.CANCELLED
            logging.warning(f"Scan of {root} cancelled after {summary.added} new records.")
            raise

        self.state = ScanState.DONE
        message = (
            f"Scan complete: {summary.added} added, {summary.skipped} already known, "
            f"{summary.failed} failed, {summary.grouping.groups} duplicate groups"
        )
        logging.info(message)
        emit(ScanEvent(ScanEventType.COMPLETED, message, index=summary.discovered, total=summary.discovered))
        return summary

    def _list(self, root: Path, summary: ScanSummary, emit: ProgressSink,
              cancel_event: Optional[threading.Event]) -> List[Path]:
        self.state = ScanState.LISTING
        emit(ScanEvent(ScanEventType.LISTING, f"Listing files under {root}..."))

        def on_walk_error(path: Path, err: OSError):
            summary.walk_errors += 1
            emit(ScanEvent(ScanEventType.FILE_FAILED, f"Skipped {path}: {err}",
                           path=str(path), error=str(err)))

        paths = list(self.walker.iter_files(root, on_error=on_walk_error, cancel_event=cancel_event))
        summary.discovered = len(paths)
        logging.info(f"Found {len(paths)} files under {root}")
        emit(ScanEvent(ScanEventType.LISTING, f"Found {len(paths)} files, processing...", total=len(paths)))
        return paths

    def _process(self, paths: List[Path], summary: ScanSummary, emit: ProgressSink,
                 cancel_event: Optional[threading.Event]):
        self.state = ScanState.PROCESSING
        total = len(paths)
        new_records: List[FileRecord] = []
        changed_records: List[FileRecord] = []

        for index, path in enumerate(paths, start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled(f"Scan cancelled at {index}/{total}")

            existing: Optional[FileRecord] = None
            try:
                if self.detect_changes:
                    existing = self.db.get_by_path(str(path))
                    known = existing is not None and not self._has_changed(existing, path)
                else:
                    known = self.db.exists_by_path(str(path))

                if known:
                    summary.skipped += 1
                    emit(ScanEvent(ScanEventType.FILE_SKIPPED,
                                   f"Already catalogued: {path.name} ({index}/{total})",
                                   path=str(path), index=index, total=total))
                    continue

                emit(ScanEvent(ScanEventType.FILE_PROCESSED, f"Processing: {path.name} ({index}/{total})",
                               path=str(path), index=index, total=total))
                record = self._build_record(path, cancel_event)
            except HashIOError as e:
                summary.failed += 1
                summary.failures.append((str(path), str(e.cause)))
                logging.warning(str(e))
                emit(ScanEvent(ScanEventType.FILE_FAILED, f"Failed to process {path.name}: {e.cause}",
                               path=str(path), index=index, total=total, error=str(e.cause)))
                continue

            if existing is None:
                new_records.append(record)
            else:
                changed_records.append(replace(
                    existing,
                    file_size=record.file_size,
                    modified_at=record.modified_at,
                    file_hash=record.file_hash,
                    hash_algorithm=record.hash_algorithm,
                ))

            if len(new_records) >= self.batch_size:
                self._flush(new_records, summary)
            if len(changed_records) >= self.batch_size:
                self._flush_updates(changed_records, summary)

        self.state = ScanState.FLUSHING
        if new_records:
            self._flush(new_records, summary)
        if changed_records:
            self._flush_updates(changed_records, summary)

    def _has_changed(self, existing: FileRecord, path: Path) -> bool:
        try:
            st = path.stat()
        except OSError as e:
            raise HashIOError(path, e) from e
        return (st.st_size != existing.file_size
                or datetime.fromtimestamp(st.st_mtime) != existing.modified_at)

    def _build_record(self, path: Path, cancel_event: Optional[threading.Event]) -> FileRecord:
        try:
            st = path.stat()
        except OSError as e:
            raise HashIOError(path, e) from e
        file_hash = self.hasher.compute_hash(path, cancel_event)
        return FileRecord.from_path(path, file_hash, self.hasher.name, stat_result=st)

    def _flush(self, batch: List[FileRecord], summary: ScanSummary):
        self._with_retry("add_batch", lambda: self.db.add_batch(batch))
        summary.added += len(batch)
        summary.batches += 1
        logging.debug(f"Flushed {len(batch)} new records.")
        batch.clear()

    def _flush_updates(self, batch: List[FileRecord], summary: ScanSummary):
        self._with_retry("update_batch", lambda: self.db.update_batch(batch))
        summary.updated += len(batch)
        logging.debug(f"Rewrote {len(batch)} changed records.")
        batch.clear()

    def _with_retry(self, action: str, write: Callable[[], object]):
        for attempt in range(self.flush_attempts):
            try:
                write()
                return
            except PersistenceError as e:
                if attempt == self.flush_attempts - 1:
                    logging.error(f"{action} failed after {self.flush_attempts} attempts: {e}")
                    raise
                delay = self.flush_backoff * (2 ** attempt)
                logging.warning(f"{action} failed ({e}); retrying in {delay:.2f}s")
                self._sleep(delay)

