import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple

from ..database.ops import DBOperations
from ..exceptions import FileOperationError
from .grouper import DuplicateGrouper


@dataclass
class RemovalResult:
    deleted: List[int] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)          # no such record id
    failed: List[Tuple[int, str]] = field(default_factory=list)


class FileRemover:
    """
    Deletes files from disk and then drops their catalog records.

    Confirmation is the caller's job; this class acts on whatever ids it is
    handed. A record is only dropped once its file is confirmed gone.
    """
    def __init__(self, db_ops: DBOperations):
        self.db = db_ops

    def remove(self, record_ids: Iterable[int], dry_run: bool = False) -> RemovalResult:
        result = RemovalResult()
        removed_ids: List[int] = []

        for record_id in dict.fromkeys(record_ids):
            rec = self.db.get_by_id(record_id)
            if rec is None:
                logging.warning(f"No catalog record with id={record_id}")
                result.missing.append(record_id)
                continue

            if dry_run:
                logging.info(f"[DRY RUN] Delete {rec.file_path}")
                continue

            try:
                self._delete_file(Path(rec.file_path))
            except FileOperationError as e:
                logging.error(str(e))
                result.failed.append((record_id, str(e)))
                continue

            removed_ids.append(record_id)

        if removed_ids:
            self.db.delete_batch(removed_ids)
            result.deleted.extend(removed_ids)
            # Survivors of a former pair must lose their duplicate flag
            DuplicateGrouper(self.db).regroup()

        logging.info(f"Deleted {len(result.deleted)} files ({len(result.failed)} failed).")
        return result

    @staticmethod
    def _delete_file(path: Path):
        try:
            path.unlink()
        except FileNotFoundError:
            # Already gone from disk; the stale record is still dropped.
            logging.info(f"{path} no longer exists on disk.")
        except OSError as e:
            raise FileOperationError(f"Failed to delete {path}: {e}") from e
