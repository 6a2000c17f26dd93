import logging
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List

from ..database.ops import DBOperations
from ..models import FileRecord, GroupingResult

class DuplicateGrouper:
    """
    Recomputes duplicate membership over the whole catalog.

    A duplicate group is every record sharing one non-empty hash, size >= 2.
    Members get (is_duplicate=True, duplicate_count=len(group)); every other
    record is reset to (False, 0), so deleting one half of a pair clears the
    survivor's flag on the next run. Only records whose flags actually change
    are written back.
    """
    def __init__(self, db_ops: DBOperations):
        self.db = db_ops

    def regroup(self) -> GroupingResult:
        logging.info("Grouping duplicates...")
        records = self.db.get_all()

        by_hash: Dict[str, List[FileRecord]] = defaultdict(list)
        for rec in records:
            if rec.file_hash:
                by_hash[rec.file_hash].append(rec)

        group_size: Dict[str, int] = {
            h: len(members) for h, members in by_hash.items() if len(members) > 1
        }

        changed: List[FileRecord] = []
        for rec in records:
            count = group_size.get(rec.file_hash, 0) if rec.file_hash else 0
            target = (count > 0, count)
            if (rec.is_duplicate, rec.duplicate_count) != target:
                changed.append(replace(rec, is_duplicate=target[0], duplicate_count=target[1]))

        if changed:
            self.db.update_batch(changed)

        result = GroupingResult(
            groups=len(group_size),
            duplicate_records=sum(group_size.values()),
            updated_records=len(changed),
        )
        logging.info(
            f"Found {result.groups} duplicate groups ({result.duplicate_records} files), "
            f"updated {result.updated_records} records."
        )
        return result
