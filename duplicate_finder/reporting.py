import csv
import logging
from pathlib import Path
from typing import Dict, List

from .database.ops import DBOperations
from .models import FileRecord

class ReportGenerator:
    def __init__(self, db_ops: DBOperations):
        self.db = db_ops

    def duplicate_groups(self) -> Dict[str, List[FileRecord]]:
        groups: Dict[str, List[FileRecord]] = {}
        for rec in self.db.get_duplicates():
            groups.setdefault(rec.file_hash, []).append(rec)
        return groups

    def generate_duplicates_report(self, output_csv: Path) -> int:
        """
        Writes one CSV row per duplicate record, grouped by hash.
        Returns the number of groups written.
        """
        groups = self.duplicate_groups()
        logging.info(f"Writing {len(groups)} duplicate groups -> {output_csv}")

        headers = [
            "Group",
            "Hash",
            "Algorithm",
            "Copies",
            "Record ID",
            "Path",
            "Size (bytes)",
            "Size",
            "Modified",
            "Reclaimable (bytes)",
        ]

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)

            for group_no, (file_hash, members) in enumerate(groups.items(), start=1):
                # Keeping one copy frees the rest
                reclaimable = sum(m.file_size for m in members[1:])
                for rec in members:
                    writer.writerow([
                        group_no,
                        file_hash,
                        rec.hash_algorithm or "",
                        rec.duplicate_count,
                        rec.id,
                        rec.file_path,
                        rec.file_size,
                        rec.size_formatted,
                        rec.modified_at.strftime("%Y-%m-%d %H:%M:%S"),
                        reclaimable,
                    ])

        logging.info(f"Report complete. {len(groups)} groups.")
        return len(groups)
