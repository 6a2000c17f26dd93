import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from . import config
from .core import DuplicateFinderApp
from .exceptions import DuplicateFinderError, PersistenceError, RootNotFound, ScanCancelled
from .models import format_size
from .progress import ScanEvent, ScanEventType
from .scanning.hasher import ALGORITHMS


def setup_logging(log_file: Optional[Path], verbose: bool):
    """Sets up logging to the console and, optionally, a log file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )


class TqdmProgressSink:
    """Drives a tqdm bar from scan events; failures are printed above the bar."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self.bar: Optional[tqdm] = None
        self._last_index = 0

    def __call__(self, event: ScanEvent) -> None:
        if event.type == ScanEventType.LISTING:
            if event.total and self.bar is None:
                self.bar = tqdm(total=event.total, desc="Scanning", unit="file", disable=self.quiet)
        elif event.type in (ScanEventType.FILE_PROCESSED, ScanEventType.FILE_SKIPPED):
            if self.bar is not None:
                self.bar.set_postfix_str(Path(event.path).name if event.path else "", refresh=False)
            self._advance(event)
        elif event.type == ScanEventType.FILE_FAILED:
            tqdm.write(event.message, file=sys.stderr)
            self._advance(event)
        elif event.type == ScanEventType.COMPLETED:
            self.close()

    def _advance(self, event: ScanEvent):
        # One step per file index; listing errors carry no index.
        if self.bar is None or event.index is None or event.index == self._last_index:
            return
        self._last_index = event.index
        self.bar.update(1)

    def close(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Duplicate Finder: catalog files and find byte-identical duplicates")

    p.add_argument("--db", type=Path, default=Path(config.DEFAULT_DB_NAME),
                   help=f"Path to the SQLite catalog (default: ./{config.DEFAULT_DB_NAME})")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = p.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan a directory tree and update the catalog")
    scan.add_argument("root", type=Path, help="Directory to scan")
    scan.add_argument("--algorithm", choices=sorted(ALGORITHMS), default=config.DEFAULT_ALGORITHM,
                      help=f"Hash algorithm (default: {config.DEFAULT_ALGORITHM})")
    scan.add_argument("--batch-size", type=int, default=config.DEFAULT_BATCH_SIZE,
                      help="Records accumulated before each catalog write")
    scan.add_argument("--detect-changes", action="store_true",
                      help="Re-hash known files whose size or modification time changed")
    scan.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    sub.add_parser("duplicates", help="List duplicate groups")
    sub.add_parser("stats", help="Show catalog statistics")
    sub.add_parser("regroup", help="Recompute duplicate flags without scanning")

    delete = sub.add_parser("delete", help="Delete files from disk and drop their records")
    delete.add_argument("ids", type=int, nargs="+", help="Record IDs (see 'duplicates')")
    delete.add_argument("--dry-run", action="store_true", help="Show what would be deleted")
    delete.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    clear = sub.add_parser("clear", help="Remove every record from the catalog")
    clear.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    report = sub.add_parser("report", help="Write duplicate groups to a CSV file")
    report.add_argument("--output", type=Path, default=Path("duplicates_report.csv"),
                        help="Output path for the report CSV")

    return p.parse_args(argv)


def confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_scan(args) -> int:
    app = DuplicateFinderApp(
        args.db,
        algorithm=args.algorithm,
        batch_size=args.batch_size,
        detect_changes=args.detect_changes,
    )
    sink = TqdmProgressSink(quiet=args.no_progress)
    try:
        summary = app.scan(args.root, progress=sink)
    finally:
        sink.close()

    print(f"Files found:     {summary.discovered}")
    print(f"Already known:   {summary.skipped}")
    print(f"Added:           {summary.added}")
    if summary.updated:
        print(f"Re-hashed:       {summary.updated}")
    print(f"Failed:          {summary.failed + summary.walk_errors}")
    print(f"Duplicate groups: {summary.grouping.groups} ({summary.grouping.duplicate_records} files)")
    return 0


def cmd_duplicates(args) -> int:
    groups = DuplicateFinderApp(args.db).duplicate_groups()
    if not groups:
        print("No duplicate groups found.")
        return 0

    for file_hash, members in groups.items():
        print(f"{file_hash}  ({len(members)} copies, {members[0].size_formatted} each)")
        for rec in members:
            print(f"  [{rec.id:>6}] {rec.file_path}  ({rec.modified_at:%Y-%m-%d %H:%M:%S})")
    print(f"\nFound {len(groups)} duplicate groups ({sum(len(m) for m in groups.values())} files)")
    return 0


def cmd_stats(args) -> int:
    stats = DuplicateFinderApp(args.db).statistics()
    print(f"Total records:     {stats.total_records}")
    print(f"Duplicate records: {stats.duplicate_records}")
    print(f"Total size:        {format_size(stats.total_bytes)}")
    return 0


def cmd_regroup(args) -> int:
    result = DuplicateFinderApp(args.db).regroup()
    print(f"{result.groups} duplicate groups, {result.updated_records} records updated")
    return 0


def cmd_delete(args) -> int:
    if not args.dry_run and not args.yes:
        if not confirm(f"Delete {len(args.ids)} files from disk? This cannot be undone."):
            print("Deletion cancelled.")
            return 0

    result = DuplicateFinderApp(args.db).delete_files(args.ids, dry_run=args.dry_run)
    for record_id in result.missing:
        print(f"No record with id {record_id}", file=sys.stderr)
    for record_id, reason in result.failed:
        print(f"Failed to delete record {record_id}: {reason}", file=sys.stderr)
    if not args.dry_run:
        print(f"Deleted {len(result.deleted)} files.")
    return 1 if result.failed else 0


def cmd_clear(args) -> int:
    if not args.yes and not confirm("Clear every record from the catalog?"):
        print("Clear cancelled.")
        return 0
    DuplicateFinderApp(args.db).clear()
    print("Catalog cleared.")
    return 0


def cmd_report(args) -> int:
    groups = DuplicateFinderApp(args.db).write_report(args.output)
    print(f"Wrote {groups} duplicate groups to {args.output}")
    return 0


COMMANDS = {
    "scan": cmd_scan,
    "duplicates": cmd_duplicates,
    "stats": cmd_stats,
    "regroup": cmd_regroup,
    "delete": cmd_delete,
    "clear": cmd_clear,
    "report": cmd_report,
}


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        return COMMANDS[args.command](args)
    except RootNotFound as e:
        logging.error(str(e))
        return 1
    except PersistenceError:
        logging.exception("Catalog operation failed.")
        return 1
    except (KeyboardInterrupt, ScanCancelled):
        logging.warning("Operation cancelled by user.")
        return 1
    except DuplicateFinderError:
        logging.exception("Fatal error.")
        return 1

if __name__ == "__main__":
    sys.exit(main())
