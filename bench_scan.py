import argparse
import json
import sqlite3
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from duplicate_finder.database.ops import DBOperations
from duplicate_finder.database.schema import init_schema
from duplicate_finder.scanning.hasher import ALGORITHMS, FileHasher
from duplicate_finder.scanning.scanner import IncrementalScanner


def run_once(src: Path, algorithm: str, batch_size: int, db_dir: Optional[Path]) -> float:
    """Cold scan of `src` into a fresh catalog; returns elapsed seconds."""
    db_path: Optional[Path] = None
    conn: Optional[sqlite3.Connection] = None
    try:
        if db_dir:
            db_dir.mkdir(parents=True, exist_ok=True)
            db_path = db_dir / f"bench_{uuid.uuid4().hex}.db"
            conn = sqlite3.connect(db_path)
        else:
            conn = sqlite3.connect(":memory:")

        init_schema(conn)
        scanner = IncrementalScanner(DBOperations(conn), hasher=FileHasher(algorithm), batch_size=batch_size)
        t0 = time.perf_counter()
        scanner.scan(src)
        return time.perf_counter() - t0
    finally:
        if conn is not None:
            conn.close()
        if db_path and db_path.exists():
            try:
                db_path.unlink()
            except OSError:
                pass  # best effort cleanup


def benchmark(src: Path, algorithms: Iterable[str], batch_sizes: Iterable[int], repeats: int,
              db_dir: Optional[Path], out_file: Path) -> List[dict]:
    results = []
    for algorithm in algorithms:
        for batch_size in batch_sizes:
            times: List[float] = [run_once(src, algorithm, batch_size, db_dir) for _ in range(repeats)]
            best = min(times)
            print(f"{algorithm:>7} batch={batch_size:<5} best {best:.2f}s over {len(times)} runs")
            results.append(
                {
                    "algorithm": algorithm,
                    "batch_size": batch_size,
                    "times": times,
                    "best": best,
                }
            )

    out_file.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": datetime.now().isoformat(),
        "src": str(src),
        "repeats": repeats,
        "results": results,
    }
    out_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote results to {out_file}")
    return results


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Benchmark full scans across hash algorithms and batch sizes.")
    p.add_argument("src", type=Path, help="Source root to scan")
    p.add_argument("--algorithms", nargs="+", choices=sorted(ALGORITHMS), default=["md5", "xxh64", "xxh128"],
                   help="Hash algorithms to compare")
    p.add_argument("--batch-sizes", type=int, nargs="+", default=[10, 50, 200], dest="batch_sizes",
                   help="Batch sizes to compare")
    p.add_argument("--repeats", type=int, default=3, help="Runs per combination")
    p.add_argument("--db-dir", type=Path, default=None, help="Directory for per-run temp SQLite DBs (default: in-memory)")
    p.add_argument("--output", type=Path, default=Path("bench_scan_results.json"), help="Path to write JSON results")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    benchmark(args.src, args.algorithms, args.batch_sizes, args.repeats, args.db_dir, args.output)


if __name__ == "__main__":
    main()
