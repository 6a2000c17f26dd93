import logging
import os
import threading
from pathlib import Path
from typing import Callable, Iterator, Optional

from ..exceptions import RootNotFound, ScanCancelled

# Called with (offending path, error) for every entry the walk has to skip.
WalkErrorHandler = Callable[[Path, OSError], None]


class DiskWalker:
    def iter_files(self,
                   root: Path,
                   on_error: Optional[WalkErrorHandler] = None,
                   cancel_event: Optional[threading.Event] = None) -> Iterator[Path]:
        """
        Returns a lazy iterator over every regular file below `root`.

        Paths are yielded under the resolved root, so one file always has
        the same spelling however the root was written. The root is validated
        here, before the first entry is read, so a bad root fails the caller
        immediately rather than on first next().
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise RootNotFound(root)
        return self._iter_files(root, on_error, cancel_event)

    def _iter_files(self,
                    root: Path,
                    on_error: Optional[WalkErrorHandler],
                    cancel_event: Optional[threading.Event]) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled("Directory walk cancelled")

            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot list {current}: {e}")
                self._report(on_error, current, e)
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                path = Path(e.path)
                try:
                    # Links are never followed; only regular files are yielded.
                    if e.is_symlink():
                        if not os.path.exists(e.path):
                            raise FileNotFoundError(f"Broken symbolic link: {e.path}")
                        logging.debug(f"Not following symbolic link {path}")
                    elif e.is_dir(follow_symlinks=False):
                        dirs.append(path)
                    elif e.is_file(follow_symlinks=False):
                        files.append(path)
                except OSError as err:
                    logging.debug(f"Skipping {path}: {err}")
                    self._report(on_error, path, err)

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f

    @staticmethod
    def _report(on_error: Optional[WalkErrorHandler], path: Path, err: OSError) -> None:
        if on_error is not None:
            on_error(path, err)
