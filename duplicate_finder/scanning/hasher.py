import hashlib
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Union

import xxhash

from .. import config
from ..exceptions import HashIOError, ScanCancelled, UnsupportedAlgorithm


@dataclass(frozen=True)
class HashAlgorithm:
    """
    A digest strategy. `factory` returns a fresh object with the
    hashlib-style update()/hexdigest() interface.
    """
    name: str
    factory: Callable[[], object]
    digest_size: int  # bytes


ALGORITHMS: Dict[str, HashAlgorithm] = {
    "md5": HashAlgorithm("md5", hashlib.md5, 16),
    "sha256": HashAlgorithm("sha256", hashlib.sha256, 32),
    # Fast non-cryptographic digests for large trees where adversarial
    # collisions are not a concern.
    "xxh64": HashAlgorithm("xxh64", xxhash.xxh64, 8),
    "xxh128": HashAlgorithm("xxh128", xxhash.xxh3_128, 16),
}


def get_algorithm(name: str) -> HashAlgorithm:
    try:
        return ALGORITHMS[name.lower()]
    except KeyError:
        raise UnsupportedAlgorithm(name) from None


class FileHasher:
    def __init__(self,
                 algorithm: Union[str, HashAlgorithm] = config.DEFAULT_ALGORITHM,
                 buffer_size: int = config.HASH_BUFFER_SIZE):
        if isinstance(algorithm, str):
            algorithm = get_algorithm(algorithm)
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.algorithm = algorithm
        self.buffer_size = buffer_size
        # Reused across files; hashing is strictly one file at a time per hasher.
        self._buffer = bytearray(buffer_size)

    @property
    def name(self) -> str:
        return self.algorithm.name

    def hash_stream(self, stream: BinaryIO, cancel_event: Optional[threading.Event] = None) -> str:
        """Digests a binary stream sequentially through the reusable buffer."""
        h = self.algorithm.factory()
        view = memoryview(self._buffer)
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled("Hashing cancelled")
            n = stream.readinto(view)
            if not n:
                break
            h.update(view[:n])
        return h.hexdigest()

    def compute_hash(self, path: Path, cancel_event: Optional[threading.Event] = None) -> str:
        """
        Full-content fingerprint of the file at `path`.

        Raises HashIOError if the file cannot be opened or disappears,
        becomes locked or unreadable mid-read.
        """
        try:
            with open(path, "rb", buffering=0) as f:
                self._advise_sequential(f)
                return self.hash_stream(f, cancel_event)
        except OSError as e:
            raise HashIOError(path, e) from e

    @staticmethod
    def _advise_sequential(f) -> None:
        # Linux/BSD only; elsewhere the OS read-ahead heuristics apply.
        if hasattr(os, "posix_fadvise"):
            try:
                os.posix_fadvise(f.fileno(), 0, 0, os.POSIX_FADV_SEQUENTIAL)
            except OSError:
                pass  # advisory only
