"""
Custom exception hierarchy for the duplicate finder.

Only HashIOError is absorbed by the scan pipeline; everything else
propagates to the caller.
"""
from pathlib import Path


class DuplicateFinderError(Exception):
    """Base exception for all duplicate finder errors."""
    pass


class RootNotFound(DuplicateFinderError):
    """Raised when the scan root does not exist or is not a directory."""

    def __init__(self, root: Path):
        self.root = root
        super().__init__(f"Scan root not found or not a directory: {root}")


class HashIOError(DuplicateFinderError):
    """Raised when a file cannot be opened or read while hashing."""

    def __init__(self, path: Path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to hash {path}: {cause}")


class PersistenceError(DuplicateFinderError):
    """Raised when a catalog read or write fails."""
    pass


class UnsupportedAlgorithm(DuplicateFinderError, ValueError):
    """Raised when an unknown hash algorithm is requested."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unsupported hash algorithm: {name!r}")


class ScanCancelled(DuplicateFinderError):
    """Raised when a scan is aborted through its cancel event."""
    pass


class FileOperationError(DuplicateFinderError):
    """Raised when deleting a file from disk fails."""
    pass
