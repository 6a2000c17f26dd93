"""
Structured progress events emitted by the scanner, and the sinks that consume them.

A sink is any callable accepting a ScanEvent. The scanner never waits on a
sink, so sinks must return immediately.
"""
import logging
import queue
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional


class ScanEventType(Enum):
    LISTING = "listing"
    FILE_PROCESSED = "file_processed"
    FILE_SKIPPED = "file_skipped"
    FILE_FAILED = "file_failed"
    GROUPING = "grouping"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ScanEvent:
    type: ScanEventType
    message: str
    path: Optional[str] = None
    index: int = 0
    total: int = 0
    error: Optional[str] = None

    def __str__(self) -> str:
        return self.message


ProgressSink = Callable[[ScanEvent], None]


class QueueProgressSink:
    """
    Single-consumer channel: the scan thread puts, one reader drains.
    The queue is unbounded so put never blocks the scan.
    """
    def __init__(self):
        self._queue: "queue.Queue[ScanEvent]" = queue.Queue()

    def __call__(self, event: ScanEvent) -> None:
        self._queue.put_nowait(event)

    def drain(self) -> Iterator[ScanEvent]:
        """Yields every event queued so far without blocking."""
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return


class LoggingProgressSink:
    """Writes events to the log; per-file successes go to DEBUG."""

    def __call__(self, event: ScanEvent) -> None:
        if event.type == ScanEventType.FILE_FAILED:
            logging.warning(event.message)
        elif event.type in (ScanEventType.FILE_PROCESSED, ScanEventType.FILE_SKIPPED):
            logging.debug(event.message)
        else:
            logging.info(event.message)
