import pytest
from dataclasses import FrozenInstanceError

from duplicate_finder.models import FileRecord, format_size
from duplicate_finder.progress import LoggingProgressSink, QueueProgressSink, ScanEvent, ScanEventType


@pytest.mark.parametrize(
    "num_bytes,expected",
    [
        (0, "0.0 B"),
        (512, "512.0 B"),
        (1536, "1.5 KB"),
        (1024 * 1024, "1.0 MB"),
        (5 * 1024 ** 3, "5.0 GB"),
        (3 * 1024 ** 5, "3072.0 TB"),
    ],
)
def test_format_size(num_bytes, expected):
    assert format_size(num_bytes) == expected


def test_from_path_reads_stat(tmp_path):
    p = tmp_path / "Photo.JPG"
    p.write_bytes(b"12345")

    rec = FileRecord.from_path(p, "abc", "md5")

    assert rec.file_path == str(p)
    assert rec.file_name == "Photo.JPG"
    assert rec.extension == ".jpg"
    assert rec.file_size == 5
    assert rec.is_duplicate is False and rec.duplicate_count == 0
    assert rec.id is None


def test_from_path_without_suffix(tmp_path):
    p = tmp_path / "Makefile"
    p.write_text("all:")
    assert FileRecord.from_path(p, "abc").extension is None


def test_record_is_immutable(tmp_path):
    p = tmp_path / "f"
    p.write_text("x")
    rec = FileRecord.from_path(p, "abc")
    with pytest.raises(FrozenInstanceError):
        rec.is_duplicate = True


def test_queue_sink_drains_in_order():
    sink = QueueProgressSink()
    sink(ScanEvent(ScanEventType.LISTING, "one"))
    sink(ScanEvent(ScanEventType.COMPLETED, "two"))

    assert [str(e) for e in sink.drain()] == ["one", "two"]
    assert list(sink.drain()) == []


def test_logging_sink_levels(caplog):
    sink = LoggingProgressSink()
    with caplog.at_level("DEBUG"):
        sink(ScanEvent(ScanEventType.FILE_FAILED, "broken"))
        sink(ScanEvent(ScanEventType.FILE_PROCESSED, "working"))
        sink(ScanEvent(ScanEventType.COMPLETED, "done"))

    levels = {r.getMessage(): r.levelname for r in caplog.records}
    assert levels == {"broken": "WARNING", "working": "DEBUG", "done": "INFO"}
