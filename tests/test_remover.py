import pytest

from duplicate_finder.duplicates.remover import FileRemover
from duplicate_finder.scanning.scanner import IncrementalScanner


@pytest.fixture
def scanned(db_ops, tmp_path):
    (tmp_path / "keep.txt").write_bytes(b"copy")
    (tmp_path / "drop.txt").write_bytes(b"copy")
    IncrementalScanner(db_ops).scan(tmp_path)
    return {r.file_name: r for r in db_ops.get_all()}


def test_remove_deletes_file_and_record_and_regroups(db_ops, tmp_path, scanned):
    drop = scanned["drop.txt"]

    result = FileRemover(db_ops).remove([drop.id])

    assert result.deleted == [drop.id]
    assert not (tmp_path / "drop.txt").exists()
    assert db_ops.get_by_id(drop.id) is None
    survivor = db_ops.get_by_id(scanned["keep.txt"].id)
    assert survivor.is_duplicate is False
    assert survivor.duplicate_count == 0


def test_dry_run_touches_nothing(db_ops, tmp_path, scanned):
    result = FileRemover(db_ops).remove([scanned["drop.txt"].id], dry_run=True)

    assert result.deleted == []
    assert (tmp_path / "drop.txt").exists()
    assert db_ops.statistics().total_records == 2


def test_unknown_id_is_reported(db_ops, scanned):
    result = FileRemover(db_ops).remove([9999])
    assert result.missing == [9999]
    assert db_ops.statistics().total_records == 2


def test_already_deleted_file_still_drops_record(db_ops, tmp_path, scanned):
    (tmp_path / "drop.txt").unlink()
    result = FileRemover(db_ops).remove([scanned["drop.txt"].id])
    assert result.deleted == [scanned["drop.txt"].id]
    assert db_ops.statistics().total_records == 1


def test_failed_delete_keeps_record(db_ops, tmp_path, scanned, monkeypatch):
    def refuse(self, *args, **kwargs):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr("pathlib.Path.unlink", refuse)
    result = FileRemover(db_ops).remove([scanned["drop.txt"].id])

    assert result.deleted == []
    assert result.failed and result.failed[0][0] == scanned["drop.txt"].id
    assert db_ops.get_by_id(scanned["drop.txt"].id) is not None


def test_repeated_ids_are_removed_once(db_ops, tmp_path, scanned):
    drop_id = scanned["drop.txt"].id

    result = FileRemover(db_ops).remove([drop_id, drop_id])

    assert result.deleted == [drop_id]
    assert db_ops.statistics().total_records == 1
