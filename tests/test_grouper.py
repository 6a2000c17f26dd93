from dataclasses import replace

from duplicate_finder.duplicates.grouper import DuplicateGrouper


def _flags(db_ops):
    return {r.file_path: (r.is_duplicate, r.duplicate_count) for r in db_ops.get_all()}


def test_marks_groups_with_their_size(db_ops, make_record):
    db_ops.add_batch([
        make_record("/a.txt", file_hash="same"),
        make_record("/b.txt", file_hash="same"),
        make_record("/c.txt", file_hash="same"),
        make_record("/d.txt", file_hash="pair"),
        make_record("/e.txt", file_hash="pair"),
        make_record("/f.txt", file_hash="unique"),
    ])

    result = DuplicateGrouper(db_ops).regroup()

    assert result.groups == 2
    assert result.duplicate_records == 5
    assert result.updated_records == 5
    assert _flags(db_ops) == {
        "/a.txt": (True, 3), "/b.txt": (True, 3), "/c.txt": (True, 3),
        "/d.txt": (True, 2), "/e.txt": (True, 2),
        "/f.txt": (False, 0),
    }


def test_missing_or_empty_hash_never_groups(db_ops, make_record):
    db_ops.add_batch([
        make_record("/a", file_hash=None),
        make_record("/b", file_hash=None),
        make_record("/c", file_hash=""),
        make_record("/d", file_hash=""),
    ])

    result = DuplicateGrouper(db_ops).regroup()

    assert result.groups == 0
    assert all(flags == (False, 0) for flags in _flags(db_ops).values())


def test_regroup_is_idempotent(db_ops, make_record):
    db_ops.add_batch([
        make_record("/a", file_hash="x"),
        make_record("/b", file_hash="x"),
        make_record("/c", file_hash="y"),
    ])
    grouper = DuplicateGrouper(db_ops)

    first = grouper.regroup()
    snapshot = db_ops.get_all()
    second = grouper.regroup()

    assert first.updated_records == 2
    assert second.updated_records == 0
    assert second.groups == first.groups
    assert db_ops.get_all() == snapshot


def test_second_run_sends_no_update(db_ops, make_record, monkeypatch):
    db_ops.add_batch([make_record("/a", file_hash="x"), make_record("/b", file_hash="x")])
    grouper = DuplicateGrouper(db_ops)
    grouper.regroup()

    calls = []
    monkeypatch.setattr(db_ops, "update_batch", lambda records: calls.append(list(records)))
    grouper.regroup()

    assert calls == []


def test_survivor_flag_cleared_after_delete(db_ops, make_record):
    a, b = db_ops.add_batch([make_record("/a", file_hash="x"), make_record("/b", file_hash="x")])
    grouper = DuplicateGrouper(db_ops)
    grouper.regroup()
    assert db_ops.get_by_id(b.id).is_duplicate

    db_ops.delete(a.id)
    grouper.regroup()

    survivor = db_ops.get_by_id(b.id)
    assert survivor.is_duplicate is False
    assert survivor.duplicate_count == 0


def test_group_count_tracks_growth(db_ops, make_record):
    db_ops.add_batch([make_record("/a", file_hash="x"), make_record("/b", file_hash="x")])
    grouper = DuplicateGrouper(db_ops)
    grouper.regroup()

    db_ops.add(make_record("/c", file_hash="x"))
    result = grouper.regroup()

    assert result.updated_records == 3
    assert {c for _, c in _flags(db_ops).values()} == {3}


def test_stale_flag_on_unhashed_record_is_reset(db_ops, make_record):
    rec = db_ops.add(make_record("/broken", file_hash=None))
    db_ops.update_batch([replace(rec, is_duplicate=True, duplicate_count=2)])

    DuplicateGrouper(db_ops).regroup()

    assert db_ops.get_by_id(rec.id).is_duplicate is False
