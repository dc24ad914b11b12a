import math
import os
from datetime import datetime, timezone
from pathlib import Path

from photo_backup_cleanup.media import CACHE_FILE_NAME, PROTECT_MARKER
from photo_backup_cleanup.models import FileRecord, MatchKind
from photo_backup_cleanup.reconcile import (
    find_match,
    index_by_name,
    index_by_size,
    plan_copies,
    plan_orphans,
    reconcile,
    size_delta_ratio,
)

NOW = datetime(2022, 1, 1, tzinfo=timezone.utc)


def _write(path: Path, data: bytes) -> FileRecord:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return FileRecord(path=path, size=len(data), modified=NOW)


def _first_seen(*records):
    return {r.key: r for r in records}


def test_renamed_file_with_identical_bytes_is_exact_content(tmp_path):
    src = _write(tmp_path / "src" / "img.jpg", b"same bytes here")
    dest = _write(tmp_path / "dest" / "photo.jpg", b"same bytes here")

    (item,) = reconcile(_first_seen(src), _first_seen(dest))
    assert item.match.kind is MatchKind.EXACT_CONTENT
    assert item.match.candidate is src
    assert item.found_elsewhere


def test_dest_keys_present_in_source_are_not_reported(tmp_path):
    src = _write(tmp_path / "src" / "a.jpg", b"abc")
    dest = _write(tmp_path / "dest" / "a.jpg", b"abc")
    dest.key = src.key = "digest"
    assert reconcile(_first_seen(src), _first_seen(dest)) == []


def test_same_size_different_bytes_falls_through_to_name(tmp_path):
    src = _write(tmp_path / "src" / "a.jpg", b"x" * 1000)
    dest = _write(tmp_path / "dest" / "a.jpg", b"y" * 1000)
    dest.key = "other"

    match = find_match(dest, index_by_size(_first_seen(src)), index_by_name(_first_seen(src)))
    assert match.kind is MatchKind.NAME_AND_SIZE
    assert match.size_delta_ratio == 0.0


def test_name_match_thresholds(tmp_path):
    src = _write(tmp_path / "src" / "a.jpg", b"x" * 980)
    dest = _write(tmp_path / "dest" / "a.jpg", b"y" * 1000)
    dest.key = "dest-only"

    (item,) = reconcile(_first_seen(src), _first_seen(dest))
    assert item.match.kind is MatchKind.NAME_ONLY
    assert math.isclose(item.match.size_delta_ratio, 0.02)
    assert item.found_elsewhere

    far = _write(tmp_path / "src2" / "a.jpg", b"x" * 900)
    (item,) = reconcile(_first_seen(far), _first_seen(dest))
    assert item.match.kind is MatchKind.NAME_ONLY
    assert not item.found_elsewhere


def test_nearest_size_wins_and_ties_keep_earlier_source(tmp_path):
    dest = _write(tmp_path / "dest" / "a.jpg", b"d" * 1000)
    dest.key = "dest-only"
    further = _write(tmp_path / "s1" / "a.jpg", b"s" * 995)
    nearer = _write(tmp_path / "s2" / "a.jpg", b"s" * 998)
    tie = _write(tmp_path / "s3" / "a.jpg", b"s" * 1002)
    further.key, nearer.key, tie.key = "k1", "k2", "k3"

    (item,) = reconcile(_first_seen(further, nearer, tie), _first_seen(dest))
    assert item.match.kind is MatchKind.NAME_AND_SIZE
    assert item.match.candidate is nearer

    (item,) = reconcile(_first_seen(tie, nearer), _first_seen(dest))
    assert item.match.candidate is tie


def test_no_candidate_is_missing(tmp_path):
    src = _write(tmp_path / "src" / "a.jpg", b"abc")
    dest = _write(tmp_path / "dest" / "b.jpg", b"defg")
    (item,) = reconcile(_first_seen(src), _first_seen(dest))
    assert item.match.kind is MatchKind.NONE
    assert item.match.candidate is None
    assert not item.found_elsewhere


def test_size_delta_ratio_of_empty_destination():
    assert size_delta_ratio(0, 0) == 0.0
    assert size_delta_ratio(0, 5) == math.inf
    assert size_delta_ratio(200, 190) == 0.05


def test_plan_copies_mirrors_missing_and_resized_files(tmp_path):
    src_root, dest_root = tmp_path / "src", tmp_path / "dest"
    missing = _write(src_root / "sub" / "new.jpg", b"new")
    resized = _write(src_root / "changed.jpg", b"longer content")
    same = _write(src_root / "same.jpg", b"same")
    notes = _write(src_root / "notes.txt", b"text")
    ignored = _write(src_root / "desktop.ini", b"[x]")
    _write(dest_root / "changed.jpg", b"short")
    _write(dest_root / "same.jpg", b"same")

    plans = plan_copies(src_root, dest_root, [missing, resized, same, notes, ignored])

    assert {(p.source, p.destination) for p in plans} == {
        (missing.path, dest_root / "sub" / "new.jpg"),
        (resized.path, dest_root / "changed.jpg"),
        (notes.path, dest_root / "notes.txt"),
    }
    assert [p.nonstandard_extension for p in plans if p.source == notes.path] == [True]


def test_plan_orphans(tmp_path):
    src_root, dest_root = tmp_path / "src", tmp_path / "dest"
    _write(src_root / "keep.jpg", b"1")
    _write(src_root / "album" / "keep2.jpg", b"2")
    _write(dest_root / "keep.jpg", b"1")
    _write(dest_root / "gone.jpg", b"3")
    _write(dest_root / CACHE_FILE_NAME, b"<files/>")
    _write(dest_root / "album" / "keep2.jpg", b"2")
    _write(dest_root / "album" / "gone2.jpg", b"4")
    _write(dest_root / "old_album" / "x.jpg", b"5")
    _write(dest_root / "old_album" / "deep" / "y.jpg", b"6")
    _write(dest_root / "safe" / PROTECT_MARKER, b"")
    _write(dest_root / "safe" / "z.jpg", b"7")

    plans = plan_orphans(src_root, dest_root)

    assert {(p.path, p.is_dir) for p in plans} == {
        (dest_root / "gone.jpg", False),
        (dest_root / "album" / "gone2.jpg", False),
        (dest_root / "old_album", True),
    }


def test_plan_copies_includes_protected_records_kept_by_detection(tmp_path):
    from photo_backup_cleanup.duplicates import detect

    src_root, dest_root = tmp_path / "src", tmp_path / "dest"
    first = _write(src_root / "a.png", b"pixels")
    shielded = _write(src_root / "keep" / "a_again.png", b"pixels")
    shielded.protected = True
    first.key = shielded.key = "digest"

    report = detect([first, shielded])
    plans = plan_copies(src_root, dest_root, report.kept())

    assert [p.destination for p in plans] == [dest_root / "a.png", dest_root / "keep" / "a_again.png"]
