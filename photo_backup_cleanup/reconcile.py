"""
Cross-tree reconciliation.

`reconcile` explains destination files whose key is absent from the source:
first by an exact byte match against a same-sized source file, then by the
same-named source file closest in size. `plan_copies` and `plan_orphans`
mirror paths between the two roots to decide what a sync would copy or
delete. None of these touch the filesystem beyond reading.
"""

import logging
import math
import os
from collections import defaultdict
from pathlib import Path
from typing import Iterable

from .media import CACHE_FILE_NAME, COPY_IGNORED_FILES, PROTECT_MARKER, is_media_file, should_skip_dir
from .models import CopyPlan, FileRecord, MatchKind, MatchResult, OrphanPlan, Reconciliation

NAME_SIZE_THRESHOLD = 0.01
FOUND_ELSEWHERE_THRESHOLD = 0.03
DEFAULT_CHUNK_SIZE = 256 * 1024  # 256KB


def index_by_size(first_seen: dict) -> dict[int, list[FileRecord]]:
    buckets = defaultdict(list)
    for record in first_seen.values():
        buckets[record.size].append(record)
    return buckets


def index_by_name(first_seen: dict) -> dict[str, list[FileRecord]]:
    buckets = defaultdict(list)
    for record in first_seen.values():
        buckets[record.name].append(record)
    return buckets


def contents_match(path_a: Path, path_b: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> bool:
    """Byte-for-byte comparison of two files."""
    with open(path_a, 'rb') as fa, open(path_b, 'rb') as fb:
        while True:
            chunk_a = fa.read(chunk_size)
            chunk_b = fb.read(chunk_size)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True


def size_delta_ratio(dest_size: int, src_size: int) -> float:
    if dest_size == 0:
        return 0.0 if src_size == 0 else math.inf
    return abs(dest_size - src_size) / dest_size


def find_match(
    record: FileRecord,
    by_size: dict[int, list[FileRecord]],
    by_name: dict[str, list[FileRecord]]
) -> MatchResult:
    """
    Best source candidate for one destination record.

    An exact content match among same-sized files wins outright (first one
    in source order). Otherwise the same-named file with the smallest
    relative size difference is returned; ties keep the earlier file.
    """
    for candidate in by_size.get(record.size, ()):
        if contents_match(record.path, candidate.path):
            return MatchResult(MatchKind.EXACT_CONTENT, candidate, 0.0)

    best = None
    best_ratio = math.inf
    for candidate in by_name.get(record.name, ()):
        ratio = size_delta_ratio(record.size, candidate.size)
        if best is None or ratio < best_ratio:
            best = candidate
            best_ratio = ratio

    if best is None:
        return MatchResult()

    kind = MatchKind.NAME_AND_SIZE if best_ratio < NAME_SIZE_THRESHOLD else MatchKind.NAME_ONLY
    return MatchResult(kind, best, best_ratio)


def reconcile(source_first_seen: dict, dest_first_seen: dict) -> list[Reconciliation]:
    """Classify every destination key missing from the source."""
    by_size = index_by_size(source_first_seen)
    by_name = index_by_name(source_first_seen)

    results = []
    for key, record in dest_first_seen.items():
        if key in source_first_seen:
            continue
        match = find_match(record, by_size, by_name)
        found = match.kind is MatchKind.EXACT_CONTENT or (
            match.candidate is not None and match.size_delta_ratio < FOUND_ELSEWHERE_THRESHOLD
        )
        results.append(Reconciliation(record=record, match=match, found_elsewhere=found))

    return results


def mirror_path(path: Path, from_root: Path, to_root: Path) -> Path:
    return Path(to_root) / Path(path).relative_to(from_root)


def plan_copies(source_root: Path, dest_root: Path, source_records: Iterable[FileRecord]) -> list[CopyPlan]:
    """
    Source files whose mirrored destination is absent or differs in size.

    Pass the records kept by duplicate detection (first-seen plus protected)
    so duplicates within the source are copied once while protected files
    are always mirrored.
    """
    source_root = Path(os.path.abspath(source_root))
    dest_root = Path(os.path.abspath(dest_root))
    plans = []

    for record in source_records:
        if record.name in COPY_IGNORED_FILES:
            continue
        destination = mirror_path(record.path, source_root, dest_root)
        try:
            if destination.stat().st_size == record.size:
                continue
        except FileNotFoundError:
            pass
        plans.append(CopyPlan(
            source=record.path,
            destination=destination,
            nonstandard_extension=not is_media_file(record.path),
        ))

    return plans


def plan_orphans(source_root: Path, dest_root: Path) -> list[OrphanPlan]:
    """
    Destination entries with no counterpart path in the source.

    A directory missing from the source is planned as a whole and not
    descended into. Protected directories and the cache sidecar are never
    planned.
    """
    logger = logging.getLogger("photo_backup_cleanup")
    source_root = Path(os.path.abspath(source_root))
    dest_root = Path(os.path.abspath(dest_root))
    plans = []

    def visit(directory: Path):
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Skipping {directory}: {e.strerror or e}")
            return

        if any(e.name == PROTECT_MARKER for e in entries):
            logger.debug(f"Not planning deletions under protected {directory}")
            return

        subdirs = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(entry)
            elif entry.name != CACHE_FILE_NAME:
                if not mirror_path(entry.path, dest_root, source_root).exists():
                    plans.append(OrphanPlan(path=Path(entry.path)))

        for entry in subdirs:
            if should_skip_dir(entry.name):
                continue
            if mirror_path(entry.path, dest_root, source_root).is_dir():
                visit(Path(entry.path))
            elif not _contains_marker(Path(entry.path)):
                plans.append(OrphanPlan(path=Path(entry.path), is_dir=True))

    visit(dest_root)
    return plans


def _contains_marker(directory: Path) -> bool:
    for dirpath, _dirnames, filenames in os.walk(directory):
        if PROTECT_MARKER in filenames:
            return True
    return False
