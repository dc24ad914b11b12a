"""
Per-root indexing pipeline: walk, load cache, hash, save cache, then detect
duplicates across every root in walk order.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from .cache import FingerprintCache
from .duplicates import detect
from .hashing import HashingEngine
from .models import DuplicateReport
from .walker import walk


class HashingAborted(RuntimeError):
    """A hashing worker failed; the partial cache has already been flushed."""

    def __init__(self, root: Path, error: BaseException):
        super().__init__(f"Hashing aborted under {root}: {error!r}")
        self.root = root
        self.error = error


@dataclass
class IndexResult:
    roots: list
    records: list = field(default_factory=list)
    report: DuplicateReport = field(default_factory=DuplicateReport)
    hashed: int = 0

    @property
    def first_seen(self) -> dict:
        return self.report.first_seen

    @property
    def duplicates(self) -> list:
        return self.report.duplicates


def index_root(root: Path, engine: HashingEngine, logger: logging.Logger) -> tuple[list, int]:
    """Walk and hash one root against its own sidecar cache."""
    logger.info(f"Scanning directory: {root}")
    records = walk(root)
    logger.info(f"Found {len(records)} files in {root}")

    cache = FingerprintCache.for_root(root)
    outcome = engine.run(records, cache)

    if not outcome.ok:
        logger.error(f"Hashing failed under {root}: {outcome.error!r}")
        cache.save(force=True)
        raise HashingAborted(root, outcome.error) from outcome.error

    if cache.save():
        logger.debug(f"Updated fingerprint cache for {root}")
    return records, outcome.hashed


def index_trees(
    roots: Sequence[Path],
    engine: Optional[HashingEngine] = None,
    logger: Optional[logging.Logger] = None
) -> IndexResult:
    """
    Index one or more roots and detect duplicates across their union.

    Roots are processed in the given order; detection runs over the walk
    order of all roots concatenated.
    """
    engine = engine or HashingEngine()
    logger = logger or logging.getLogger("photo_backup_cleanup")
    result = IndexResult(roots=[Path(r) for r in roots])

    for root in result.roots:
        records, hashed = index_root(root, engine, logger)
        result.records.extend(records)
        result.hashed += hashed

    result.report = detect(result.records)
    return result
