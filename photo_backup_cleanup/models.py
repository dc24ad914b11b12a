"""Data classes shared by the walker, hashing engine, detector and reconciler."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def mtime_utc(stat_result: os.stat_result) -> datetime:
    """
    Modification time as an aware UTC datetime.

    Built from st_mtime_ns with integer arithmetic so the same file always
    yields the same instant, down to the microsecond.
    """
    return _EPOCH + timedelta(microseconds=stat_result.st_mtime_ns // 1000)


class PathKey:
    """
    Case-insensitive path identifier.

    Keeps the original spelling for display and persistence; equality and
    hashing use the casefolded form.
    """

    __slots__ = ("original", "folded")

    def __init__(self, path):
        self.original = str(path)
        self.folded = self.original.casefold()

    def __eq__(self, other):
        if not isinstance(other, PathKey):
            return NotImplemented
        return self.folded == other.folded

    def __hash__(self):
        return hash(self.folded)

    def __str__(self):
        return self.original

    def __repr__(self):
        return f"PathKey({self.original!r})"


@dataclass
class FileRecord:
    """One discovered file."""
    path: Path
    size: int
    modified: datetime
    protected: bool = False
    digest: Optional[str] = None
    corrupt: bool = False
    key: str = field(default="")

    def __post_init__(self):
        if not self.key:
            self.key = f"{self.path.name}:{self.size}"

    @property
    def name(self) -> str:
        return self.path.name

    def apply_digest(self, digest: str) -> None:
        self.digest = digest
        self.key = digest


@dataclass(frozen=True)
class CacheEntry:
    """Persisted fingerprint. An empty digest records a corrupt image."""
    digest: str
    modified: datetime


class MatchKind(Enum):
    NONE = "None"
    EXACT_CONTENT = "ExactContent"
    NAME_AND_SIZE = "NameAndSize"
    NAME_ONLY = "NameOnly"


@dataclass
class MatchResult:
    kind: MatchKind = MatchKind.NONE
    candidate: Optional[FileRecord] = None
    size_delta_ratio: float = 0.0


@dataclass
class Reconciliation:
    """Classification of one destination file with no counterpart key in the source."""
    record: FileRecord
    match: MatchResult
    found_elsewhere: bool


@dataclass
class CopyPlan:
    source: Path
    destination: Path
    nonstandard_extension: bool = False


@dataclass
class OrphanPlan:
    path: Path
    is_dir: bool = False


@dataclass
class DuplicateReport:
    """Output of the duplicate detector."""
    # key -> first-encountered non-corrupt record
    first_seen: dict = field(default_factory=dict)
    duplicates: list = field(default_factory=list)
    # share a key with an earlier record but kept because one side is protected
    protected: list = field(default_factory=list)
    corrupt: list = field(default_factory=list)

    def kept(self) -> list:
        """First-seen records followed by the protected ones: everything deduplication keeps."""
        return list(self.first_seen.values()) + self.protected
