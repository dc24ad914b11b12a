"""
Per-root fingerprint cache.

Each source root owns a sidecar file at its top level mapping absolute path
to (digest, modification time). The sidecar is read once at the start of a
run and rewritten wholesale at the end, only when something changed.
"""

import logging
import os
import tempfile
import threading
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .media import CACHE_FILE_NAME
from .models import CacheEntry, FileRecord, PathKey


class FingerprintCache:
    """In-memory view of one sidecar file, safe to share between hashing workers."""

    def __init__(self, cache_path: Path, entries: Optional[dict] = None):
        self.cache_path = cache_path
        self.entries: dict[PathKey, CacheEntry] = entries or {}
        self.loaded_count = len(self.entries)
        self.computed_count = 0
        self._lock = threading.Lock()

    @classmethod
    def for_root(cls, root: Path) -> "FingerprintCache":
        return cls.load(Path(root) / CACHE_FILE_NAME)

    @classmethod
    def load(cls, cache_path: Path) -> "FingerprintCache":
        """
        Load a sidecar. A missing or unreadable file yields an empty cache;
        entries without a usable date are dropped.
        """
        logger = logging.getLogger("photo_backup_cleanup")
        entries = {}

        if not cache_path.exists():
            logger.debug(f"No fingerprint cache at {cache_path}")
            return cls(cache_path, entries)

        try:
            tree = ET.parse(cache_path)
        except (ET.ParseError, OSError) as e:
            logger.warning(f"Ignoring unreadable fingerprint cache {cache_path}: {e}")
            return cls(cache_path, entries)

        for elem in tree.getroot().iter("file"):
            path = elem.get("path")
            if path is None:
                continue
            try:
                modified = datetime.fromisoformat(elem.get("date"))
            except (TypeError, ValueError):
                logger.debug(f"Dropping cache entry with bad date for {path}")
                continue
            entries[PathKey(path)] = CacheEntry(digest=elem.get("hash", ""), modified=modified)

        logger.debug(f"Loaded {len(entries)} cached fingerprints from {cache_path}")
        return cls(cache_path, entries)

    def __len__(self):
        return len(self.entries)

    def get(self, path) -> Optional[CacheEntry]:
        with self._lock:
            return self.entries.get(PathKey(path))

    def lookup_or_store(
        self,
        record: FileRecord,
        compute: Callable[[FileRecord], Optional[str]]
    ) -> tuple[Optional[CacheEntry], bool]:
        """
        Reuse or replace the entry for one path.

        A hit (same modification time) is returned as is. On a miss `compute`
        runs outside the lock; None means "nothing to cache". Before the
        result is inserted the entry is checked again, and if another worker
        stored a current entry for the same key in the meantime, that entry
        is kept.

        Returns (entry, hit). On a miss the entry carries the freshly
        computed digest, whether or not it was inserted.
        """
        key = PathKey(record.path)
        with self._lock:
            seen = self.entries.get(key)
            if seen is not None and seen.modified == record.modified:
                return seen, True

        digest = compute(record)
        if digest is None:
            return None, False

        entry = CacheEntry(digest=digest, modified=record.modified)
        with self._lock:
            current = self.entries.get(key)
            if current is not seen and current.modified == record.modified:
                logging.getLogger("photo_backup_cleanup").warning(
                    f"Another file already holds the cache key of {record.path}; keeping its fingerprint"
                )
            else:
                self.entries[key] = entry
                self.computed_count += 1
        return entry, False

    @property
    def dirty(self) -> bool:
        return self.computed_count > 0 or len(self.entries) != self.loaded_count

    def save(self, force: bool = False) -> bool:
        """
        Rewrite the sidecar if any fingerprint changed.

        The new file is written beside the old one and swapped in, so an
        interrupted save leaves the previous sidecar intact.

        Returns True if the file was written.
        """
        if not force and not self.dirty:
            return False

        with self._lock:
            root = ET.Element("files")
            for key, entry in self.entries.items():
                ET.SubElement(root, "file", {
                    "path": key.original,
                    "hash": entry.digest,
                    "date": entry.modified.isoformat(timespec="microseconds"),
                })
            ET.indent(root, space="\t")
            tree = ET.ElementTree(root)

            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".FileHashes.", suffix=".tmp", dir=self.cache_path.parent
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    tree.write(f, encoding="utf-8", xml_declaration=True)
                os.replace(tmp_name, self.cache_path)
            except BaseException:
                os.unlink(tmp_name)
                raise

            self.loaded_count = len(self.entries)
            self.computed_count = 0

        logging.getLogger("photo_backup_cleanup").debug(
            f"Wrote {len(self.entries)} fingerprints to {self.cache_path}"
        )
        return True
