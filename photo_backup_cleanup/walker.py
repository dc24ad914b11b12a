"""Sequential directory walk producing FileRecords."""

import logging
import os
from pathlib import Path

from .media import PROTECT_MARKER, should_skip_dir, should_skip_file
from .models import FileRecord, PathKey, mtime_utc


def walk(root: Path, protected_inherited: bool = False) -> list[FileRecord]:
    """
    Recursively collect file records under a directory.

    Depth-first: a directory's files come before its subdirectories, and
    entries are visited in name order. Symlinks to files are SKIPPED (not
    resolved), the same as symlinked directories, which os.walk does not
    follow.

    A directory holding the protect marker stamps every record in it and in
    all of its descendants as protected. Subtrees that cannot be listed are
    logged and skipped.
    """
    logger = logging.getLogger("photo_backup_cleanup")
    root = Path(os.path.abspath(root))
    records = []
    protected_dirs = {str(root): protected_inherited}
    seen_keys = {}

    def on_error(err: OSError):
        logger.warning(f"Skipping {err.filename}: {err.strerror or err}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=False):
        current = Path(dirpath)

        protected = protected_dirs.get(dirpath)
        if protected is None:
            protected = protected_dirs.get(os.path.dirname(dirpath), False)
        if PROTECT_MARKER in filenames:
            protected = True
        protected_dirs[dirpath] = protected

        # Filter out ignored directories (modifies in-place to prevent descent)
        dirnames[:] = sorted(d for d in dirnames if not should_skip_dir(d))

        for filename in sorted(filenames):
            if should_skip_file(filename):
                continue

            file_path = current / filename
            if file_path.is_symlink():
                logger.debug(f"Skipping symlink: {file_path}")
                continue

            try:
                stat = file_path.stat()
            except OSError as e:
                logger.warning(f"Cannot stat {file_path}: {e}")
                continue

            path_key = PathKey(file_path)
            if path_key in seen_keys:
                logger.warning(f"{file_path} and {seen_keys[path_key]} differ only in case and share a cache entry")
            else:
                seen_keys[path_key] = file_path

            records.append(FileRecord(
                path=file_path,
                size=stat.st_size,
                modified=mtime_utc(stat),
                protected=protected,
            ))

    return records
