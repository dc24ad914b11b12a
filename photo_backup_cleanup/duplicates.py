"""Duplicate detection over hashed records."""

import logging
from typing import Iterable

from .models import DuplicateReport, FileRecord


def detect(records: Iterable[FileRecord]) -> DuplicateReport:
    """
    Group records by dedup key, first seen wins.

    Input order decides which record of a group is kept, so pass records in
    walk order rather than hashing completion order. Corrupt records never
    occupy a key. A record whose pairing involves a protected file is kept
    aside in `protected` and never reported as a duplicate.
    """
    logger = logging.getLogger("photo_backup_cleanup")
    report = DuplicateReport()

    for record in records:
        if record.corrupt:
            logger.warning(f"{record.path} is corrupt.")
            report.corrupt.append(record)
            continue

        occupant = report.first_seen.get(record.key)
        if occupant is None:
            report.first_seen[record.key] = record
        elif record.protected or occupant.protected:
            report.protected.append(record)
        else:
            report.duplicates.append(record)

    return report
