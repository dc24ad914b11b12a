"""
Copy and delete executors. Each takes a plan produced by the reconciler or
the duplicate detector and either performs it or, in dry-run mode, reports
what would be done.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from .media import is_media_file
from .models import CopyPlan, FileRecord, OrphanPlan
from .report import format_file_name

# Above this many orphans in one directory, report a count instead of each file
ORPHAN_BATCH = 5


@dataclass
class ActionStats:
    """Statistics for one executor run."""
    planned: int = 0
    done: int = 0
    skipped: int = 0
    errors: int = 0


def delete_duplicates(
    duplicates: list[FileRecord],
    first_seen: dict,
    actually_delete: bool,
    logger: logging.Logger,
    html: bool = False
) -> ActionStats:
    """
    Report or delete duplicates within the sources.

    Only media files are ever deleted; other duplicates are reported.
    """
    stats = ActionStats(planned=len(duplicates))

    for dup in duplicates:
        original = first_seen[dup.key]
        dup_name = format_file_name(dup.path, html)
        original_name = format_file_name(original.path, html)

        if not actually_delete:
            note = "" if is_media_file(dup.path) else " (not an image file)"
            logger.info(f"{dup_name} (duplicate of {original_name}){note}")
            continue

        if not is_media_file(dup.path):
            logger.info(f"Not deleting {dup_name} (duplicate of {original_name}): not an image file")
            stats.skipped += 1
            continue

        logger.info(f"Deleting {dup_name} (duplicate of {original_name})")
        try:
            os.remove(dup.path)
            stats.done += 1
        except OSError as e:
            logger.warning(f"Failed to delete {dup.path}: {e}")
            stats.errors += 1

    return stats


def copy_missing(plans: list[CopyPlan], actually_copy: bool, logger: logging.Logger) -> ActionStats:
    """Copy (or report) source files absent from the destination, overwriting size mismatches."""
    stats = ActionStats(planned=len(plans))

    for plan in plans:
        if plan.nonstandard_extension:
            logger.info("Warning - nonstandard file extension:")

        if not actually_copy:
            logger.info(f"Found file to copy: {plan.source} to {plan.destination}")
            continue

        logger.info(f"Copying {plan.source} to {plan.destination}")
        try:
            plan.destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(plan.source, plan.destination)
            stats.done += 1
        except OSError as e:
            logger.warning(f"Failed to copy {plan.source}: {e}")
            stats.errors += 1

    return stats


def delete_orphans(
    plans: list[OrphanPlan],
    source_root: Path,
    actually_delete: bool,
    logger: logging.Logger
) -> ActionStats:
    """
    Delete (or report) destination entries with no source counterpart.

    Files are grouped per directory; large groups are summarized.
    """
    stats = ActionStats(planned=len(plans))

    by_dir: dict[Path, list[OrphanPlan]] = {}
    for plan in plans:
        if not plan.is_dir:
            by_dir.setdefault(plan.path.parent, []).append(plan)

    for directory, files in by_dir.items():
        if len(files) > ORPHAN_BATCH:
            if actually_delete:
                logger.info(f"Deleting {len(files)} files in {directory}")
            else:
                logger.info(f"Found {len(files)} files in {directory} to delete (not found in {source_root}).")
        for plan in files:
            if len(files) <= ORPHAN_BATCH:
                if actually_delete:
                    logger.info(f"Deleting file {plan.path}")
                else:
                    logger.info(f"Found file {plan.path} to delete (not found in {source_root})")
            if actually_delete:
                _remove(plan, stats, logger)

    for plan in plans:
        if not plan.is_dir:
            continue
        if actually_delete:
            logger.info(f"Deleting directory {plan.path}")
            _remove(plan, stats, logger)
        else:
            logger.info(f"Found directory to delete {plan.path}")

    return stats


def _remove(plan: OrphanPlan, stats: ActionStats, logger: logging.Logger) -> None:
    try:
        if plan.is_dir:
            shutil.rmtree(plan.path)
        else:
            os.remove(plan.path)
        stats.done += 1
    except OSError as e:
        logger.warning(f"Failed to delete {plan.path}: {e}")
        stats.errors += 1
