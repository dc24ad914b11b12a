"""
photo-backup-cleanup - duplicate finder and backup synchronizer for photo trees.

Reports on duplicate image files, deletes duplicates, copies missing files
and deletes destination orphans. Fingerprints are cached per source root in
FileHashes.xml so unchanged files are never decoded twice.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .actions import copy_missing, delete_duplicates, delete_orphans
from .hashing import DEFAULT_WORKERS, HashingEngine
from .indexer import HashingAborted, index_trees
from .media import HEIC_SUPPORTED
from .reconcile import plan_copies, plan_orphans, reconcile
from .report import html_block, print_banner, report_missing

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """Configure logging to console and, optionally, a detailed log file."""
    logger = logging.getLogger("photo_backup_cleanup")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    # Console handler - report lines only
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(ch)

    # File handler - detailed
    if log_file is not None:
        fh = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        logger.addHandler(fh)

    return logger


# -----------------------------------------------------------------------------
# Modes
# -----------------------------------------------------------------------------

def run_duplicates(sources: list[Path], engine: HashingEngine, delete: bool,
                   html: bool, logger: logging.Logger) -> int:
    index = index_trees(sources, engine, logger)
    logger.info(
        f"{len(index.duplicates)} duplicates found in {', '.join(str(s) for s in sources)}: "
    )
    stats = delete_duplicates(index.duplicates, index.first_seen, delete, logger, html)
    if delete:
        logger.info(f"Deleted {stats.done} duplicates ({stats.skipped} skipped, {stats.errors} errors)")
    return EXIT_OK


def run_sync(source: Path, dest: Path, engine: HashingEngine, args: argparse.Namespace,
             logger: logging.Logger) -> int:
    source_index = index_trees([source], engine, logger)
    if not source_index.first_seen:
        logger.info(f"No files found under {source}")
        return EXIT_OK

    dest_index = index_trees([dest], engine, logger)

    if args.report_missing:
        reconciliations = reconcile(source_index.first_seen, dest_index.first_seen)
        report_missing(source, dest, reconciliations, len(dest_index.duplicates), logger, args.html)
        return EXIT_OK

    logger.info("")
    copy_stats = copy_missing(plan_copies(source, dest, source_index.report.kept()), args.copy, logger)
    logger.info("")
    delete_stats = delete_orphans(plan_orphans(source, dest), source, args.delete, logger)

    if copy_stats.errors or delete_stats.errors:
        logger.warning(f"{copy_stats.errors} copy errors, {delete_stats.errors} delete errors")
    return EXIT_OK


# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photo-backup-cleanup",
        description="Reports on duplicate image files, deletes duplicates, copies missing files. "
                    "Synchronizes two sets of files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  # Report duplicates across two trees
  photo-backup-cleanup -s /photos/2019 -s /photos/2020

  # Delete duplicate media files
  photo-backup-cleanup -s /photos -delete

  # Explain destination files that are not in the source
  photo-backup-cleanup -s /photos -d /backup/photos -reportMissing

  # Synchronize: copy what is missing, delete what is gone from the source
  photo-backup-cleanup -s /photos -d /backup/photos -copy -delete
        """
    )

    parser.add_argument(
        "-s", dest="sources", type=Path, action="append", required=True, metavar="DIR",
        help="Source directory. Searched with all subfolders; may be repeated."
    )
    parser.add_argument(
        "-d", dest="dest", type=Path, default=None, metavar="DIR",
        help="Destination directory. Without it, only duplicates are searched for."
    )
    parser.add_argument(
        "-delete", dest="delete", action="store_true",
        help="Without -d: delete duplicates in the sources. With -d: delete files in the "
             "destination not found in the source (run -reportMissing first)."
    )
    parser.add_argument(
        "-copy", dest="copy", action="store_true",
        help="Copy files found in the source but not in the destination."
    )
    parser.add_argument(
        "-reportMissing", dest="report_missing", action="store_true",
        help="Report files found in the destination but not in the source."
    )
    parser.add_argument(
        "-html", dest="html", action="store_true",
        help="Output the report in html format."
    )
    parser.add_argument(
        "-log", dest="log_file", type=Path, default=None, metavar="FILE",
        help="Write a detailed log to FILE."
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)

    for source in args.sources:
        if not source.is_dir():
            parser.error(f"source directory does not exist: {source}")
    if args.dest is not None:
        if not args.dest.is_dir():
            parser.error(f"destination directory does not exist: {args.dest}")
        if len(args.sources) > 1:
            parser.error(
                "Missing files report, copying missing files, and deleting destination files "
                "can only be done when a single source directory is provided."
            )
        if args.report_missing and (args.copy or args.delete):
            parser.error("-reportMissing cannot be combined with -copy or -delete")
    elif args.copy or args.report_missing:
        parser.error("-copy and -reportMissing require a destination (-d)")

    return args


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logger = setup_logging(args.log_file)
    sources = [s.resolve() for s in args.sources]
    dest = args.dest.resolve() if args.dest is not None else None

    print_banner(logger, "PHOTO BACKUP CLEANUP", {
        "Sources": ", ".join(str(s) for s in sources),
        "Destination": dest or "-",
        "Workers": DEFAULT_WORKERS,
        "HEIC support": HEIC_SUPPORTED,
        "Delete": args.delete,
        "Copy": args.copy,
        "Started": datetime.now().isoformat(),
    })

    engine = HashingEngine(progress=sys.stderr.isatty())
    try:
        with html_block(logger, args.html):
            if dest is None:
                code = run_duplicates(sources, engine, args.delete, args.html, logger)
            else:
                code = run_sync(sources[0], dest, engine, args, logger)
    except HashingAborted as e:
        logger.error(f"Fatal error: {e}")
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        return 130

    logger.info(f"Completed: {datetime.now().isoformat()}")
    return code


if __name__ == "__main__":
    sys.exit(main())
