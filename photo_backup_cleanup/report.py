"""Console and HTML report lines, emitted through the logger."""

import logging
from contextlib import contextmanager
from pathlib import Path

from .models import MatchKind, Reconciliation


def format_file_name(path, html: bool = False) -> str:
    if html:
        return f'<a href="file:///{path}">{path}</a>'
    return str(path)


@contextmanager
def html_block(logger: logging.Logger, html: bool):
    """Wrap report output in <pre> tags when writing HTML."""
    if html:
        logger.info("<pre>")
    try:
        yield
    finally:
        if html:
            logger.info("</pre>")


def print_banner(logger: logging.Logger, title: str, settings: dict):
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)
    for name, value in settings.items():
        logger.info(f"{name + ':':<15}{value}")
    logger.info("=" * 60)


def report_missing(
    source_root: Path,
    dest_root: Path,
    reconciliations: list[Reconciliation],
    dest_duplicate_count: int,
    logger: logging.Logger,
    html: bool = False
) -> int:
    """
    Report destination files not found in the source, then the ones that
    match a source file of a different name or size.

    Returns the number of truly missing files.
    """
    logger.info(f"{dest_root} contains {dest_duplicate_count} duplicates.")

    matches = []
    missing = 0
    for item in reconciliations:
        dest_name = format_file_name(item.record.path, html)
        match = item.match

        if item.found_elsewhere:
            src_name = format_file_name(match.candidate.path, html)
            if match.kind is MatchKind.EXACT_CONTENT:
                matches.append(f"{dest_name} MATCHES {src_name} ({match.kind.value})")
            else:
                matches.append(
                    f"{dest_name} MATCHES {src_name} ({match.kind.value}, "
                    f"file size diff: {match.size_delta_ratio:.2%})"
                )
            continue

        missing += 1
        if match.kind is MatchKind.NAME_ONLY:
            src_name = format_file_name(match.candidate.path, html)
            logger.info(
                f"{dest_name} not found under {source_root} "
                f"({src_name} file size diff: {match.size_delta_ratio:.2%})"
            )
        else:
            logger.info(f"{dest_name} not found under {source_root}")

    logger.info(f"{missing} files found under {dest_root} not found under {source_root}.")
    logger.info("")
    logger.info(f"{len(matches)} files match a file of a different name (or same name but different size):")
    for line in matches:
        logger.info(line)

    return missing
