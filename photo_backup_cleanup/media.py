"""
Fixed file-name rules: recognized media extensions, ignore lists and the
sentinel names that steer the tree walk.
"""

from pathlib import Path

# Optional HEIC support
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HEIC_SUPPORTED = True
except ImportError:
    HEIC_SUPPORTED = False

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

# Per-root fingerprint cache sidecar
CACHE_FILE_NAME = "FileHashes.xml"

# A directory holding this file (and everything below it) is never deduplicated
PROTECT_MARKER = "ignoreduplicates.txt"

# Partially downloaded files live here; never walked
SKIPPED_DIR_NAME = ".dropbox.cache"

SKIPPED_EXTENSION = ".db"

# Never copied to a destination tree, whatever their match status
COPY_IGNORED_FILES = {"desktop.ini", CACHE_FILE_NAME}

# Images that go through pixel fingerprinting
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".tif", ".tiff", ".png", ".bmp"}
if HEIC_SUPPORTED:
    IMAGE_EXTENSIONS.add(".heic")

# Movies, camera thumbnails and other image-related files: legitimate media,
# but never pixel-hashed
OTHER_MEDIA_EXTENSIONS = {".avi", ".mpg", ".thm", ".psd", ".3gp", ".mp4", ".mov"}


def is_image_file(path: Path) -> bool:
    """Check if the file goes through pixel fingerprinting."""
    return path.suffix.lower() in IMAGE_EXTENSIONS


def is_media_file(path: Path) -> bool:
    """Check if the file is an image or other recognized media."""
    suffix = path.suffix.lower()
    return suffix in IMAGE_EXTENSIONS or suffix in OTHER_MEDIA_EXTENSIONS


def should_skip_file(name: str) -> bool:
    # both comparisons are case-sensitive
    return name == CACHE_FILE_NAME or Path(name).suffix == SKIPPED_EXTENSION


def should_skip_dir(name: str) -> bool:
    return name == SKIPPED_DIR_NAME
