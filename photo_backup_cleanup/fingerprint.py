"""
Content fingerprint of an image: MD5 over the decoded pixels rather than the
file bytes, so re-encodes of the same picture collide.
"""

import hashlib
import logging
import warnings
from pathlib import Path

from PIL import Image

from . import media  # noqa: F401  (registers the HEIC opener when available)


class CorruptImageError(Exception):
    """Raised when an image file cannot be decoded."""


def fingerprint_image(file_path: Path) -> str:
    """
    Compute the pixel digest of an image file.

    Only the first frame of multi-frame images is hashed. Mode and
    dimensions are folded into the digest so that identical byte runs laid
    out differently do not collide.

    Raises:
        CorruptImageError: the file could not be decoded.
    """
    logger = logging.getLogger("photo_backup_cleanup")
    hasher = hashlib.md5()

    try:
        with warnings.catch_warnings():
            warnings.filterwarnings('ignore', category=Image.DecompressionBombWarning)

            with Image.open(file_path) as img:
                img.load()
                hasher.update(f"{img.mode}:{img.width}x{img.height}:".encode("ascii"))
                hasher.update(img.tobytes())

    except Image.DecompressionBombError as e:
        logger.debug(f"Cannot decode huge image {file_path}: {e}")
        raise CorruptImageError(str(e)) from e
    except (OSError, SyntaxError, ValueError) as e:
        # UnidentifiedImageError and truncated data both surface as OSError
        logger.debug(f"Cannot decode {file_path}: {e}")
        raise CorruptImageError(str(e)) from e

    return hasher.hexdigest()
