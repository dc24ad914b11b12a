import hashlib
import threading
from pathlib import Path

import pytest
from PIL import Image


def make_image(path: Path, compress_level: int = 6, size=(64, 64), shade: int = 0) -> Path:
    """Write a gradient PNG; the same shade always decodes to the same pixels."""
    path.parent.mkdir(parents=True, exist_ok=True)
    linear = Image.linear_gradient("L")
    radial = Image.radial_gradient("L")
    img = Image.merge("RGB", (linear, radial, linear.rotate(90)))
    img = img.resize(size).point(lambda v: (v + shade) % 256)
    img.save(path, format="PNG", compress_level=compress_level)
    return path


class CountingFingerprinter:
    """Byte-level stand-in for the pixel fingerprinter that records its calls."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on
        self._lock = threading.Lock()

    def __call__(self, path: Path) -> str:
        with self._lock:
            self.calls.append(Path(path))
        if self.fail_on is not None and Path(path).name == self.fail_on:
            raise RuntimeError(f"boom on {path.name}")
        return hashlib.md5(Path(path).read_bytes()).hexdigest()


@pytest.fixture
def fingerprinter():
    return CountingFingerprinter()


@pytest.fixture(autouse=True)
def _reset_logger():
    import logging

    yield
    logger = logging.getLogger("photo_backup_cleanup")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
