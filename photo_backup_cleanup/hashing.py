"""
Hashing engine: a fixed pool of workers drains the walked records, applying
cached fingerprints where the modification time still matches and
fingerprinting images otherwise.
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from tqdm import tqdm

from .cache import FingerprintCache
from .fingerprint import CorruptImageError, fingerprint_image
from .media import is_image_file
from .models import FileRecord

DEFAULT_WORKERS = 4
PROGRESS_INTERVAL = 0.25  # seconds between progress polls


@dataclass
class HashOutcome:
    """Result of one engine run. `error` is set when a worker hit an unexpected fault."""
    records: list
    cache: FingerprintCache
    hashed: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class HashRun:
    """Shared state of one run, handed to every worker."""
    cache: FingerprintCache
    queue: deque
    results: list = field(default_factory=list)
    processed: int = 0
    hashed: int = 0
    stop: threading.Event = field(default_factory=threading.Event)
    queue_lock: threading.Lock = field(default_factory=threading.Lock)
    results_lock: threading.Lock = field(default_factory=threading.Lock)

    def next_record(self) -> Optional[FileRecord]:
        with self.queue_lock:
            if self.stop.is_set() or not self.queue:
                return None
            return self.queue.popleft()

    def add_result(self, record: FileRecord, hashed: bool) -> None:
        with self.results_lock:
            self.results.append(record)
            self.processed += 1
            if hashed:
                self.hashed += 1


class HashingEngine:
    """
    Worker pool computing content digests for a list of records.

    Records are mutated in place. The order of `HashOutcome.records` follows
    completion order and is only meant for display.
    """

    def __init__(
        self,
        workers: int = DEFAULT_WORKERS,
        fingerprinter: Callable = fingerprint_image,
        progress: bool = True,
        poll_interval: float = PROGRESS_INTERVAL
    ):
        self.workers = workers
        self.fingerprinter = fingerprinter
        self.progress = progress
        self.poll_interval = poll_interval

    def _compute(self, record: FileRecord) -> Optional[str]:
        """Digest for a cache miss: None for non-images, "" for undecodable images."""
        if not is_image_file(record.path):
            return None
        try:
            return self.fingerprinter(record.path)
        except CorruptImageError:
            return ""

    def hash_record(self, record: FileRecord, run: HashRun) -> bool:
        """Apply the cached or freshly computed digest. Returns True if the file was fingerprinted."""
        entry, hit = run.cache.lookup_or_store(record, self._compute)
        if entry is None:
            return False
        if entry.digest:
            record.apply_digest(entry.digest)
        else:
            record.corrupt = True
        return not hit

    def _worker(self, run: HashRun) -> None:
        logger = logging.getLogger("photo_backup_cleanup")
        while True:
            record = run.next_record()
            if record is None:
                return
            try:
                hashed = self.hash_record(record, run)
            except Exception as e:
                logger.debug(f"Worker fault on {record.path}: {e!r}")
                run.stop.set()
                raise
            run.add_result(record, hashed)

    def run(self, records: list[FileRecord], cache: FingerprintCache) -> HashOutcome:
        """Hash every record, blocking until all workers have exited."""
        logger = logging.getLogger("photo_backup_cleanup")
        run = HashRun(cache=cache, queue=deque(records))
        started = time.monotonic()

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(self._worker, run) for _ in range(self.workers)]

            with tqdm(total=len(records), desc="Hashing", unit="files", disable=not self.progress) as pbar:
                pending = futures
                while pending:
                    _done, pending = wait(pending, timeout=self.poll_interval)
                    pbar.update(run.processed - pbar.n)

        error = None
        for future in futures:
            if future.exception() is not None:
                error = future.exception()
                break

        elapsed = time.monotonic() - started
        logger.info(f"{run.hashed} files hashed in {elapsed:.1f}s")

        return HashOutcome(
            records=run.results,
            cache=cache,
            hashed=run.hashed,
            error=error,
        )
