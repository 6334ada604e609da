"""Concurrent upload scheduling with retries and exponential backoff.

Each file moves through the states::

    Pending -> InFlight -> Completed
                        -> Rescheduled -> InFlight ...
                        -> Rejected

Files are processed by a bounded pool of worker threads. A file that fails
with a recoverable error is handed to an independent timer thread which
re-submits it to the pool once its backoff delay elapsed, so waiting never
occupies a worker.
"""

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..output import OutputFormatter
from ..utils import DEFAULT_BACKOFF_BASE, is_recoverable
from .source_file import SourceFile

logger = logging.getLogger(__name__)

Transport = Callable[[SourceFile], None]
"""Uploads one file; raises on failure"""


@dataclass
class UploadResult:
    """Outcome tally of an upload run.

    Workers append concurrently, so every mutation goes through the lock.
    """

    completed: list[str] = field(default_factory=list)
    """Relative paths uploaded successfully"""

    rejected: list[str] = field(default_factory=list)
    """Relative paths given up on"""

    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def add_completed(self, name: str) -> None:
        with self._lock:
            self.completed.append(name)

    def add_rejected(self, name: str) -> None:
        with self._lock:
            self.rejected.append(name)


class PendingCounter:
    """Counts files that have not reached a terminal state yet."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count < 0:
                raise RuntimeError("PendingCounter.done() called too many times")
            if self._count == 0:
                self._cond.notify_all()

    def wait(self) -> None:
        """Block until every counted file is done."""
        with self._cond:
            self._cond.wait_for(lambda: self._count == 0)

    @property
    def count(self) -> int:
        with self._cond:
            return self._count


class UploadScheduler:
    """Drives files through a transport using a bounded worker pool."""

    def __init__(
        self,
        transport: Optional[Transport],
        workers: int,
        dry_run: bool = False,
        output: Optional[OutputFormatter] = None,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ):
        """Initialize upload scheduler.

        Args:
            transport: Function uploading a single file, raising on failure;
                may be None for dry runs
            workers: Number of concurrent workers
            dry_run: Only report what would be uploaded
            output: Output formatter for per-file events
            backoff_base: Base delay in seconds, doubled with every attempt
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if transport is None and not dry_run:
            raise ValueError("a transport is required unless dry_run is set")
        self.transport = transport
        self.workers = workers
        self.dry_run = dry_run
        self.output = output or OutputFormatter()
        self.backoff_base = backoff_base

        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending = PendingCounter()
        self._result = UploadResult()

    def backoff_delay(self, attempts: int) -> float:
        """Delay in seconds before the next attempt of a file."""
        return self.backoff_base * (2**attempts)

    def run(self, files: Iterable[SourceFile]) -> UploadResult:
        """Upload files, blocking until every one of them is terminal.

        Args:
            files: Files to upload, enqueued in the given order

        Returns:
            Completed and rejected relative paths
        """
        files = list(files)
        self._pending = PendingCounter()
        self._result = UploadResult()

        if not files:
            return self._result

        logger.debug(f"Uploading {len(files)} files with {self.workers} workers")
        start = time.time()

        with ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="pys3up-upload"
        ) as executor:
            self._executor = executor
            self._pending.add(len(files))
            for src in files:
                executor.submit(self._process, src)

            # Rescheduled files keep the count up, so the pool stays open
            # until the last retry timer has fired and been processed.
            self._pending.wait()
        self._executor = None

        elapsed = time.time() - start
        logger.debug(
            f"Upload finished in {elapsed:.2f}s: "
            f"{len(self._result.completed)} completed, "
            f"{len(self._result.rejected)} rejected"
        )
        return self._result

    def _process(self, src: SourceFile) -> None:
        """Run one attempt for a file and settle its state.

        The outcome is recorded before anything is printed, so every file
        ends up completed, rejected or rescheduled.
        """
        rescheduled = False
        settled = False
        try:
            if self.dry_run:
                settled = True
                self._notify(f"Pretending to upload {src.name}", ".")
                return

            try:
                self.transport(src)
            except Exception as e:
                rescheduled = self._handle_failure(src, e)
                settled = True
                return

            self._result.add_completed(src.name)
            settled = True
            self._notify(f"Uploaded {src.name}", ".")
        except Exception:
            logger.exception(f"Unexpected error while processing {src.name}")
            if not settled:
                self._result.add_rejected(src.name)
        finally:
            if not rescheduled:
                self._pending.done()

    def _handle_failure(self, src: SourceFile, err: Exception) -> bool:
        """Reject a failed file or schedule its retry.

        Returns:
            True if the file was rescheduled
        """
        src.record_attempt()
        if not is_recoverable(err) or not src.retriable():
            self._result.add_rejected(src.name)
            logger.debug(f"Rejected {src.name} after {src.attempts} attempts: {err}")
            self._notify(f"Failed to upload {src.name}: {err}", "F")
            return False

        delay = self.backoff_delay(src.attempts)
        logger.debug(
            f"Attempt {src.attempts} of {src.name} failed, "
            f"retrying in {delay:.2f}s: {err}"
        )
        timer = threading.Timer(delay, self._resubmit, args=(src,))
        timer.daemon = True
        timer.start()

        self._notify(f"Retrying {src.name}", "r")
        return True

    def _notify(self, verbose: str, normal: str) -> None:
        """Report a file event; a failing console never changes its outcome."""
        try:
            self.output.say(verbose, normal)
        except Exception:
            logger.exception(f"Could not report file event: {verbose}")

    def _resubmit(self, src: SourceFile) -> None:
        """Put a rescheduled file back into the worker pool."""
        executor = self._executor
        if executor is None:
            # The run cannot finish while a retry is outstanding
            logger.error(f"No worker pool to resubmit {src.name} to")
            self._result.add_rejected(src.name)
            self._pending.done()
            return
        executor.submit(self._process, src)
