"""Core engine running one incremental upload."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..exceptions import S3UpError
from ..output import OutputFormatter
from ..utils import DEFAULT_BACKOFF_BASE, DEFAULT_MAX_TRIES
from .comparator import FileComparator
from .headers import HeaderResolver
from .scanner import DirectoryScanner, FileHashes
from .scheduler import Transport, UploadResult, UploadScheduler
from .source_file import SourceFile
from .state import CacheWriter, load_snapshot

if TYPE_CHECKING:
    from ..config import UploadConfig

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """What an upload run did."""

    diff: list[str] = field(default_factory=list)
    """Files that were new or changed"""

    result: Optional[UploadResult] = None
    """Upload outcome; None if nothing was uploaded"""

    cache_updated: bool = False
    """Whether the cache file was rewritten"""

    @property
    def completed(self) -> list[str]:
        return self.result.completed if self.result else []

    @property
    def rejected(self) -> list[str]:
        return self.result.rejected if self.result else []


class UploadEngine:
    """Orchestrates an incremental upload.

    Hashes the source directory, diffs it against the cache, uploads the
    changed files and persists the new cache.
    """

    def __init__(
        self,
        config: "UploadConfig",
        transport: Optional[Transport] = None,
        output: Optional[OutputFormatter] = None,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        max_tries: int = DEFAULT_MAX_TRIES,
    ):
        """Initialize upload engine.

        Args:
            config: Merged and validated options
            transport: Function uploading a single file; may be omitted for
                dry runs and runs with uploads disabled
            output: Output formatter for displaying progress/status
            backoff_base: Base delay of the retry backoff, in seconds
            max_tries: Attempts per file before it is rejected
        """
        self.config = config
        self.transport = transport
        self.output = output or OutputFormatter(
            quiet=config.quiet, verbose=config.verbose
        )
        self.backoff_base = backoff_base
        self.max_tries = max_tries

        self.source = Path(config.source or ".")
        self.scanner = DirectoryScanner()
        self.comparator = FileComparator()
        self.resolver = HeaderResolver(
            config.header_rules(),
            encrypt=config.encrypt,
            gzip_html=config.gzip_html,
        )
        self.cache_writer = CacheWriter(Path(config.cache_file or ""))

    def files_lists(self) -> tuple[FileHashes, list[str]]:
        """Build the current snapshot and its difference from the cache.

        Returns:
            Tuple of (current snapshot, sorted list of changed paths)

        Raises:
            S3UpError: If scanning or loading the cache fails
        """
        start = time.time()
        current = self.scanner.build(self.source)
        cached = load_snapshot(self.cache_writer.cache_file)
        diff = self.comparator.diff(current, cached)
        logger.debug(
            f"Scanned {len(current)} files in {time.time() - start:.2f}s, "
            f"{len(diff)} changed"
        )
        return current, diff

    def source_files(self, diff: list[str]) -> list[SourceFile]:
        """Create the units of work for the changed paths."""
        return [
            SourceFile.create(name, self.source, self.resolver, self.max_tries)
            for name in diff
        ]

    def upload(self, diff: list[str]) -> UploadResult:
        """Upload the changed files.

        Raises:
            S3UpError: If no transport is configured for a real upload
        """
        if self.transport is None and not self.config.dry_run:
            raise S3UpError("No upload transport configured")

        scheduler = UploadScheduler(
            transport=self.transport,
            workers=self.config.workers_count or 1,
            dry_run=self.config.dry_run,
            output=self.output,
            backoff_base=self.backoff_base,
        )
        result = scheduler.run(self.source_files(diff))
        self.output.say("Done uploading files.")

        if result.rejected:
            self.output.warning(
                f"{len(result.rejected)} file(s) failed to upload: "
                + ", ".join(sorted(result.rejected))
            )
        return result

    def update_cache(
        self,
        current: FileHashes,
        diff: list[str],
        completed: Optional[list[str]],
    ) -> bool:
        """Persist the snapshot for the next run, if enabled.

        Returns:
            True if the cache file was written

        Raises:
            S3UpCacheError: If the cache file cannot be written
        """
        if not self.config.do_cache:
            self.output.say("Skipping cache.")
            return False

        if self.config.dry_run:
            self.output.say("Pretending to update cache.")
            return False

        snapshot = self.cache_writer.finalize(current, diff, completed)
        self.cache_writer.write(snapshot)
        self.output.say("Done updating cache.")
        return True

    def run(self) -> RunSummary:
        """Run the incremental upload.

        Returns:
            RunSummary describing the run

        Raises:
            S3UpError: On setup failures
            S3UpCacheError: If the cache file cannot be written
        """
        current, diff = self.files_lists()
        summary = RunSummary(diff=diff)

        if not diff:
            self.output.say("Nothing to upload.", "Nothing to upload.\n")
            return summary

        bucket = self.config.bucket_name
        self.output.say(
            f"There are {len(diff)} files to be uploaded to '{bucket}'",
            f"Uploading {len(diff)} files to '{bucket}' ",
        )

        completed: Optional[list[str]] = None
        if self.config.do_upload:
            summary.result = self.upload(diff)
            completed = summary.result.completed
        else:
            self.output.say("Skipping upload.")

        summary.cache_updated = self.update_cache(current, diff, completed)
        self.output.say("All done!", " done!\n")
        return summary
