"""Cache file management for tracking upload history.

The cache file remembers the content hash of every file that was known to
be present in the bucket after the last run, so that subsequent runs only
upload what changed since.
"""

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from ..exceptions import S3UpCacheError, S3UpError
from .scanner import FileHashes

logger = logging.getLogger(__name__)


def load_snapshot(path: Path) -> FileHashes:
    """Load a previously persisted snapshot.

    Args:
        path: Cache file path

    Returns:
        Mapping of relative path to content hash; empty if the file does not
        exist or is empty

    Raises:
        S3UpError: If the cache file exists but cannot be parsed
    """
    if not path.exists():
        logger.debug(f"No cache found at {path}")
        return {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise S3UpError(f"Loading cache {path} failed: {e}") from e

    # A truncated cache means "upload everything"
    if not content.strip():
        return {}

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise S3UpError(f"Malformed cache file {path}: {e}") from e

    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise S3UpError(f"Malformed cache file {path}: expected a path to hash map")

    logger.debug(f"Loaded cache with {len(data)} entries from {path}")
    return data


def dump_snapshot(snapshot: FileHashes, path: Path) -> None:
    """Persist a snapshot, atomically replacing the cache file.

    The snapshot is written to a temporary file next to the target first,
    then moved over it, so a failed write never leaves a partial cache.

    Args:
        snapshot: Mapping of relative path to content hash
        path: Cache file path

    Raises:
        S3UpCacheError: If the file cannot be written
    """
    tmp_name: Optional[str] = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise S3UpCacheError(f"Caching failed: {e}") from e

    logger.debug(f"Saved cache with {len(snapshot)} entries to {path}")


class CacheWriter:
    """Derives and persists the snapshot for the next run."""

    def __init__(self, cache_file: Path):
        """Initialize cache writer.

        Args:
            cache_file: Cache file path
        """
        self.cache_file = cache_file

    def finalize(
        self,
        current: FileHashes,
        diff: Iterable[str],
        completed: Optional[Iterable[str]] = None,
    ) -> FileHashes:
        """Restrict the current snapshot to files known to be in the bucket.

        Files that were not part of the diff keep their (still valid) hash.
        Files of the diff are kept only if they were uploaded; rejected files
        are left out so the next run picks them up again.

        Args:
            current: Snapshot built at the start of the run
            diff: Paths that were scheduled for upload
            completed: Paths that were uploaded; None keeps every file

        Returns:
            The snapshot to persist
        """
        if completed is None:
            return dict(current)

        excluded = set(diff) - set(completed)
        return {path: h for path, h in current.items() if path not in excluded}

    def write(self, snapshot: FileHashes) -> None:
        """Persist the snapshot to the cache file.

        Raises:
            S3UpCacheError: If the file cannot be written
        """
        dump_snapshot(snapshot, self.cache_file)
