"""Directory scanning and content hashing for incremental uploads."""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import S3UpError

logger = logging.getLogger(__name__)

# Read files in 1 MB chunks while hashing
HASH_CHUNK_SIZE = 1024 * 1024

FileHashes = dict[str, str]
"""Snapshot of a directory tree: relative path -> MD5 hex digest"""


def hash_file(path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Compute the MD5 hex digest of a file's content.

    Args:
        path: File to hash
        chunk_size: Number of bytes read at a time

    Returns:
        32 character hex digest
    """
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            md5.update(chunk)
    return md5.hexdigest()


@dataclass
class LocalFile:
    """Represents a local file with its content hash."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    hash: str
    """MD5 hex digest of the file content"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance

        Raises:
            OSError: If the file cannot be read
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()

        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            hash=hash_file(file_path),
        )


class DirectoryScanner:
    """Scans a source directory and hashes every regular file in it.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> snapshot = scanner.build(Path("output"))
        >>> len(snapshot["index.html"])
        32
    """

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Symlinked directories are not followed. Files and directories that
        cannot be read are skipped with a warning.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)

        Returns:
            List of LocalFile objects
        """
        if base_path is None:
            base_path = directory

        files: list[LocalFile] = []

        try:
            items = sorted(directory.iterdir())
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")
            return files

        for item in items:
            if item.is_dir():
                if item.is_symlink():
                    logger.debug(f"Not following symlinked directory {item}")
                    continue
                files.extend(self.scan_local(item, base_path))
            elif item.is_file():
                try:
                    files.append(LocalFile.from_path(item, base_path))
                except OSError as e:
                    logger.warning(f"Skipping unreadable file {item}: {e}")

        return files

    def build(self, root: Path) -> FileHashes:
        """Build the snapshot of a source directory.

        Every file is read in full on every call; there is no incremental
        hashing.

        Args:
            root: Source directory

        Returns:
            Mapping of relative path to content hash

        Raises:
            S3UpError: If root does not exist or is not a directory
        """
        if not root.exists():
            raise S3UpError(f"Source directory does not exist: {root}")
        if not root.is_dir():
            raise S3UpError(f"Source path is not a directory: {root}")

        snapshot = {f.relative_path: f.hash for f in self.scan_local(root)}
        logger.debug(f"Hashed {len(snapshot)} files under {root}")
        return snapshot
