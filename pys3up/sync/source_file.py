"""The unit of work of an upload run."""

import threading
from gzip import compress as gzip_compress
from pathlib import Path
from typing import Optional

from ..exceptions import S3UpReadError
from ..utils import DEFAULT_MAX_TRIES
from .headers import HeaderResolver


class SourceFile:
    """A local file scheduled for upload.

    The attempt counter is only ever changed under the instance lock, so
    concurrent retries of the same file never race on it.
    """

    def __init__(
        self,
        name: str,
        path: Path,
        headers: Optional[dict[str, str]] = None,
        gzip: bool = False,
        max_tries: int = DEFAULT_MAX_TRIES,
    ):
        """Initialize source file.

        Args:
            name: Relative path, also used as the object key
            path: Absolute path on disk
            headers: Resolved headers for the upload
            gzip: Whether the body is gzip compressed before upload
            max_tries: Number of attempts after which the file is given up
        """
        self.name = name
        self.path = path
        self.headers = headers or {}
        self.gzip = gzip
        self.max_tries = max_tries
        self.attempts = 0
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        name: str,
        source: Path,
        resolver: HeaderResolver,
        max_tries: int = DEFAULT_MAX_TRIES,
    ) -> "SourceFile":
        """Create a SourceFile with headers resolved for its path.

        Args:
            name: Relative path of the file
            source: Source directory
            resolver: Header resolver to consult
            max_tries: Number of attempts after which the file is given up

        Returns:
            SourceFile instance
        """
        headers = resolver.resolve(name)
        return cls(
            name=name,
            path=source / name,
            headers=headers,
            gzip=resolver.must_gzip(headers),
            max_tries=max_tries,
        )

    def get_header(self, name: str) -> Optional[str]:
        """Return a resolved header value, or None if not set."""
        return self.headers.get(name)

    def body(self) -> bytes:
        """Read the file content, gzip compressed if required.

        A file that cannot be read is not worth retrying: its attempts are
        exhausted before the error is raised.

        Returns:
            Bytes to upload

        Raises:
            S3UpReadError: If the file cannot be read
        """
        try:
            data = self.path.read_bytes()
        except OSError as e:
            with self._lock:
                self.attempts = self.max_tries
            raise S3UpReadError(self.name, e.strerror or str(e)) from e

        if self.gzip:
            # mtime=0 keeps the compressed output stable across runs
            return gzip_compress(data, mtime=0)
        return data

    def record_attempt(self) -> None:
        """Count one failed attempt."""
        with self._lock:
            self.attempts += 1

    def retriable(self) -> bool:
        """Check if the file has attempts left."""
        with self._lock:
            return self.attempts < self.max_tries

    def __repr__(self) -> str:
        return f"SourceFile({self.name!r}, attempts={self.attempts})"
