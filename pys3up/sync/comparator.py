"""Snapshot comparison logic for incremental uploads."""

from .scanner import FileHashes


class FileComparator:
    """Compares the current snapshot against the cached one."""

    def diff(self, current: FileHashes, cached: FileHashes) -> list[str]:
        """Determine which files need uploading.

        Only additions and modifications are reported; files that exist in
        the cache but no longer exist locally are ignored, as uploads never
        delete anything from the bucket.

        Args:
            current: Snapshot of the source directory
            cached: Snapshot loaded from the cache file

        Returns:
            Sorted list of relative paths whose hash is new or changed
        """
        return sorted(
            path for path, h in current.items() if cached.get(path) != h
        )
