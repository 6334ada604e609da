"""Incremental upload engine for pys3up."""

from .comparator import FileComparator
from .engine import RunSummary, UploadEngine
from .headers import (
    CACHE_CONTROL,
    CONTENT_ENCODING,
    CONTENT_TYPE,
    DEFAULT_HEADER_RULES,
    SERVER_SIDE_ENCRYPTION,
    HeaderResolver,
    HeaderRule,
    load_header_rules,
)
from .operations import S3Transport, create_s3_client, validate_region
from .scanner import DirectoryScanner, FileHashes, LocalFile, hash_file
from .scheduler import PendingCounter, Transport, UploadResult, UploadScheduler
from .source_file import SourceFile
from .state import CacheWriter, dump_snapshot, load_snapshot

__all__ = [
    "UploadEngine",
    "RunSummary",
    "FileComparator",
    "DirectoryScanner",
    "FileHashes",
    "LocalFile",
    "hash_file",
    "HeaderResolver",
    "HeaderRule",
    "DEFAULT_HEADER_RULES",
    "load_header_rules",
    "CACHE_CONTROL",
    "CONTENT_ENCODING",
    "CONTENT_TYPE",
    "SERVER_SIDE_ENCRYPTION",
    "SourceFile",
    "UploadScheduler",
    "UploadResult",
    "PendingCounter",
    "Transport",
    "S3Transport",
    "create_s3_client",
    "validate_region",
    "CacheWriter",
    "load_snapshot",
    "dump_snapshot",
]
