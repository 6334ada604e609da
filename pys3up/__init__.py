"""pys3up - incremental uploads of a directory tree to Amazon S3."""

from .config import UploadConfig, load_config, save_config
from .exceptions import (
    ExitCode,
    S3UpAuthenticationError,
    S3UpCacheError,
    S3UpConfigError,
    S3UpError,
    S3UpReadError,
)
from .sync import UploadEngine
from .utils import better_mime, is_recoverable

__all__ = [
    "UploadConfig",
    "UploadEngine",
    "ExitCode",
    "S3UpError",
    "S3UpAuthenticationError",
    "S3UpCacheError",
    "S3UpConfigError",
    "S3UpReadError",
    "better_mime",
    "is_recoverable",
    "load_config",
    "save_config",
]
