"""Exceptions and exit codes for pys3up."""

from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    """Upload finished, or there was nothing to upload"""

    SETUP_FAILED = 1
    """Scanning the source, loading the cache or the config file failed"""

    S3_AUTH_ERROR = 2
    """No usable AWS credentials"""

    CMD_LINE_OPTION_ERROR = 3
    """Missing or invalid command line options"""

    CACHING_FAILURE = 4
    """Writing the cache file failed"""


class S3UpError(Exception):
    """Base exception for all pys3up errors."""

    exit_code: ExitCode = ExitCode.SETUP_FAILED


class S3UpConfigError(S3UpError):
    """Raised when options or the config file are invalid."""

    exit_code = ExitCode.CMD_LINE_OPTION_ERROR


class S3UpAuthenticationError(S3UpError):
    """Raised when no AWS credentials can be obtained."""

    exit_code = ExitCode.S3_AUTH_ERROR


class S3UpReadError(S3UpError):
    """Raised when a local file cannot be read."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        message = f"Cannot read {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class S3UpCacheError(S3UpError):
    """Raised when the cache file cannot be read or written."""

    exit_code = ExitCode.CACHING_FAILURE
