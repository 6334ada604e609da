"""Utility functions for pys3up."""

import mimetypes
import os
import socket
from pathlib import PurePosixPath

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

# =============================================================================
# Constants for upload operations
# =============================================================================

# Max number of attempts for a single file before it is rejected
DEFAULT_MAX_TRIES: int = 10

# Base delay for the exponential backoff between attempts
DEFAULT_BACKOFF_BASE: float = 0.1  # seconds

# Socket connect/read timeout for a single S3 call
DEFAULT_TIMEOUT: float = 60.0  # seconds

DEFAULT_SOURCE: str = "output"
DEFAULT_CACHE_FILE: str = ".pys3up.txt"
DEFAULT_CONFIG_FILE: str = ".pys3up.json"
DEFAULT_REGION: str = "us-east-1"


def default_workers_count() -> int:
    """Return the default number of upload workers (2 per CPU core)."""
    return 2 * (os.cpu_count() or 1)


# =============================================================================
# MIME type utilities
# =============================================================================

# Extensions the standard lookup does not know (or knows inconsistently
# across platforms) that must still be served as opaque binaries.
BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {".ttf", ".otf", ".woff", ".woff2", ".eot"}
)

BINARY_MIME_TYPE: str = "binary/octet-stream"
FALLBACK_MIME_TYPE: str = "application/octet-stream"


def better_mime(fname: str) -> str:
    """Guess the content type of a file from its extension.

    Args:
        fname: File name or relative path

    Returns:
        MIME type string, never empty

    Examples:
        >>> better_mime("index.html")
        'text/html'
        >>> better_mime("logo.JPG")
        'image/jpeg'
        >>> better_mime("fonts/icons.ttf")
        'binary/octet-stream'
    """
    ext = PurePosixPath(fname).suffix.lower()
    if ext in BINARY_EXTENSIONS:
        return BINARY_MIME_TYPE

    mime_type, _ = mimetypes.guess_type(f"file{ext}", strict=False)
    return mime_type or FALLBACK_MIME_TYPE


# =============================================================================
# Error classification
# =============================================================================

# Transport errors whose message ends with one of these are retried.
RECOVERABLE_ERROR_SUFFIXES: tuple[str, ...] = (
    "Idle connections will be closed.",
    "EOF",
    "broken pipe",
    "no such host",
    "transport closed before response was received",
    "TLS handshake timeout",
)

RECOVERABLE_ERROR_TYPES: tuple[type[BaseException], ...] = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
    BrokenPipeError,
    ConnectionResetError,
    socket.gaierror,
    TimeoutError,
)

RECOVERABLE_S3_ERROR_CODES: frozenset[str] = frozenset(
    {"RequestTimeout", "SlowDown", "InternalError", "ServiceUnavailable"}
)


def is_recoverable(err: BaseException) -> bool:
    """Check if an upload error is transient and worth retrying.

    Args:
        err: Exception raised by the transport

    Returns:
        True if the error matches a known transient signature

    Examples:
        >>> is_recoverable(Exception("Oh noes, I broken pipe"))
        True
        >>> is_recoverable(Exception("broken pipes all over"))
        False
    """
    if isinstance(err, RECOVERABLE_ERROR_TYPES):
        return True

    if isinstance(err, ClientError):
        code = err.response.get("Error", {}).get("Code", "")
        if code in RECOVERABLE_S3_ERROR_CODES:
            return True

    return str(err).endswith(RECOVERABLE_ERROR_SUFFIXES)
