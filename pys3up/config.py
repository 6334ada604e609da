"""Configuration for pys3up.

Options come from three layers, later ones winning: built-in defaults, the
JSON config file, and the command line. Only the persistent options
(bucket, source, cache file, region, profile, workers, encryption, timeout
and header rules) are stored in the config file; run toggles such as
dry-run or verbosity only ever come from the command line.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .exceptions import S3UpConfigError, S3UpError
from .sync.headers import DEFAULT_HEADER_RULES, HeaderRule, load_header_rules
from .utils import (
    DEFAULT_CACHE_FILE,
    DEFAULT_REGION,
    DEFAULT_SOURCE,
    DEFAULT_TIMEOUT,
    default_workers_count,
)

logger = logging.getLogger(__name__)

# Keys written to / read from the config file
PERSISTENT_FIELDS = (
    "workers_count",
    "bucket_name",
    "source",
    "cache_file",
    "region",
    "profile",
    "encrypt",
    "timeout",
    "headers",
)


@dataclass
class UploadConfig:
    """Options of an upload run.

    Unset persistent options are None so that layers can be merged; call
    with_defaults() to fill them in.
    """

    workers_count: Optional[int] = None
    """Number of concurrent upload workers"""

    bucket_name: Optional[str] = None
    """Target S3 bucket"""

    source: Optional[str] = None
    """Source directory whose files are uploaded"""

    cache_file: Optional[str] = None
    """Path of the cache file holding the hashes of the last upload"""

    region: Optional[str] = None
    """AWS region of the bucket"""

    profile: Optional[str] = None
    """Named AWS profile to take credentials from"""

    encrypt: bool = False
    """Request server-side encryption for every file"""

    timeout: Optional[float] = None
    """Connect/read timeout of a single S3 call, in seconds"""

    headers: Optional[list[dict[str, Any]]] = None
    """Ordered header rules ({"pattern": ..., "headers": {...}})"""

    dry_run: bool = False
    verbose: bool = False
    quiet: bool = False
    do_upload: bool = True
    do_cache: bool = True
    gzip_html: bool = True

    extra: dict[str, Any] = field(default_factory=dict, repr=False)
    """Unknown config file keys, preserved on save"""

    def to_dict(self) -> dict[str, Any]:
        """Convert the persistent options to a dictionary, omitting unset ones."""
        data: dict[str, Any] = dict(self.extra)
        for name in PERSISTENT_FIELDS:
            value = getattr(self, name)
            if value not in (None, False, "", []):
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UploadConfig":
        """Create UploadConfig from a config file dictionary.

        Raises:
            S3UpConfigError: If a value has the wrong type
        """
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in PERSISTENT_FIELDS:
                kwargs[key] = value
            else:
                extra[key] = value

        config = cls(**kwargs, extra=extra)
        config._check_types()
        return config

    def _check_types(self) -> None:
        checks: dict[str, tuple[type, ...]] = {
            "workers_count": (int,),
            "bucket_name": (str,),
            "source": (str,),
            "cache_file": (str,),
            "region": (str,),
            "profile": (str,),
            "encrypt": (bool,),
            "timeout": (int, float),
            "headers": (list,),
        }
        for name, types in checks.items():
            value = getattr(self, name)
            if value is None:
                continue
            # bool is an int subclass, but never a valid count or timeout
            if not isinstance(value, types) or (
                isinstance(value, bool) and bool not in types
            ):
                raise S3UpConfigError(
                    f"Config option '{name}' has an invalid value: {value!r}"
                )

    def merge(self, other: "UploadConfig") -> None:
        """Override persistent options with the ones set in other.

        Unset values (None, empty strings, False) never override.

        Args:
            other: Configuration layer with higher precedence
        """
        for name in PERSISTENT_FIELDS:
            value = getattr(other, name)
            if value not in (None, "", False):
                setattr(self, name, value)
        self.extra.update(other.extra)

    def with_defaults(self) -> "UploadConfig":
        """Fill unset persistent options with built-in defaults.

        Returns:
            self, for chaining
        """
        defaults = {
            "workers_count": default_workers_count(),
            "source": DEFAULT_SOURCE,
            "cache_file": DEFAULT_CACHE_FILE,
            "region": DEFAULT_REGION,
            "timeout": DEFAULT_TIMEOUT,
        }
        for name, value in defaults.items():
            if getattr(self, name) is None:
                setattr(self, name, value)
        return self

    def header_rules(self) -> list[HeaderRule]:
        """Return the ordered header rules to resolve headers with.

        Raises:
            S3UpConfigError: If a configured rule is invalid
        """
        if self.headers is None:
            return list(DEFAULT_HEADER_RULES)
        return load_header_rules(self.headers)

    def validate(self) -> None:
        """Validate the merged options.

        Raises:
            S3UpConfigError: On the first invalid option found
        """
        if not self.bucket_name:
            raise S3UpConfigError("Bucket Name is not set")
        if not self.source or not Path(self.source).is_dir():
            raise S3UpConfigError(f"Source is not a directory: {self.source}")
        if not self.cache_file:
            raise S3UpConfigError("Cache file is not set")
        cache_dir = Path(self.cache_file).parent
        if not cache_dir.is_dir():
            raise S3UpConfigError(f"Cache file directory does not exist: {cache_dir}")
        if self.workers_count is None or self.workers_count < 1:
            raise S3UpConfigError("Workers count must be at least 1")
        if self.timeout is None or self.timeout <= 0:
            raise S3UpConfigError("Timeout must be positive")
        self.header_rules()


def load_config(path: Path) -> UploadConfig:
    """Load the config file.

    Args:
        path: Config file path

    Returns:
        UploadConfig with the options found; empty if the file does not exist

    Raises:
        S3UpError: If the file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"No config file at {path}")
        return UploadConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise S3UpError(f"Loading config file {path} failed: {e}") from e

    if not isinstance(data, dict):
        raise S3UpError(f"Config file {path} must contain a JSON object")

    logger.debug(f"Loaded config file {path}")
    return UploadConfig.from_dict(data)


def save_config(config: UploadConfig, path: Path) -> None:
    """Write the persistent options to the config file.

    Raises:
        S3UpError: If the file cannot be written
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
            f.write("\n")
    except OSError as e:
        raise S3UpError(f"Saving config file {path} failed: {e}") from e
    logger.debug(f"Saved config file {path}")

