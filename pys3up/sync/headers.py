"""Per-file HTTP header resolution."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..exceptions import S3UpConfigError
from ..utils import better_mime

# Headers
CONTENT_ENCODING = "Content-Encoding"
CACHE_CONTROL = "Cache-Control"
CONTENT_TYPE = "Content-Type"
SERVER_SIDE_ENCRYPTION = "x-amz-server-side-encryption"

HTML_MIME_TYPE = "text/html"

_KNOWN_HEADERS = {
    h.lower(): h
    for h in (CONTENT_ENCODING, CACHE_CONTROL, CONTENT_TYPE, SERVER_SIDE_ENCRYPTION)
}


def _canonical(name: str) -> str:
    return _KNOWN_HEADERS.get(name.lower(), name)


@dataclass
class HeaderRule:
    """Headers to apply to files whose path matches a pattern."""

    pattern: re.Pattern
    """Regular expression searched in the relative path"""

    headers: dict[str, str] = field(default_factory=dict)
    """Headers to set for matching files"""

    def __post_init__(self) -> None:
        if isinstance(self.pattern, str):
            self.pattern = re.compile(self.pattern)

    def matches(self, path: str) -> bool:
        """Check if the rule applies to a relative path."""
        return self.pattern.search(path) is not None

    def to_dict(self) -> dict:
        """Convert rule to dictionary for JSON serialization."""
        return {"pattern": self.pattern.pattern, "headers": dict(self.headers)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HeaderRule":
        """Create HeaderRule from dictionary.

        Raises:
            S3UpConfigError: If the rule, its pattern or a header value is
                invalid
        """
        if not isinstance(data, Mapping):
            raise S3UpConfigError(f"Header rule must be an object: {data!r}")
        pattern = data.get("pattern")
        if not pattern or not isinstance(pattern, str):
            raise S3UpConfigError("Header rule is missing a 'pattern'")
        headers = data.get("headers", {})
        if not isinstance(headers, dict):
            raise S3UpConfigError(f"Headers for '{pattern}' must be an object")
        for name, value in headers.items():
            if not isinstance(value, str):
                raise S3UpConfigError(
                    f"Header '{name}' for '{pattern}' must be a string: {value!r}"
                )
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise S3UpConfigError(f"Invalid header pattern '{pattern}': {e}") from e
        return cls(
            pattern=compiled,
            headers={_canonical(str(k)): v for k, v in headers.items()},
        )


def _gzip(max_age: int) -> dict[str, str]:
    return {CONTENT_ENCODING: "gzip", CACHE_CONTROL: f"max-age={max_age}"}


# Order matters: first hit, first served.
DEFAULT_HEADER_RULES: tuple[HeaderRule, ...] = (
    HeaderRule(re.compile(r"(^|/)index\.html$"), _gzip(1800)),
    HeaderRule(re.compile(r"\.html$"), _gzip(3600)),
    HeaderRule(re.compile(r"\.xml$"), _gzip(1800)),
    HeaderRule(re.compile(r"\.ico$"), _gzip(31536000)),
    HeaderRule(re.compile(r"\.(js|css)$"), _gzip(31536000)),
    HeaderRule(
        re.compile(r"(?i)\.(jpe?g|png|gif|svg|webp)$"),
        {CACHE_CONTROL: "max-age=31536000"},
    ),
)


def load_header_rules(data: Iterable[Mapping[str, Any]]) -> list[HeaderRule]:
    """Build an ordered rule list from config file entries.

    Args:
        data: Sequence of {"pattern": ..., "headers": {...}} objects

    Returns:
        Rules in the same order as given

    Raises:
        S3UpConfigError: If an entry is invalid
    """
    return [HeaderRule.from_dict(item) for item in data]


class HeaderResolver:
    """Resolves the headers a file is uploaded with.

    Every file gets a Content-Type. The first rule whose pattern matches
    the file's path contributes its headers; the remaining rules are not
    consulted. Server-side encryption is added to every file when enabled.
    """

    def __init__(
        self,
        rules: Optional[Iterable[Union[HeaderRule, Mapping[str, Any]]]] = None,
        encrypt: bool = False,
        gzip_html: bool = True,
    ):
        """Initialize header resolver.

        Args:
            rules: Ordered header rules (defaults to DEFAULT_HEADER_RULES)
            encrypt: Request AES256 server-side encryption for every file
            gzip_html: Allow gzip encoding of HTML files
        """
        if rules is None:
            rules = DEFAULT_HEADER_RULES
        self.rules: list[HeaderRule] = [
            r if isinstance(r, HeaderRule) else HeaderRule.from_dict(r) for r in rules
        ]
        self.encrypt = encrypt
        self.gzip_html = gzip_html

    def resolve(self, path: str) -> dict[str, str]:
        """Resolve the headers for a relative path.

        Args:
            path: Relative path of the file (forward slashes)

        Returns:
            Header name to value mapping
        """
        headers = {CONTENT_TYPE: better_mime(path)}

        for rule in self.rules:
            if rule.matches(path):
                headers.update(rule.headers)
                break

        if (
            not self.gzip_html
            and headers[CONTENT_TYPE] == HTML_MIME_TYPE
            and headers.get(CONTENT_ENCODING) == "gzip"
        ):
            del headers[CONTENT_ENCODING]

        if self.encrypt:
            headers[SERVER_SIDE_ENCRYPTION] = "AES256"

        return headers

    @staticmethod
    def must_gzip(headers: Mapping[str, str]) -> bool:
        """Check if the body has to be gzip compressed before upload."""
        return headers.get(CONTENT_ENCODING) == "gzip"
