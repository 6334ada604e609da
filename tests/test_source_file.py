"""Tests for SourceFile."""

import gzip
import threading

import pytest

from pys3up.exceptions import S3UpReadError
from pys3up.sync.headers import CACHE_CONTROL, CONTENT_ENCODING, HeaderResolver
from pys3up.sync.source_file import SourceFile


class TestCreate:
    """Tests for SourceFile.create."""

    def test_create_resolves_headers(self, tmp_path):
        """Test that headers and gzip flag come from the resolver."""
        src = SourceFile.create("index.html", tmp_path, HeaderResolver())

        assert src.name == "index.html"
        assert src.path == tmp_path / "index.html"
        assert src.gzip is True
        assert src.get_header(CACHE_CONTROL) == "max-age=1800"
        assert src.attempts == 0

    def test_create_without_gzip(self, tmp_path):
        """Test a file that is uploaded as is."""
        src = SourceFile.create("logo.png", tmp_path, HeaderResolver())

        assert src.gzip is False
        assert src.get_header(CONTENT_ENCODING) is None

    def test_create_passes_max_tries(self, tmp_path):
        """Test the retry ceiling override."""
        src = SourceFile.create("a.txt", tmp_path, HeaderResolver(), max_tries=3)

        assert src.max_tries == 3


class TestBody:
    """Tests for SourceFile.body."""

    def test_plain_body(self, tmp_path):
        """Test that the content is returned unchanged."""
        (tmp_path / "a.txt").write_bytes(b"plain content")
        src = SourceFile("a.txt", tmp_path / "a.txt")

        assert src.body() == b"plain content"

    def test_gzip_body(self, tmp_path):
        """Test that the compressed body decompresses to the content."""
        content = b"<html><body>" + b"Hello " * 100 + b"</body></html>"
        (tmp_path / "index.html").write_bytes(content)
        src = SourceFile("index.html", tmp_path / "index.html", gzip=True)

        body = src.body()

        assert body[:2] == b"\x1f\x8b"
        assert gzip.decompress(body) == content

    def test_gzip_body_is_stable(self, tmp_path):
        """Test that compressing twice gives the same bytes."""
        (tmp_path / "a.css").write_bytes(b"body { color: red }")
        src = SourceFile("a.css", tmp_path / "a.css", gzip=True)

        assert src.body() == src.body()

    def test_missing_file(self, tmp_path):
        """Test that an unreadable file exhausts its attempts."""
        src = SourceFile("gone.txt", tmp_path / "gone.txt", max_tries=10)

        with pytest.raises(S3UpReadError, match="Cannot read gone.txt"):
            src.body()

        assert src.attempts == 10
        assert not src.retriable()


class TestAttempts:
    """Tests for attempt counting."""

    def test_retriable_boundaries(self, tmp_path):
        """Test that a file is retriable until max_tries attempts."""
        src = SourceFile("a.txt", tmp_path / "a.txt", max_tries=3)

        assert src.retriable()
        src.record_attempt()
        src.record_attempt()
        assert src.retriable()
        src.record_attempt()
        assert not src.retriable()

    def test_concurrent_attempts(self, tmp_path):
        """Test that concurrent increments are not lost."""
        src = SourceFile("a.txt", tmp_path / "a.txt", max_tries=10)

        def bump():
            for _ in range(1000):
                src.record_attempt()

        threads = [threading.Thread(target=bump) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert src.attempts == 2000

    def test_repr(self, tmp_path):
        """Test the debug representation."""
        src = SourceFile("a.txt", tmp_path / "a.txt")
        src.record_attempt()

        assert repr(src) == "SourceFile('a.txt', attempts=1)"
