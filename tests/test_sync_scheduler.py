"""Tests for the upload scheduler."""

import threading
import time
from unittest.mock import Mock

import pytest

from pys3up.output import OutputFormatter
from pys3up.sync.scheduler import PendingCounter, UploadResult, UploadScheduler
from pys3up.sync.source_file import SourceFile


def _files(tmp_path, *names, max_tries=10):
    files = []
    for name in names:
        (tmp_path / name).write_text(name)
        files.append(SourceFile(name, tmp_path / name, max_tries=max_tries))
    return files


class RecordingTransport:
    """Transport that records calls and fails according to a plan."""

    def __init__(self, failures=None):
        # name -> list of exceptions to raise on successive calls
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, src):
        with self._lock:
            self.calls.append(src.name)
            pending = self.failures.get(src.name)
            err = pending.pop(0) if pending else None
        if err is not None:
            raise err
        src.body()


@pytest.fixture
def output():
    """Mock output formatter."""
    return Mock(spec=OutputFormatter)


class TestUploadScheduler:
    """Tests for UploadScheduler.run."""

    def test_all_files_complete(self, tmp_path, output):
        """Test that every file is uploaded once."""
        transport = RecordingTransport()
        scheduler = UploadScheduler(transport, workers=4, output=output)

        result = scheduler.run(_files(tmp_path, "a.txt", "b.txt", "c.txt"))

        assert sorted(result.completed) == ["a.txt", "b.txt", "c.txt"]
        assert result.rejected == []
        assert sorted(transport.calls) == ["a.txt", "b.txt", "c.txt"]
        output.say.assert_any_call("Uploaded a.txt", ".")

    def test_empty_run(self, output):
        """Test that nothing happens without files."""
        transport = RecordingTransport()
        scheduler = UploadScheduler(transport, workers=2, output=output)

        result = scheduler.run([])

        assert result.completed == []
        assert result.rejected == []
        assert transport.calls == []

    def test_dry_run_does_not_call_transport(self, tmp_path, output):
        """Test that a dry run only reports."""
        transport = RecordingTransport()
        scheduler = UploadScheduler(transport, workers=2, dry_run=True, output=output)

        result = scheduler.run(_files(tmp_path, "a.txt", "b.txt"))

        assert transport.calls == []
        assert result.completed == []
        assert result.rejected == []
        output.say.assert_any_call("Pretending to upload a.txt", ".")
        output.say.assert_any_call("Pretending to upload b.txt", ".")

    def test_unrecoverable_error_is_rejected_at_once(self, tmp_path, output):
        """Test that a permanent failure is not retried."""
        transport = RecordingTransport({"a.txt": [ValueError("access denied")]})
        scheduler = UploadScheduler(
            transport, workers=2, output=output, backoff_base=0
        )

        result = scheduler.run(_files(tmp_path, "a.txt", "b.txt"))

        assert transport.calls.count("a.txt") == 1
        assert result.rejected == ["a.txt"]
        assert result.completed == ["b.txt"]
        output.say.assert_any_call("Failed to upload a.txt: access denied", "F")

    def test_recoverable_error_retried_until_ceiling(self, tmp_path, output):
        """Test that a file failing forever gets exactly max_tries attempts."""
        errors = [Exception("write: broken pipe")] * 20
        transport = RecordingTransport({"a.txt": errors})
        scheduler = UploadScheduler(
            transport, workers=2, output=output, backoff_base=0
        )
        files = _files(tmp_path, "a.txt")

        result = scheduler.run(files)

        assert transport.calls == ["a.txt"] * 10
        assert files[0].attempts == 10
        assert result.rejected == ["a.txt"]
        assert result.completed == []
        output.say.assert_any_call("Retrying a.txt", "r")

    def test_recovers_after_transient_failures(self, tmp_path, output):
        """Test that a file succeeding on a later attempt is completed."""
        errors = [Exception("unexpected EOF"), Exception("unexpected EOF")]
        transport = RecordingTransport({"a.txt": errors})
        scheduler = UploadScheduler(
            transport, workers=2, output=output, backoff_base=0
        )

        result = scheduler.run(_files(tmp_path, "a.txt"))

        assert transport.calls == ["a.txt"] * 3
        assert result.completed == ["a.txt"]
        assert result.rejected == []

    def test_unreadable_file_is_rejected(self, tmp_path, output):
        """Test that a file vanishing before upload is given up at once."""
        transport = RecordingTransport()
        scheduler = UploadScheduler(
            transport, workers=1, output=output, backoff_base=0
        )
        src = SourceFile("gone.txt", tmp_path / "gone.txt")

        result = scheduler.run([src])

        assert transport.calls == ["gone.txt"]
        assert result.rejected == ["gone.txt"]

    def test_backoff_does_not_block_workers(self, tmp_path, output):
        """Test that a waiting retry leaves the worker free for other files."""
        transport = RecordingTransport({"a.txt": [Exception("no such host")]})
        scheduler = UploadScheduler(
            transport, workers=1, output=output, backoff_base=0.1
        )

        result = scheduler.run(_files(tmp_path, "a.txt", "b.txt"))

        assert transport.calls == ["a.txt", "b.txt", "a.txt"]
        assert sorted(result.completed) == ["a.txt", "b.txt"]

    def test_worker_count_bounds_concurrency(self, tmp_path, output):
        """Test that no more than `workers` uploads run at once."""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def transport(src):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1

        names = [f"f{i}.txt" for i in range(20)]
        scheduler = UploadScheduler(transport, workers=3, output=output)

        result = scheduler.run(_files(tmp_path, *names))

        assert len(result.completed) == 20
        assert state["peak"] <= 3

    def test_many_files_with_failures(self, tmp_path, output):
        """Test that every file ends in exactly one terminal state."""
        names = [f"f{i}.txt" for i in range(30)]
        failures = {
            name: [Exception("TLS handshake timeout")] for name in names[::3]
        }
        failures["f1.txt"] = [RuntimeError("boom")]
        transport = RecordingTransport(failures)
        scheduler = UploadScheduler(
            transport, workers=4, output=output, backoff_base=0
        )

        result = scheduler.run(_files(tmp_path, *names))

        assert result.rejected == ["f1.txt"]
        assert sorted(result.completed + result.rejected) == sorted(names)

    def test_failing_output_does_not_lose_files(self, tmp_path, output):
        """Test that every file settles even when printing raises."""
        output.say.side_effect = RuntimeError("console closed")
        transport = RecordingTransport(
            {"a.txt": [Exception("unexpected EOF")], "b.txt": [ValueError("denied")]}
        )
        scheduler = UploadScheduler(
            transport, workers=2, output=output, backoff_base=0
        )

        result = scheduler.run(_files(tmp_path, "a.txt", "b.txt", "c.txt"))

        assert sorted(result.completed) == ["a.txt", "c.txt"]
        assert result.rejected == ["b.txt"]
        assert transport.calls.count("a.txt") == 2

    def test_dry_run_without_transport(self, tmp_path, output):
        """Test that a dry run needs no transport."""
        scheduler = UploadScheduler(None, workers=1, dry_run=True, output=output)

        result = scheduler.run(_files(tmp_path, "a.txt"))

        assert result.completed == []
        assert result.rejected == []

    def test_transport_required(self):
        """Test that a real run requires a transport."""
        with pytest.raises(ValueError, match="transport"):
            UploadScheduler(None, workers=1)

    def test_invalid_workers(self):
        """Test that at least one worker is required."""
        with pytest.raises(ValueError):
            UploadScheduler(RecordingTransport(), workers=0)

    def test_backoff_delay_doubles(self):
        """Test the exponential backoff."""
        scheduler = UploadScheduler(RecordingTransport(), workers=1, backoff_base=0.1)

        assert scheduler.backoff_delay(1) == pytest.approx(0.2)
        assert scheduler.backoff_delay(2) == pytest.approx(0.4)
        assert scheduler.backoff_delay(5) == pytest.approx(3.2)


class TestPendingCounter:
    """Tests for PendingCounter."""

    def test_wait_returns_when_done(self):
        """Test that wait unblocks once the count reaches zero."""
        counter = PendingCounter()
        counter.add(2)

        def finish():
            time.sleep(0.01)
            counter.done()
            counter.done()

        t = threading.Thread(target=finish)
        t.start()
        counter.wait()
        t.join()

        assert counter.count == 0

    def test_wait_without_pending(self):
        """Test that wait returns immediately at zero."""
        PendingCounter().wait()

    def test_done_below_zero(self):
        """Test that an unbalanced done is an error."""
        counter = PendingCounter()

        with pytest.raises(RuntimeError):
            counter.done()


class TestUploadResult:
    """Tests for UploadResult."""

    def test_concurrent_adds(self):
        """Test that concurrent appends are not lost."""
        result = UploadResult()

        def add(i):
            for j in range(500):
                result.add_completed(f"{i}-{j}")

        threads = [threading.Thread(target=add, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(result.completed) == 2000
