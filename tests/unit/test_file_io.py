"""Unit tests for core.file_io: producer append with file locking."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from replog.core.errors import LockContentionError
from replog.core.file_io import safe_append_line
from replog.core.locking import FileLocker


class TestSafeAppendLine:
    """Tests for safe_append_line utility."""

    def test_appends_single_record(self, tmp_path: Path) -> None:
        path = tmp_path / "replog"
        safe_append_line(path, "dn: cn=a")

        assert path.read_bytes() == b"dn: cn=a\n"

    def test_appends_multiple_records(self, tmp_path: Path) -> None:
        path = tmp_path / "replog"
        for i in range(1, 4):
            safe_append_line(path, f"rec{i}")

        assert path.read_text().splitlines() == ["rec1", "rec2", "rec3"]

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "replog"
        safe_append_line(path, "nested")

        assert path.read_text() == "nested\n"

    def test_existing_file_not_overwritten(self, tmp_path: Path) -> None:
        path = tmp_path / "replog"
        path.write_text("existing\n")

        safe_append_line(path, "new")

        assert path.read_text() == "existing\nnew\n"

    def test_encodes_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "replog"
        safe_append_line(path, "cn=Jürgen")

        assert path.read_bytes() == "cn=Jürgen\n".encode("utf-8")

    def test_rejects_embedded_newline(self, tmp_path: Path) -> None:
        path = tmp_path / "replog"
        with pytest.raises(ValueError, match="newline"):
            safe_append_line(path, "two\nlines")
        assert not path.exists()

    def test_respects_rotation_lock(self, tmp_path: Path, hold_lock) -> None:
        path = tmp_path / "replog"
        path.write_text("")

        with hold_lock(path):
            with pytest.raises(LockContentionError):
                safe_append_line(path, "rec", locker=FileLocker(timeout=0))

        assert path.read_text() == ""

    def test_concurrent_writes_no_corruption(self, tmp_path: Path) -> None:
        """20 threads appending simultaneously, no interleaved records."""
        path = tmp_path / "replog"
        n_threads = 20

        def writer(thread_id: int) -> None:
            for i in range(10):
                safe_append_line(path, f"thread={thread_id} seq={i}")

        threads = [
            threading.Thread(target=writer, args=(tid,))
            for tid in range(n_threads)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = path.read_text().splitlines()
        assert len(lines) == n_threads * 10
        assert set(lines) == {
            f"thread={t} seq={i}" for t in range(n_threads) for i in range(10)
        }
