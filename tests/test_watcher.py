import os
import queue
import sys
import time
from pathlib import Path

import pytest

from ftail import watcher as watcher_mod
from ftail.watcher import Op, PathWatcher, WatchEvent, WatcherClosed, WatcherError


def _next_with(watcher: PathWatcher, op: Op, timeout: float = 5.0) -> WatchEvent:
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        assert remaining > 0, f"no {op} event in time"
        event = watcher.get(timeout=remaining)
        if event.has(op):
            return event


@pytest.fixture
def watched(tmp_path: Path):
    log_path = tmp_path / "app.log"
    log_path.write_text("")
    watcher = PathWatcher(liveness_interval=0.1)
    watcher.add(log_path)
    try:
        yield log_path, watcher
    finally:
        watcher.close()


def test_append_reports_write(watched) -> None:
    log_path, watcher = watched
    with log_path.open("a") as handle:
        handle.write("hello\n")
    event = _next_with(watcher, Op.WRITE)
    assert event.path == str(log_path)


def test_other_files_in_directory_are_ignored(watched, tmp_path: Path) -> None:
    log_path, watcher = watched
    (tmp_path / "other.log").write_text("noise\n")
    (tmp_path / "other.log").unlink()
    with log_path.open("a") as handle:
        handle.write("signal\n")
    event = _next_with(watcher, Op.WRITE)
    assert event.path == str(log_path)
    assert not event.has(Op.REMOVE)


def test_unlink_reports_remove(watched) -> None:
    log_path, watcher = watched
    log_path.unlink()
    assert _next_with(watcher, Op.REMOVE).path == str(log_path)


def test_rename_away_and_onto_report_rename(watched, tmp_path: Path) -> None:
    log_path, watcher = watched
    os.rename(log_path, tmp_path / "app.log.1")
    _next_with(watcher, Op.RENAME)

    staged = tmp_path / "staged"
    staged.write_text("")
    os.replace(staged, log_path)
    _next_with(watcher, Op.RENAME)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
def test_chmod_reports_mode_change(watched) -> None:
    log_path, watcher = watched
    os.chmod(log_path, 0o600)
    os.chmod(log_path, 0o640)
    _next_with(watcher, Op.CHMOD)


def test_get_times_out_without_activity(watched) -> None:
    _, watcher = watched
    with pytest.raises(queue.Empty):
        watcher.get(timeout=0.2)


def test_close_wakes_and_is_idempotent(watched) -> None:
    log_path, watcher = watched
    watcher.close()
    watcher.close()
    with pytest.raises(WatcherClosed):
        watcher.get()
    with pytest.raises(WatcherClosed):
        watcher.get()
    with pytest.raises(WatcherClosed):
        watcher.add(log_path)


def test_handler_failure_is_reported(watched, monkeypatch: pytest.MonkeyPatch) -> None:
    log_path, watcher = watched

    def explode(self) -> None:
        raise RuntimeError("translation failed")

    monkeypatch.setattr(watcher_mod._PathEventHandler, "_emit_write", explode)
    with log_path.open("a") as handle:
        handle.write("boom\n")
    with pytest.raises(WatcherError, match="translation failed"):
        _next_with(watcher, Op.WRITE)


def test_remove_stops_delivering_events(watched) -> None:
    log_path, watcher = watched
    watcher.remove(log_path)
    with log_path.open("a") as handle:
        handle.write("unseen\n")
    with pytest.raises(queue.Empty):
        watcher.get(timeout=0.3)


def test_add_rejects_missing_directory(tmp_path: Path) -> None:
    watcher = PathWatcher()
    try:
        with pytest.raises(OSError):
            watcher.add(tmp_path / "no-such-dir" / "app.log")
    finally:
        watcher.close()


def test_dead_emitter_reports_closed(watched) -> None:
    _, watcher = watched
    for emitter in watcher._observer.emitters:
        emitter.stop()
        emitter.join(timeout=5)
    with pytest.raises(WatcherClosed):
        watcher.get(timeout=5)
