"""Filesystem notifications for a single path, built on watchdog."""
from __future__ import annotations

import enum
import logging
import os
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

_log = logging.getLogger("ftail.watcher")

DEFAULT_LIVENESS_INTERVAL = 1.0


class Op(enum.Flag):
    WRITE = enum.auto()
    CREATE = enum.auto()
    REMOVE = enum.auto()
    RENAME = enum.auto()
    CHMOD = enum.auto()


@dataclass(frozen=True)
class WatchEvent:
    path: str
    op: Op

    def has(self, op: Op) -> bool:
        return bool(self.op & op)


class WatcherClosed(Exception):
    """The event stream ended: the watcher was closed or its thread died."""


class WatcherError(Exception):
    """An error surfaced by the notification machinery."""


_CLOSED = object()
_Item = Union[WatchEvent, BaseException, object]


def _normalise(path: Union[str, bytes]) -> str:
    return os.path.abspath(os.fsdecode(path))


class _PathEventHandler(FileSystemEventHandler):
    """Translate watchdog events for one file into ``WatchEvent`` objects.

    watchdog watches directories, so the handler is scheduled on the parent
    directory and drops everything that does not concern ``path``.
    """

    def __init__(self, path: str, emit: Callable[[_Item], None]) -> None:
        super().__init__()
        self.path = path
        self._emit = emit
        self._mode = self._stat_mode()

    def dispatch(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        try:
            super().dispatch(event)
        except Exception as exc:
            self._emit(exc)

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._matches(event.src_path):
            self._emit_write()

    def on_closed(self, event: FileSystemEvent) -> None:
        if self._matches(event.src_path):
            self._emit_write()

    def on_created(self, event: FileSystemEvent) -> None:
        if self._matches(event.src_path):
            self._mode = self._stat_mode()
            self._send(Op.CREATE)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if self._matches(event.src_path):
            self._send(Op.REMOVE)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Moving another file onto the path replaces it as surely as moving it away.
        if self._matches(event.src_path) or self._matches(getattr(event, "dest_path", "")):
            self._send(Op.RENAME)

    # ------------------------------------------------------------------

    def _emit_write(self) -> None:
        op = Op.WRITE
        mode = self._stat_mode()
        if mode is not None:
            if self._mode is not None and mode != self._mode:
                op |= Op.CHMOD
            self._mode = mode
        self._send(op)

    def _send(self, op: Op) -> None:
        _log.debug("%s: %s", self.path, op)
        self._emit(WatchEvent(self.path, op))

    def _matches(self, path: Union[str, bytes]) -> bool:
        return bool(path) and _normalise(path) == self.path

    def _stat_mode(self) -> Optional[int]:
        try:
            return os.stat(self.path).st_mode
        except OSError:
            return None


class PathWatcher:
    """Watch individual files and hand out their events one at a time."""

    def __init__(
        self,
        *,
        liveness_interval: float = DEFAULT_LIVENESS_INTERVAL,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.liveness_interval = liveness_interval
        self._queue: "queue.Queue[_Item]" = queue.Queue()
        self._watches: Dict[str, object] = {}
        self._lock = threading.Lock()
        self._closed = False
        self._observer = observer_factory()
        self._observer.daemon = True
        self._observer.start()

    def add(self, path: Union[str, os.PathLike]) -> None:
        target = _normalise(os.fspath(path))
        handler = _PathEventHandler(target, self._queue.put)
        with self._lock:
            if self._closed:
                raise WatcherClosed("watcher is closed")
            if target in self._watches:
                return
            self._watches[target] = self._observer.schedule(
                handler, os.path.dirname(target), recursive=False
            )
        _log.debug("watching %s", target)

    def remove(self, path: Union[str, os.PathLike]) -> None:
        target = _normalise(os.fspath(path))
        with self._lock:
            watch = self._watches.pop(target, None)
        if watch is not None:
            self._observer.unschedule(watch)

    def get(self, timeout: Optional[float] = None) -> WatchEvent:
        """Return the next event, blocking until one arrives.

        Raises ``WatcherClosed`` once the watcher is closed or the observer
        or one of its emitter threads has exited, ``WatcherError`` for a
        reported error and ``queue.Empty`` when ``timeout`` elapses first.
        """

        waited = 0.0
        while True:
            wait = self.liveness_interval
            if timeout is not None:
                wait = min(wait, timeout - waited)
            try:
                item = self._queue.get(timeout=max(wait, 0.0))
            except queue.Empty:
                if not self._observer.is_alive():
                    raise WatcherClosed("observer thread exited") from None
                if not all(emitter.is_alive() for emitter in self._observer.emitters):
                    raise WatcherClosed("emitter thread exited") from None
                waited += wait
                if timeout is not None and waited >= timeout:
                    raise
                continue
            if item is _CLOSED:
                # Leave the marker in place so every later call sees it too.
                self._queue.put(_CLOSED)
                raise WatcherClosed("watcher is closed")
            if isinstance(item, BaseException):
                raise WatcherError(str(item) or type(item).__name__) from item
            return item  # type: ignore[return-value]

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._watches.clear()
        self._observer.stop()
        if self._observer.is_alive() and self._observer is not threading.current_thread():
            self._observer.join(timeout=5.0)
        self._queue.put(_CLOSED)


__all__ = ["Op", "PathWatcher", "WatchEvent", "WatcherClosed", "WatcherError"]
