"""Notification driven file tailer resilient to log rotation."""
from __future__ import annotations

import logging
import os
import queue
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Generator, List, Optional, Union

from .errors import ErrorKind, TailError
from .watcher import DEFAULT_LIVENESS_INTERVAL, Op, PathWatcher, WatchEvent, WatcherClosed, WatcherError

_log = logging.getLogger("ftail.tailer")

# Marks the end of the stream on the output channel.
END_OF_STREAM = None

IDENTITY_LOSS = Op.REMOVE | Op.RENAME | Op.CHMOD


class Tailer:
    """Follow one file from its current end, emitting each complete line.

    The tailer owns an open handle on the file and a watch subscription on
    its path. With ``follow`` set, both are rebuilt whenever the file is
    removed, renamed, has its mode changed or is replaced by a new file;
    otherwise such an event ends the stream.
    """

    def __init__(
        self,
        path: Union[str, Path],
        follow: bool = True,
        *,
        encoding: str = "utf-8",
        errors: str = "replace",
        liveness_interval: float = DEFAULT_LIVENESS_INTERVAL,
        put_interval: float = 0.1,
        watcher_factory: Optional[Callable[[], PathWatcher]] = None,
    ) -> None:
        self.path = Path(path)
        self.follow = follow
        self.encoding = encoding
        self.errors = errors
        self._put_interval = put_interval
        self._watcher_factory = watcher_factory or (
            lambda: PathWatcher(liveness_interval=liveness_interval)
        )
        self._watcher: Optional[PathWatcher] = None
        self._handle: Optional[BinaryIO] = None
        self._position = 0
        self._stopped = threading.Event()
        # Guards handing the handle and watcher between a running tail() and close().
        self._lifecycle = threading.Lock()
        self._running = False
        try:
            self._acquire()
        except TailError:
            self._release()
            raise

    # ------------------------------------------------------------------
    # public API

    def tail(self, output: "queue.Queue[Optional[str]]") -> None:
        """Emit lines into ``output`` until the stream ends.

        ``END_OF_STREAM`` is always put last, including when a ``TailError``
        is raised or the tailer was stopped with the channel full.
        """

        try:
            with self._lifecycle:
                if self._watcher is None or self._handle is None:
                    raise RuntimeError(f"tailer for {self.path} is closed")
                self._running = True
            while not self._stopped.is_set():
                event = self._next_event()
                if event is None:
                    return
                if event.has(Op.WRITE):
                    if not self._scan(output):
                        return
                if event.has(IDENTITY_LOSS) or (event.has(Op.CREATE) and self._replaced()):
                    if not self.follow:
                        _log.info("%s: %s, not following", self.path, event.op)
                        return
                    self._reacquire(event)
        finally:
            with self._lifecycle:
                self._running = False
                self._release()
            self._close_channel(output)

    def lines(self, queue_size: int = 0) -> Generator[str, None, None]:
        """Yield lines from a worker thread running :meth:`tail`."""

        output: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=queue_size)
        failures: List[TailError] = []

        def run() -> None:
            try:
                self.tail(output)
            except TailError as exc:
                failures.append(exc)

        worker = threading.Thread(target=run, name=f"ftail-{self.path.name}", daemon=True)
        worker.start()
        try:
            while True:
                line = output.get()
                if line is END_OF_STREAM:
                    break
                yield line
        finally:
            self.stop()
            worker.join()
        if failures:
            raise failures[0]

    def stop(self) -> None:
        """Ask a running :meth:`tail` to return; safe from any thread."""

        self._stopped.set()
        watcher = self._watcher
        if watcher is not None:
            watcher.close()

    def close(self) -> None:
        """Stop, and release the handle unless a running tail() will do it."""

        self.stop()
        with self._lifecycle:
            if not self._running:
                self._release()

    def __enter__(self) -> "Tailer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # acquisition

    def _acquire(self) -> None:
        self._init_watcher()
        self._init_file()
        self._seek_end()

    def _reacquire(self, event: WatchEvent) -> None:
        _log.info("%s: %s, reopening", self.path, event.op)
        self._release()
        self._acquire()

    def _init_watcher(self) -> None:
        try:
            watcher = self._watcher_factory()
        except (OSError, RuntimeError) as exc:
            raise TailError(ErrorKind.WATCHER_INIT, self.path, exc) from exc
        try:
            watcher.add(self.path)
        except (OSError, WatcherClosed) as exc:
            watcher.close()
            raise TailError(ErrorKind.WATCHER_ADD, self.path, exc) from exc
        self._watcher = watcher

    def _init_file(self) -> None:
        try:
            self._handle = self.path.open("rb")
        except OSError as exc:
            raise TailError(ErrorKind.FILE_OPEN, self.path, exc) from exc

    def _seek_end(self) -> int:
        try:
            self._position = self._handle.seek(0, os.SEEK_END)
        except OSError as exc:
            raise TailError(ErrorKind.FILE_SEEK, self.path, exc) from exc
        return self._position

    def _release(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.close()
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def _replaced(self) -> bool:
        """Whether the path now names a different file than the open handle."""

        try:
            current = os.stat(self.path)
            opened = os.fstat(self._handle.fileno())
        except OSError:
            return True
        return (current.st_dev, current.st_ino) != (opened.st_dev, opened.st_ino)

    # ------------------------------------------------------------------
    # streaming

    def _next_event(self) -> Optional[WatchEvent]:
        try:
            return self._watcher.get()
        except WatcherClosed as exc:
            if self._stopped.is_set():
                return None
            raise TailError(ErrorKind.WATCHER_CLOSED, self.path, exc) from exc
        except WatcherError as exc:
            raise TailError(ErrorKind.WATCHER_ERROR, self.path, exc.__cause__ or exc) from exc

    def _scan(self, output: "queue.Queue[Optional[str]]") -> bool:
        """Emit every complete line past the current offset.

        Returns False if the tailer was stopped while emitting.
        """

        handle = self._handle
        try:
            if os.fstat(handle.fileno()).st_size < self._position:
                _log.info("%s: truncated, reading from start", self.path)
                self._position = 0
            handle.seek(self._position)
        except OSError as exc:
            raise TailError(ErrorKind.FILE_SEEK, self.path, exc) from exc
        emitted = 0
        try:
            while True:
                raw = handle.readline()
                if not raw.endswith(b"\n"):
                    break
                if self._stopped.is_set() or not self._put(output, self._decode(raw)):
                    return False
                self._position += len(raw)
                emitted += 1
        except OSError as exc:
            raise TailError(ErrorKind.FILE_READ, self.path, exc) from exc
        # Rewind over any unterminated fragment so it is read again once complete.
        try:
            handle.seek(self._position)
        except OSError as exc:
            raise TailError(ErrorKind.FILE_SEEK, self.path, exc) from exc
        _log.debug("%s: emitted %d lines, offset %d", self.path, emitted, self._position)
        return True

    def _decode(self, raw: bytes) -> str:
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        return raw.decode(self.encoding, self.errors)

    def _put(self, output: "queue.Queue[Optional[str]]", item: Optional[str]) -> bool:
        """Wait for room on the channel; give up with False once stopped."""

        while True:
            try:
                output.put(item, timeout=self._put_interval)
            except queue.Full:
                if self._stopped.is_set():
                    return False
                continue
            return True

    def _close_channel(self, output: "queue.Queue[Optional[str]]") -> None:
        if self._put(output, END_OF_STREAM):
            return
        # Stopped with the channel full: the marker goes past its bound so a
        # consumer draining it still sees the end.
        with output.mutex:
            output.maxsize = 0
        output.put_nowait(END_OF_STREAM)


__all__ = ["END_OF_STREAM", "IDENTITY_LOSS", "Tailer"]
