"""Error taxonomy shared by tailer construction and the streaming loop."""
from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional, Union


class ErrorKind(enum.Enum):
    """Fatal conditions, each with a stable exit code."""

    WATCHER_INIT = (1, "fail to create file watcher")
    WATCHER_ADD = (2, "fail to watch")
    WATCHER_CLOSED = (3, "fail to get more file system notifications from")
    WATCHER_ERROR = (4, "hit an error while monitoring")
    FILE_OPEN = (5, "fail to open file")
    FILE_READ = (6, "fail to read from file")
    FILE_SEEK = (7, "fail to seek to the end of file")

    def __init__(self, exit_code: int, description: str) -> None:
        self.exit_code = exit_code
        self.description = description


class TailError(Exception):
    """Raised for every fatal condition; never retried by the tailer itself."""

    def __init__(
        self,
        kind: ErrorKind,
        path: Union[str, Path],
        cause: Optional[BaseException] = None,
    ) -> None:
        self.kind = kind
        self.path = str(path)
        self.cause = cause
        message = f"{kind.description} {self.path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code


__all__ = ["ErrorKind", "TailError"]
