from pathlib import Path

from ftail.errors import ErrorKind, TailError


def test_error_kinds_have_distinct_stable_codes() -> None:
    codes = {kind.name: kind.exit_code for kind in ErrorKind}
    assert codes == {
        "WATCHER_INIT": 1,
        "WATCHER_ADD": 2,
        "WATCHER_CLOSED": 3,
        "WATCHER_ERROR": 4,
        "FILE_OPEN": 5,
        "FILE_READ": 6,
        "FILE_SEEK": 7,
    }


def test_tail_error_names_path_and_cause() -> None:
    cause = FileNotFoundError(2, "No such file or directory")
    err = TailError(ErrorKind.FILE_OPEN, Path("/var/log/messages"), cause)
    assert err.kind is ErrorKind.FILE_OPEN
    assert err.path == "/var/log/messages"
    assert err.cause is cause
    assert err.exit_code == 5
    assert str(err).startswith("fail to open file /var/log/messages: ")
    assert "No such file or directory" in str(err)


def test_tail_error_without_cause() -> None:
    err = TailError(ErrorKind.WATCHER_CLOSED, "app.log")
    assert str(err) == "fail to get more file system notifications from app.log"
