"""Command line entrypoint: print a file's new lines as they are written."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import jsonutil
from .config import Config, load_config
from .errors import TailError
from .tailer import Tailer
from .version import __version__

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_INTERRUPTED = 130


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    if args.no_follow:
        config.follow = False
    if args.encoding:
        config.encoding = args.encoding
    if args.queue_size is not None:
        config.queue_size = args.queue_size
    return config


def _format_line(path: Path, line: str, as_json: bool) -> str:
    if as_json:
        return jsonutil.dumps({"path": str(path), "line": line})
    return line


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ftail", description="follow a file's appended lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("path", help="file to follow")
    parser.add_argument("--config", help="JSON config file (default: $FTAIL_CONFIG)")
    parser.add_argument(
        "--no-follow",
        action="store_true",
        help="stop when the file is removed, renamed or has its mode changed",
    )
    parser.add_argument("--json", action="store_true", help="print one JSON object per line")
    parser.add_argument("--encoding", help="text encoding of the file")
    parser.add_argument("--queue-size", type=int, help="lines buffered ahead of output (0=unbounded)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="log more (repeatable)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    _configure_logging(args.verbose)
    config = _apply_overrides(load_config(Path(args.config) if args.config else None), args)
    path = Path(args.path)
    try:
        tailer = Tailer(
            path,
            follow=config.follow,
            encoding=config.encoding,
            errors=config.errors,
            liveness_interval=config.liveness_interval,
        )
        for line in tailer.lines(queue_size=config.queue_size):
            print(_format_line(path, line, args.json), flush=True)
    except TailError as exc:
        print(f"ftail: {exc}", file=sys.stderr)
        return exc.exit_code
    except KeyboardInterrupt:
        return _INTERRUPTED
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
