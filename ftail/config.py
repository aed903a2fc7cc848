"""Configuration helpers for ftail."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from . import jsonutil

_CONFIG_ENV = "FTAIL_CONFIG"
_DEFAULT_ENCODING = "utf-8"
_DEFAULT_ERRORS = "replace"
_DEFAULT_LIVENESS_INTERVAL = 1.0


@dataclass
class Config:
    """Resolved settings for a tailer run."""

    follow: bool = True
    encoding: str = _DEFAULT_ENCODING
    errors: str = _DEFAULT_ERRORS
    queue_size: int = 0
    liveness_interval: float = _DEFAULT_LIVENESS_INTERVAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "follow": self.follow,
            "encoding": self.encoding,
            "errors": self.errors,
            "queue_size": self.queue_size,
            "liveness_interval": self.liveness_interval,
        }


def _expand(path: Path) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def determine_config_file(explicit: Optional[Path] = None) -> Optional[Path]:
    """Return the config file to read, if any."""

    if explicit is not None:
        return _expand(explicit)
    env = os.environ.get(_CONFIG_ENV)
    if env:
        return _expand(Path(env))
    return None


def _coerce(config: Config, data: Dict[str, Any]) -> Config:
    known = {f.name for f in fields(Config)}
    values = config.to_dict()
    for key, value in data.items():
        if key not in known:
            continue
        default = values[key]
        if isinstance(default, bool):
            values[key] = bool(value)
        else:
            values[key] = type(default)(value)
    return Config(**values)


def load_config(config_file: Optional[Path] = None) -> Config:
    """Load configuration from disk, falling back to defaults."""

    config = Config()
    path = determine_config_file(config_file)
    if path is None or not path.exists():
        return config
    try:
        data = jsonutil.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        return config
    return _coerce(config, data)


__all__ = ["Config", "determine_config_file", "load_config"]
