"""JSON helpers with optional orjson acceleration."""
from __future__ import annotations

from typing import Any, Union

try:  # pragma: no cover - optional dependency
    import orjson  # type: ignore
except ImportError:  # pragma: no cover - fallback path
    import json

    def loads(data: Union[str, bytes]) -> Any:
        return json.loads(data)

    def dumps(data: Any) -> str:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
else:  # pragma: no cover - executed when orjson is available
    def loads(data: Union[str, bytes]) -> Any:
        return orjson.loads(data)

    def dumps(data: Any) -> str:
        # orjson always emits compact UTF-8; match that on the fallback path.
        return orjson.dumps(data).decode("utf-8")


__all__ = ["loads", "dumps"]
