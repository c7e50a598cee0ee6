"""Value encoding shared by the task runner and its worker processes.

Values are JSON with two tagged extensions so that raw byte buffers and
paths survive the round trip: ``{"__bytes__": "<base64>"}`` and
``{"__path__": "<path>"}``. Tuples come back as lists.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path, PurePath
from typing import Any

BYTES_TAG = "__bytes__"
PATH_TAG = "__path__"


def _default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {BYTES_TAG: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, PurePath):
        return {PATH_TAG: str(value)}
    raise TypeError(f"Cannot encode value of type {type(value)!r}")


def _object_hook(data: dict) -> Any:
    if len(data) == 1:
        if BYTES_TAG in data:
            return base64.b64decode(data[BYTES_TAG])
        if PATH_TAG in data:
            return Path(data[PATH_TAG])
    return data


def encode_value(value: Any) -> str:
    return json.dumps(value, default=_default, separators=(",", ":"), sort_keys=True)


def decode_value(text: str | bytes) -> Any:
    return json.loads(text, object_hook=_object_hook)


__all__ = ["decode_value", "encode_value"]
