from __future__ import annotations

import json
import sys
from pathlib import Path
from threading import Lock
from typing import Any, TextIO


class JsonLinesSink:
    """
    Writes archived records as JSON lines: one compact JSON value per line.

    Opened on a path it owns the file; wrapped around a stream (stdout by
    default) it leaves the stream open.
    """

    def __init__(self, stream: TextIO, *, owns_stream: bool = False) -> None:
        self._fp: TextIO | None = stream
        self._owns_stream = bool(owns_stream)
        self._lock = Lock()
        self._written = 0

    @classmethod
    def open(cls, path: str | Path) -> "JsonLinesSink":
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        fp = p.open("w", encoding="utf-8", newline="\n")
        return cls(fp, owns_stream=True)

    @classmethod
    def stdout(cls) -> "JsonLinesSink":
        return cls(sys.stdout)

    @property
    def written(self) -> int:
        return self._written

    def __enter__(self) -> "JsonLinesSink":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            if self._fp is None:
                return
            try:
                self._fp.flush()
            finally:
                if self._owns_stream:
                    self._fp.close()
            self._fp = None

    def write(self, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))

        with self._lock:
            if self._fp is None:
                raise ValueError("sink is closed")
            self._fp.write(payload + "\n")
            self._fp.flush()
            self._written += 1
