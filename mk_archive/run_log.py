from __future__ import annotations

import json
import sys
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RunLogger:
    """
    Tiny JSONL progress logger for archive runs.

    Each line is one JSON object with `kind` set to "log", so progress lines can
    never be confused with archived records even if both end up in one file.
    Writes go to a file when opened on a path, otherwise to stderr.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        path: str | Path | None = None,
        overwrite: bool = True,
        session_id: str | None = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._overwrite = bool(overwrite)
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._stream = stream
        self._fp: TextIO | None = None
        self._lock = Lock()
        self._opened = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path=path, overwrite=overwrite, session_id=session_id)
        logger._ensure_open()
        return logger

    @classmethod
    def to_stream(cls, stream: TextIO | None = None, *, session_id: str | None = None) -> "RunLogger":
        return cls(stream if stream is not None else sys.stderr, session_id=session_id)

    def close(self) -> None:
        with self._lock:
            if self._fp is None:
                return
            try:
                self._fp.flush()
            finally:
                if self._path is not None:
                    self._fp.close()
            self._fp = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def info(self, event: str, message: str = "", **data: Any) -> None:
        self.log("INFO", event, message, **data)

    def exception(self, event: str, *, exc: BaseException, message: str = "", **data: Any) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, message or str(exc), error=err, **data)

    def log(self, level: str, event: str, message: str = "", **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        ev = (event or "").strip() or "event"

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "kind": "log",
            "level": lvl,
            "event": ev,
            "message": (message or "").strip() or ev,
            "session_id": self._session_id,
        }

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._fp is not None:
            return

        with self._lock:
            if self._fp is not None:
                return

            if self._path is None:
                self._fp = self._stream if self._stream is not None else sys.stderr
                return

            self._path.parent.mkdir(parents=True, exist_ok=True)
            mode = "w" if self._overwrite and not self._opened else "a"

            self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
            self._opened = True

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()
