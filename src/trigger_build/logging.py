from __future__ import annotations

import json
import re
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

_SENSITIVE_KEY = re.compile(r"token|secret|password|api_?key", re.IGNORECASE)
REDACTED = "***"


def redact(value: Any) -> Any:
    """Mask values stored under credential-looking keys, at any depth."""
    if isinstance(value, dict):
        return {key: REDACTED if _SENSITIVE_KEY.search(str(key)) else redact(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class TriggerLogger:
    """One JSON record per line on stderr, grouped into GitLab CI log sections."""

    def __init__(self, run_id: str):
        self.run_id = run_id

    def info(self, message: str, **fields: Any) -> None:
        self._record("info", message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._record("warning", message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._record("error", message, fields)

    @contextmanager
    def stage(self, name: str, header: str = "") -> Iterator[None]:
        """Wrap a step in a collapsible section and record how long it took."""
        section = re.sub(r"[^\w.-]", "_", name)
        self._write(f"\x1b[0Ksection_start:{int(time.time())}:{section}\r\x1b[0K{header or name}")
        self.info("stage_start", stage=name)
        started = time.monotonic()
        status = "ok"
        try:
            yield
        except Exception as exc:
            status = "error"
            self.error("stage_error", stage=name, error=str(exc))
            raise
        finally:
            duration_ms = int((time.monotonic() - started) * 1000)
            self.info("stage_end", stage=name, duration_ms=duration_ms, status=status)
            self._write(f"\x1b[0Ksection_end:{int(time.time())}:{section}\r\x1b[0K")

    def _record(self, level: str, message: str, fields: Dict[str, Any]) -> None:
        record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "run_id": self.run_id,
            "message": message,
            **redact(fields),
        }
        self._write(json.dumps(record, ensure_ascii=False, default=str))

    @staticmethod
    def _write(line: str) -> None:
        sys.stderr.write(line + "\n")
        sys.stderr.flush()
