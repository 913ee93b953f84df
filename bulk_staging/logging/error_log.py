from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import jsonschema

from ..models.error_record import ErrorRecord

"""JSON Lines error log.

Fatal parse failures and per-item commit failures are buffered as
``ErrorRecord`` entries and appended to
``<log dir>/errors-YYYYMMDD-HHMMSS.log`` (UTC, fixed per buffer) on flush.
Every line conforms to ``error_log_schema.json`` (no extra keys).
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "SCHEMA_PATH",
    "validate_record",
]

SCHEMA_PATH = Path(__file__).with_name("error_log_schema.json")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

_schema_cache: dict | None = None


def validate_record(payload: dict) -> None:
    """Raise ``jsonschema.ValidationError`` when ``payload`` breaks the log contract."""
    global _schema_cache
    if _schema_cache is None:
        _schema_cache = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    jsonschema.validate(payload, _schema_cache)


class ErrorLogBuffer:
    """In-memory buffer for error records; ``flush()`` appends JSON Lines.

    The file is only created once there is something to write.
    """

    def __init__(self, log_dir: Path | str = "./logs") -> None:
        self.log_dir = Path(log_dir)
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.log_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the log path, or None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
