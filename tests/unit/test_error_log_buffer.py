from __future__ import annotations
import json
import re
from pathlib import Path
from bulk_staging.logging.error_log import ErrorLogBuffer, ErrorRecord, validate_record


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("week3.xlsx", "childrenDevotionals", 0, "COMMIT_ERROR", "missing content"))
    buf.append(ErrorRecord.create("week3.xlsx", "<FILE_LEVEL>", -1, "FATAL_PARSE_ERROR", "unreadable"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("logs")
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        obj = json.loads(raw)
        assert set(obj.keys()) == {"timestamp", "file", "sheet", "row", "error_type", "message"}
        validate_record(obj)
    # buffer is cleared after flush
    assert len(buf) == 0


def test_flush_without_records_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_appends_to_the_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "nested" / "logs")
    buf.append(ErrorRecord.create("a.xlsx", "memoryVerses", 1, "COMMIT_ERROR", "x"))
    first = buf.flush()
    buf.append(ErrorRecord.create("a.xlsx", "memoryVerses", 2, "COMMIT_ERROR", "y"))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2


def test_records_is_a_copy(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("a.xlsx", "memoryVerses", 1, "COMMIT_ERROR", "x"))
    buf.records.clear()
    assert len(buf) == 1
