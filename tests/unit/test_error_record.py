from __future__ import annotations

import json

from bulk_staging.models.error_record import ErrorRecord

"""Unit tests for the ErrorRecord model."""


def test_error_record_row_minus_one_support():
    """Test that ErrorRecord properly supports row=-1 for file-level errors."""
    rec = ErrorRecord.create(
        file="broken.xlsx",
        sheet="<FILE_LEVEL>",
        row=-1,  # file-level error
        error_type="FATAL_PARSE_ERROR",
        message="no recognized sheets found",
    )

    assert rec.row == -1
    assert rec.file == "broken.xlsx"
    assert rec.error_type == "FATAL_PARSE_ERROR"

    data = json.loads(rec.to_json_line())
    assert data["row"] == -1
    assert data["sheet"] == "<FILE_LEVEL>"


def test_error_record_timestamp_is_utc_z():
    rec = ErrorRecord.create("a.xlsx", "memoryVerses", 3, "COMMIT_ERROR", "boom")
    assert rec.timestamp.endswith("Z")
    assert "+00:00" not in rec.timestamp


def test_error_record_keeps_non_ascii_text():
    rec = ErrorRecord.create("週報.xlsx", "memoryVerses", 0, "COMMIT_ERROR", "título vacío")
    line = rec.to_json_line()
    assert "週報.xlsx" in line
    assert "título vacío" in line
