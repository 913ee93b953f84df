# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from bulk_staging.db.content_store import InMemoryContentStore
from bulk_staging.db.store import InMemoryStagedUploadStore
from bulk_staging.logging.error_log import ErrorLogBuffer
from bulk_staging.logging.init import reset_logging
from bulk_staging.models.config_models import StagingConfig
from bulk_staging.services.bulk_upload import BulkUploadService
from workbooks import build_workbook_bytes, devotional_row, verse_row


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """sheets:
  memoryVerses: Memory Verses
  childrenDevotionals: Children Devotionals
header_row: 0
link_policy: last
option_delimiter: "|"
pagination:
  default_limit: 2
  max_limit: 50
error_log_dir: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "staging.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def make_workbook(tmp_path: Path) -> Callable[..., Path]:
    counter = {"n": 0}

    def _make(sheets: dict[str, Any], name: str | None = None) -> Path:
        counter["n"] += 1
        return build_workbook_bytes(sheets, tmp_path / (name or f"upload{counter['n']}.xlsx"))

    return _make


@pytest.fixture()
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture()
def staged_store() -> InMemoryStagedUploadStore:
    return InMemoryStagedUploadStore()


@pytest.fixture()
def error_log(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(tmp_path / "logs")


@pytest.fixture()
def service(staged_store, content_store, error_log) -> BulkUploadService:
    return BulkUploadService(staged_store, content_store, StagingConfig(), error_log)


@pytest.fixture()
def scenario_workbook(make_workbook) -> Path:
    """3 valid memory verses + 1 devotional missing its content."""
    return make_workbook(
        {
            "Memory Verses": [
                verse_row("20260118", "John 3:16"),
                verse_row("20260119", "Psalm 23:1-3"),
                verse_row("20260120", "Proverbs 3:5", age="9-12"),
            ],
            "Children Devotionals": [devotional_row("20260118", Content=None)],
        },
        name="week3.xlsx",
    )
