from __future__ import annotations

from dataclasses import dataclass, field

from .sheets import DEFAULT_WORKBOOK_SHEET_NAMES, SheetKey

"""Config dataclasses for the staging pipeline.

Built by ``bulk_staging.config.loader.load_config`` from YAML; ``StagingConfig()``
with no arguments gives the defaults used when no config file is present.
"""


def _default_sheet_names() -> dict[str, str]:
    return {key.value: name for key, name in DEFAULT_WORKBOOK_SHEET_NAMES.items()}


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class PaginationConfig:
    default_limit: int = 20
    max_limit: int = 100


@dataclass(frozen=True)
class StagingConfig:
    """Root configuration object for parsing, linking and moderation."""
    sheets: dict[str, str] = field(default_factory=_default_sheet_names)  # sheet key -> workbook sheet name
    header_row: int = 0  # 0-based row holding column headers
    match_by_position: bool = True  # unnamed sheet at position i stands in for the i-th key
    link_policy: str = "last"  # duplicate day slot: "last" or "first" row wins
    derive_day_id_from_date: bool = True  # missing dayId -> YYYYMMDD of the row date
    option_delimiter: str = "|"  # quiz answer options
    tag_delimiter: str = ","
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    error_log_dir: str = "./logs"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def workbook_sheet_name(self, key: SheetKey) -> str:
        return self.sheets.get(key.value, DEFAULT_WORKBOOK_SHEET_NAMES[key])
