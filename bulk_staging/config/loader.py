from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, PaginationConfig, StagingConfig

"""Config loader.

Responsibilities:
- Load YAML (default: config/staging.yml)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults for every omitted key
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "default_config",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/staging.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates
            the schema (unknown keys, wrong types, bad enum values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def default_config() -> StagingConfig:
    return StagingConfig()


def load_config(path: Path) -> StagingConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    defaults = StagingConfig()
    sheets = dict(defaults.sheets)
    sheets.update(data.get("sheets") or {})

    page_raw = data.get("pagination") or {}
    pagination = PaginationConfig(
        default_limit=page_raw.get("default_limit", defaults.pagination.default_limit),
        max_limit=page_raw.get("max_limit", defaults.pagination.max_limit),
    )
    if pagination.default_limit > pagination.max_limit:
        raise ConfigError(
            f"pagination.default_limit ({pagination.default_limit}) exceeds "
            f"pagination.max_limit ({pagination.max_limit})"
        )

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return StagingConfig(
        sheets=sheets,
        header_row=data.get("header_row", defaults.header_row),
        match_by_position=data.get("match_by_position", defaults.match_by_position),
        link_policy=data.get("link_policy", defaults.link_policy),
        derive_day_id_from_date=data.get("derive_day_id_from_date", defaults.derive_day_id_from_date),
        option_delimiter=data.get("option_delimiter", defaults.option_delimiter),
        tag_delimiter=data.get("tag_delimiter", defaults.tag_delimiter),
        pagination=pagination,
        error_log_dir=data.get("error_log_dir", defaults.error_log_dir),
        database=db,
    )
