from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from ..errors import FatalParseError
from ..excel.fields import canonical_header
from ..excel.reader import SheetHeaderError, WorkbookReadError, normalize_sheet, read_workbook
from ..excel.rows import split_band_columns, stage_row
from ..models.config_models import StagingConfig
from ..models.sheets import SHEET_DISPLAY_NAMES, SHEET_NAME_ALIASES, SHEET_ORDER, SheetKey
from ..models.staged_upload import StagedItem

"""Spreadsheet parser: workbook -> staged items per content sheet.

Sheets are recognized by name (config ``sheets`` mapping, the sheet key itself
or the dashboard template name such as "Q_5_8", compared case/space/
punctuation-insensitively). When nothing matches by name and
``match_by_position`` is set, default-named worksheets ("Sheet1", "Sheet2",
...) are taken by position in the fixed sheet order.

Memory verse and key lesson rows that carry both age bands in suffixed
columns ("Verse Text_5_8", "Verse Text_9_12") are staged as one item per band.

Row problems never stop parsing: they are recorded on the item and echoed into
``parse_errors`` with the sheet and worksheet row number. Only an unreadable
workbook or one without any recognized sheet raises FatalParseError.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ParsedWorkbook",
    "match_sheets",
    "parse_workbook",
]


@dataclass
class ParsedWorkbook:
    sheets: dict[SheetKey, list[StagedItem]]
    parse_errors: list[str] = field(default_factory=list)
    sheet_sources: dict[SheetKey, str] = field(default_factory=dict)  # key -> worksheet name

    @property
    def total_items(self) -> int:
        return sum(len(items) for items in self.sheets.values())


def match_sheets(sheet_names: list[str], config: StagingConfig) -> dict[SheetKey, str]:
    """Map sheet keys to worksheet names present in the workbook."""
    by_canonical: dict[str, str] = {}
    for name in sheet_names:
        by_canonical.setdefault(canonical_header(name), name)

    matched: dict[SheetKey, str] = {}
    for key in SHEET_ORDER:
        for candidate in (config.workbook_sheet_name(key), key.value, *SHEET_NAME_ALIASES[key]):
            name = by_canonical.get(canonical_header(candidate))
            if name is not None and name not in matched.values():
                matched[key] = name
                break

    if not matched and config.match_by_position:
        # only default-named worksheets ("Sheet1", "Sheet 2") follow the positional convention
        for key, name in zip(SHEET_ORDER, sheet_names, strict=False):
            if re.fullmatch(r"sheet\d+", canonical_header(name)):
                matched[key] = name
    return matched


def parse_workbook(source: Path | str | bytes | BinaryIO, config: StagingConfig) -> ParsedWorkbook:
    """Parse every recognized sheet of ``source`` into staged items.

    Raises:
        FatalParseError: workbook unreadable or no recognized sheet present
    """
    try:
        raw_sheets = read_workbook(source)
    except WorkbookReadError as e:
        raise FatalParseError(str(e)) from e

    matched = match_sheets(list(raw_sheets), config)
    if not matched:
        expected = ", ".join(f"'{config.workbook_sheet_name(k)}'" for k in SHEET_ORDER)
        raise FatalParseError(f"no recognized sheets found (expected any of {expected})")

    parse_errors: list[str] = []
    used = set(matched.values())
    for name in raw_sheets:
        if name not in used:
            parse_errors.append(f"ignored unrecognized sheet '{name}'")

    sheets: dict[SheetKey, list[StagedItem]] = {}
    for key in SHEET_ORDER:
        if key not in matched:
            continue
        display = SHEET_DISPLAY_NAMES[key]
        worksheet = matched[key]
        try:
            sheet_data = normalize_sheet(raw_sheets[worksheet], worksheet, header_row=config.header_row)
        except SheetHeaderError as e:
            parse_errors.append(f"{display}: {e}")
            sheets[key] = []
            continue

        items: list[StagedItem] = []
        for row in sheet_data.rows:
            for variant in split_band_columns(key, row):
                item = stage_row(key, len(items), variant, config)
                items.append(item)
                for problem in item.validation_errors:
                    parse_errors.append(f"{display} row {row.row_number}: {problem}")
        sheets[key] = items
        logger.debug(
            "sheet=%s worksheet=%s columns=%s items=%d",
            key.value,
            worksheet,
            sheet_data.columns,
            len(items),
        )

    return ParsedWorkbook(sheets=sheets, parse_errors=parse_errors, sheet_sources=matched)
