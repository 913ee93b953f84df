from __future__ import annotations

import re
from enum import Enum

from ..errors import NotFoundError

"""Fixed content sheets, age bands and day-link slots.

A workbook carries up to six content sheets. Each sheet belongs to one content
kind; quizzes carry their age band in the sheet itself, memory verses and key
lessons carry it per row, devotionals are split by audience.
"""

__all__ = [
    "SheetKey",
    "ContentKind",
    "AgeBand",
    "SHEET_ORDER",
    "SHEET_DISPLAY_NAMES",
    "DEFAULT_WORKBOOK_SHEET_NAMES",
    "SHEET_NAME_ALIASES",
    "BAND_SPLIT_SHEETS",
    "SHEET_KINDS",
    "SLOT_KEYS",
    "parse_sheet_key",
    "parse_age_band",
    "sheet_age_band",
    "audience_for",
]


class SheetKey(str, Enum):
    """Sheet identifiers; definition order is the fixed processing order."""
    MEMORY_VERSES = "memoryVerses"
    KEY_LESSONS = "keyLessons"
    QUIZZES_5_8 = "quizzes_5_8"
    QUIZZES_9_12 = "quizzes_9_12"
    CHILDREN_DEVOTIONALS = "childrenDevotionals"
    ADULT_DEVOTIONALS = "adultDevotionals"


class ContentKind(str, Enum):
    MEMORY_VERSE = "memory_verse"
    KEY_LESSON = "key_lesson"
    QUIZ = "quiz"
    DEVOTIONAL = "devotional"


class AgeBand(str, Enum):
    AGES_5_8 = "5_8"
    AGES_9_12 = "9_12"


SHEET_ORDER: tuple[SheetKey, ...] = tuple(SheetKey)

SHEET_DISPLAY_NAMES: dict[SheetKey, str] = {
    SheetKey.MEMORY_VERSES: "Memory Verses",
    SheetKey.KEY_LESSONS: "Key Lessons",
    SheetKey.QUIZZES_5_8: "Quizzes (5-8)",
    SheetKey.QUIZZES_9_12: "Quizzes (9-12)",
    SheetKey.CHILDREN_DEVOTIONALS: "Children Devotionals",
    SheetKey.ADULT_DEVOTIONALS: "Adult Devotionals",
}

# Sheet names expected inside the workbook (overridable via config)
DEFAULT_WORKBOOK_SHEET_NAMES: dict[SheetKey, str] = {
    SheetKey.MEMORY_VERSES: "Memory Verses",
    SheetKey.KEY_LESSONS: "Key Lessons",
    SheetKey.QUIZZES_5_8: "Quizzes 5-8",
    SheetKey.QUIZZES_9_12: "Quizzes 9-12",
    SheetKey.CHILDREN_DEVOTIONALS: "Children Devotionals",
    SheetKey.ADULT_DEVOTIONALS: "Adult Devotionals",
}

# Worksheet names of the admin dashboard download template, tried after the configured name
SHEET_NAME_ALIASES: dict[SheetKey, tuple[str, ...]] = {
    SheetKey.MEMORY_VERSES: ("MemoryVerses",),
    SheetKey.KEY_LESSONS: ("KeyLessons",),
    SheetKey.QUIZZES_5_8: ("Q_5_8", "Quiz 5-8"),
    SheetKey.QUIZZES_9_12: ("Q_9_12", "Quiz 9-12"),
    SheetKey.CHILDREN_DEVOTIONALS: ("Children Devotional",),
    SheetKey.ADULT_DEVOTIONALS: ("Adult Devotional", "Parent Devotional"),
}

# sheets whose rows may hold both age bands side by side ("Verse Text_5_8", "Lesson1_9_12")
BAND_SPLIT_SHEETS: frozenset[SheetKey] = frozenset({SheetKey.MEMORY_VERSES, SheetKey.KEY_LESSONS})

SHEET_KINDS: dict[SheetKey, ContentKind] = {
    SheetKey.MEMORY_VERSES: ContentKind.MEMORY_VERSE,
    SheetKey.KEY_LESSONS: ContentKind.KEY_LESSON,
    SheetKey.QUIZZES_5_8: ContentKind.QUIZ,
    SheetKey.QUIZZES_9_12: ContentKind.QUIZ,
    SheetKey.CHILDREN_DEVOTIONALS: ContentKind.DEVOTIONAL,
    SheetKey.ADULT_DEVOTIONALS: ContentKind.DEVOTIONAL,
}

SLOT_KEYS: tuple[str, ...] = (
    "memoryVerse_5_8",
    "memoryVerse_9_12",
    "keyLessons_5_8",
    "keyLessons_9_12",
    "quiz_5_8",
    "quiz_9_12",
    "childrenDevotional",
    "adultDevotional",
)

_AUDIENCES = {
    AgeBand.AGES_5_8: "SPROUT_EXPLORER",
    AgeBand.AGES_9_12: "TRAILBLAZER_TEEN",
}
PARENT_AUDIENCE = "PARENT"

_BAND_ALIASES = {
    "58": AgeBand.AGES_5_8,
    "sproutexplorer": AgeBand.AGES_5_8,
    "sprout": AgeBand.AGES_5_8,
    "912": AgeBand.AGES_9_12,
    "trailblazerteen": AgeBand.AGES_9_12,
    "trailblazer": AgeBand.AGES_9_12,
}


def parse_sheet_key(value: str | SheetKey) -> SheetKey:
    """Resolve a sheet key, raising NotFoundError for unknown sheets."""
    if isinstance(value, SheetKey):
        return value
    try:
        return SheetKey(value)
    except ValueError:
        raise NotFoundError(f"unknown sheet '{value}'") from None


def parse_age_band(value: object) -> AgeBand | None:
    """Map free-form age group text ("5-8", "9 - 12", "SPROUT_EXPLORER") to an AgeBand."""
    if value is None:
        return None
    if isinstance(value, AgeBand):
        return value
    key = re.sub(r"[^0-9a-z]", "", str(value).lower())
    # "ages5to8" / "age58" style labels
    key = key.replace("ages", "").replace("age", "").replace("to", "")
    return _BAND_ALIASES.get(key)


def sheet_age_band(sheet: SheetKey) -> AgeBand | None:
    if sheet is SheetKey.QUIZZES_5_8:
        return AgeBand.AGES_5_8
    if sheet is SheetKey.QUIZZES_9_12:
        return AgeBand.AGES_9_12
    return None


def audience_for(sheet: SheetKey, band: AgeBand | None) -> str | None:
    """Canonical audience label for content created from a row of ``sheet``."""
    if sheet is SheetKey.ADULT_DEVOTIONALS:
        return PARENT_AUDIENCE
    band = sheet_age_band(sheet) or band
    if band is None:
        return None
    return _AUDIENCES[band]
