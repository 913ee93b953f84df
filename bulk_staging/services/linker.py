from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum

from ..models.sheets import SHEET_KINDS, SHEET_ORDER, ContentKind, SheetKey, parse_age_band, sheet_age_band
from ..models.staged_upload import DayLink, DayRelationship, StagedItem

"""Day relationship linker.

Groups staged items of every sheet by their opaque ``dayId`` and assigns each
item to the day slot implied by its sheet and age band. The dayId is only ever
compared as a string; the separate ``date`` is carried for display.

When two items of the same sheet compete for the same slot of the same day,
``LinkPolicy`` decides which one is linked; the loser stays a valid staged
item without a link.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "LinkPolicy",
    "slot_for",
    "link_days",
]


class LinkPolicy(str, Enum):
    LAST = "last"
    FIRST = "first"


def slot_for(sheet: SheetKey, item: StagedItem) -> str | None:
    """Day slot for ``item`` or None when its age band is unknown."""
    kind = SHEET_KINDS[sheet]
    if sheet is SheetKey.CHILDREN_DEVOTIONALS:
        return "childrenDevotional"
    if sheet is SheetKey.ADULT_DEVOTIONALS:
        return "adultDevotional"
    band = sheet_age_band(sheet) or parse_age_band(item.data.get("ageGroup"))
    if band is None:
        return None
    prefix = {
        ContentKind.MEMORY_VERSE: "memoryVerse",
        ContentKind.KEY_LESSON: "keyLessons",
        ContentKind.QUIZ: "quiz",
    }[kind]
    return f"{prefix}_{band.value}"


def _make_link(sheet: SheetKey, item: StagedItem) -> DayLink:
    kind = SHEET_KINDS[sheet]
    link = DayLink(index=item.index, sheet=sheet, status=item.status)
    if kind is ContentKind.MEMORY_VERSE:
        link.reference = item.data.get("reference")
    elif kind is ContentKind.KEY_LESSON:
        link.count = len(item.data.get("lessons") or [])
    elif kind is ContentKind.QUIZ:
        link.question_count = len(item.data.get("questions") or [])
        link.title = item.data.get("title")
    else:
        link.title = item.data.get("title")
    return link


def _fallback_reading(item: StagedItem) -> str | None:
    for name in ("bibleReference", "reference"):
        value = item.data.get(name)
        if value:
            return value
    return None


def link_days(
    sheets: Mapping[SheetKey, Sequence[StagedItem]],
    policy: LinkPolicy | str = LinkPolicy.LAST,
) -> list[DayRelationship]:
    """Build one DayRelationship per distinct dayId, sorted by dayId (string order)."""
    policy = LinkPolicy(policy)
    days: dict[str, DayRelationship] = {}
    explicit_reading: set[str] = set()  # days whose reading came from a bibleReading column
    for sheet in SHEET_ORDER:
        for item in sorted(sheets.get(sheet, ()), key=lambda i: i.index):
            if not item.day_id:
                continue
            rel = days.get(item.day_id)
            if rel is None:
                rel = days[item.day_id] = DayRelationship(day_id=item.day_id)
            if rel.date is None and item.date:
                rel.date = item.date
            reading = item.data.get("bibleReading")
            if reading and item.day_id not in explicit_reading:
                rel.bible_reading = reading
                explicit_reading.add(item.day_id)
            elif rel.bible_reading is None:
                rel.bible_reading = _fallback_reading(item)

            slot = slot_for(sheet, item)
            if slot is None:
                continue
            existing = rel.links.get(slot)
            if existing is not None:
                logger.debug(
                    "day=%s slot=%s duplicate rows %s:%d / %s:%d policy=%s",
                    item.day_id,
                    slot,
                    existing.sheet.value,
                    existing.index,
                    sheet.value,
                    item.index,
                    policy.value,
                )
                if policy is LinkPolicy.FIRST:
                    continue
            rel.links[slot] = _make_link(sheet, item)
    return [days[day_id] for day_id in sorted(days)]
