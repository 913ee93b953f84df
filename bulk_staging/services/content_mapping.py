from __future__ import annotations

import re
from typing import Any

from ..models.sheets import SHEET_KINDS, AgeBand, ContentKind, SheetKey, audience_for, parse_age_band
from ..models.staged_upload import StagedItem

"""Staged row -> canonical content field map.

Pure functions; the commit engine passes the result to the content store
``create_*`` call for the sheet's kind.
"""

__all__ = [
    "DEFAULT_PASSING_SCORE",
    "parse_reference",
    "content_fields",
    "devotional_ref",
    "title_key",
]

DEFAULT_PASSING_SCORE = 70

# "John 3:16", "1 Corinthians 13:4-7", "Psalm 23:1 - 3"
_REFERENCE = re.compile(
    r"^\s*(?P<book>(?:[1-3]\s*)?[A-Za-z][A-Za-z .]*?)\s+(?P<chapter>\d+)"
    r"(?::(?P<start>\d+)(?:\s*[-–]\s*(?P<end>\d+))?)?\s*$"
)


def parse_reference(reference: str | None) -> dict[str, Any]:
    """Split a scripture reference into book / chapter / verseStart / verseEnd.

    Returns an empty dict when the reference does not follow the usual form.
    """
    if not reference:
        return {}
    m = _REFERENCE.match(reference)
    if not m:
        return {}
    out: dict[str, Any] = {"book": m.group("book").strip(), "chapter": int(m.group("chapter"))}
    if m.group("start"):
        out["verseStart"] = int(m.group("start"))
    if m.group("end"):
        out["verseEnd"] = int(m.group("end"))
    return out


def _audience(sheet: SheetKey, data: dict[str, Any]) -> str | None:
    audience = audience_for(sheet, parse_age_band(data.get("ageGroup")))
    if audience is None and sheet is SheetKey.CHILDREN_DEVOTIONALS:
        return audience_for(sheet, AgeBand.AGES_5_8)
    return audience


def _compact(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def _memory_verse(data: dict[str, Any]) -> dict[str, Any]:
    parsed = parse_reference(data.get("reference"))
    return {
        "verseText": data.get("verseText"),
        "reference": data.get("reference"),
        "book": data.get("book") or parsed.get("book"),
        "chapter": data.get("chapter") if data.get("chapter") is not None else parsed.get("chapter"),
        "verseStart": data.get("verseStart") if data.get("verseStart") is not None else parsed.get("verseStart"),
        "verseEnd": data.get("verseEnd") if data.get("verseEnd") is not None else parsed.get("verseEnd"),
        "topic": data.get("topic"),
        "hints": list(data.get("hints") or []),
    }


def _key_lesson(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "bibleReading": data.get("bibleReading"),
        "lessons": [dict(lesson) for lesson in data.get("lessons") or []],
    }


def _quiz(data: dict[str, Any]) -> dict[str, Any]:
    questions = [dict(q) for q in data.get("questions") or [] if isinstance(q, dict)]
    total = 0
    for q in questions:
        points = q.get("points")
        total += points if isinstance(points, int) else 1
    passing = data.get("passingScore")
    return {
        "title": data.get("title"),
        "description": data.get("description"),
        "questions": questions,
        "totalPoints": total,
        "passingScore": passing if isinstance(passing, int) else DEFAULT_PASSING_SCORE,
        "timeLimit": data.get("timeLimit") if isinstance(data.get("timeLimit"), int) else None,
    }


def _devotional(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "title": data.get("title"),
        "subtitle": data.get("subtitle"),
        "bibleReference": data.get("bibleReference"),
        "verseText": data.get("verseText"),
        "content": data.get("content"),
        "prayerPrompt": data.get("prayerPrompt"),
        "faithSpeaks": data.get("faithSpeaks"),
        "wordChallenge": data.get("wordChallenge"),
        "reflectionQuestions": list(data.get("reflectionQuestions") or []),
        "tags": list(data.get("tags") or []),
    }


_MAPPERS = {
    ContentKind.MEMORY_VERSE: _memory_verse,
    ContentKind.KEY_LESSON: _key_lesson,
    ContentKind.QUIZ: _quiz,
    ContentKind.DEVOTIONAL: _devotional,
}


def content_fields(sheet: SheetKey, item: StagedItem) -> dict[str, Any]:
    """Canonical create payload for ``item``; ``None`` values are dropped."""
    kind = SHEET_KINDS[sheet]
    fields = _MAPPERS[kind](item.data)
    fields.update(
        audience=_audience(sheet, item.data),
        dayId=item.day_id,
        publishDate=item.date,
        isActive=True,
    )
    return _compact(fields)


def devotional_ref(item: StagedItem) -> str | None:
    """Normalized devotional title a quiz row points at, if any."""
    return title_key(item.data.get("devotional"))


def title_key(title: Any) -> str | None:
    if not title:
        return None
    return " ".join(str(title).split()).casefold()

