from __future__ import annotations

import json
import re
from typing import Any

from ..errors import RowValidationError
from ..models.config_models import StagingConfig
from ..models.row_data import RowData
from ..models.sheets import BAND_SPLIT_SHEETS, SHEET_KINDS, AgeBand, ContentKind, SheetKey, parse_age_band
from ..models.staged_upload import StagedItem
from .fields import canonical_header, numbered_values, parse_date, split_list, to_int, to_text

"""Per-sheet row building and validation.

A worksheet row becomes a ``data`` map with canonical camelCase keys. Values
that cannot be coerced are kept as their raw text so that ``validate_row`` can
report them; validation is a pure function of ``data`` and is re-run whenever
a moderator edits a field.
"""

__all__ = [
    "build_row_data",
    "validate_row",
    "coerce_field",
    "editable_fields",
    "split_band_columns",
    "stage_row",
    "apply_edit",
]

_COMMON_ALIASES = {
    "dayid": "dayId",
    "day": "dayId",
    "dayidentifier": "dayId",
    "date": "date",
    "publishdate": "date",
    "agegroup": "ageGroup",
    "ageband": "ageGroup",
    "audience": "ageGroup",
    "ages": "ageGroup",
    "biblereading": "bibleReading",
    "reading": "bibleReading",
    "dailyreading": "bibleReading",
}

_KIND_ALIASES: dict[ContentKind, dict[str, str]] = {
    ContentKind.MEMORY_VERSE: {
        "reference": "reference",
        "versereference": "reference",
        "verseref": "reference",
        "versetext": "verseText",
        "verse": "verseText",
        "text": "verseText",
        "book": "book",
        "chapter": "chapter",
        "versestart": "verseStart",
        "verseend": "verseEnd",
        "topic": "topic",
        "theme": "topic",
    },
    ContentKind.KEY_LESSON: {},
    ContentKind.QUIZ: {
        "title": "title",
        "quiztitle": "title",
        "description": "description",
        "devotional": "devotional",
        "devotionaltitle": "devotional",
        "linkeddevotional": "devotional",
        "passingscore": "passingScore",
        "timelimit": "timeLimit",
    },
    ContentKind.DEVOTIONAL: {
        "title": "title",
        "subtitle": "subtitle",
        "biblereference": "bibleReference",
        "reference": "bibleReference",
        "versetext": "verseText",
        "verse": "verseText",
        "content": "content",
        "body": "content",
        "bodystory": "content",
        "story": "content",
        "faithspeaks": "faithSpeaks",
        "wordchallenge": "wordChallenge",
        "prayerprompt": "prayerPrompt",
        "prayer": "prayerPrompt",
        "tags": "tags",
    },
}

_LIST_FIELDS: dict[ContentKind, str] = {
    ContentKind.MEMORY_VERSE: "hints",
    ContentKind.KEY_LESSON: "lessons",
    ContentKind.QUIZ: "questions",
    ContentKind.DEVOTIONAL: "reflectionQuestions",
}

_REQUIRED: dict[ContentKind, tuple[str, ...]] = {
    ContentKind.MEMORY_VERSE: ("reference", "verseText"),
    ContentKind.KEY_LESSON: ("bibleReading",),
    ContentKind.QUIZ: ("title",),
    ContentKind.DEVOTIONAL: ("title", "bibleReference", "verseText", "content"),
}

_INT_FIELDS = ("chapter", "verseStart", "verseEnd", "passingScore", "timeLimit")

_QUESTION_TYPES = {
    "MULTIPLECHOICE": "MULTIPLE_CHOICE",
    "MCQ": "MULTIPLE_CHOICE",
    "MC": "MULTIPLE_CHOICE",
    "TRUEFALSE": "TRUE_FALSE",
    "TF": "TRUE_FALSE",
    "BOOLEAN": "TRUE_FALSE",
    "FILLBLANK": "FILL_BLANK",
    "FILLINTHEBLANK": "FILL_BLANK",
}
_QUESTION_PARTS = {
    "options": "options",
    "choices": "options",
    "answer": "correctAnswer",
    "correctanswer": "correctAnswer",
    "explanation": "explanation",
    "points": "points",
    "type": "type",
}
_Q_TEXT = re.compile(r"^(?:q|question)(\d+)(?:text)?$")
_Q_PART_SUFFIX = re.compile(r"^(?:q|question)(\d+)(options|choices|answer|correctanswer|explanation|points|type)$")
_Q_PART_PREFIX = re.compile(r"^(options|choices|answer|correctanswer|explanation|points|type)(\d+)$")
_Q_OPTION_LETTER = re.compile(r"^(?:q|question)(\d+)([a-f])$")  # Q1A .. Q1F

# "Verse Text_5_8", "Lesson1_9_12", "Verse Text (9-12)"
_BAND_COLUMN = re.compile(r"^(?P<base>.+?)[\s_-]*\(?(?P<band>5\s*[-_]\s*8|9\s*[-_]\s*12)\)?$")


def _normalize_question_type(raw: Any) -> str | None:
    text = to_text(raw)
    if text is None:
        return None
    key = re.sub(r"[^A-Z]", "", text.upper())
    return _QUESTION_TYPES.get(key, text)


def _build_questions(fields: dict[str, Any], config: StagingConfig) -> list[dict[str, Any]]:
    parts: dict[int, dict[str, Any]] = {}
    for key, value in fields.items():
        m = _Q_TEXT.match(key)
        if m:
            parts.setdefault(int(m.group(1)), {})["question"] = to_text(value)
            continue
        m = _Q_OPTION_LETTER.match(key)
        if m:
            parts.setdefault(int(m.group(1)), {}).setdefault("lettered", {})[m.group(2).upper()] = value
            continue
        m = _Q_PART_SUFFIX.match(key)
        if m:
            parts.setdefault(int(m.group(1)), {})[_QUESTION_PARTS[m.group(2)]] = value
            continue
        m = _Q_PART_PREFIX.match(key)
        if m:
            parts.setdefault(int(m.group(2)), {})[_QUESTION_PARTS[m.group(1)]] = value

    questions = []
    for n in sorted(parts):
        raw = parts[n]
        options = split_list(raw.get("options"), config.option_delimiter)
        by_letter: dict[str, str] = {}
        for letter, cell in (raw.get("lettered") or {}).items():
            text = to_text(cell)
            if text:
                by_letter[letter] = text
        if not options and by_letter:
            options = [by_letter[k] for k in sorted(by_letter)]
        answer = to_text(raw.get("correctAnswer"))
        if answer is not None and answer not in options and answer.upper() in by_letter:
            # "Q1Answer: B" names the option column, not the option text
            answer = by_letter[answer.upper()]
        qtype = _normalize_question_type(raw.get("type"))
        if qtype is None:
            if options:
                qtype = "MULTIPLE_CHOICE"
            elif answer is not None and answer.lower() in ("true", "false"):
                qtype = "TRUE_FALSE"
            else:
                qtype = "FILL_BLANK"
        try:
            points = to_int("points", raw.get("points"))
        except RowValidationError:
            points = to_text(raw.get("points"))
        question: dict[str, Any] = {
            "question": raw.get("question"),
            "type": qtype,
            "options": options,
            "correctAnswer": answer,
            "points": 1 if points is None else points,
        }
        explanation = to_text(raw.get("explanation"))
        if explanation:
            question["explanation"] = explanation
        questions.append(question)
    return questions


def _coerce_questions(value: Any) -> list[dict[str, Any]]:
    """Accept a list of question objects or its JSON text (CLI edits)."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"questions must be a JSON array of question objects: {e}") from None
    if not isinstance(value, list) or not all(isinstance(q, dict) for q in value):
        raise ValueError("questions must be a list of question objects")
    return [dict(q) for q in value]


def coerce_field(sheet: SheetKey, field: str, value: Any, config: StagingConfig) -> Any:
    """Coerce one canonical field; uncoercible values are kept as raw text."""
    kind = SHEET_KINDS[sheet]
    if field == "date":
        try:
            parsed = parse_date(field, value)
        except RowValidationError:
            return to_text(value)
        return parsed.isoformat() if parsed else None
    if field in _INT_FIELDS:
        try:
            return to_int(field, value)
        except RowValidationError:
            return to_text(value)
    if field == "ageGroup":
        band = parse_age_band(value)
        return band.value if band else to_text(value)
    if field == "tags":
        return split_list(value, config.tag_delimiter)
    if field == _LIST_FIELDS[kind]:
        if kind is ContentKind.KEY_LESSON:
            if isinstance(value, list) and all(isinstance(v, dict) for v in value):
                texts = [to_text(v.get("text")) for v in value]
            else:
                texts = split_list(value, config.option_delimiter)
            return [{"order": i + 1, "text": t} for i, t in enumerate(t for t in texts if t)]
        if kind is ContentKind.QUIZ:
            return _coerce_questions(value)
        return split_list(value, config.option_delimiter)
    return to_text(value)


def editable_fields(sheet: SheetKey) -> set[str]:
    kind = SHEET_KINDS[sheet]
    return set(_COMMON_ALIASES.values()) | set(_KIND_ALIASES[kind].values()) | {_LIST_FIELDS[kind]}


def build_row_data(sheet: SheetKey, values: dict[str, Any], config: StagingConfig) -> dict[str, Any]:
    """Map a normalized worksheet row onto the canonical field names of its sheet."""
    kind = SHEET_KINDS[sheet]
    fields = {canonical_header(k): v for k, v in values.items() if v is not None}
    aliases = {**_COMMON_ALIASES, **_KIND_ALIASES[kind]}

    data: dict[str, Any] = {}
    for key, value in fields.items():
        target = aliases.get(key)
        # first matching column wins when two headers alias the same field
        if target and target not in data:
            data[target] = coerce_field(sheet, target, value, config)

    if kind is ContentKind.MEMORY_VERSE:
        data["hints"] = numbered_values(fields, ("hint",))
    elif kind is ContentKind.KEY_LESSON:
        texts = numbered_values(fields, ("lesson", "keylesson"))
        data["lessons"] = [{"order": i + 1, "text": t} for i, t in enumerate(texts)]
    elif kind is ContentKind.DEVOTIONAL:
        data["reflectionQuestions"] = numbered_values(fields, ("reflectionquestion", "reflection", "question"))
        data.setdefault("tags", [])
        if not data.get("bibleReference") and data.get("bibleReading"):
            data["bibleReference"] = data["bibleReading"]
    elif kind is ContentKind.QUIZ:
        data["questions"] = _build_questions(fields, config)
        if not data.get("title") and data.get("bibleReading"):
            # template quiz sheets carry no title column
            data["title"] = f"{data['bibleReading']} Quiz"
    return data


def _validate_questions(questions: list[dict[str, Any]]) -> list[str]:
    errors = []
    for n, q in enumerate(questions, start=1):
        label = f"questions[{n}]"
        if not isinstance(q, dict):
            errors.append(f"{label}: expected a question object, got '{q}'")
            continue
        if not q.get("question"):
            errors.append(f"{label}: question text is missing")
        qtype = q.get("type")
        if qtype not in ("MULTIPLE_CHOICE", "TRUE_FALSE", "FILL_BLANK"):
            errors.append(f"{label}: unknown question type '{qtype}'")
        answer = q.get("correctAnswer")
        if not answer:
            errors.append(f"{label}: correct answer is missing")
        options = q.get("options") or []
        if qtype == "MULTIPLE_CHOICE":
            if len(options) < 2:
                errors.append(f"{label}: multiple choice needs at least 2 options")
            elif answer and answer not in options:
                errors.append(f"{label}: correct answer '{answer}' is not one of the options")
        if not isinstance(q.get("points"), int) or q["points"] < 0:
            errors.append(f"{label}: points must be a non-negative whole number")
    return errors


def validate_row(sheet: SheetKey, data: dict[str, Any]) -> list[str]:
    """Advisory field-level checks; an empty list means the row is clean."""
    kind = SHEET_KINDS[sheet]
    errors: list[str] = []
    for name in _REQUIRED[kind]:
        if not data.get(name):
            errors.append(f"{name}: required field is missing")

    if kind is ContentKind.KEY_LESSON and not data.get("lessons"):
        errors.append("lessons: at least one lesson is required")
    if kind is ContentKind.QUIZ:
        if not data.get("questions"):
            errors.append("questions: at least one question is required")
        else:
            errors.extend(_validate_questions(data["questions"]))

    if data.get("date") is not None:
        try:
            parse_date("date", data["date"])
        except RowValidationError as e:
            errors.append(str(e))
    for name in _INT_FIELDS:
        if data.get(name) is not None and not isinstance(data[name], int):
            errors.append(f"{name}: expected a whole number, got '{data[name]}'")

    band = data.get("ageGroup")
    if kind in (ContentKind.MEMORY_VERSE, ContentKind.KEY_LESSON) and band is None:
        errors.append("ageGroup: required field is missing (5-8 or 9-12)")
    elif band is not None and sheet in (
        SheetKey.MEMORY_VERSES,
        SheetKey.KEY_LESSONS,
        SheetKey.CHILDREN_DEVOTIONALS,
    ) and parse_age_band(band) is None:
        errors.append(f"ageGroup: unrecognized age group '{band}'")
    return errors


def split_band_columns(sheet: SheetKey, row: RowData) -> list[RowData]:
    """Split a row holding both age bands side by side into one row per band.

    Columns suffixed with a band ("Verse Text_5_8", "Lesson2_9_12") lose the
    suffix and go to that band's row; unsuffixed columns are shared, and each
    row gets an "Age Group" column. A band whose columns are all blank is
    dropped unless every band is blank. Rows without band columns, and sheets
    other than memory verses and key lessons, come back unchanged.
    """
    if sheet not in BAND_SPLIT_SHEETS:
        return [row]
    shared: dict[str, Any] = {}
    per_band: dict[AgeBand, dict[str, Any]] = {}
    for header, value in row.values.items():
        m = _BAND_COLUMN.match(str(header).strip())
        band = parse_age_band(m.group("band")) if m else None
        if band is None:
            shared[header] = value
        else:
            per_band.setdefault(band, {})[m.group("base").strip()] = value
    if not per_band:
        return [row]

    bands = [b for b in AgeBand if any(v is not None for v in per_band.get(b, {}).values())]
    if not bands:
        bands = [b for b in AgeBand if b in per_band]
    return [
        RowData(row_number=row.row_number, values={**shared, **per_band[band], "Age Group": band.value})
        for band in bands
    ]


def _derive_day(item: StagedItem, config: StagingConfig) -> None:
    """Set ``item.date`` / ``item.day_id`` from the row data."""
    try:
        parsed = parse_date("date", item.data.get("date"))
    except RowValidationError:
        parsed = None
    item.date = parsed.isoformat() if parsed else None
    day_id = to_text(item.data.get("dayId"))
    if day_id is None and parsed is not None and config.derive_day_id_from_date:
        day_id = parsed.strftime("%Y%m%d")
    item.day_id = day_id


def stage_row(sheet: SheetKey, index: int, row: RowData, config: StagingConfig) -> StagedItem:
    data = build_row_data(sheet, row.values, config)
    item = StagedItem(
        index=index,
        day_id=None,
        data=data,
        validation_errors=validate_row(sheet, data),
        row_number=row.row_number,
    )
    _derive_day(item, config)
    return item


def apply_edit(sheet: SheetKey, item: StagedItem, field: str, value: Any, config: StagingConfig) -> None:
    """Set one canonical field on ``item`` and re-run validation / day derivation."""
    if field not in editable_fields(sheet):
        raise ValueError(f"field '{field}' cannot be edited on sheet '{sheet.value}'")
    if value is None or (isinstance(value, str) and not value.strip()):
        item.data.pop(field, None)
    else:
        item.data[field] = coerce_field(sheet, field, value, config)
    item.validation_errors = validate_row(sheet, item.data)
    _derive_day(item, config)
