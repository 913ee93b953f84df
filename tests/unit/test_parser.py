from __future__ import annotations

import logging

import pandas as pd
import pytest

from bulk_staging.errors import FatalParseError
from bulk_staging.models.config_models import StagingConfig
from bulk_staging.models.sheets import SheetKey
from bulk_staging.services import parser as parser_mod
from bulk_staging.services.parser import match_sheets, parse_workbook
from workbooks import devotional_row, lesson_row, quiz_row, verse_row


def test_match_sheets_by_configured_name_and_key():
    cfg = StagingConfig(sheets={"memoryVerses": "Verses"})
    matched = match_sheets(["verses", "QUIZZES 5-8", "keyLessons", "Notes"], cfg)
    assert matched == {
        SheetKey.MEMORY_VERSES: "verses",
        SheetKey.KEY_LESSONS: "keyLessons",
        SheetKey.QUIZZES_5_8: "QUIZZES 5-8",
    }


def test_match_sheets_accepts_dashboard_template_names():
    matched = match_sheets(
        ["MemoryVerses", "KeyLessons", "Q_5_8", "Q_9_12", "Children Devotional", "Adult Devotional"],
        StagingConfig(),
    )
    assert matched == {
        SheetKey.MEMORY_VERSES: "MemoryVerses",
        SheetKey.KEY_LESSONS: "KeyLessons",
        SheetKey.QUIZZES_5_8: "Q_5_8",
        SheetKey.QUIZZES_9_12: "Q_9_12",
        SheetKey.CHILDREN_DEVOTIONALS: "Children Devotional",
        SheetKey.ADULT_DEVOTIONALS: "Adult Devotional",
    }


def test_match_sheets_by_position_only_for_default_names():
    cfg = StagingConfig()
    assert match_sheets(["Sheet1", "Sheet 2"], cfg) == {
        SheetKey.MEMORY_VERSES: "Sheet1",
        SheetKey.KEY_LESSONS: "Sheet 2",
    }
    assert match_sheets(["Budget", "Sheet2"], cfg) == {SheetKey.KEY_LESSONS: "Sheet2"}
    assert match_sheets(["Sheet1"], StagingConfig(match_by_position=False)) == {}


def test_parse_workbook_collects_items_and_row_errors(make_workbook):
    path = make_workbook({
        "Memory Verses": [verse_row("20260118"), verse_row("20260119", Reference=None)],
        "Children Devotionals": [devotional_row("20260118", Content=None)],
        "Notes": [{"anything": "goes"}],
    })
    parsed = parse_workbook(path, StagingConfig())

    assert set(parsed.sheets) == {SheetKey.MEMORY_VERSES, SheetKey.CHILDREN_DEVOTIONALS}
    assert parsed.total_items == 3
    verses = parsed.sheets[SheetKey.MEMORY_VERSES]
    assert [i.index for i in verses] == [0, 1]
    assert [i.row_number for i in verses] == [2, 3]
    assert verses[0].day_id == "20260118"
    assert verses[1].validation_errors == ["reference: required field is missing"]

    assert "ignored unrecognized sheet 'Notes'" in parsed.parse_errors
    assert "Memory Verses row 3: reference: required field is missing" in parsed.parse_errors
    assert "Children Devotionals row 2: content: required field is missing" in parsed.parse_errors
    assert parsed.sheet_sources[SheetKey.CHILDREN_DEVOTIONALS] == "Children Devotionals"


def test_parse_workbook_all_six_sheets(make_workbook):
    path = make_workbook({
        "Adult Devotionals": [devotional_row("20260118", title="For parents")],
        "Memory Verses": [verse_row("20260118")],
        "Key Lessons": [lesson_row("20260118")],
        "Quizzes 5-8": [quiz_row("20260118")],
        "Quizzes 9-12": [quiz_row("20260118", title="Harder quiz")],
        "Children Devotionals": [devotional_row("20260118")],
    })
    parsed = parse_workbook(path, StagingConfig())
    assert list(parsed.sheets) == [
        SheetKey.MEMORY_VERSES,
        SheetKey.KEY_LESSONS,
        SheetKey.QUIZZES_5_8,
        SheetKey.QUIZZES_9_12,
        SheetKey.CHILDREN_DEVOTIONALS,
        SheetKey.ADULT_DEVOTIONALS,
    ]
    assert parsed.parse_errors == []
    lesson = parsed.sheets[SheetKey.KEY_LESSONS][0]
    assert lesson.data["lessons"] == [
        {"order": 1, "text": "God made everything"},
        {"order": 2, "text": "Creation is good"},
    ]


def test_parse_workbook_unreadable_is_fatal():
    with pytest.raises(FatalParseError):
        parse_workbook(b"definitely not xlsx", StagingConfig())


def test_parse_workbook_without_known_sheets_is_fatal(make_workbook):
    path = make_workbook({"Budget": [{"a": 1}]})
    with pytest.raises(FatalParseError) as e:
        parse_workbook(path, StagingConfig())
    assert "no recognized sheets" in str(e.value)


def test_sheet_without_header_is_reported_not_fatal(monkeypatch, caplog):
    raw = {
        "Memory Verses": pd.DataFrame([]),
        "Key Lessons": pd.DataFrame([
            ["Bible Reading", "Age Group", "Lesson 1"],
            ["Genesis 1", "5-8", "God made light"],
        ]),
    }
    monkeypatch.setattr(parser_mod, "read_workbook", lambda source: raw)
    caplog.set_level(logging.DEBUG, logger="bulk_staging.services.parser")

    parsed = parse_workbook(b"ignored", StagingConfig())
    assert parsed.sheets[SheetKey.MEMORY_VERSES] == []
    assert len(parsed.sheets[SheetKey.KEY_LESSONS]) == 1
    assert any(e.startswith("Memory Verses: sheet 'Memory Verses' lacks a header row") for e in parsed.parse_errors)
    assert "sheet=keyLessons" in caplog.text
