from __future__ import annotations

from bulk_staging.models.sheets import SheetKey
from bulk_staging.models.staged_upload import ItemStatus, StagedItem
from bulk_staging.services.linker import LinkPolicy, link_days, slot_for


def _item(index, day_id, date=None, status=ItemStatus.PENDING, **data):
    return StagedItem(index=index, day_id=day_id, date=date, data=data, status=status)


def test_slot_for_each_sheet():
    assert slot_for(SheetKey.MEMORY_VERSES, _item(0, "d", ageGroup="5_8")) == "memoryVerse_5_8"
    assert slot_for(SheetKey.KEY_LESSONS, _item(0, "d", ageGroup="9-12")) == "keyLessons_9_12"
    assert slot_for(SheetKey.QUIZZES_9_12, _item(0, "d")) == "quiz_9_12"
    assert slot_for(SheetKey.CHILDREN_DEVOTIONALS, _item(0, "d")) == "childrenDevotional"
    assert slot_for(SheetKey.ADULT_DEVOTIONALS, _item(0, "d")) == "adultDevotional"
    assert slot_for(SheetKey.MEMORY_VERSES, _item(0, "d")) is None


def test_link_days_groups_by_day_and_sorts():
    sheets = {
        SheetKey.MEMORY_VERSES: [
            _item(0, "20260119", "2026-01-19", ageGroup="5_8", reference="Psalm 23:1"),
            _item(1, "20260118", "2026-01-18", ageGroup="9_12", reference="John 3:16"),
        ],
        SheetKey.KEY_LESSONS: [
            _item(0, "20260118", ageGroup="9_12", bibleReading="Genesis 1",
                  lessons=[{"order": 1, "text": "a"}, {"order": 2, "text": "b"}]),
        ],
        SheetKey.QUIZZES_5_8: [
            _item(0, "20260118", title="Quiz", questions=[{"question": "q"}]),
        ],
        SheetKey.ADULT_DEVOTIONALS: [_item(0, "20260118", title="Grown-up")],
    }
    rels = link_days(sheets)
    assert [r.day_id for r in rels] == ["20260118", "20260119"]

    day = rels[0]
    assert day.date == "2026-01-18"
    assert day.bible_reading == "Genesis 1"
    assert rels[1].bible_reading == "Psalm 23:1"
    assert set(day.links) == {"memoryVerse_9_12", "keyLessons_9_12", "quiz_5_8", "adultDevotional"}
    assert day.links["memoryVerse_9_12"].reference == "John 3:16"
    assert day.links["keyLessons_9_12"].count == 2
    assert day.links["quiz_5_8"].to_dict() == {
        "index": 0, "sheet": "quizzes_5_8", "status": "pending", "questionCount": 1, "title": "Quiz",
    }
    assert day.links["adultDevotional"].title == "Grown-up"


def test_items_without_day_id_are_not_linked():
    rels = link_days({SheetKey.MEMORY_VERSES: [_item(0, None, ageGroup="5_8"), _item(1, "", ageGroup="5_8")]})
    assert rels == []


def test_day_ids_compare_as_strings():
    rels = link_days({
        SheetKey.CHILDREN_DEVOTIONALS: [_item(0, "10", title="a"), _item(1, "9", title="b"), _item(2, "W1", title="c")],
    })
    assert [r.day_id for r in rels] == ["10", "9", "W1"]


def test_duplicate_slot_last_wins_by_default():
    sheets = {
        SheetKey.MEMORY_VERSES: [
            _item(0, "d1", ageGroup="5_8", reference="first"),
            _item(1, "d1", ageGroup="5_8", reference="second"),
        ],
    }
    assert link_days(sheets)[0].links["memoryVerse_5_8"].index == 1
    first = link_days(sheets, LinkPolicy.FIRST)[0].links["memoryVerse_5_8"]
    assert first.index == 0
    assert first.reference == "first"
    assert link_days(sheets, "first")[0].links["memoryVerse_5_8"].index == 0


def test_unknown_band_item_still_defines_the_day():
    rels = link_days({SheetKey.KEY_LESSONS: [_item(0, "d1", "2026-01-18", bibleReading="Mark 1")]})
    assert rels[0].links == {}
    assert rels[0].bible_reading == "Mark 1"
    assert rels[0].date == "2026-01-18"


def test_link_carries_item_status():
    rels = link_days({SheetKey.CHILDREN_DEVOTIONALS: [_item(0, "d", status=ItemStatus.APPROVED, title="t")]})
    assert rels[0].links["childrenDevotional"].status is ItemStatus.APPROVED


def test_bible_reading_column_beats_verse_reference():
    sheets = {
        SheetKey.MEMORY_VERSES: [_item(0, "d1", ageGroup="5_8", reference="John 3:16")],
        SheetKey.QUIZZES_5_8: [_item(0, "d1", bibleReading="Matthew 1:1-25")],
        SheetKey.CHILDREN_DEVOTIONALS: [_item(0, "d1", bibleReading="Luke 2")],
    }
    (day,) = link_days(sheets)
    assert day.bible_reading == "Matthew 1:1-25"

    (only_verse,) = link_days({SheetKey.MEMORY_VERSES: sheets[SheetKey.MEMORY_VERSES]})
    assert only_verse.bible_reading == "John 3:16"
