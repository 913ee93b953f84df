"""Row and workbook builders shared by the tests."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from bulk_staging.models.staged_upload import Uploader

ADMIN = Uploader(id="admin-1", first_name="Ada", email="ada@example.org")


def verse_row(day_id: str, reference: str = "John 3:16", age: str = "5-8", **extra: Any) -> dict[str, Any]:
    row = {
        "Day ID": day_id,
        "Age Group": age,
        "Reference": reference,
        "Verse Text": f"Text of {reference}",
        "Hint 1": "first hint",
    }
    row.update(extra)
    return row


def devotional_row(day_id: str, title: str = "Walking in Love", **extra: Any) -> dict[str, Any]:
    row = {
        "Day ID": day_id,
        "Title": title,
        "Bible Reference": "1 John 4:7",
        "Verse Text": "Beloved, let us love one another",
        "Content": "Love comes from God.",
        "Tags": "love, faith,",
    }
    row.update(extra)
    return row


def quiz_row(day_id: str, title: str = "Love quiz", **extra: Any) -> dict[str, Any]:
    row = {
        "Day ID": day_id,
        "Title": title,
        "Q1": "Where does love come from?",
        "Q1 Options": "God|Money|Nowhere",
        "Answer 1": "God",
    }
    row.update(extra)
    return row


def lesson_row(day_id: str, age: str = "9-12", **extra: Any) -> dict[str, Any]:
    row = {
        "Day ID": day_id,
        "Age Group": age,
        "Bible Reading": "Genesis 1",
        "Lesson 1": "God made everything",
        "Lesson 2": "",
        "Lesson 3": "Creation is good",
    }
    row.update(extra)
    return row


def build_workbook_bytes(sheets: dict[str, list[dict[str, Any]] | pd.DataFrame], path: Path) -> Path:
    """Write ``sheets`` (worksheet name -> rows) as a real xlsx file."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            df = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(rows)
            df.to_excel(writer, sheet_name=name, index=False)
    return path


def dashboard_template_sheets() -> dict[str, list[dict[str, Any]]]:
    """Rows of the admin dashboard's downloadable upload template."""
    common = {"DayID": "20260118", "Date": "2026-01-18", "BibleReading": "Matthew 1:1-25"}
    quiz = {
        **common,
        "Q1": "Who was Jesus' earthly father?",
        "Q1A": "Joseph", "Q1B": "David", "Q1C": "Abraham", "Q1D": "Moses",
        "Q1Answer": "A",
        "Q2": "What does Emmanuel mean?",
        "Q2A": "King of Kings", "Q2B": "God with us", "Q2C": "Prince of Peace", "Q2D": "Savior",
        "Q2Answer": "B",
    }
    devotional = {
        "DayID": "20260118",
        "Date": "2026-01-18",
        "Title": "God's Promise Fulfilled",
        "BibleReading": "Matthew 1:1-25",
        "Body/Story": "Long ago, God made a promise to send a Savior...",
        "FaithSpeaks": "I believe God keeps His promises.",
        "WordChallenge": "Share one promise of God with a friend.",
    }
    return {
        "MemoryVerses": [{
            **common,
            "Verse Text_5_8": "For God so loved the world...",
            "Verse Text_9_12": "For God so loved the world that he gave...",
            "Reference": "John 3:16",
        }],
        "KeyLessons": [{
            **common,
            "Lesson1_5_8": "God keeps His promises",
            "Lesson2_5_8": "Jesus is God's Son",
            "Lesson3_5_8": "God has a plan for everyone",
            "Lesson1_9_12": "God fulfills prophecy",
            "Lesson2_9_12": "Jesus came to save us",
            "Lesson3_9_12": "Trust in God's timing",
        }],
        "Q_5_8": [quiz],
        "Q_9_12": [dict(quiz)],
        "Children Devotional": [devotional],
        "Adult Devotional": [dict(devotional)],
    }
