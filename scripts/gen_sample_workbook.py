#!/usr/bin/env python3
"""Sample workbook generator for manual testing of the staging pipeline.

Writes one workbook with all six content sheets in the layout the parser
expects (header in the first row, one row per item). Every day gets one
memory verse and one key lesson per age band, one quiz per age band and one
devotional per audience, all sharing the same ``Day ID``.

Usage:
    python scripts/gen_sample_workbook.py --days 7 --start 2026-01-18 -o data/sample.xlsx
"""
from __future__ import annotations

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import pandas as pd

_BOOKS = [
    ("John", 3, 16, None),
    ("Psalm", 23, 1, 3),
    ("Proverbs", 3, 5, 6),
    ("Philippians", 4, 13, None),
    ("Matthew", 5, 9, None),
    ("Joshua", 1, 9, None),
    ("1 John", 4, 19, None),
]


def _reference(n: int) -> str:
    book, chapter, start, end = _BOOKS[n % len(_BOOKS)]
    return f"{book} {chapter}:{start}" + (f"-{end}" if end else "")


def build_sheets(days: int, start: date) -> dict[str, pd.DataFrame]:
    """Build one DataFrame per worksheet name."""
    verses: list[dict[str, Any]] = []
    lessons: list[dict[str, Any]] = []
    quizzes: dict[str, list[dict[str, Any]]] = {"5-8": [], "9-12": []}
    children: list[dict[str, Any]] = []
    adults: list[dict[str, Any]] = []

    for n in range(days):
        day = start + timedelta(days=n)
        day_id = day.strftime("%Y%m%d")
        ref = _reference(n)
        for band in ("5-8", "9-12"):
            verses.append({
                "Day ID": day_id, "Date": day.isoformat(), "Age Group": band,
                "Reference": ref, "Verse Text": f"Sample verse text for {ref}",
                "Hint 1": "Read it aloud", "Hint 2": "Say it from memory",
            })
            lessons.append({
                "Day ID": day_id, "Date": day.isoformat(), "Age Group": band, "Bible Reading": ref,
                "Lesson 1": f"Lesson one for day {n + 1}", "Lesson 2": f"Lesson two for day {n + 1}",
            })
            quizzes[band].append({
                "Day ID": day_id, "Date": day.isoformat(), "Title": f"Day {n + 1} quiz ({band})",
                "Devotional": f"Day {n + 1} devotional",
                "Q1": "Who is speaking in this verse?", "Q1 Options": "Jesus|Moses|Paul", "Answer 1": "Jesus",
                "Q2": "This verse is about love.", "Answer 2": "true",
            })
        children.append({
            "Day ID": day_id, "Date": day.isoformat(), "Title": f"Day {n + 1} devotional",
            "Bible Reference": ref, "Verse Text": f"Sample verse text for {ref}",
            "Content": "A short reading for children.", "Prayer Prompt": "Thank God for today.",
            "Reflection Question 1": "What did you learn?", "Tags": "faith, love",
        })
        adults.append({
            "Day ID": day_id, "Date": day.isoformat(), "Title": f"Day {n + 1} parent devotional",
            "Bible Reference": ref, "Verse Text": f"Sample verse text for {ref}",
            "Content": "A short reading for parents.", "Tags": "parenting",
        })

    return {
        "Memory Verses": pd.DataFrame(verses),
        "Key Lessons": pd.DataFrame(lessons),
        "Quizzes 5-8": pd.DataFrame(quizzes["5-8"]),
        "Quizzes 9-12": pd.DataFrame(quizzes["9-12"]),
        "Children Devotionals": pd.DataFrame(children),
        "Adult Devotionals": pd.DataFrame(adults),
    }


def write_workbook(path: Path, sheets: dict[str, pd.DataFrame]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=name, index=False)


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a sample staging workbook")
    parser.add_argument("--days", type=int, default=7, help="Number of days (default: 7)")
    parser.add_argument("--start", type=date.fromisoformat, default=date.today(), help="First day (YYYY-MM-DD)")
    parser.add_argument("-o", "--output", type=Path, default=Path("data/sample_upload.xlsx"))
    args = parser.parse_args()

    if args.days <= 0:
        print("Error: --days must be positive", file=sys.stderr)
        return 1

    sheets = build_sheets(args.days, args.start)
    write_workbook(args.output, sheets)
    print(f"Created workbook: {args.output}")
    print(f"  Days: {args.days} starting {args.start.isoformat()}")
    print(f"  Rows: {sum(len(df) for df in sheets.values())} across {len(sheets)} sheets")
    return 0


if __name__ == "__main__":
    sys.exit(main())
