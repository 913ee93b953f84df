from __future__ import annotations

import logging

import pytest

from bulk_staging.db.content_store import InMemoryContentStore
from bulk_staging.errors import ContentStoreError
from bulk_staging.models.sheets import ContentKind, SheetKey
from bulk_staging.models.staged_upload import StagedItem
from bulk_staging.services import progress as progress_mod
from bulk_staging.services.commit import CommitEngine, commit_order


def _verse(index, **extra):
    data = {"reference": f"John 3:{index + 1}", "verseText": "text", "ageGroup": "5_8", **extra}
    return StagedItem(index=index, day_id="20260118", data=data)


def _devotional(index, title="Walking in Love", **extra):
    data = {"title": title, "bibleReference": "1 John 4:7", "verseText": "v", "content": "c", **extra}
    return StagedItem(index=index, day_id="20260118", data=data)


def _quiz(index, devotional=None):
    data = {"title": f"Quiz {index}", "questions": [{"question": "q", "correctAnswer": "a", "points": 1}]}
    if devotional:
        data["devotional"] = devotional
    return StagedItem(index=index, day_id="20260118", data=data)


def test_commit_order_puts_devotionals_first():
    plan = commit_order([
        (SheetKey.QUIZZES_5_8, _quiz(1)),
        (SheetKey.MEMORY_VERSES, _verse(2)),
        (SheetKey.ADULT_DEVOTIONALS, _devotional(0)),
        (SheetKey.MEMORY_VERSES, _verse(0)),
        (SheetKey.CHILDREN_DEVOTIONALS, _devotional(3)),
    ])
    assert [(s.value, i.index) for s, i in plan] == [
        ("childrenDevotionals", 3),
        ("adultDevotionals", 0),
        ("memoryVerses", 0),
        ("memoryVerses", 2),
        ("quizzes_5_8", 1),
    ]


def test_commit_creates_every_item():
    store = InMemoryContentStore()
    result = CommitEngine(store).commit([(SheetKey.MEMORY_VERSES, _verse(0)), (SheetKey.MEMORY_VERSES, _verse(1))])
    assert (result.approved, result.committed, result.errors) == (2, 2, [])
    assert set(result.content_ids) == {"memoryVerses:0", "memoryVerses:1"}
    assert store.count(ContentKind.MEMORY_VERSE) == 2


def test_failures_are_collected_and_batch_continues(caplog):
    store = InMemoryContentStore()
    caplog.set_level(logging.WARNING, logger="bulk_staging.services.commit")
    result = CommitEngine(store).commit([
        (SheetKey.MEMORY_VERSES, _verse(0)),
        (SheetKey.CHILDREN_DEVOTIONALS, _devotional(0, content=None)),
        (SheetKey.MEMORY_VERSES, _verse(1)),
    ])
    assert result.approved == 3
    assert result.committed == 2
    assert result.failed == 1
    assert result.errors == [
        "Children Devotionals row 0 ('Walking in Love'): devotional is missing required field(s): content"
    ]
    assert result.failures[0].sheet is SheetKey.CHILDREN_DEVOTIONALS
    assert "commit failed" in caplog.text


def test_quiz_links_to_devotional_created_in_same_batch():
    store = InMemoryContentStore()
    result = CommitEngine(store).commit([
        (SheetKey.QUIZZES_5_8, _quiz(0, devotional="walking  in love")),
        (SheetKey.CHILDREN_DEVOTIONALS, _devotional(0)),
    ])
    assert result.committed == 2
    quiz = store.records[ContentKind.QUIZ][result.content_ids["quizzes_5_8:0"]]
    assert quiz["devotionalId"] == result.content_ids["childrenDevotionals:0"]


def test_quiz_without_created_devotional_stays_unlinked(caplog):
    store = InMemoryContentStore()
    caplog.set_level(logging.INFO, logger="bulk_staging.services.commit")
    result = CommitEngine(store).commit([
        (SheetKey.CHILDREN_DEVOTIONALS, _devotional(0, content=None)),
        (SheetKey.QUIZZES_9_12, _quiz(0, devotional="Walking in Love")),
    ])
    assert result.committed == 1
    quiz = store.records[ContentKind.QUIZ][result.content_ids["quizzes_9_12:0"]]
    assert "devotionalId" not in quiz
    assert "quiz left unlinked" in caplog.text


def test_unexpected_errors_propagate():
    class Exploding(InMemoryContentStore):
        def _create(self, kind, fields):
            raise RuntimeError("disk on fire")

    with pytest.raises(RuntimeError, match="disk on fire"):
        CommitEngine(Exploding()).commit([(SheetKey.MEMORY_VERSES, _verse(0))])


def test_progress_bar_advances_per_item(monkeypatch):
    bars = []

    class FakeBar:
        def __init__(self, **kwargs):
            self.kwargs = kwargs
            self.n = 0
            self.closed = False
            bars.append(self)

        def set_description(self, desc):
            self.desc = desc

        def set_postfix(self, **kw):
            self.postfix = kw

        def update(self, n):
            self.n += n

        def close(self):
            self.closed = True

    monkeypatch.setattr(progress_mod, "is_tty_enabled", lambda: True)
    monkeypatch.setattr(progress_mod, "tqdm", FakeBar)

    class Flaky(InMemoryContentStore):
        def create_memory_verse(self, fields):
            if fields["reference"].endswith(":2"):
                raise ContentStoreError("duplicate verse")
            return super().create_memory_verse(fields)

    CommitEngine(Flaky()).commit([(SheetKey.MEMORY_VERSES, _verse(0)), (SheetKey.MEMORY_VERSES, _verse(1))])
    (bar,) = bars
    assert bar.kwargs["total"] == 2
    assert bar.n == 2
    assert bar.postfix == {"failed": 1}
    assert bar.closed
