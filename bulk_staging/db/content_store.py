from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

import psycopg2
from psycopg2.extras import Json

from ..errors import ContentStoreError
from ..models.sheets import ContentKind
from .batch_insert import BatchInsertError, batch_insert

"""Canonical content store (outbound side of the commit engine).

Each ``create_*`` call creates exactly one content record and returns
``{"id": ...}``. Invalid input raises ContentStoreError; the commit engine
collects those per item and keeps going.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "PostgresContentStore",
    "validate_content",
    "CONTENT_SCHEMA_SQL",
]

_REQUIRED: dict[ContentKind, tuple[str, ...]] = {
    ContentKind.DEVOTIONAL: ("title", "bibleReference", "verseText", "content", "audience"),
    ContentKind.MEMORY_VERSE: ("reference", "verseText", "audience"),
    ContentKind.KEY_LESSON: ("bibleReading", "lessons", "audience"),
    ContentKind.QUIZ: ("title", "questions", "audience"),
}


def validate_content(kind: ContentKind, fields: dict[str, Any]) -> None:
    """Reject records the content collections would refuse."""
    missing = [name for name in _REQUIRED[kind] if not fields.get(name)]
    if missing:
        raise ContentStoreError(f"{kind.value} is missing required field(s): {', '.join(missing)}")
    if kind is ContentKind.QUIZ:
        for n, q in enumerate(fields["questions"], start=1):
            if not q.get("question") or not q.get("correctAnswer"):
                raise ContentStoreError(f"quiz question {n} needs question text and a correct answer")


class ContentStore(ABC):
    @abstractmethod
    def _create(self, kind: ContentKind, fields: dict[str, Any]) -> str: ...

    def create(self, kind: ContentKind, fields: dict[str, Any]) -> dict[str, str]:
        validate_content(kind, fields)
        return {"id": self._create(kind, fields)}

    def create_devotional(self, fields: dict[str, Any]) -> dict[str, str]:
        return self.create(ContentKind.DEVOTIONAL, fields)

    def create_memory_verse(self, fields: dict[str, Any]) -> dict[str, str]:
        return self.create(ContentKind.MEMORY_VERSE, fields)

    def create_key_lesson(self, fields: dict[str, Any]) -> dict[str, str]:
        return self.create(ContentKind.KEY_LESSON, fields)

    def create_quiz(self, fields: dict[str, Any], linked_devotional_id: str | None = None) -> dict[str, str]:
        if linked_devotional_id is not None:
            fields = {**fields, "devotionalId": linked_devotional_id}
        return self.create(ContentKind.QUIZ, fields)


class InMemoryContentStore(ContentStore):
    """Keeps created records per kind; ids look like ``quiz-3``."""

    def __init__(self) -> None:
        self.records: dict[ContentKind, dict[str, dict[str, Any]]] = {k: {} for k in ContentKind}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _create(self, kind: ContentKind, fields: dict[str, Any]) -> str:
        with self._lock:
            content_id = f"{kind.value.replace('_', '-')}-{next(self._ids)}"
            self.records[kind][content_id] = dict(fields)
        return content_id

    def count(self, kind: ContentKind | None = None) -> int:
        if kind is not None:
            return len(self.records[kind])
        return sum(len(r) for r in self.records.values())


# kind -> (table, [(column, field name)])
_TABLES: dict[ContentKind, tuple[str, list[tuple[str, str]]]] = {
    ContentKind.DEVOTIONAL: ("devotionals", [
        ("title", "title"),
        ("bible_reference", "bibleReference"),
        ("audience", "audience"),
    ]),
    ContentKind.MEMORY_VERSE: ("memory_verses", [
        ("reference", "reference"),
        ("book", "book"),
        ("chapter", "chapter"),
        ("verse_start", "verseStart"),
        ("verse_end", "verseEnd"),
        ("audience", "audience"),
    ]),
    ContentKind.KEY_LESSON: ("key_lessons", [
        ("bible_reading", "bibleReading"),
        ("audience", "audience"),
    ]),
    ContentKind.QUIZ: ("quizzes", [
        ("title", "title"),
        ("devotional_id", "devotionalId"),
        ("total_points", "totalPoints"),
        ("passing_score", "passingScore"),
        ("audience", "audience"),
    ]),
}
_COMMON_COLUMNS = [
    ("day_id", "dayId"),
    ("publish_date", "publishDate"),
    ("is_active", "isActive"),
]

CONTENT_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS devotionals (
    id BIGSERIAL PRIMARY KEY, title TEXT NOT NULL, bible_reference TEXT, audience TEXT,
    day_id TEXT, publish_date DATE, is_active BOOLEAN NOT NULL DEFAULT TRUE, payload JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS memory_verses (
    id BIGSERIAL PRIMARY KEY, reference TEXT NOT NULL, book TEXT, chapter INTEGER,
    verse_start INTEGER, verse_end INTEGER, audience TEXT,
    day_id TEXT, publish_date DATE, is_active BOOLEAN NOT NULL DEFAULT TRUE, payload JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS key_lessons (
    id BIGSERIAL PRIMARY KEY, bible_reading TEXT NOT NULL, audience TEXT,
    day_id TEXT, publish_date DATE, is_active BOOLEAN NOT NULL DEFAULT TRUE, payload JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS quizzes (
    id BIGSERIAL PRIMARY KEY, title TEXT NOT NULL, devotional_id BIGINT REFERENCES devotionals(id),
    total_points INTEGER, passing_score INTEGER, audience TEXT,
    day_id TEXT, publish_date DATE, is_active BOOLEAN NOT NULL DEFAULT TRUE, payload JSONB NOT NULL
);
"""


class PostgresContentStore(ContentStore):
    """Inserts content rows through ``batch_insert``; every create is its own transaction."""

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def ensure_schema(self) -> None:
        with self.conn.cursor() as cur:
            cur.execute(CONTENT_SCHEMA_SQL)
        self.conn.commit()

    def _create(self, kind: ContentKind, fields: dict[str, Any]) -> str:
        table, mapping = _TABLES[kind]
        mapping = mapping + _COMMON_COLUMNS
        columns = [col for col, _ in mapping] + ["payload"]
        row = [fields.get(name) for _, name in mapping] + [Json(fields)]
        try:
            with self.conn.cursor() as cur:
                result = batch_insert(cur, table, columns, [row], returning=("id",))
            self.conn.commit()
        except (BatchInsertError, psycopg2.Error) as e:
            if not self.conn.closed:
                self.conn.rollback()
            raise ContentStoreError(f"insert into {table} failed: {e}") from e
        content_id = str(result.returned_values[0][0])
        logger.debug("created %s id=%s", kind.value, content_id)
        return content_id
