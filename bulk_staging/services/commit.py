from __future__ import annotations

import logging
from collections.abc import Iterable

from ..db.content_store import ContentStore
from ..errors import ContentStoreError
from ..models.processing_result import CommitFailure, CommitResult, ItemRef
from ..models.sheets import SHEET_DISPLAY_NAMES, SHEET_KINDS, SHEET_ORDER, ContentKind, SheetKey
from ..models.staged_upload import StagedItem
from .content_mapping import content_fields, devotional_ref, title_key
from .progress import ProgressTracker

"""Commit engine: approved staged items -> canonical content records.

Items are committed one at a time with no surrounding transaction; a failure
is recorded in the CommitResult and the batch moves on. Item statuses are
never touched here.

Ordering: devotionals first (so quizzes in the same batch can link to the
freshly created devotional by title), then the remaining items in fixed
sheet order / ascending index.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CommitEngine",
    "commit_order",
]


def commit_order(items: Iterable[tuple[SheetKey, StagedItem]]) -> list[tuple[SheetKey, StagedItem]]:
    def key(pair: tuple[SheetKey, StagedItem]) -> tuple[int, int, int]:
        sheet, item = pair
        first = 0 if SHEET_KINDS[sheet] is ContentKind.DEVOTIONAL else 1
        return (first, SHEET_ORDER.index(sheet), item.index)

    return sorted(items, key=key)


def _describe(sheet: SheetKey, item: StagedItem) -> str:
    label = f"{SHEET_DISPLAY_NAMES[sheet]} row {item.index}"
    title = item.data.get("title") or item.data.get("reference") or item.data.get("bibleReading")
    if title:
        label += f" ('{title}')"
    return label


class CommitEngine:
    def __init__(self, content_store: ContentStore) -> None:
        self.content_store = content_store

    def _create(self, sheet: SheetKey, item: StagedItem, devotional_ids: dict[str, str]) -> str:
        fields = content_fields(sheet, item)
        kind = SHEET_KINDS[sheet]
        if kind is ContentKind.DEVOTIONAL:
            content_id = self.content_store.create_devotional(fields)["id"]
            key = title_key(fields.get("title"))
            if key:
                devotional_ids[key] = content_id
            return content_id
        if kind is ContentKind.MEMORY_VERSE:
            return self.content_store.create_memory_verse(fields)["id"]
        if kind is ContentKind.KEY_LESSON:
            return self.content_store.create_key_lesson(fields)["id"]

        ref = devotional_ref(item)
        linked = devotional_ids.get(ref) if ref else None
        if ref and linked is None:
            logger.info("%s: devotional '%s' not created in this batch, quiz left unlinked", _describe(sheet, item), ref)
        return self.content_store.create_quiz(fields, linked_devotional_id=linked)["id"]

    def commit(self, items: Iterable[tuple[SheetKey, StagedItem]]) -> CommitResult:
        """Create content for every ``(sheet, item)`` pair; never raises per-item failures."""
        plan = commit_order(items)
        devotional_ids: dict[str, str] = {}
        errors: list[str] = []
        failures: list[CommitFailure] = []
        content_ids: dict[str, str] = {}

        with ProgressTracker(len(plan)) as progress:
            for sheet, item in plan:
                label = _describe(sheet, item)
                progress.start_item(label)
                try:
                    content_ids[str(ItemRef(sheet, item.index))] = self._create(sheet, item, devotional_ids)
                except ContentStoreError as e:
                    message = f"{label}: {e}"
                    logger.warning("commit failed %s", message)
                    errors.append(message)
                    failures.append(CommitFailure(sheet=sheet, index=item.index, message=str(e)))
                    progress.finish_item(success=False)
                    continue
                progress.finish_item()

        return CommitResult(
            approved=len(plan),
            committed=len(content_ids),
            errors=errors,
            failures=failures,
            content_ids=content_ids,
        )
