from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from typing import Any

from ..db.store import StagedUploadStore
from ..errors import ConflictError
from ..excel.rows import apply_edit
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import StagingConfig
from ..models.error_record import ErrorRecord
from ..models.processing_result import CommitResult, ItemRef, ModerationMode, RejectResult, StatusChange
from ..models.sheets import SheetKey, parse_sheet_key
from ..models.staged_upload import ItemStatus, StagedItem, StagedUpload
from .commit import CommitEngine
from .linker import link_days

"""Moderation engine: item status transitions, bulk approve / reject, field edits
and single item deletion.

Status changes are applied inside ``store.modify`` (one locked read-modify-write
per upload). Commits for newly approved items run afterwards, outside the lock;
their outcome is reported in the result and never changes item statuses.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ModerationService",
    "COMMIT_ERROR",
]

COMMIT_ERROR = "COMMIT_ERROR"


def _normalize_refs(items: Iterable[Any] | None) -> list[ItemRef]:
    refs = {ItemRef.parse(raw) for raw in items or ()}
    return sorted(refs, key=lambda r: r.sort_key)


class ModerationService:
    def __init__(
        self,
        store: StagedUploadStore,
        commit_engine: CommitEngine,
        config: StagingConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.store = store
        self.commit_engine = commit_engine
        self.config = config or StagingConfig()
        self.error_log = error_log

    # ---- commit side ------------------------------------------------
    def _commit(self, file_name: str, approved: list[tuple[SheetKey, StagedItem]]) -> CommitResult:
        if not approved:
            return CommitResult()
        result = self.commit_engine.commit(approved)
        if self.error_log is not None:
            for failure in result.failures:
                self.error_log.append(
                    ErrorRecord.create(file_name, failure.sheet.value, failure.index, COMMIT_ERROR, failure.message)
                )
        return result

    # ---- single item ------------------------------------------------
    def set_item_status(
        self,
        upload_id: str,
        sheet: SheetKey | str,
        index: int,
        status: ItemStatus | str,
    ) -> StatusChange:
        """Apply one transition; only ``pending -> approved`` commits."""
        change = self.store.update_item_status(upload_id, sheet, index, status)
        if change.changed:
            logger.info(
                "upload=%s %s:%d %s -> %s",
                upload_id,
                change.sheet.value,
                index,
                change.previous.value,
                change.item.status.value,
            )
        if change.previous is ItemStatus.PENDING and change.item.status is ItemStatus.APPROVED:
            name = self.store.get(upload_id).file_name
            commit = self._commit(name, [(change.sheet, change.item)])
            return dataclasses.replace(change, commit=commit)
        return change

    # ---- bulk -------------------------------------------------------
    def _transition_many(
        self,
        upload_id: str,
        mode: ModerationMode | str,
        items: Iterable[Any] | None,
        target: ItemStatus,
    ) -> tuple[str, list[tuple[SheetKey, StagedItem]]]:
        mode = ModerationMode(mode)
        refs = _normalize_refs(items) if mode is ModerationMode.SELECTIVE else []

        def mutate(upload: StagedUpload) -> tuple[str, list[tuple[SheetKey, StagedItem]]]:
            if mode is ModerationMode.BULK:
                chosen = list(upload.iter_items())
            else:
                # resolve every reference before touching anything
                chosen = [(ref.sheet, upload.item(ref.sheet, ref.index)) for ref in refs]
            moved = []
            for key, item in chosen:
                if item.status is not ItemStatus.PENDING:
                    continue
                item.status = target
                moved.append((key, item))
            upload.recompute_derived()
            return upload.file_name, moved

        return self.store.modify(upload_id, mutate)

    def bulk_approve(
        self,
        upload_id: str,
        mode: ModerationMode | str = ModerationMode.BULK,
        items: Iterable[Any] | None = None,
    ) -> CommitResult:
        """Approve every pending item (bulk) or the listed pending items (selective)."""
        file_name, moved = self._transition_many(upload_id, mode, items, ItemStatus.APPROVED)
        logger.info("upload=%s approved %d item(s)", upload_id, len(moved))
        return self._commit(file_name, moved)

    def bulk_reject(
        self,
        upload_id: str,
        mode: ModerationMode | str = ModerationMode.BULK,
        items: Iterable[Any] | None = None,
    ) -> RejectResult:
        _, moved = self._transition_many(upload_id, mode, items, ItemStatus.REJECTED)
        logger.info("upload=%s rejected %d item(s)", upload_id, len(moved))
        return RejectResult(rejected=len(moved))

    # ---- edits ------------------------------------------------------
    def _relink(self, upload: StagedUpload) -> None:
        upload.relationships = link_days(
            {key: s.items for key, s in upload.sheets.items()},
            self.config.link_policy,
        )
        upload.recompute_derived()

    def edit_item(self, upload_id: str, sheet: SheetKey | str, index: int, field: str, value: Any) -> StagedItem:
        """Update one field of a pending or rejected item and relink the upload's days."""
        sheet_key = parse_sheet_key(sheet)

        def mutate(upload: StagedUpload) -> StagedItem:
            item = upload.item(sheet_key, index)
            if item.status is ItemStatus.APPROVED:
                raise ConflictError(f"{sheet_key.value}:{index} is approved; re-open it before editing")
            apply_edit(sheet_key, item, field, value, self.config)
            self._relink(upload)
            return item

        item = self.store.modify(upload_id, mutate)
        logger.info("upload=%s edited %s:%d field=%s", upload_id, sheet_key.value, index, field)
        return item

    def delete_item(self, upload_id: str, sheet: SheetKey | str, index: int) -> StagedItem:
        """Remove one pending or rejected item; approved items are kept as the commit trace."""
        sheet_key = parse_sheet_key(sheet)

        def mutate(upload: StagedUpload) -> StagedItem:
            item = upload.item(sheet_key, index)
            if item.status is ItemStatus.APPROVED:
                raise ConflictError(f"{sheet_key.value}:{index} is approved and cannot be deleted")
            upload.remove_item(sheet_key, index)
            self._relink(upload)
            return item

        item = self.store.modify(upload_id, mutate)
        logger.info("upload=%s deleted item %s:%d (%s)", upload_id, sheet_key.value, index, item.status.value)
        return item
