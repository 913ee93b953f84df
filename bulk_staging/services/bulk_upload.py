from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO

from ..db.content_store import ContentStore
from ..db.store import StagedUploadStore
from ..errors import FatalParseError, ForbiddenError
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import StagingConfig
from ..models.error_record import ErrorRecord
from ..models.processing_result import CommitResult, ModerationMode, Page, RejectResult, SheetPage, StatusChange
from ..models.sheets import SheetKey
from ..models.staged_upload import (
    DayRelationship,
    ItemStatus,
    StagedItem,
    StagedSheet,
    StagedUpload,
    Uploader,
    UploadStatus,
    UploadSummary,
)
from .commit import CommitEngine
from .linker import link_days
from .moderation import ModerationService
from .parser import parse_workbook

"""BulkUploadService: the inbound facade of the staging pipeline.

Parser -> linker -> store on upload; every moderation call is delegated to
ModerationService, every read to the store.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BulkUploadService",
    "FATAL_PARSE_ERROR",
    "FILE_LEVEL_SHEET",
]

FATAL_PARSE_ERROR = "FATAL_PARSE_ERROR"
FILE_LEVEL_SHEET = "<FILE_LEVEL>"


class BulkUploadService:
    def __init__(
        self,
        store: StagedUploadStore,
        content_store: ContentStore,
        config: StagingConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config or StagingConfig()
        self.store = store
        self.content_store = content_store
        self.error_log = error_log
        self.moderation = ModerationService(store, CommitEngine(content_store), self.config, error_log)

    def _limit(self, limit: int | None) -> int:
        return self.config.pagination.default_limit if limit is None else limit

    # ---- ingest -----------------------------------------------------
    def upload_workbook(
        self,
        source: Path | str | bytes | BinaryIO,
        file_name: str | None = None,
        *,
        uploaded_by: Uploader | None,
    ) -> dict[str, Any]:
        """Parse, link and stage one workbook on behalf of an admin.

        Raises:
            ForbiddenError: ``uploaded_by`` is missing or not an admin
            FatalParseError: workbook unreadable or without any recognized sheet
        """
        if uploaded_by is None:
            raise ForbiddenError("an admin uploader is required to stage a workbook")
        if not uploaded_by.is_admin:
            raise ForbiddenError(f"user {uploaded_by.email or uploaded_by.id} is not an admin")

        if isinstance(source, (bytes, bytearray)):
            file_size = len(source)
        elif isinstance(source, (str, Path)):
            file_name = file_name or Path(source).name
            file_size = Path(source).stat().st_size if Path(source).exists() else 0
        else:
            source = source.read()
            file_size = len(source)
        file_name = file_name or "upload.xlsx"

        try:
            parsed = parse_workbook(source, self.config)
        except FatalParseError as e:
            logger.error("upload %s rejected: %s", file_name, e)
            if self.error_log is not None:
                self.error_log.append(ErrorRecord.create(file_name, FILE_LEVEL_SHEET, -1, FATAL_PARSE_ERROR, str(e)))
            raise

        upload = StagedUpload(
            file_name=file_name,
            file_size=file_size,
            uploaded_by=uploaded_by,
            sheets={key: StagedSheet(key=key, items=items) for key, items in parsed.sheets.items()},
            parse_errors=parsed.parse_errors,
            relationships=link_days(parsed.sheets, self.config.link_policy),
        )
        self.store.create(upload)
        if upload.parse_errors:
            logger.warning("upload=%s has %d parse error(s)", upload.id, len(upload.parse_errors))
        return {
            "uploadId": upload.id,
            "fileName": upload.file_name,
            "summary": upload.summary.to_dict(),
            "parseErrors": list(upload.parse_errors),
            "sheets": {
                key.value: {"totalItems": sheet.summary.total_items, "pendingCount": sheet.summary.pending_count}
                for key, sheet in upload.sheets.items()
            },
            "totalDays": len(upload.relationships),
        }

    # ---- reads ------------------------------------------------------
    def list_staged_uploads(
        self,
        status: UploadStatus | str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[StagedUpload]:
        return self.store.list(status=status, page=page, limit=self._limit(limit))

    def get_staged_upload(self, upload_id: str) -> StagedUpload:
        return self.store.get(upload_id)

    def get_upload_summary(self, upload_id: str) -> UploadSummary:
        return self.store.get(upload_id).summary

    def get_staged_sheet(
        self,
        upload_id: str,
        sheet: SheetKey | str,
        page: int = 1,
        limit: int | None = None,
    ) -> SheetPage:
        return self.store.get_sheet(upload_id, sheet, page=page, limit=self._limit(limit))

    def get_staged_relationships(
        self,
        upload_id: str,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[DayRelationship]:
        return self.store.get_relationships(upload_id, page=page, limit=limit)

    # ---- moderation -------------------------------------------------
    def set_item_status(
        self,
        upload_id: str,
        sheet: SheetKey | str,
        index: int,
        status: ItemStatus | str,
    ) -> StatusChange:
        return self.moderation.set_item_status(upload_id, sheet, index, status)

    def bulk_approve(
        self,
        upload_id: str,
        mode: ModerationMode | str = ModerationMode.BULK,
        items: list[Any] | None = None,
    ) -> CommitResult:
        return self.moderation.bulk_approve(upload_id, mode, items)

    def bulk_reject(
        self,
        upload_id: str,
        mode: ModerationMode | str = ModerationMode.BULK,
        items: list[Any] | None = None,
    ) -> RejectResult:
        return self.moderation.bulk_reject(upload_id, mode, items)

    def edit_staged_item(self, upload_id: str, sheet: SheetKey | str, index: int, field: str, value: Any) -> StagedItem:
        return self.moderation.edit_item(upload_id, sheet, index, field, value)

    def delete_staged_item(self, upload_id: str, sheet: SheetKey | str, index: int) -> StagedItem:
        return self.moderation.delete_item(upload_id, sheet, index)

    def delete_staged_upload(self, upload_id: str) -> None:
        self.store.delete(upload_id)
