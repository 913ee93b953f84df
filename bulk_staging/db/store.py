from __future__ import annotations

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

from psycopg2.extras import Json

from ..errors import ConflictError, InvalidUploadError, NotFoundError
from ..models.processing_result import Page, SheetPage, StatusChange, paginate
from ..models.sheets import SHEET_DISPLAY_NAMES, SheetKey, parse_sheet_key
from ..models.staged_upload import (
    DayRelationship,
    ItemStatus,
    StagedUpload,
    UploadStatus,
    check_transition,
)

"""Staged upload persistence.

Every upload is one document. All mutations go through ``modify(id, mutator)``,
which runs the mutator under the record's exclusive lock and writes the
document back with summaries and status re-derived, so readers never see a
half-applied transition.

Two implementations:
- ``InMemoryStagedUploadStore``: serialized documents + one ``threading.Lock``
  per upload id (tests, offline CLI)
- ``PostgresStagedUploadStore``: ``staged_uploads`` table with a JSONB
  document column, locked with ``SELECT ... FOR UPDATE``
"""

logger = logging.getLogger(__name__)

__all__ = [
    "StagedUploadStore",
    "InMemoryStagedUploadStore",
    "PostgresStagedUploadStore",
    "CREATE_TABLE_SQL",
]

R = TypeVar("R")

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS staged_uploads (
    id          TEXT PRIMARY KEY,
    file_name   TEXT NOT NULL,
    file_size   BIGINT NOT NULL DEFAULT 0,
    uploaded_at TIMESTAMPTZ NOT NULL,
    uploaded_by TEXT,
    status      TEXT NOT NULL,
    document    JSONB NOT NULL
)
"""


class StagedUploadStore(ABC):
    """Persistence contract for staged uploads.

    Subclasses implement the record primitives (``_insert``, ``get``,
    ``_all_summaries``, ``modify``, ``_remove``); the sheet / relationship
    reads and status transition are shared.
    """

    def __init__(self, max_limit: int = 100) -> None:
        self.max_limit = max_limit

    # ---- primitives -------------------------------------------------
    @abstractmethod
    def _insert(self, upload: StagedUpload) -> None: ...

    @abstractmethod
    def get(self, upload_id: str) -> StagedUpload:
        """Full upload; raises NotFoundError."""

    @abstractmethod
    def _all_summaries(self, status: UploadStatus | None) -> list[StagedUpload]:
        """Uploads (items may be omitted), newest first."""

    @abstractmethod
    def modify(self, upload_id: str, mutator: Callable[[StagedUpload], R]) -> R:
        """Run ``mutator`` on the locked upload and persist the result."""

    @abstractmethod
    def _remove(self, upload_id: str, guard: Callable[[StagedUpload], None]) -> None: ...

    # ---- operations -------------------------------------------------
    def create(self, upload: StagedUpload) -> str:
        if not upload.file_name:
            raise InvalidUploadError("staged upload requires a file name")
        if not upload.sheets:
            raise InvalidUploadError("staged upload requires at least one sheet")
        if upload.id is None:
            upload.id = uuid.uuid4().hex
        upload.recompute_derived()
        self._insert(upload)
        logger.info(
            "staged upload id=%s file=%s items=%d days=%d",
            upload.id,
            upload.file_name,
            upload.summary.total_items,
            len(upload.relationships),
        )
        return upload.id

    def list(self, status: UploadStatus | str | None = None, page: int = 1, limit: int = 20) -> Page[StagedUpload]:
        wanted = UploadStatus(status) if status else None
        return paginate(self._all_summaries(wanted), page, limit, self.max_limit)

    def get_sheet(self, upload_id: str, sheet: SheetKey | str, page: int = 1, limit: int = 20) -> SheetPage:
        upload = self.get(upload_id)
        staged = upload.sheet(sheet)
        window = paginate(staged.items, page, limit, self.max_limit)
        summary = staged.summary
        return SheetPage(
            sheet=staged.key,
            sheet_name=SHEET_DISPLAY_NAMES[staged.key],
            items=window.items,
            total_items=summary.total_items,
            pending_count=summary.pending_count,
            approved_count=summary.approved_count,
            rejected_count=summary.rejected_count,
            page=window.page,
            limit=window.limit,
        )

    def get_relationships(self, upload_id: str, page: int = 1, limit: int | None = None) -> Page[DayRelationship]:
        """Day relationships; ``limit=None`` returns every day on one page."""
        rels = self.get(upload_id).relationships
        if limit is None:
            return Page(items=list(rels), total=len(rels), page=1, limit=max(len(rels), 1))
        return paginate(rels, page, limit, self.max_limit)

    def update_item_status(
        self,
        upload_id: str,
        sheet: SheetKey | str,
        index: int,
        status: ItemStatus | str,
    ) -> StatusChange:
        """Move one item to ``status``; same-status calls change nothing."""
        target = ItemStatus(status)
        sheet_key = parse_sheet_key(sheet)

        def mutate(upload: StagedUpload) -> StatusChange:
            item = upload.item(sheet_key, index)
            previous = item.status
            check_transition(previous, target)
            item.status = target
            upload.recompute_derived()
            return StatusChange(
                sheet=sheet_key,
                item=item,
                previous=previous,
                summary=upload.summary,
                upload_status=upload.status,
            )

        return self.modify(upload_id, mutate)

    def delete(self, upload_id: str) -> None:
        def guard(upload: StagedUpload) -> None:
            if upload.status is UploadStatus.FULLY_APPROVED:
                raise ConflictError(f"upload {upload_id} is fully approved and cannot be deleted")

        self._remove(upload_id, guard)
        logger.info("deleted staged upload id=%s", upload_id)


class InMemoryStagedUploadStore(StagedUploadStore):
    """Process-local store; documents are kept serialized so callers never share objects."""

    def __init__(self, max_limit: int = 100) -> None:
        super().__init__(max_limit)
        self._docs: dict[str, dict[str, Any]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, upload_id: str) -> threading.Lock:
        with self._registry_lock:
            if upload_id not in self._docs:
                raise NotFoundError(f"staged upload {upload_id} not found")
            return self._locks[upload_id]

    def _insert(self, upload: StagedUpload) -> None:
        with self._registry_lock:
            if upload.id in self._docs:
                raise InvalidUploadError(f"staged upload {upload.id} already exists")
            self._docs[upload.id] = upload.to_dict()
            self._locks[upload.id] = threading.Lock()

    def get(self, upload_id: str) -> StagedUpload:
        doc = self._docs.get(upload_id)
        if doc is None:
            raise NotFoundError(f"staged upload {upload_id} not found")
        return StagedUpload.from_dict(doc)

    def _all_summaries(self, status: UploadStatus | None) -> list[StagedUpload]:
        uploads = [StagedUpload.from_dict(doc) for doc in list(self._docs.values())]
        if status is not None:
            uploads = [u for u in uploads if u.status is status]
        uploads.sort(key=lambda u: u.uploaded_at, reverse=True)
        return uploads

    def modify(self, upload_id: str, mutator: Callable[[StagedUpload], R]) -> R:
        with self._lock_for(upload_id):
            upload = self.get(upload_id)
            result = mutator(upload)
            upload.recompute_derived()
            self._docs[upload_id] = upload.to_dict()
            return result

    def _remove(self, upload_id: str, guard: Callable[[StagedUpload], None]) -> None:
        lock = self._lock_for(upload_id)
        with lock:
            guard(self.get(upload_id))
            with self._registry_lock:
                del self._docs[upload_id]
                del self._locks[upload_id]


class PostgresStagedUploadStore(StagedUploadStore):
    """``staged_uploads`` table store on a psycopg2 connection (autocommit off)."""

    def __init__(self, conn: Any, max_limit: int = 100) -> None:
        super().__init__(max_limit)
        self.conn = conn

    def ensure_schema(self) -> None:
        with self.conn.cursor() as cur:
            cur.execute(CREATE_TABLE_SQL)
        self.conn.commit()

    @staticmethod
    def _row_params(upload: StagedUpload) -> tuple[Any, ...]:
        uploaded_by = upload.uploaded_by.id if upload.uploaded_by else None
        return (
            upload.file_name,
            upload.file_size,
            upload.uploaded_at,
            uploaded_by,
            upload.status.value,
            Json(upload.to_dict()),
        )

    @staticmethod
    def _load(document: Any) -> StagedUpload:
        # psycopg2 decodes JSONB to dict; plain TEXT columns come back as str
        if isinstance(document, str):
            document = json.loads(document)
        return StagedUpload.from_dict(document)

    def _insert(self, upload: StagedUpload) -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO staged_uploads "
                    "(id, file_name, file_size, uploaded_at, uploaded_by, status, document) "
                    "VALUES (%s, %s, %s, %s, %s, %s, %s)",
                    (upload.id, *self._row_params(upload)),
                )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def get(self, upload_id: str) -> StagedUpload:
        with self.conn.cursor() as cur:
            cur.execute("SELECT document FROM staged_uploads WHERE id = %s", (upload_id,))
            row = cur.fetchone()
        # end the read-only transaction opened by the SELECT
        self.conn.rollback()
        if row is None:
            raise NotFoundError(f"staged upload {upload_id} not found")
        return self._load(row[0])

    def _all_summaries(self, status: UploadStatus | None) -> list[StagedUpload]:
        sql = "SELECT document FROM staged_uploads"
        params: tuple[Any, ...] = ()
        if status is not None:
            sql += " WHERE status = %s"
            params = (status.value,)
        sql += " ORDER BY uploaded_at DESC"
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        self.conn.rollback()
        return [self._load(r[0]) for r in rows]

    def _lock_row(self, cur: Any, upload_id: str) -> StagedUpload:
        cur.execute("SELECT document FROM staged_uploads WHERE id = %s FOR UPDATE", (upload_id,))
        row = cur.fetchone()
        if row is None:
            raise NotFoundError(f"staged upload {upload_id} not found")
        return self._load(row[0])

    def modify(self, upload_id: str, mutator: Callable[[StagedUpload], R]) -> R:
        try:
            with self.conn.cursor() as cur:
                upload = self._lock_row(cur, upload_id)
                result = mutator(upload)
                upload.recompute_derived()
                cur.execute(
                    "UPDATE staged_uploads SET file_name = %s, file_size = %s, uploaded_at = %s, "
                    "uploaded_by = %s, status = %s, document = %s WHERE id = %s",
                    (*self._row_params(upload), upload_id),
                )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return result

    def _remove(self, upload_id: str, guard: Callable[[StagedUpload], None]) -> None:
        try:
            with self.conn.cursor() as cur:
                guard(self._lock_row(cur, upload_id))
                cur.execute("DELETE FROM staged_uploads WHERE id = %s", (upload_id,))
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
