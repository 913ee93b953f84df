from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..errors import ConflictError, NotFoundError
from .sheets import SHEET_DISPLAY_NAMES, SHEET_ORDER, SheetKey, parse_sheet_key

"""Staging aggregate: StagedUpload -> sheets -> StagedItem, plus DayRelationship.

The aggregate is persisted as a single JSON document (``to_dict`` / ``from_dict``).
Summary counts and the upload status are derived from item statuses and are
recomputed by ``StagedUpload.recompute_derived()`` after every mutation; they
are never patched incrementally.
"""

__all__ = [
    "ItemStatus",
    "UploadStatus",
    "Uploader",
    "StagedItem",
    "SheetSummary",
    "UploadSummary",
    "StagedSheet",
    "DayLink",
    "DayRelationship",
    "StagedUpload",
    "derive_sheet_summary",
    "derive_summary",
    "derive_status",
    "check_transition",
]


class ItemStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UploadStatus(str, Enum):
    """Aggregate upload status, derived from item statuses.

    - PENDING: nothing decided yet
    - PARTIALLY_APPROVED: at least one approved and at least one pending item
    - FULLY_APPROVED: no pending items, at least one approved
    - REJECTED: no pending items, none approved
    """
    PENDING = "PENDING"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    FULLY_APPROVED = "FULLY_APPROVED"
    REJECTED = "REJECTED"


# source status -> allowed target statuses
_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.APPROVED, ItemStatus.REJECTED}),
    ItemStatus.APPROVED: frozenset({ItemStatus.PENDING, ItemStatus.REJECTED}),
    ItemStatus.REJECTED: frozenset({ItemStatus.PENDING}),
}


def check_transition(current: ItemStatus, target: ItemStatus) -> None:
    """Raise ConflictError when ``current -> target`` is not a legal item transition.

    Same-status calls are legal no-ops. ``rejected -> approved`` must go
    through ``pending`` first so that the approval is a fresh, committing one.
    """
    if current is target:
        return
    if target not in _TRANSITIONS[current]:
        raise ConflictError(
            f"cannot change item status from '{current.value}' to '{target.value}'"
        )


@dataclass(frozen=True)
class Uploader:
    """Identity of the admin who uploaded the workbook."""
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    role: str = "ADMIN"

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == "ADMIN"

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "role": self.role,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Uploader:
        return cls(
            id=str(raw.get("_id") or raw.get("id") or ""),
            first_name=raw.get("firstName", ""),
            last_name=raw.get("lastName", ""),
            email=raw.get("email", ""),
            role=raw.get("role", "ADMIN"),
        )


@dataclass
class StagedItem:
    """One spreadsheet row awaiting moderation.

    ``index`` is the zero-based row position assigned at parse time and never
    changes, not even when other items of the sheet are deleted.
    ``validation_errors`` is advisory: rows with problems can still be approved.
    """
    index: int
    day_id: str | None
    data: dict[str, Any] = field(default_factory=dict)
    status: ItemStatus = ItemStatus.PENDING
    validation_errors: list[str] = field(default_factory=list)
    date: str | None = None  # ISO calendar date (YYYY-MM-DD)
    row_number: int | None = None  # 1-based spreadsheet row

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "dayId": self.day_id,
            "date": self.date,
            "status": self.status.value,
            "data": copy.deepcopy(self.data),
            "validationErrors": list(self.validation_errors),
            "rowNumber": self.row_number,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> StagedItem:
        return cls(
            index=int(raw["index"]),
            day_id=raw.get("dayId"),
            data=copy.deepcopy(raw.get("data") or {}),
            status=ItemStatus(raw.get("status", ItemStatus.PENDING.value)),
            validation_errors=list(raw.get("validationErrors") or []),
            date=raw.get("date"),
            row_number=raw.get("rowNumber"),
        )


@dataclass(frozen=True)
class SheetSummary:
    sheet_name: str
    total_items: int = 0
    pending_count: int = 0
    approved_count: int = 0
    rejected_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheetName": self.sheet_name,
            "totalItems": self.total_items,
            "pendingCount": self.pending_count,
            "approvedCount": self.approved_count,
            "rejectedCount": self.rejected_count,
        }


@dataclass(frozen=True)
class UploadSummary:
    total_items: int = 0
    pending_approval: int = 0
    approved: int = 0
    rejected: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalItems": self.total_items,
            "pendingApproval": self.pending_approval,
            "approved": self.approved,
            "rejected": self.rejected,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> UploadSummary:
        raw = raw or {}
        return cls(
            total_items=int(raw.get("totalItems", 0)),
            pending_approval=int(raw.get("pendingApproval", 0)),
            approved=int(raw.get("approved", 0)),
            rejected=int(raw.get("rejected", 0)),
        )


def derive_sheet_summary(key: SheetKey, items: list[StagedItem]) -> SheetSummary:
    counts = {status: 0 for status in ItemStatus}
    for item in items:
        counts[item.status] += 1
    return SheetSummary(
        sheet_name=SHEET_DISPLAY_NAMES[key],
        total_items=len(items),
        pending_count=counts[ItemStatus.PENDING],
        approved_count=counts[ItemStatus.APPROVED],
        rejected_count=counts[ItemStatus.REJECTED],
    )


def derive_summary(sheet_summaries: list[SheetSummary]) -> UploadSummary:
    return UploadSummary(
        total_items=sum(s.total_items for s in sheet_summaries),
        pending_approval=sum(s.pending_count for s in sheet_summaries),
        approved=sum(s.approved_count for s in sheet_summaries),
        rejected=sum(s.rejected_count for s in sheet_summaries),
    )


def derive_status(summary: UploadSummary) -> UploadStatus:
    # An upload without items stays PENDING.
    if summary.pending_approval > 0 or summary.total_items == 0:
        return UploadStatus.PARTIALLY_APPROVED if summary.approved > 0 else UploadStatus.PENDING
    if summary.approved > 0:
        return UploadStatus.FULLY_APPROVED
    return UploadStatus.REJECTED


@dataclass
class StagedSheet:
    key: SheetKey
    items: list[StagedItem] = field(default_factory=list)
    summary: SheetSummary | None = None

    def to_dict(self, include_items: bool = True) -> dict[str, Any]:
        summary = self.summary or derive_sheet_summary(self.key, self.items)
        out = summary.to_dict()
        if include_items:
            out["items"] = [item.to_dict() for item in self.items]
        return out


@dataclass
class DayLink:
    """Reference from a day slot to one staged item, with display context."""
    index: int
    sheet: SheetKey
    status: ItemStatus
    reference: str | None = None
    count: int | None = None
    question_count: int | None = None
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "index": self.index,
            "sheet": self.sheet.value,
            "status": self.status.value,
        }
        for key, value in (
            ("reference", self.reference),
            ("count", self.count),
            ("questionCount", self.question_count),
            ("title", self.title),
        ):
            if value is not None:
                out[key] = value
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DayLink:
        return cls(
            index=int(raw["index"]),
            sheet=SheetKey(raw["sheet"]),
            status=ItemStatus(raw["status"]),
            reference=raw.get("reference"),
            count=raw.get("count"),
            question_count=raw.get("questionCount"),
            title=raw.get("title"),
        )


@dataclass
class DayRelationship:
    day_id: str
    date: str | None = None
    bible_reading: str | None = None
    links: dict[str, DayLink] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dayId": self.day_id,
            "date": self.date,
            "bibleReading": self.bible_reading,
            "links": {slot: link.to_dict() for slot, link in self.links.items()},
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DayRelationship:
        return cls(
            day_id=raw["dayId"],
            date=raw.get("date"),
            bible_reading=raw.get("bibleReading"),
            links={slot: DayLink.from_dict(link) for slot, link in (raw.get("links") or {}).items()},
        )


@dataclass
class StagedUpload:
    """One uploaded workbook under moderation."""
    file_name: str
    sheets: dict[SheetKey, StagedSheet]
    id: str | None = None
    file_size: int = 0
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    uploaded_by: Uploader | None = None
    parse_errors: list[str] = field(default_factory=list)
    relationships: list[DayRelationship] = field(default_factory=list)
    summary: UploadSummary = field(default_factory=UploadSummary)
    status: UploadStatus = UploadStatus.PENDING

    def sheet(self, key: SheetKey | str) -> StagedSheet:
        sheet_key = parse_sheet_key(key)
        if sheet_key not in self.sheets:
            raise NotFoundError(f"sheet '{sheet_key.value}' not present in upload {self.id}")
        return self.sheets[sheet_key]

    def item(self, key: SheetKey | str, index: int) -> StagedItem:
        sheet = self.sheet(key)
        # after deletions the list position no longer equals the index
        if isinstance(index, int) and not isinstance(index, bool):
            for item in sheet.items:
                if item.index == index:
                    return item
        raise NotFoundError(
            f"item index {index} not found in sheet '{sheet.key.value}' "
            f"({len(sheet.items)} items)"
        )

    def remove_item(self, key: SheetKey | str, index: int) -> StagedItem:
        """Drop one item; the remaining items keep their indexes."""
        item = self.item(key, index)
        self.sheet(key).items.remove(item)
        return item

    def iter_items(self):
        """Yield ``(sheet_key, item)`` in fixed sheet order, ascending index."""
        for key in SHEET_ORDER:
            sheet = self.sheets.get(key)
            if sheet is None:
                continue
            for item in sheet.items:
                yield key, item

    def recompute_derived(self) -> None:
        """Re-derive sheet summaries, upload summary, status and link statuses."""
        summaries = []
        for key in SHEET_ORDER:
            sheet = self.sheets.get(key)
            if sheet is None:
                continue
            sheet.summary = derive_sheet_summary(key, sheet.items)
            summaries.append(sheet.summary)
        self.summary = derive_summary(summaries)
        self.status = derive_status(self.summary)
        statuses = {(key, item.index): item.status for key, item in self.iter_items()}
        for rel in self.relationships:
            for link in rel.links.values():
                status = statuses.get((link.sheet, link.index))
                if status is not None:
                    link.status = status

    def to_dict(self, include_items: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "_id": self.id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "uploadedAt": self.uploaded_at.isoformat().replace("+00:00", "Z"),
            "uploadedBy": self.uploaded_by.to_dict() if self.uploaded_by else None,
            "status": self.status.value,
            "summary": self.summary.to_dict(),
            "parseErrors": list(self.parse_errors),
            "sheets": {
                key.value: self.sheets[key].to_dict(include_items=include_items)
                for key in SHEET_ORDER
                if key in self.sheets
            },
        }
        if include_items:
            out["relationships"] = [rel.to_dict() for rel in self.relationships]
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> StagedUpload:
        sheets: dict[SheetKey, StagedSheet] = {}
        for key_value, sheet_raw in (raw.get("sheets") or {}).items():
            key = SheetKey(key_value)
            items = [StagedItem.from_dict(i) for i in sheet_raw.get("items") or []]
            sheets[key] = StagedSheet(key=key, items=items)
        uploaded_at = raw.get("uploadedAt")
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at.replace("Z", "+00:00"))
        upload = cls(
            id=raw.get("_id"),
            file_name=raw.get("fileName", ""),
            file_size=int(raw.get("fileSize") or 0),
            uploaded_at=uploaded_at or datetime.now(UTC),
            uploaded_by=Uploader.from_dict(raw["uploadedBy"]) if raw.get("uploadedBy") else None,
            parse_errors=list(raw.get("parseErrors") or []),
            sheets=sheets,
            relationships=[DayRelationship.from_dict(r) for r in raw.get("relationships") or []],
        )
        upload.recompute_derived()
        return upload
