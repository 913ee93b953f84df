from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from .sheets import SHEET_ORDER, SheetKey, parse_sheet_key
from .staged_upload import ItemStatus, StagedItem, UploadStatus, UploadSummary

"""Result models returned by moderation / commit operations and paged reads."""

__all__ = [
    "ModerationMode",
    "ItemRef",
    "CommitFailure",
    "CommitResult",
    "RejectResult",
    "StatusChange",
    "Page",
    "SheetPage",
    "paginate",
]

T = TypeVar("T")


class ModerationMode(str, Enum):
    BULK = "bulk"
    SELECTIVE = "selective"


@dataclass(frozen=True)
class ItemRef:
    """``(sheet, index)`` pointer to a staged item."""
    sheet: SheetKey
    index: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return (SHEET_ORDER.index(self.sheet), self.index)

    @classmethod
    def parse(cls, raw: Any) -> ItemRef:
        """Accept ``ItemRef``, ``"sheet:index"``, ``(sheet, index)`` or
        ``{"sheet": ..., "rowIndex"|"index": ...}``."""
        if isinstance(raw, ItemRef):
            return raw
        if isinstance(raw, str):
            sheet, sep, index = raw.rpartition(":")
            if not sep:
                raise ValueError(f"item reference must look like SHEET:INDEX, got '{raw}'")
            return cls(parse_sheet_key(sheet), int(index))
        if isinstance(raw, dict):
            index = raw.get("rowIndex", raw.get("index"))
            if "sheet" not in raw or index is None:
                raise ValueError(f"item reference needs 'sheet' and 'rowIndex': {raw}")
            return cls(parse_sheet_key(raw["sheet"]), int(index))
        try:
            sheet, index = raw
        except (TypeError, ValueError):
            raise ValueError(f"unsupported item reference: {raw!r}") from None
        return cls(parse_sheet_key(sheet), int(index))

    def __str__(self) -> str:
        return f"{self.sheet.value}:{self.index}"


@dataclass(frozen=True)
class CommitFailure:
    sheet: SheetKey
    index: int
    message: str


@dataclass(frozen=True)
class CommitResult:
    """Outcome of one approval batch; ``committed <= approved`` always."""
    approved: int = 0
    committed: int = 0
    errors: list[str] = field(default_factory=list)
    failures: list[CommitFailure] = field(default_factory=list)
    content_ids: dict[str, str] = field(default_factory=dict)  # "sheet:index" -> created id

    @property
    def failed(self) -> int:
        return self.approved - self.committed

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": self.approved,
            "committed": self.committed,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class RejectResult:
    rejected: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"rejected": self.rejected}


@dataclass(frozen=True)
class StatusChange:
    """Result of a single-item transition (item snapshot + refreshed aggregate)."""
    sheet: SheetKey
    item: StagedItem
    previous: ItemStatus
    summary: UploadSummary
    upload_status: UploadStatus
    commit: CommitResult | None = None

    @property
    def changed(self) -> bool:
        return self.previous is not self.item.status

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "sheet": self.sheet.value,
            "item": self.item.to_dict(),
            "summary": self.summary.to_dict(),
            "status": self.upload_status.value,
        }
        if self.commit is not None:
            out["commit"] = self.commit.to_dict()
        return out


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit)) if self.limit else 1

    def to_dict(self, item_to_dict=None) -> dict[str, Any]:
        convert = item_to_dict or (lambda x: x.to_dict() if hasattr(x, "to_dict") else x)
        return {
            "data": [convert(i) for i in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True)
class SheetPage:
    """One page of a sheet's items plus the sheet summary counts."""
    sheet: SheetKey
    sheet_name: str
    items: list[StagedItem]
    total_items: int
    pending_count: int
    approved_count: int
    rejected_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_items / self.limit)) if self.limit else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheetName": self.sheet_name,
            "items": [item.to_dict() for item in self.items],
            "totalItems": self.total_items,
            "pendingCount": self.pending_count,
            "approvedCount": self.approved_count,
            "rejectedCount": self.rejected_count,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


def paginate(items: list[T], page: int, limit: int, max_limit: int = 100) -> Page[T]:
    """Slice ``items`` into a 1-based page; ``limit`` is clamped to ``[1, max_limit]``."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    limit = max(1, min(limit, max_limit))
    start = (page - 1) * limit
    return Page(items=items[start:start + limit], total=len(items), page=page, limit=limit)
