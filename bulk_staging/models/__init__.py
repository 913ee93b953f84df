"""Domain models for the bulk staging pipeline.

Staging aggregate, sheet / slot constants, operation results and config
dataclasses.
"""

from .config_models import DatabaseConfig, PaginationConfig, StagingConfig
from .processing_result import CommitResult, ItemRef, ModerationMode, Page, RejectResult, SheetPage, StatusChange
from .row_data import RowData
from .sheets import SHEET_ORDER, SLOT_KEYS, SheetKey
from .staged_upload import (
    DayLink,
    DayRelationship,
    ItemStatus,
    StagedItem,
    StagedSheet,
    StagedUpload,
    Uploader,
    UploadStatus,
    UploadSummary,
)

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "PaginationConfig",
    "StagingConfig",
    # Staging aggregate
    "StagedUpload",
    "StagedSheet",
    "StagedItem",
    "DayRelationship",
    "DayLink",
    "Uploader",
    "UploadSummary",
    "ItemStatus",
    "UploadStatus",
    "SheetKey",
    "SHEET_ORDER",
    "SLOT_KEYS",
    # Results
    "CommitResult",
    "RejectResult",
    "StatusChange",
    "ItemRef",
    "ModerationMode",
    "Page",
    "SheetPage",
    "RowData",
]
