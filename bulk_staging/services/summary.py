from __future__ import annotations

from ..models.processing_result import CommitResult, RejectResult
from ..models.staged_upload import StagedUpload

"""SUMMARY line rendering.

Each renderer returns the body of one SUMMARY line as space separated
``key=value`` pairs; ``log_summary`` adds the ``SUMMARY`` label, e.g.::

    SUMMARY upload=3f2a... file=week3.xlsx items=12 pending=12 days=4 parse_errors=1
    SUMMARY upload=3f2a... approved=12 committed=11 failed=1
"""

__all__ = [
    "render_upload_summary",
    "render_commit_summary",
    "render_reject_summary",
]


def _line(**pairs: object) -> str:
    return " ".join(f"{k}={v}" for k, v in pairs.items())


def render_upload_summary(upload: StagedUpload) -> str:
    return _line(
        upload=upload.id,
        file=upload.file_name.replace(" ", "_"),
        items=upload.summary.total_items,
        pending=upload.summary.pending_approval,
        days=len(upload.relationships),
        parse_errors=len(upload.parse_errors),
    )


def render_commit_summary(upload_id: str, result: CommitResult) -> str:
    """Counts for one approval batch.

    >>> render_commit_summary("u1", CommitResult(approved=4, committed=3, errors=["x"]))
    'upload=u1 approved=4 committed=3 failed=1'
    """
    return _line(upload=upload_id, approved=result.approved, committed=result.committed, failed=result.failed)


def render_reject_summary(upload_id: str, result: RejectResult) -> str:
    return _line(upload=upload_id, rejected=result.rejected)
