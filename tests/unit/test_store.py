from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from bulk_staging.db.store import InMemoryStagedUploadStore
from bulk_staging.errors import ConflictError, InvalidUploadError, NotFoundError
from bulk_staging.models.sheets import SheetKey
from bulk_staging.models.staged_upload import (
    DayRelationship,
    ItemStatus,
    StagedItem,
    StagedSheet,
    StagedUpload,
    UploadStatus,
)


def make_upload(n_items: int = 3, file_name: str = "week.xlsx", uploaded_at: datetime | None = None) -> StagedUpload:
    items = [StagedItem(index=i, day_id=f"2026011{i}", data={"reference": f"John 3:{i}"}) for i in range(n_items)]
    return StagedUpload(
        file_name=file_name,
        uploaded_at=uploaded_at or datetime.now(UTC),
        sheets={SheetKey.MEMORY_VERSES: StagedSheet(key=SheetKey.MEMORY_VERSES, items=items)},
        relationships=[DayRelationship(day_id=f"2026011{i}") for i in range(n_items)],
    )


def test_create_assigns_id_and_derives_summary():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload())
    stored = store.get(upload_id)
    assert stored.id == upload_id
    assert stored.summary.pending_approval == 3
    assert stored.status is UploadStatus.PENDING


@pytest.mark.parametrize("upload", [
    StagedUpload(file_name="", sheets={SheetKey.MEMORY_VERSES: StagedSheet(key=SheetKey.MEMORY_VERSES)}),
    StagedUpload(file_name="x.xlsx", sheets={}),
])
def test_create_rejects_invalid_uploads(upload):
    with pytest.raises(InvalidUploadError):
        InMemoryStagedUploadStore().create(upload)


def test_get_returns_independent_copies():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload())
    copy = store.get(upload_id)
    copy.sheets[SheetKey.MEMORY_VERSES].items[0].status = ItemStatus.APPROVED
    assert store.get(upload_id).sheets[SheetKey.MEMORY_VERSES].items[0].status is ItemStatus.PENDING


def test_get_unknown_upload():
    with pytest.raises(NotFoundError):
        InMemoryStagedUploadStore().get("missing")


def test_list_newest_first_with_status_filter():
    store = InMemoryStagedUploadStore()
    now = datetime.now(UTC)
    old = store.create(make_upload(file_name="old.xlsx", uploaded_at=now - timedelta(days=2)))
    new = store.create(make_upload(file_name="new.xlsx", uploaded_at=now))
    store.update_item_status(old, SheetKey.MEMORY_VERSES, 0, ItemStatus.APPROVED)

    page = store.list()
    assert [u.id for u in page.items] == [new, old]
    assert page.total == 2

    partial = store.list(status="PARTIALLY_APPROVED")
    assert [u.id for u in partial.items] == [old]
    assert store.list(status=UploadStatus.REJECTED).total == 0


def test_get_sheet_paginates_items_with_counts():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload(5))
    store.update_item_status(upload_id, "memoryVerses", 4, "rejected")

    page = store.get_sheet(upload_id, "memoryVerses", page=2, limit=2)
    assert [i.index for i in page.items] == [2, 3]
    assert page.total_items == 5
    assert page.rejected_count == 1
    assert page.total_pages == 3
    assert page.sheet_name == "Memory Verses"

    with pytest.raises(NotFoundError):
        store.get_sheet(upload_id, "keyLessons")


def test_get_relationships_all_or_paged():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload(3))
    everything = store.get_relationships(upload_id)
    assert [r.day_id for r in everything.items] == ["20260110", "20260111", "20260112"]
    assert everything.total_pages == 1
    paged = store.get_relationships(upload_id, page=2, limit=2)
    assert [r.day_id for r in paged.items] == ["20260112"]


def test_update_item_status_transitions():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload(2))

    change = store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 0, ItemStatus.APPROVED)
    assert change.changed
    assert change.previous is ItemStatus.PENDING
    assert change.upload_status is UploadStatus.PARTIALLY_APPROVED

    again = store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 0, ItemStatus.APPROVED)
    assert not again.changed

    store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 1, ItemStatus.REJECTED)
    with pytest.raises(ConflictError):
        store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 1, ItemStatus.APPROVED)
    assert store.get(upload_id).status is UploadStatus.FULLY_APPROVED

    with pytest.raises(NotFoundError):
        store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 7, ItemStatus.APPROVED)
    with pytest.raises(ValueError):
        store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 0, "archived")


def test_failed_mutation_leaves_document_untouched():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload(2))

    def boom(upload):
        upload.sheets[SheetKey.MEMORY_VERSES].items[0].status = ItemStatus.APPROVED
        raise RuntimeError("mid-way failure")

    with pytest.raises(RuntimeError):
        store.modify(upload_id, boom)
    assert store.get(upload_id).summary.approved == 0


def test_delete_guarded_when_fully_approved():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload(1))
    store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, 0, ItemStatus.APPROVED)
    with pytest.raises(ConflictError):
        store.delete(upload_id)

    other = store.create(make_upload(1))
    store.delete(other)
    with pytest.raises(NotFoundError):
        store.get(other)
    with pytest.raises(NotFoundError):
        store.delete(other)


def test_concurrent_approvals_are_serialized():
    store = InMemoryStagedUploadStore()
    upload_id = store.create(make_upload(20))
    barrier = threading.Barrier(4)

    def approve(offset):
        barrier.wait()
        for index in range(offset, 20, 4):
            store.update_item_status(upload_id, SheetKey.MEMORY_VERSES, index, ItemStatus.APPROVED)

    threads = [threading.Thread(target=approve, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stored = store.get(upload_id)
    assert stored.summary.approved == 20
    assert stored.status is UploadStatus.FULLY_APPROVED
