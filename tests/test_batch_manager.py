from datetime import date

import pytest

from conftest import make_record
from core.exceptions import ConflictError, NotFoundError, ValidationError
from services.batch_manager import BatchLifecycleManager


@pytest.fixture
def manager(gateway):
    return BatchLifecycleManager(gateway)


def test_create_returns_pending_batch(manager, gateway):
    batch = manager.create("  May 2024  ", "2024-05-01", date(2024, 5, 31), department="IT")

    assert batch.status == "pending"
    assert batch.batch_name == "May 2024"
    assert batch.payroll_period_end == date(2024, 5, 31)
    assert gateway.calls[0] == ('create_batch', {
        'batch_name': 'May 2024',
        'payroll_period_start': '2024-05-01',
        'payroll_period_end': '2024-05-31',
        'department': 'IT',
        'notes': None
    })


@pytest.mark.parametrize("name, start, end", [
    ("", "2024-05-01", "2024-05-31"),
    ("   ", "2024-05-01", "2024-05-31"),
    ("May", "", "2024-05-31"),
    ("May", "2024-05-01", None),
    ("May", "2024-13-01", "2024-05-31"),
    ("May", "2024-05-01", "not a date"),
])
def test_create_requires_name_and_dates(manager, gateway, name, start, end):
    with pytest.raises(ValidationError):
        manager.create(name, start, end)

    assert not any(call[0] == 'create_batch' for call in gateway.calls)


def test_get_is_idempotent(manager, gateway):
    batch = gateway.add_batch()

    assert manager.get(batch.batch_id) == manager.get(batch.batch_id)


def test_get_missing_batch(manager):
    with pytest.raises(NotFoundError):
        manager.get(404)


def test_update_with_empty_name_leaves_batch_unchanged(manager, gateway):
    batch = gateway.add_batch(status="pending", batch_name="Original")

    with pytest.raises(ValidationError):
        manager.update(batch.batch_id, batch_name="")

    assert manager.get(batch.batch_id).batch_name == "Original"
    assert not any(call[0] == 'update_batch' for call in gateway.calls)


def test_update_with_empty_period_fails(manager, gateway):
    batch = gateway.add_batch(status="processing")

    with pytest.raises(ValidationError):
        manager.update(batch.batch_id, payroll_period_end="")


def test_update_merges_fields(manager, gateway):
    batch = gateway.add_batch(status="pending", department="IT")

    updated = manager.update(batch.batch_id, batch_name="Renamed", payroll_period_end="2024-06-15")

    assert updated.batch_name == "Renamed"
    assert updated.payroll_period_end == date(2024, 6, 15)
    assert updated.department == "IT"


def test_update_rejects_completed_batches(manager, gateway):
    batch = gateway.add_batch(status="completed")

    with pytest.raises(ConflictError):
        manager.update(batch.batch_id, batch_name="Late edit")


def test_update_without_editable_fields(manager, gateway):
    batch = gateway.add_batch(status="pending")

    with pytest.raises(ValidationError):
        manager.update(batch.batch_id, status="completed")


def test_set_status_accepts_known_values(manager, gateway):
    batch = gateway.add_batch(status="pending")

    for status in ("processing", "failed", "pending", "COMPLETED"):
        manager.set_status(batch.batch_id, status)

    assert manager.get(batch.batch_id).status == "completed"


def test_set_status_accepts_any_value(manager, gateway):
    batch = gateway.add_batch(status="pending")

    assert manager.set_status(batch.batch_id, " Archived ").status == "archived"

    with pytest.raises(ValidationError):
        manager.set_status(batch.batch_id, "   ")


@pytest.mark.parametrize("current, expected", [
    ("completed", "processing"),
    ("processing", "completed"),
    ("pending", "completed"),
    ("failed", "completed"),
])
def test_toggle_status(manager, gateway, current, expected):
    batch = gateway.add_batch(status=current)

    assert manager.toggle_status(batch.batch_id).status == expected


def test_list_caches_filters_and_mutations_refresh(manager, gateway):
    gateway.add_batch(batch_name="May payroll", status="pending")
    gateway.add_batch(batch_name="June payroll", status="completed")

    assert [b.batch_name for b in manager.list(search="may")] == ["May payroll"]

    manager.create("May bonus", "2024-05-01", "2024-05-31")

    assert manager.filters == {'search': 'may', 'status': None, 'date': None}
    assert [b.batch_name for b in manager.batches] == ["May payroll", "May bonus"]
    assert gateway.calls[-2] == ('list_batches', 'may', None, None)


def test_mutations_skip_reload_when_nothing_was_listed(manager, gateway):
    batch = gateway.add_batch(status="pending")

    manager.create("May bonus", "2024-05-01", "2024-05-31")
    manager.update(batch.batch_id, notes="checked")
    manager.toggle_status(batch.batch_id)

    assert not any(call[0] == 'list_batches' for call in gateway.calls)
    assert manager.batches == []


def test_list_validates_date_filter(manager):
    with pytest.raises(ValidationError):
        manager.list(date="05/01/2024")


def test_paginate_clamps_page(manager, gateway):
    for _ in range(23):
        gateway.add_batch()
    manager.list()

    first = manager.paginate(page=1, page_size=10)
    last = manager.paginate(page=99, page_size=10)
    fallback = manager.paginate(page="x", page_size=0)

    assert (first.total, first.pages, len(first.items)) == (23, 3, 10)
    assert (last.page, len(last.items)) == (3, 3)
    assert (fallback.page, fallback.page_size) == (1, 10)


def test_paginate_empty_list_has_one_page(manager):
    manager.list()

    page = manager.paginate(page=5)

    assert (page.page, page.pages, page.items) == (1, 1, [])


def test_download_delegates_to_archive_builder(gateway):
    class RecordingBuilder:
        def __init__(self):
            self.calls = []

        def build(self, batch_id, progress=None):
            self.calls.append((batch_id, progress))
            return "archive"

    builder = RecordingBuilder()
    manager = BatchLifecycleManager(gateway, builder)
    batch = gateway.add_batch(employees=[make_record()])

    assert manager.download(batch.batch_id) == "archive"
    assert builder.calls == [(batch.batch_id, None)]
