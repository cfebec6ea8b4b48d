import io
import threading
import zipfile

import pytest

from conftest import StubRenderer, make_record
from core.exceptions import (
    ArchiveBuildInProgressError, BatchNotReadyError, EmptyBatchError, NotFoundError
)
from models.payroll import GeneratedPayslip
from processors import archive_builder
from processors.archive_builder import ArchiveBuilder, BuildLocks, PayslipArchive
from processors.progress import COMPRESSING, DONE, GENERATING, ProgressChannel


def employees(count):
    return [make_record(employee_id=i, last_name=f"Worker{i}") for i in range(1, count + 1)]


def read_names(result):
    with zipfile.ZipFile(result.archive) as zf:
        return sorted(zf.namelist()), [info.compress_type for info in zf.infolist()]


def test_archive_contains_one_entry_per_employee(gateway):
    batch = gateway.add_batch(employees=employees(3))
    builder = ArchiveBuilder(gateway, StubRenderer())

    result = builder.build(batch.batch_id)

    names, compression = read_names(result)
    assert result.filename == f"batch_{batch.batch_id}_payslips.zip"
    assert result.count == 3
    assert names == [
        f"batch_{batch.batch_id}/payslip_worker1_2024-05-31.jpg",
        f"batch_{batch.batch_id}/payslip_worker2_2024-05-31.jpg",
        f"batch_{batch.batch_id}/payslip_worker3_2024-05-31.jpg",
    ]
    assert set(compression) == {zipfile.ZIP_DEFLATED}


def test_one_render_failure_skips_only_that_payslip(gateway):
    batch = gateway.add_batch(employees=employees(4))
    builder = ArchiveBuilder(gateway, StubRenderer(failing={2}, crashing={4}))

    result = builder.build(batch.batch_id)

    names, _ = read_names(result)
    assert len(names) == 2
    assert result.count == 2
    assert result.skipped == 2


def test_empty_batch_produces_no_archive(gateway):
    batch = gateway.add_batch(employees=[])

    with pytest.raises(EmptyBatchError) as exc:
        ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id)
    assert exc.value.status_code == 422


@pytest.mark.parametrize("status", ["pending", "processing", "failed"])
def test_incomplete_batch_is_not_ready(gateway, status):
    batch = gateway.add_batch(status=status, employees=employees(2))

    with pytest.raises(BatchNotReadyError):
        ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id)


def test_missing_batch_raises_not_found(gateway):
    with pytest.raises(NotFoundError):
        ArchiveBuilder(gateway, StubRenderer()).build(999)


def test_duplicate_file_names_get_a_suffix(gateway):
    people = [make_record(employee_id=1, last_name="Cruz"), make_record(employee_id=2, last_name="Cruz")]
    batch = gateway.add_batch(employees=people)

    result = ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id)

    names, _ = read_names(result)
    assert names == [
        f"batch_{batch.batch_id}/payslip_cruz_2024-05-31.jpg",
        f"batch_{batch.batch_id}/payslip_cruz_2024-05-31_2.jpg",
    ]


def test_progress_reports_generating_then_compressing(gateway):
    batch = gateway.add_batch(employees=employees(2))
    events = []
    channel = ProgressChannel()
    channel.subscribe(events.append)

    ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id, channel)

    phases = [e.phase for e in events]
    generating = [e for e in events if e.phase == GENERATING]
    compressing = [e for e in events if e.phase == COMPRESSING]
    assert [(e.done, e.total) for e in generating] == [(0, 2), (1, 2), (2, 2)]
    assert compressing and compressing[-1].percent == 100.0
    assert phases.index(COMPRESSING) > phases.index(GENERATING)
    assert events[-1].phase == DONE
    assert generating[1].message == "Generating payslips (1/2)..."


def test_failing_progress_subscriber_does_not_stop_the_build(gateway):
    batch = gateway.add_batch(employees=employees(2))
    channel = ProgressChannel()

    def broken(event):
        raise RuntimeError("ui went away")

    channel.subscribe(broken)

    result = ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id, channel)

    assert result.count == 2


def test_second_build_of_same_batch_is_rejected(gateway):
    batch = gateway.add_batch(employees=employees(1))
    locks = BuildLocks()

    with locks.hold(batch.batch_id):
        with pytest.raises(ArchiveBuildInProgressError):
            ArchiveBuilder(gateway, StubRenderer(), locks).build(batch.batch_id)

    assert not locks.is_active(batch.batch_id)
    assert ArchiveBuilder(gateway, StubRenderer(), locks).build(batch.batch_id).count == 1


def test_lock_is_released_after_failure(gateway):
    batch = gateway.add_batch(employees=[])
    locks = BuildLocks()

    with pytest.raises(EmptyBatchError):
        ArchiveBuilder(gateway, StubRenderer(), locks).build(batch.batch_id)

    assert not locks.is_active(batch.batch_id)


def test_locks_are_per_batch():
    locks = BuildLocks()
    entered = threading.Event()

    with locks.hold(1):
        with locks.hold(2):
            entered.set()

    assert entered.is_set()


def test_fallback_returns_individual_payslips_without_compression(gateway, monkeypatch):
    monkeypatch.setattr(archive_builder, "compression_available", lambda: False)
    batch = gateway.add_batch(employees=employees(3))

    result = ArchiveBuilder(gateway, StubRenderer(failing={3})).build(batch.batch_id)

    assert not result.is_archive
    assert [p.employee_id for p in result.payslips] == [1, 2]
    assert result.skipped == 1
    assert result.notice == "Zipping not available; downloading images individually."


def test_fallback_skips_unexpected_render_errors(gateway, monkeypatch):
    monkeypatch.setattr(archive_builder, "compression_available", lambda: False)
    batch = gateway.add_batch(employees=employees(3))

    result = ArchiveBuilder(gateway, StubRenderer(crashing={2})).build(batch.batch_id)

    assert [p.employee_id for p in result.payslips] == [1, 3]
    assert (result.count, result.skipped) == (2, 1)


def test_concurrent_reads_only_for_thread_safe_gateways(gateway):
    batch = gateway.add_batch(employees=employees(1))
    threads = []

    original = gateway.list_batch_employees

    def record_thread(batch_id):
        threads.append(threading.current_thread())
        return original(batch_id)

    gateway.list_batch_employees = record_thread
    ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id)
    assert threads[-1] is threading.main_thread()

    gateway.concurrent_reads = True
    ArchiveBuilder(gateway, StubRenderer()).build(batch.batch_id)
    assert threads[-1] is not threading.main_thread()


def test_render_one_returns_single_payslip(gateway):
    batch = gateway.add_batch(employees=employees(2))

    payslip = ArchiveBuilder(gateway, StubRenderer()).render_one(batch.batch_id, 2)

    assert payslip.filename == "payslip_worker2_2024-05-31.jpg"


def test_render_one_unknown_employee(gateway):
    batch = gateway.add_batch(employees=employees(1))

    with pytest.raises(NotFoundError):
        ArchiveBuilder(gateway, StubRenderer()).render_one(batch.batch_id, 42)


def test_payslip_archive_stages_uncompressed_entries():
    archive = PayslipArchive(5)
    try:
        archive.add(GeneratedPayslip("a.jpg", b"1234"))
        archive.add(GeneratedPayslip("b.jpg", b"5678"))

        assert len(archive) == 2
        assert archive.names() == ["batch_5/a.jpg", "batch_5/b.jpg"]
        assert {info.compress_type for info in archive._zip.infolist()} == {zipfile.ZIP_STORED}

        data = archive.compress()
        with zipfile.ZipFile(io.BytesIO(data.read())) as zf:
            assert zf.read("batch_5/b.jpg") == b"5678"
    finally:
        archive.close()
