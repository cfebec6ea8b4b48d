from datetime import date
from decimal import Decimal

import pytest

from conftest import make_record
from api.mock_payroll import MockPayrollAPI
from core.exceptions import NotFoundError
from database.repository import PayrollRepository
from models.employee import Employee
from models.payroll import BatchEmployeeRecord


@pytest.fixture
def repo(db_session):
    return PayrollRepository(db_session)


def create(repo, name="May 2024", start="2024-05-01", end="2024-05-31", **extra):
    payload = {'batch_name': name, 'payroll_period_start': start, 'payroll_period_end': end}
    payload.update(extra)
    return repo.create_batch(payload)


def test_create_and_get_batch(repo):
    batch_id = create(repo, department="Finance", notes="first run")

    batch = repo.get_batch(batch_id)

    assert batch.batch_name == "May 2024"
    assert batch.status == "pending"
    assert batch.payroll_period_start == date(2024, 5, 1)
    assert batch.department == "Finance"
    assert batch.total_employees == 0
    assert batch.total_amount == Decimal('0')


def test_get_missing_batch_raises(repo):
    with pytest.raises(NotFoundError):
        repo.get_batch(12345)


def test_list_filters(repo):
    may = create(repo, "May payroll", department="Finance")
    june = create(repo, "June payroll", "2024-06-01", "2024-06-30", department="IT")
    repo.set_batch_status(june, "completed")

    assert [b.batch_id for b in repo.list_batches(search="june")] == [june]
    assert [b.batch_id for b in repo.list_batches(search="finance")] == [may]
    assert [b.batch_id for b in repo.list_batches(status="completed")] == [june]
    assert [b.batch_id for b in repo.list_batches(date="2024-05-15")] == [may]
    assert {b.batch_id for b in repo.list_batches()} == {may, june}


def test_update_batch_changes_only_given_fields(repo):
    batch_id = create(repo, department="Finance")

    repo.update_batch(batch_id, {'batch_name': "Renamed", 'payroll_period_end': "2024-05-15"})

    batch = repo.get_batch(batch_id)
    assert batch.batch_name == "Renamed"
    assert batch.payroll_period_end == date(2024, 5, 15)
    assert batch.department == "Finance"


def test_add_batch_employees_recomputes_totals(repo):
    batch_id = create(repo)

    repo.add_batch_employees(batch_id, [
        make_record(employee_id=1, net_pay="18000.00"),
        make_record(employee_id=2, last_name="Reyes", net_pay="21000.50"),
    ])
    batch = repo.add_batch_employees(batch_id, [make_record(employee_id=2, last_name="Reyes", net_pay="22000.50")])

    assert batch.total_employees == 2
    assert batch.total_amount == Decimal('40000.50')
    records = repo.list_batch_employees(batch_id)
    assert [r.employee_id for r in records] == [1, 2]
    assert records[1].net_pay == Decimal('22000.50')


def test_batch_employee_names_fall_back_to_employee_table(repo):
    repo.save_employee(Employee(employee_id=9, first_name="Ana", last_name="Dela Cruz", department="Ops"))
    batch_id = create(repo)

    repo.add_batch_employees(batch_id, [
        BatchEmployeeRecord(employee_id=9, first_name="", last_name="", net_pay=Decimal('100'))
    ])

    record = repo.list_batch_employees(batch_id)[0]
    assert record.full_name == "Ana Dela Cruz"
    assert record.department == "Ops"


def test_save_employee_updates_existing(repo):
    repo.save_employee(Employee(employee_id=1, first_name="Jose", last_name="Reyes"))
    repo.save_employee(Employee(employee_id=1, first_name="Jose", last_name="Reyes-Cruz"))

    assert repo.get_employee(1).last_name == "Reyes-Cruz"
    assert len(repo.get_all_employees()) == 1


def test_mock_payroll_records_are_consistent(repo):
    api = MockPayrollAPI(seed=7)
    records = api.get_batch_records(date(2024, 5, 1), date(2024, 5, 31))

    assert len(records) == len(api.MOCK_EMPLOYEES)
    for record in records:
        assert record.gross_pay == record.basic_salary + record.overtime_pay
        assert record.net_pay > 0

    batch_id = create(repo)
    batch = repo.add_batch_employees(batch_id, records)
    assert batch.total_amount == sum((r.net_pay for r in records), Decimal('0'))
