import os
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / 'src'))
sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.base import PayrollGateway
from core.exceptions import NotFoundError, RenderError
from database.db import init_db
from models.payroll import BatchEmployeeRecord, GeneratedPayslip, PayrollBatch
from processors.payslip_renderer import payslip_filename


class FakeGateway(PayrollGateway):
    """In-memory payroll backend that records the calls it receives"""

    def __init__(self):
        self.batches = {}
        self.employees = {}
        self.calls = []
        self._next_id = 1

    def add_batch(self, status="completed", employees=(), **fields):
        batch_id = self._next_id
        self._next_id += 1
        data = dict(
            batch_id=batch_id,
            batch_name=f"Batch {batch_id}",
            payroll_period_start=date(2024, 5, 1),
            payroll_period_end=date(2024, 5, 31),
            status=status,
            created_at=datetime(2024, 5, 31, 9, 5)
        )
        data.update(fields)
        self.batches[batch_id] = PayrollBatch(**data)
        self.employees[batch_id] = list(employees)
        return self.batches[batch_id]

    def list_batches(self, search=None, status=None, date=None):
        self.calls.append(('list_batches', search, status, date))
        items = list(self.batches.values())
        if search:
            items = [b for b in items if search.lower() in b.batch_name.lower()]
        if status:
            items = [b for b in items if b.status == status]
        return items

    def get_batch(self, batch_id):
        self.calls.append(('get_batch', batch_id))
        if batch_id not in self.batches:
            raise NotFoundError(f"Batch {batch_id} not found")
        batch = self.batches[batch_id]
        return PayrollBatch(**batch.__dict__)

    def list_batch_employees(self, batch_id):
        self.calls.append(('list_batch_employees', batch_id))
        return list(self.employees.get(batch_id, []))

    def create_batch(self, payload):
        self.calls.append(('create_batch', payload))
        fields = dict(payload)
        fields['payroll_period_start'] = date.fromisoformat(fields['payroll_period_start'])
        fields['payroll_period_end'] = date.fromisoformat(fields['payroll_period_end'])
        return self.add_batch(status="pending", employees=(), **fields).batch_id

    def update_batch(self, batch_id, payload):
        self.calls.append(('update_batch', batch_id, payload))
        batch = self.batches[batch_id]
        for key, value in payload.items():
            if key.startswith('payroll_period') and value:
                value = date.fromisoformat(value)
            setattr(batch, key, value)

    def set_batch_status(self, batch_id, status):
        self.calls.append(('set_batch_status', batch_id, status))
        self.batches[batch_id].status = status


class StubRenderer:
    """Renders tiny fake JPEGs; fails for the given employee ids"""

    def __init__(self, failing=(), crashing=()):
        self.failing = set(failing)
        self.crashing = set(crashing)
        self.rendered = []

    def render(self, record, batch):
        if record.employee_id in self.failing:
            raise RenderError(f"Failed to render payslip for employee {record.employee_id}")
        if record.employee_id in self.crashing:
            raise RuntimeError("unexpected")
        self.rendered.append(record.employee_id)
        return GeneratedPayslip(
            filename=payslip_filename(record, batch),
            content=b"\xff\xd8" + bytes(200) + b"\xff\xd9",
            employee_id=record.employee_id
        )


def make_record(employee_id=1, last_name="Santos", first_name="Maria", net_pay="18000.00",
                deductions="2000.00", basic_salary="19000.00", overtime_pay="1000.00"):
    return BatchEmployeeRecord(
        employee_id=employee_id,
        first_name=first_name,
        last_name=last_name,
        department="Finance",
        basic_salary=Decimal(basic_salary),
        overtime_pay=Decimal(overtime_pay),
        deductions=Decimal(deductions),
        net_pay=Decimal(net_pay)
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()
