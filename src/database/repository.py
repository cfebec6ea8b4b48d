from sqlalchemy.orm import Session
from sqlalchemy import and_, or_
from typing import Any, Dict, Iterable, List, Optional
from decimal import Decimal
from .models import EmployeeDB, PayrollBatchDB, PayrollBatchEmployeeDB
from api.base import PayrollGateway
from core.exceptions import NotFoundError
from models.payroll import PayrollBatch, BatchEmployeeRecord, BatchStatus
from models.employee import Employee
from utils.validators import parse_date, to_decimal

# Editable batch columns
BATCH_FIELDS = ('batch_name', 'payroll_period_start', 'payroll_period_end', 'department', 'notes')


class PayrollRepository(PayrollGateway):
    """Repository for payroll batch data operations"""

    def __init__(self, db_session: Session):
        self.db = db_session

    # ========== Employee Operations ==========

    def save_employee(self, employee: Employee) -> EmployeeDB:
        """Save or update employee"""
        db_employee = self.db.query(EmployeeDB).filter_by(employee_id=employee.employee_id).first()
        if not db_employee:
            db_employee = EmployeeDB(
                employee_id=employee.employee_id,
                first_name=employee.first_name,
                last_name=employee.last_name,
                department=employee.department
            )
            self.db.add(db_employee)
        else:
            db_employee.first_name = employee.first_name
            db_employee.last_name = employee.last_name
            db_employee.department = employee.department
        self.db.commit()
        self.db.refresh(db_employee)
        return db_employee

    def get_employee(self, employee_id: int) -> Optional[EmployeeDB]:
        """Get employee by ID"""
        return self.db.query(EmployeeDB).filter_by(employee_id=employee_id).first()

    def get_all_employees(self) -> List[EmployeeDB]:
        """Get all employees"""
        return self.db.query(EmployeeDB).order_by(EmployeeDB.last_name, EmployeeDB.first_name).all()

    def employee_names(self, employee_ids: Iterable[int]) -> Dict[int, EmployeeDB]:
        """Map employee ids to their reference rows"""
        ids = {int(i) for i in employee_ids}
        if not ids:
            return {}
        rows = self.db.query(EmployeeDB).filter(EmployeeDB.employee_id.in_(ids)).all()
        return {row.employee_id: row for row in rows}

    # ========== Batch Operations ==========

    def list_batches(self, search: Optional[str] = None, status: Optional[str] = None,
                     date: Optional[str] = None) -> List[PayrollBatch]:
        """List batches, newest first, filtered by text, status and covered date"""
        query = self.db.query(PayrollBatchDB)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                PayrollBatchDB.batch_name.ilike(pattern),
                PayrollBatchDB.department.ilike(pattern)
            ))
        if status:
            query = query.filter(PayrollBatchDB.status == status.strip().lower())
        if date:
            day = parse_date(date)
            if day:
                query = query.filter(and_(
                    PayrollBatchDB.payroll_period_start <= day,
                    PayrollBatchDB.payroll_period_end >= day
                ))
        rows = query.order_by(PayrollBatchDB.created_at.desc(), PayrollBatchDB.batch_id.desc()).all()
        return [self._to_batch(row) for row in rows]

    def get_batch(self, batch_id: int) -> PayrollBatch:
        return self._to_batch(self._get_batch_row(batch_id))

    def create_batch(self, payload: Dict[str, Any]) -> int:
        """Insert a pending batch and return its id"""
        batch = PayrollBatchDB(
            batch_name=payload['batch_name'],
            payroll_period_start=parse_date(payload['payroll_period_start']),
            payroll_period_end=parse_date(payload['payroll_period_end']),
            department=payload.get('department') or None,
            notes=payload.get('notes') or None,
            status=BatchStatus.PENDING.value
        )
        self.db.add(batch)
        self.db.commit()
        self.db.refresh(batch)
        return batch.batch_id

    def update_batch(self, batch_id: int, payload: Dict[str, Any]) -> None:
        batch = self._get_batch_row(batch_id)
        for key in BATCH_FIELDS:
            if key not in payload:
                continue
            value = payload[key]
            if key.startswith('payroll_period'):
                value = parse_date(value)
            setattr(batch, key, value if value != '' else None)
        self.db.commit()

    def set_batch_status(self, batch_id: int, status: str) -> None:
        batch = self._get_batch_row(batch_id)
        batch.status = status
        self.db.commit()

    # ========== Batch Employee Operations ==========

    def list_batch_employees(self, batch_id: int) -> List[BatchEmployeeRecord]:
        """Employee rows of a batch; names fall back to the employee table"""
        rows = self.db.query(PayrollBatchEmployeeDB).filter_by(batch_id=batch_id) \
            .order_by(PayrollBatchEmployeeDB.id).all()
        directory = self.employee_names(row.employee_id for row in rows)
        return [self._to_record(row, directory.get(row.employee_id)) for row in rows]

    def add_batch_employees(self, batch_id: int, records: Iterable[BatchEmployeeRecord]) -> PayrollBatch:
        """Attach (or replace) employee pay rows and refresh the batch totals"""
        batch = self._get_batch_row(batch_id)
        existing = {row.employee_id: row for row in batch.employees}

        for record in records:
            row = existing.get(record.employee_id)
            if row is None:
                row = PayrollBatchEmployeeDB(employee_id=record.employee_id)
                batch.employees.append(row)
                existing[record.employee_id] = row
            row.first_name = record.first_name or None
            row.last_name = record.last_name or None
            row.department = record.department
            row.basic_salary = record.basic_salary
            row.overtime_pay = record.overtime_pay
            row.deductions = record.deductions
            row.net_pay = record.net_pay

        batch.total_employees = len(existing)
        batch.total_amount = sum((to_decimal(row.net_pay) for row in existing.values()), Decimal('0'))
        self.db.commit()
        self.db.refresh(batch)
        return self._to_batch(batch)

    # ========== Helper Methods ==========

    def _get_batch_row(self, batch_id: int) -> PayrollBatchDB:
        batch = self.db.query(PayrollBatchDB).filter_by(batch_id=batch_id).first()
        if not batch:
            raise NotFoundError(f"Batch {batch_id} not found")
        return batch

    def _to_batch(self, row: PayrollBatchDB) -> PayrollBatch:
        return PayrollBatch(
            batch_id=row.batch_id,
            batch_name=row.batch_name,
            payroll_period_start=row.payroll_period_start,
            payroll_period_end=row.payroll_period_end,
            department=row.department,
            status=row.status,
            total_employees=row.total_employees or 0,
            total_amount=to_decimal(row.total_amount),
            created_at=row.created_at,
            notes=row.notes
        )

    def _to_record(self, row: PayrollBatchEmployeeDB, employee: Optional[EmployeeDB]) -> BatchEmployeeRecord:
        return BatchEmployeeRecord(
            employee_id=row.employee_id,
            first_name=row.first_name or (employee.first_name if employee else ''),
            last_name=row.last_name or (employee.last_name if employee else ''),
            department=row.department or (employee.department if employee else None),
            basic_salary=to_decimal(row.basic_salary),
            overtime_pay=to_decimal(row.overtime_pay),
            deductions=to_decimal(row.deductions),
            net_pay=to_decimal(row.net_pay)
        )
