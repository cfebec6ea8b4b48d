from sqlalchemy import Column, Integer, String, Date, Time, Numeric, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .db import Base


def utcnow():
    """Naive UTC timestamp, as stored in the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value is not None else None


class EmployeeDB(Base):
    """Employee reference row, used to resolve names"""
    __tablename__ = "employees"

    employee_id = Column(Integer, primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    department = Column(String(100))
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Employee(id={self.employee_id}, name={self.last_name}, {self.first_name})>"


class PayrollBatchDB(Base):
    """Payroll batch database model"""
    __tablename__ = "payroll_batches"

    batch_id = Column(Integer, primary_key=True, autoincrement=True)
    batch_name = Column(String(255), nullable=False)
    payroll_period_start = Column(Date, nullable=False, index=True)
    payroll_period_end = Column(Date, nullable=False, index=True)
    department = Column(String(100))
    status = Column(String(20), nullable=False, default='pending', index=True)

    # Totals are kept in sync with the employee rows
    total_employees = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    employees = relationship("PayrollBatchEmployeeDB", back_populates="batch",
                             cascade="all, delete-orphan", order_by="PayrollBatchEmployeeDB.id")

    def __repr__(self):
        return f"<PayrollBatch(id={self.batch_id}, name={self.batch_name}, status={self.status})>"


class PayrollBatchEmployeeDB(Base):
    """Per-employee pay snapshot inside a batch"""
    __tablename__ = "payroll_batch_employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(Integer, ForeignKey('payroll_batches.batch_id'), nullable=False, index=True)
    employee_id = Column(Integer, nullable=False)

    # Snapshot of the employee at batch time
    first_name = Column(String(100))
    last_name = Column(String(100))
    department = Column(String(100))

    basic_salary = Column(Numeric(12, 2), nullable=False, default=0)
    overtime_pay = Column(Numeric(12, 2), nullable=False, default=0)
    deductions = Column(Numeric(12, 2), nullable=False, default=0)
    net_pay = Column(Numeric(12, 2), nullable=False, default=0)

    batch = relationship("PayrollBatchDB", back_populates="employees")

    def __repr__(self):
        return f"<PayrollBatchEmployee(batch={self.batch_id}, employee={self.employee_id}, net={self.net_pay})>"


class HolidayDB(Base):
    """Holiday calendar entry"""
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, autoincrement=True)
    holiday_date = Column(Date, nullable=False, index=True)
    holiday_name = Column(String(255), nullable=False)
    description = Column(Text)
    is_recurring = Column(Boolean, nullable=False, default=False)
    original_date = Column(Date)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'holiday_date': _iso(self.holiday_date),
            'holiday_name': self.holiday_name,
            'description': self.description,
            'is_recurring': 1 if self.is_recurring else 0,
            'original_date': _iso(self.original_date),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"<Holiday(id={self.id}, date={self.holiday_date}, name={self.holiday_name})>"


class _TimeRequestMixin:
    """Columns shared by overtime and undertime requests"""
    employee_id = Column(Integer, nullable=False, index=True)
    work_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time)
    end_time = Column(Time)
    hours = Column(Numeric(6, 2))
    reason = Column(Text)
    status = Column(String(20), nullable=False, default='pending', index=True)

    # Approval audit trail
    approved_by = Column(Integer)
    approved_at = Column(DateTime)
    rejected_by = Column(Integer)
    rejected_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)

    def _base_dict(self):
        return {
            'employee_id': self.employee_id,
            'work_date': _iso(self.work_date),
            'start_time': self.start_time.strftime('%H:%M') if self.start_time else None,
            'end_time': self.end_time.strftime('%H:%M') if self.end_time else None,
            'hours': f"{self.hours:.2f}" if self.hours is not None else None,
            'reason': self.reason,
            'status': self.status,
            'approved_by': self.approved_by,
            'approved_at': _iso(self.approved_at),
            'rejected_by': self.rejected_by,
            'rejected_at': _iso(self.rejected_at),
            'created_at': _iso(self.created_at)
        }


class OvertimeRequestDB(_TimeRequestMixin, Base):
    """Overtime request, completed by QR time-in/time-out scans"""
    __tablename__ = "overtime_requests"

    ot_id = Column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self):
        return dict(ot_id=self.ot_id, **self._base_dict())

    def __repr__(self):
        return f"<OvertimeRequest(id={self.ot_id}, employee={self.employee_id}, status={self.status})>"


class UndertimeRequestDB(_TimeRequestMixin, Base):
    """Undertime request"""
    __tablename__ = "undertime_requests"

    ut_id = Column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self):
        return dict(ut_id=self.ut_id, **self._base_dict())

    def __repr__(self):
        return f"<UndertimeRequest(id={self.ut_id}, employee={self.employee_id}, status={self.status})>"


class NotificationDB(Base):
    """Employee notification about a request decision"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, nullable=False, index=True)
    message = Column(String(255), nullable=False)
    type = Column(String(20))
    actor_user_id = Column(Integer)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Notification(employee={self.employee_id}, type={self.type})>"
