from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from utils.validators import to_decimal, parse_date, parse_datetime


class BatchStatus(str, Enum):
    """Payroll batch status values"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PayrollBatch:
    """A named payroll run covering a date range"""
    batch_id: int
    batch_name: str
    payroll_period_start: Optional[date]
    payroll_period_end: Optional[date]
    department: Optional[str] = None
    status: str = BatchStatus.PENDING.value
    total_employees: int = 0
    total_amount: Decimal = Decimal('0')
    created_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return str(self.status or '').lower() == BatchStatus.COMPLETED.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayrollBatch":
        return cls(
            batch_id=int(to_decimal(data.get('batch_id'))),
            batch_name=str(data.get('batch_name') or ''),
            payroll_period_start=parse_date(data.get('payroll_period_start')),
            payroll_period_end=parse_date(data.get('payroll_period_end')),
            department=data.get('department') or None,
            status=str(data.get('status') or BatchStatus.PENDING.value).lower(),
            total_employees=int(to_decimal(data.get('total_employees'))),
            total_amount=to_decimal(data.get('total_amount')),
            created_at=parse_datetime(data.get('created_at')),
            notes=data.get('notes') or None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'batch_id': self.batch_id,
            'batch_name': self.batch_name,
            'payroll_period_start': self.payroll_period_start.isoformat() if self.payroll_period_start else None,
            'payroll_period_end': self.payroll_period_end.isoformat() if self.payroll_period_end else None,
            'department': self.department,
            'status': self.status,
            'total_employees': self.total_employees,
            'total_amount': f"{self.total_amount:.2f}",
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'notes': self.notes
        }


@dataclass
class BatchEmployeeRecord:
    """Per-employee pay snapshot inside a batch"""
    employee_id: int
    first_name: str
    last_name: str
    department: Optional[str] = None
    basic_salary: Decimal = Decimal('0')
    overtime_pay: Decimal = Decimal('0')
    deductions: Decimal = Decimal('0')
    net_pay: Decimal = Decimal('0')

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def gross_pay(self) -> Decimal:
        """Gross recovered from the stored net pay and deduction total"""
        return self.net_pay + self.deductions

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchEmployeeRecord":
        return cls(
            employee_id=int(to_decimal(data.get('employee_id'))),
            first_name=str(data.get('first_name') or ''),
            last_name=str(data.get('last_name') or ''),
            department=data.get('department') or None,
            basic_salary=to_decimal(data.get('basic_salary')),
            overtime_pay=to_decimal(data.get('overtime_pay')),
            deductions=to_decimal(data.get('deductions')),
            net_pay=to_decimal(data.get('net_pay'))
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ('basic_salary', 'overtime_pay', 'deductions', 'net_pay'):
            data[key] = f"{data[key]:.2f}"
        return data


@dataclass(frozen=True)
class DeductionBreakdown:
    """Statutory deductions derived from one gross pay figure"""
    sss: Decimal = Decimal('0.00')
    philhealth: Decimal = Decimal('0.00')
    pagibig: Decimal = Decimal('0.00')
    provident_fund: Decimal = Decimal('0.00')
    tax: Decimal = Decimal('0.00')
    total: Decimal = Decimal('0.00')


@dataclass
class GeneratedPayslip:
    """Rendered payslip image held only while it is archived or downloaded"""
    filename: str
    content: bytes = field(repr=False)
    employee_id: Optional[int] = None
    mimetype: str = "image/jpeg"
