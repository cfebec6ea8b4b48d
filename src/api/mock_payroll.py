from datetime import date
from decimal import Decimal
from typing import List, Dict, Any, Optional
import random
from models.employee import Employee
from models.payroll import BatchEmployeeRecord
from processors.deduction_calculator import compute_deductions, round_cents


class MockPayrollAPI:
    """Sample payroll source used for seeding and demos"""

    # Sample employee data
    MOCK_EMPLOYEES = [
        {"employee_id": 1, "first_name": "Maria", "last_name": "Santos", "department": "Finance"},
        {"employee_id": 2, "first_name": "Jose", "last_name": "Reyes", "department": "Operations"},
        {"employee_id": 3, "first_name": "Ana", "last_name": "Dela Cruz", "department": "Operations"},
        {"employee_id": 4, "first_name": "Patrick", "last_name": "O'Brien Jr.", "department": "IT"},
        {"employee_id": 5, "first_name": "Liza", "last_name": "Mendoza", "department": "HR"}
    ]

    def __init__(self, seed: Optional[int] = None):
        self.random = random.Random(seed)
        self.monthly_salary_range = (Decimal('15000'), Decimal('60000'))
        self.overtime_rate = Decimal('1.25')

    def get_employees(self) -> List[Employee]:
        return [Employee(**emp) for emp in self.MOCK_EMPLOYEES]

    def get_batch_records(self, period_start: date, period_end: date,
                          department: Optional[str] = None) -> List[BatchEmployeeRecord]:
        """Pay rows for every employee (optionally one department) in a period"""
        records = []
        for emp in self.MOCK_EMPLOYEES:
            if department and emp['department'] != department:
                continue
            records.append(self._generate_record(emp, period_start, period_end))
        return records

    def _generate_record(self, employee: Dict[str, Any], period_start: date, period_end: date) -> BatchEmployeeRecord:
        """Generate a pay row with realistic amounts"""
        low, high = self.monthly_salary_range
        basic_salary = round_cents(Decimal(str(self.random.uniform(float(low), float(high)))))

        # Overtime hours at 125% of the hourly rate (22 days x 8 hours)
        hourly_rate = basic_salary / Decimal('176')
        overtime_hours = Decimal(self.random.randint(0, 12))
        overtime_pay = round_cents(overtime_hours * hourly_rate * self.overtime_rate)

        gross = basic_salary + overtime_pay
        deductions = compute_deductions(gross).total

        return BatchEmployeeRecord(
            employee_id=employee['employee_id'],
            first_name=employee['first_name'],
            last_name=employee['last_name'],
            department=employee['department'],
            basic_salary=basic_salary,
            overtime_pay=overtime_pay,
            deductions=deductions,
            net_pay=gross - deductions
        )

    def get_all_employees(self) -> List[Dict[str, Any]]:
        """Get list of all employees"""
        return [dict(emp) for emp in self.MOCK_EMPLOYEES]
