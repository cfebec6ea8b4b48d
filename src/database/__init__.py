from .db import engine, SessionLocal, Base, init_db
from .models import (
    EmployeeDB,
    PayrollBatchDB,
    PayrollBatchEmployeeDB,
    HolidayDB,
    OvertimeRequestDB,
    UndertimeRequestDB,
    NotificationDB
)
from .repository import PayrollRepository
from .holiday_repository import HolidayRepository
from .request_repository import TimeRequestRepository

__all__ = [
    'engine',
    'SessionLocal',
    'Base',
    'init_db',
    'EmployeeDB',
    'PayrollBatchDB',
    'PayrollBatchEmployeeDB',
    'HolidayDB',
    'OvertimeRequestDB',
    'UndertimeRequestDB',
    'NotificationDB',
    'PayrollRepository',
    'HolidayRepository',
    'TimeRequestRepository'
]
