from .batch_manager import BatchLifecycleManager, BatchPage
from .holiday_service import HolidayService
from .overtime_service import OvertimeService
from .undertime_service import UndertimeService

__all__ = [
    'BatchLifecycleManager',
    'BatchPage',
    'HolidayService',
    'OvertimeService',
    'UndertimeService'
]
