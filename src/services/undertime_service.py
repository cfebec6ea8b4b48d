import logging
from typing import Any, Dict, Optional

from core.exceptions import ConflictError, ValidationError
from database.models import UndertimeRequestDB
from utils.validators import is_positive_id
from .time_requests import APPROVED, PENDING, TimeRequestService, optional_time, positive_hours, require_date

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (PENDING, APPROVED)


class UndertimeService(TimeRequestService):
    """Undertime requests"""

    kind = "undertime"

    def request(self, employee_id: Any, work_date: Any, hours: Any, start_time: Any = None,
                end_time: Any = None, reason: Optional[str] = None) -> Dict[str, Any]:
        fields = self._validated(employee_id, work_date, hours, start_time, end_time)
        request = self.repository.add(UndertimeRequestDB(
            reason=(reason or '').strip() or None,
            status=PENDING,
            **fields
        ))
        logger.info("Undertime requested by employee %s for %s", request.employee_id, request.work_date)
        return request.to_dict()

    def update(self, ut_id: Any, work_date: Any, hours: Any, start_time: Any = None, end_time: Any = None,
               reason: Optional[str] = None, employee_id: Any = None) -> Dict[str, Any]:
        """Edit a pending or approved request"""
        request = self._require(ut_id)
        if request.status not in EDITABLE_STATUSES:
            raise ConflictError("Only pending or approved undertime requests can be edited")

        fields = self._validated(employee_id or request.employee_id, work_date, hours, start_time, end_time)
        for key, value in fields.items():
            setattr(request, key, value)
        request.reason = (reason or '').strip() or None
        return self.repository.save(request).to_dict()

    @staticmethod
    def _validated(employee_id, work_date, hours, start_time, end_time) -> Dict[str, Any]:
        if not is_positive_id(employee_id):
            raise ValidationError("Invalid inputs")
        value = positive_hours(hours)
        if value is None:
            raise ValidationError("Hours must be greater than zero")
        return {
            'employee_id': int(employee_id),
            'work_date': require_date(work_date),
            'hours': value,
            'start_time': optional_time(start_time, "Start time"),
            'end_time': optional_time(end_time, "End time")
        }
