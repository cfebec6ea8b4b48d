import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import NotFoundError, ValidationError
from database.models import utcnow
from database.request_repository import TimeRequest, TimeRequestRepository
from utils.validators import is_positive_id, parse_date, parse_time, to_decimal

logger = logging.getLogger(__name__)

APPROVED = 'approved'
REJECTED = 'rejected'
PENDING = 'pending'


def compute_hours(work_date: date, start: Optional[time], end: Optional[time]) -> Optional[Decimal]:
    """Hours between two clock times; an end before the start wraps past midnight"""
    if not work_date or not start or not end:
        return None
    started = datetime.combine(work_date, start)
    ended = datetime.combine(work_date, end)
    if ended < started:
        ended += timedelta(days=1)
    seconds = (ended - started).total_seconds()
    if seconds <= 0:
        return None
    return (Decimal(str(seconds)) / Decimal('3600')).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def require_date(value: Any, label: str = "Work date") -> date:
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{label} must be a valid date (YYYY-MM-DD)")
    return parsed


def optional_date(value: Any, label: str) -> Optional[date]:
    if value is None or str(value).strip() == '':
        return None
    return require_date(value, label)


def optional_time(value: Any, label: str) -> Optional[time]:
    try:
        return parse_time(value)
    except ValueError:
        raise ValidationError(f"{label} must be HH:MM")


def positive_hours(value: Any) -> Optional[Decimal]:
    hours = to_decimal(value)
    return hours.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP) if hours > 0 else None


class TimeRequestService:
    """Shared workflow of overtime and undertime requests: lists, approval, notifications"""

    kind = "time"

    def __init__(self, repository: TimeRequestRepository):
        self.repository = repository

    # ========== Lists ==========

    def list_by_employee(self, employee_id: Any) -> List[Dict[str, Any]]:
        """Latest 50 requests of one employee"""
        if not is_positive_id(employee_id):
            return []
        return [row.to_dict() for row in self.repository.list_by_employee(int(employee_id))]

    def list_pending(self) -> List[Dict[str, Any]]:
        return self._with_names(self.repository.list_pending())

    def list_all(self, start_date: Any = None, end_date: Any = None, employee_id: Any = None,
                 status: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = self.repository.list_filtered(
            start_date=optional_date(start_date, "Start date"),
            end_date=optional_date(end_date, "End date"),
            employee_id=int(employee_id) if is_positive_id(employee_id) else None,
            status=(status or '').strip().lower() or None
        )
        return self._with_names(rows)

    # ========== Approval ==========

    def approve(self, request_id: Any, actor: Optional[int] = None) -> Dict[str, Any]:
        return self._decide(request_id, APPROVED, actor)

    def reject(self, request_id: Any, actor: Optional[int] = None) -> Dict[str, Any]:
        return self._decide(request_id, REJECTED, actor)

    def _decide(self, request_id: Any, status: str, actor: Optional[int]) -> Dict[str, Any]:
        request = self._require(request_id)
        now = utcnow()
        request.status = status
        if status == APPROVED:
            request.approved_by, request.approved_at = actor, now
            request.rejected_by, request.rejected_at = None, None
        else:
            request.rejected_by, request.rejected_at = actor, now
            request.approved_by, request.approved_at = None, None
        self.repository.save(request)
        logger.info("%s request %s %s by %s", self.kind.capitalize(), request_id, status, actor)
        self._notify(request, status, actor)
        return request.to_dict()

    def _notify(self, request: TimeRequest, status: str, actor: Optional[int]) -> None:
        """Tell the employee about the decision; failures never undo the decision"""
        if not request.employee_id:
            return
        message = f"Your {self.kind} request was {status}"
        try:
            self.repository.add_notification(request.employee_id, message, status, actor)
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            logger.warning("Notification for employee %s failed: %s", request.employee_id, e)

    # ========== Helpers ==========

    def _require(self, request_id: Any) -> TimeRequest:
        if not is_positive_id(request_id):
            raise ValidationError("Invalid ID")
        request = self.repository.get(int(request_id))
        if not request:
            raise NotFoundError("Request not found")
        return request

    def _with_names(self, rows: List[TimeRequest]) -> List[Dict[str, Any]]:
        directory = self.repository.employee_names(row.employee_id for row in rows)
        items = []
        for row in rows:
            data = row.to_dict()
            employee = directory.get(row.employee_id)
            data['first_name'] = employee.first_name if employee else None
            data['last_name'] = employee.last_name if employee else None
            items.append(data)
        return items
