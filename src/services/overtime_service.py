import logging
from datetime import datetime, time
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from config.settings import OVERTIME_SCAN_END, OVERTIME_SCAN_START, TIMEZONE
from core.exceptions import ConflictError, NotFoundError, ValidationError
from database.models import OvertimeRequestDB
from database.request_repository import TimeRequestRepository
from utils.validators import is_positive_id, parse_time
from .time_requests import (
    APPROVED, PENDING, TimeRequestService, compute_hours, optional_date, optional_time, positive_hours,
    require_date
)

logger = logging.getLogger(__name__)


class OvertimeService(TimeRequestService):
    """Overtime requests; approved requests are completed by QR time-in/time-out scans.

    Scans are accepted only inside the scan window (20:30 to 22:00 local time
    by default). The first scan records the time in, a second scan at the
    window end records the time out, and hours are capped at the window end.
    """

    kind = "overtime"

    def __init__(self, repository: TimeRequestRepository, timezone: str = TIMEZONE,
                 scan_start: str = OVERTIME_SCAN_START, scan_end: str = OVERTIME_SCAN_END,
                 clock: Optional[Callable[[], datetime]] = None):
        super().__init__(repository)
        self.zone = ZoneInfo(timezone)
        self.scan_start: time = parse_time(scan_start)
        self.scan_end: time = parse_time(scan_end)
        self.clock = clock or (lambda: datetime.now(self.zone))

    def request(self, employee_id: Any, work_date: Any, hours: Any = None,
                reason: Optional[str] = None) -> Dict[str, Any]:
        """File a pending request; time in/out come from scans"""
        if not is_positive_id(employee_id):
            raise ValidationError("Invalid inputs")
        request = self.repository.add(OvertimeRequestDB(
            employee_id=int(employee_id),
            work_date=require_date(work_date),
            hours=positive_hours(hours),
            reason=(reason or '').strip() or None,
            status=PENDING
        ))
        logger.info("Overtime requested by employee %s for %s", employee_id, request.work_date)
        return request.to_dict()

    def update(self, ot_id: Any, work_date: Any, start_time: Any = None, end_time: Any = None,
               hours: Any = None, reason: Optional[str] = None) -> Dict[str, Any]:
        """Edit a request while it is still pending"""
        request = self._require(ot_id)
        if request.status != PENDING:
            raise ConflictError("Only pending overtime requests can be edited")

        day = require_date(work_date)
        start = optional_time(start_time, "Start time")
        end = optional_time(end_time, "End time")
        value = positive_hours(hours)
        if value is None:
            value = compute_hours(day, start, end)

        request.work_date = day
        request.start_time = start
        request.end_time = end
        request.hours = value
        request.reason = (reason or '').strip() or None
        return self.repository.save(request).to_dict()

    def list_approved(self, start_date: Any = None, end_date: Any = None) -> List[Dict[str, Any]]:
        rows = self.repository.list_filtered(
            start_date=optional_date(start_date, "Start date"),
            end_date=optional_date(end_date, "End date"),
            status=APPROVED,
            newest_work_date_first=True
        )
        return self._with_names(rows)

    def log_scan(self, employee_id: Any, work_date: Any = None,
                 now: Optional[datetime] = None) -> Dict[str, Any]:
        """Record a QR scan against today's approved overtime request"""
        if not is_positive_id(employee_id):
            raise ValidationError("Invalid employee")

        now = self._local(now or self.clock())
        day = require_date(work_date) if work_date else now.date()
        clock_time = now.time().replace(second=0, microsecond=0)

        request = self.repository.latest_for_date(int(employee_id), day, APPROVED)
        if not request:
            raise NotFoundError("No approved overtime request for today")

        if clock_time < self.scan_start:
            raise ConflictError(
                f"Overtime scan allowed only between {self._label(self.scan_start)} "
                f"and {self._label(self.scan_end)}"
            )
        if clock_time > self.scan_end:
            raise ConflictError("Scanner closed. Please contact HR or Admin to open again.")

        if request.start_time is None:
            request.start_time = clock_time
            self.repository.save(request)
            logger.info("Overtime time in for employee %s at %s", employee_id, clock_time)
            return {'action': 'in', 'time': clock_time.strftime('%H:%M')}

        if request.end_time is None:
            if clock_time < self.scan_end:
                raise ConflictError(
                    f"You are already time in. Time out is allowed at {self._label(self.scan_end)}."
                )
            request.end_time = clock_time
            request.hours = compute_hours(day, request.start_time, min(clock_time, self.scan_end))
            self.repository.save(request)
            logger.info("Overtime time out for employee %s at %s", employee_id, clock_time)
            return {
                'action': 'out',
                'time': clock_time.strftime('%H:%M'),
                'hours': f"{request.hours:.2f}" if request.hours is not None else None
            }

        return {'action': 'done', 'message': 'Overtime already completed'}

    def _local(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.zone)
        return moment.astimezone(self.zone)

    @staticmethod
    def _label(value: time) -> str:
        return value.strftime('%I:%M %p').lstrip('0')
