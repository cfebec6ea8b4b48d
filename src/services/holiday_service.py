import calendar
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import ConflictError, NotFoundError, ValidationError
from database.holiday_repository import HolidayRepository
from database.models import HolidayDB
from utils.validators import is_iso_date

logger = logging.getLogger(__name__)

MIN_YEAR = 1970
MAX_YEAR = 9999


def _same_day_in(year: int, original: date) -> date:
    """Month/day of a recurring holiday in another year (Feb 29 falls back to Feb 28)"""
    day = min(original.day, calendar.monthrange(year, original.month)[1])
    return date(year, original.month, day)


def _month_range(year: int, month: int):
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class HolidayService:
    """Holiday calendar with yearly recurring entries"""

    def __init__(self, repository: HolidayRepository, today=None):
        self.repository = repository
        self.today = today or date.today

    def list(self, start_date: Optional[str] = None, end_date: Optional[str] = None,
             month: Any = None, year: Any = None) -> List[Dict[str, Any]]:
        """Holidays in a date range (default: one month) plus generated recurring occurrences"""
        if is_iso_date(start_date) and is_iso_date(end_date):
            start, end = date.fromisoformat(start_date.strip()), date.fromisoformat(end_date.strip())
        else:
            month, year = _to_int(month), _to_int(year)
            if not (1 <= month <= 12 and MIN_YEAR <= year <= MAX_YEAR):
                today = self.today()
                year, month = today.year, today.month
            start, end = _month_range(year, month)

        stored = self.repository.list_between(start, end)
        holidays = [holiday.to_dict() for holiday in stored]
        taken = {(h.holiday_date, h.holiday_name) for h in stored}

        for recurring in self.repository.list_recurring():
            original = recurring.original_date or recurring.holiday_date
            occurrence = _same_day_in(start.year, original)
            if (occurrence, recurring.holiday_name) in taken or not start <= occurrence <= end:
                continue
            holidays.append({
                'id': f"recurring_{recurring.id}_{start.year}",
                'holiday_date': occurrence.isoformat(),
                'holiday_name': recurring.holiday_name,
                'description': recurring.description,
                'is_recurring': 1,
                'original_date': original.isoformat(),
                'created_at': None,
                'updated_at': None,
                'is_generated': True
            })

        holidays.sort(key=lambda h: h['holiday_date'])
        return holidays

    def get(self, holiday_id: Any) -> Dict[str, Any]:
        return self._require(holiday_id).to_dict()

    def create(self, holiday_date: Any, holiday_name: Any, description: Any = None,
               is_recurring: Any = False) -> Dict[str, Any]:
        text = str(holiday_date or '').strip()
        if not is_iso_date(text):
            raise ValidationError("Valid date (YYYY-MM-DD) is required")
        name = str(holiday_name or '').strip()
        if not name:
            raise ValidationError("Holiday name is required")

        day = date.fromisoformat(text)
        if self.repository.find(day, name):
            raise ConflictError("Holiday already exists for this date")

        holiday = self.repository.add(HolidayDB(
            holiday_date=day,
            holiday_name=name,
            description=str(description).strip() if description is not None else None,
            is_recurring=bool(is_recurring),
            original_date=day
        ))
        logger.info("Created holiday %s on %s", name, day)
        return holiday.to_dict()

    def update(self, holiday_id: Any, **data) -> Dict[str, Any]:
        """Partial update; empty or malformed values are ignored"""
        if _to_int(holiday_id) <= 0:
            raise ValidationError("Invalid id")

        fields = {}
        if is_iso_date(data.get('holiday_date')):
            fields['holiday_date'] = date.fromisoformat(data['holiday_date'].strip())
        name = data.get('holiday_name')
        if name is not None and str(name).strip():
            fields['holiday_name'] = str(name).strip()
        if 'description' in data:
            fields['description'] = str(data['description'] or '').strip()
        if 'is_recurring' in data:
            fields['is_recurring'] = bool(data['is_recurring'])
        if not fields:
            raise ValidationError("Nothing to update")

        holiday = self._require(holiday_id)
        return self.repository.update(holiday, fields).to_dict()

    def delete(self, holiday_id: Any) -> None:
        if _to_int(holiday_id) <= 0:
            raise ValidationError("Invalid id")
        if not self.repository.delete(_to_int(holiday_id)):
            raise NotFoundError("Holiday not found")

    def generate_recurring(self, year: Any) -> Dict[str, Any]:
        """Materialize every recurring holiday for one year"""
        year = _to_int(year)
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValidationError("Valid year is required")

        created, skipped, errors = 0, 0, []
        for recurring in self.repository.list_recurring():
            original = recurring.original_date or recurring.holiday_date
            occurrence = _same_day_in(year, original)
            if self.repository.find(occurrence, recurring.holiday_name):
                skipped += 1
                continue
            try:
                self.repository.add(HolidayDB(
                    holiday_date=occurrence,
                    holiday_name=recurring.holiday_name,
                    description=recurring.description,
                    is_recurring=False,
                    original_date=original
                ))
                created += 1
            except SQLAlchemyError as e:
                self.repository.db.rollback()
                logger.error("Failed to create %s for %s: %s", recurring.holiday_name, year, e)
                errors.append(f"Failed to create {recurring.holiday_name}: {e}")

        return {
            'message': f"Generated {created} holidays for {year}",
            'created': created,
            'skipped': skipped,
            'errors': errors
        }

    def _require(self, holiday_id: Any) -> HolidayDB:
        holiday_id = _to_int(holiday_id)
        if holiday_id <= 0:
            raise ValidationError("Invalid id")
        holiday = self.repository.get(holiday_id)
        if not holiday:
            raise NotFoundError("Holiday not found")
        return holiday
