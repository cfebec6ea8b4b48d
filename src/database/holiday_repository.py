from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import date
from .models import HolidayDB


class HolidayRepository:
    """Repository for the holiday calendar"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get(self, holiday_id: int) -> Optional[HolidayDB]:
        return self.db.query(HolidayDB).filter_by(id=holiday_id).first()

    def find(self, holiday_date: date, holiday_name: str) -> Optional[HolidayDB]:
        """Holiday with the same date and name, if any"""
        return self.db.query(HolidayDB).filter_by(holiday_date=holiday_date, holiday_name=holiday_name).first()

    def list_between(self, start: date, end: date) -> List[HolidayDB]:
        return self.db.query(HolidayDB).filter(
            HolidayDB.holiday_date >= start,
            HolidayDB.holiday_date <= end
        ).order_by(HolidayDB.holiday_date, HolidayDB.id).all()

    def list_recurring(self) -> List[HolidayDB]:
        return self.db.query(HolidayDB).filter(HolidayDB.is_recurring.is_(True)) \
            .order_by(HolidayDB.holiday_date, HolidayDB.id).all()

    def add(self, holiday: HolidayDB) -> HolidayDB:
        self.db.add(holiday)
        self.db.commit()
        self.db.refresh(holiday)
        return holiday

    def update(self, holiday: HolidayDB, fields: Dict[str, Any]) -> HolidayDB:
        for key, value in fields.items():
            setattr(holiday, key, value)
        self.db.commit()
        self.db.refresh(holiday)
        return holiday

    def delete(self, holiday_id: int) -> bool:
        deleted = self.db.query(HolidayDB).filter_by(id=holiday_id).delete()
        self.db.commit()
        return deleted > 0
