from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Type, Union
from datetime import date
from .models import EmployeeDB, OvertimeRequestDB, UndertimeRequestDB, NotificationDB

TimeRequest = Union[OvertimeRequestDB, UndertimeRequestDB]


class TimeRequestRepository:
    """Repository shared by overtime and undertime requests"""

    def __init__(self, db_session: Session, model: Type[TimeRequest]):
        self.db = db_session
        self.model = model
        self.id_column = model.ot_id if model is OvertimeRequestDB else model.ut_id

    # ========== Request Operations ==========

    def get(self, request_id: int) -> Optional[TimeRequest]:
        return self.db.query(self.model).filter(self.id_column == request_id).first()

    def add(self, request: TimeRequest) -> TimeRequest:
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def save(self, request: TimeRequest) -> TimeRequest:
        self.db.commit()
        self.db.refresh(request)
        return request

    def latest_for_date(self, employee_id: int, work_date: date, status: str) -> Optional[TimeRequest]:
        """Most recent request of an employee for one work date"""
        return self.db.query(self.model).filter(
            self.model.employee_id == employee_id,
            self.model.work_date == work_date,
            self.model.status == status
        ).order_by(self.id_column.desc()).first()

    def list_by_employee(self, employee_id: int, limit: int = 50) -> List[TimeRequest]:
        return self.db.query(self.model).filter(self.model.employee_id == employee_id) \
            .order_by(self.model.created_at.desc(), self.id_column.desc()).limit(limit).all()

    def list_pending(self) -> List[TimeRequest]:
        return self.db.query(self.model).filter(self.model.status == 'pending') \
            .order_by(self.model.created_at.asc(), self.id_column.asc()).all()

    def list_filtered(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
                      employee_id: Optional[int] = None, status: Optional[str] = None,
                      newest_work_date_first: bool = False) -> List[TimeRequest]:
        """List requests with optional date range, employee and status filters"""
        query = self.db.query(self.model)
        if start_date:
            query = query.filter(self.model.work_date >= start_date)
        if end_date:
            query = query.filter(self.model.work_date <= end_date)
        if employee_id:
            query = query.filter(self.model.employee_id == employee_id)
        if status:
            query = query.filter(self.model.status == status)
        if newest_work_date_first:
            query = query.order_by(self.model.work_date.desc(), self.id_column.desc())
        else:
            query = query.order_by(self.model.created_at.desc(), self.id_column.desc())
        return query.all()

    # ========== Notification Operations ==========

    def add_notification(self, employee_id: int, message: str, type_: str,
                         actor_user_id: Optional[int] = None) -> NotificationDB:
        notification = NotificationDB(
            employee_id=employee_id,
            message=message,
            type=type_,
            actor_user_id=actor_user_id
        )
        self.db.add(notification)
        self.db.commit()
        return notification

    def list_notifications(self, employee_id: int) -> List[NotificationDB]:
        return self.db.query(NotificationDB).filter_by(employee_id=employee_id) \
            .order_by(NotificationDB.id.desc()).all()

    def employee_names(self, employee_ids) -> Dict[int, EmployeeDB]:
        """Map employee ids to their reference rows"""
        ids = {int(i) for i in employee_ids}
        if not ids:
            return {}
        rows = self.db.query(EmployeeDB).filter(EmployeeDB.employee_id.in_(ids)).all()
        return {row.employee_id: row for row in rows}
