import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from api.base import PayrollGateway
from core.exceptions import ConflictError, ValidationError
from models.payroll import BatchEmployeeRecord, BatchStatus, GeneratedPayslip, PayrollBatch
from processors.archive_builder import ArchiveBuilder, ArchiveResult
from processors.progress import ProgressChannel
from utils.validators import is_iso_date, parse_date

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('batch_name', 'payroll_period_start', 'payroll_period_end', 'department', 'notes')
PAGE_SIZES = (10, 25, 50, 100)


@dataclass
class BatchPage:
    """One page of the cached batch list"""
    items: List[PayrollBatch] = field(default_factory=list)
    page: int = 1
    page_size: int = 10
    total: int = 0
    pages: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [batch.to_dict() for batch in self.items],
            'page': self.page,
            'page_size': self.page_size,
            'total': self.total,
            'pages': self.pages
        }


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_batch_fields(batch_name: Any, period_start: Any, period_end: Any) -> None:
    """Name and both period dates are required"""
    if not _clean(batch_name):
        raise ValidationError("Batch name is required")
    for label, value in (('Period start', period_start), ('Period end', period_end)):
        if value is None or value == '':
            raise ValidationError(f"{label} is required")
        try:
            parsed = parse_date(value)
        except ValueError:
            raise ValidationError(f"{label} must be a valid date (YYYY-MM-DD)")
        if parsed is None:
            raise ValidationError(f"{label} is required")


class BatchLifecycleManager:
    """Create, list, edit and export payroll batches.

    The manager owns the list view state: the last filters and the full
    filtered collection, which is paginated locally. Once the collection
    has been loaded, every successful mutation reloads it with the same
    filters; a manager that never listed skips the reload.
    """

    def __init__(self, gateway: PayrollGateway, builder: Optional[ArchiveBuilder] = None):
        self.gateway = gateway
        self.builder = builder or ArchiveBuilder(gateway)
        self.filters: Dict[str, Optional[str]] = {'search': None, 'status': None, 'date': None}
        self.batches: List[PayrollBatch] = []
        self.loaded = False

    # ========== Reads ==========

    def list(self, search: Optional[str] = None, status: Optional[str] = None,
             date: Optional[str] = None) -> List[PayrollBatch]:
        """Load the full filtered collection and cache it"""
        search, status, date = _clean(search), _clean(status), _clean(date)
        status = status.lower() if status else None
        if date and not is_iso_date(date):
            raise ValidationError("Date filter must be YYYY-MM-DD")

        self.filters = {'search': search, 'status': status, 'date': date}
        self.batches = self.gateway.list_batches(search=search, status=status, date=date)
        self.loaded = True
        return self.batches

    def paginate(self, page: int = 1, page_size: int = 10) -> BatchPage:
        """Slice the cached collection; out-of-range pages are clamped"""
        try:
            page_size = int(page_size)
        except (TypeError, ValueError):
            page_size = PAGE_SIZES[0]
        if page_size < 1:
            page_size = PAGE_SIZES[0]
        try:
            page = int(page)
        except (TypeError, ValueError):
            page = 1

        total = len(self.batches)
        pages = max(1, math.ceil(total / page_size))
        page = min(max(page, 1), pages)
        start = (page - 1) * page_size
        return BatchPage(
            items=self.batches[start:start + page_size],
            page=page,
            page_size=page_size,
            total=total,
            pages=pages
        )

    def get(self, batch_id: int) -> PayrollBatch:
        return self.gateway.get_batch(batch_id)

    def list_employees(self, batch_id: int) -> List[BatchEmployeeRecord]:
        return self.gateway.list_batch_employees(batch_id)

    # ========== Mutations ==========

    def create(self, batch_name: Any, payroll_period_start: Any, payroll_period_end: Any,
               department: Optional[str] = None, notes: Optional[str] = None) -> PayrollBatch:
        validate_batch_fields(batch_name, payroll_period_start, payroll_period_end)
        payload = {
            'batch_name': _clean(batch_name),
            'payroll_period_start': parse_date(payroll_period_start).isoformat(),
            'payroll_period_end': parse_date(payroll_period_end).isoformat(),
            'department': _clean(department),
            'notes': _clean(notes)
        }
        batch_id = self.gateway.create_batch(payload)
        logger.info("Created payroll batch %s (%s)", batch_id, payload['batch_name'])
        if self.loaded:
            self.refresh()
        return self.gateway.get_batch(batch_id)

    def update(self, batch_id: int, **fields) -> PayrollBatch:
        """Merge the given fields over the stored batch; nothing is written on failure"""
        current = self.gateway.get_batch(batch_id)
        if current.is_completed:
            raise ConflictError("Completed batches can no longer be edited")

        changes = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS}
        if not changes:
            raise ValidationError("Nothing to update")

        merged = current.to_dict()
        merged.update(changes)
        validate_batch_fields(merged['batch_name'], merged['payroll_period_start'], merged['payroll_period_end'])

        payload = {}
        for key, value in changes.items():
            if key.startswith('payroll_period'):
                payload[key] = parse_date(value).isoformat()
            else:
                payload[key] = _clean(value)
        self.gateway.update_batch(batch_id, payload)
        logger.info("Updated payroll batch %s: %s", batch_id, ', '.join(sorted(payload)))
        if self.loaded:
            self.refresh()
        return self.gateway.get_batch(batch_id)

    def set_status(self, batch_id: int, status: Any) -> PayrollBatch:
        """Any non-empty status is stored lowercased; there is no transition table"""
        value = (_clean(status) or '').lower()
        if not value:
            raise ValidationError("Status is required")
        self.gateway.set_batch_status(batch_id, value)
        logger.info("Payroll batch %s set to %s", batch_id, value)
        if self.loaded:
            self.refresh()
        return self.gateway.get_batch(batch_id)

    def toggle_status(self, batch_id: int) -> PayrollBatch:
        """Flip completed and processing; anything else becomes completed"""
        current = self.gateway.get_batch(batch_id)
        if current.is_completed:
            target = BatchStatus.PROCESSING.value
        else:
            target = BatchStatus.COMPLETED.value
        return self.set_status(batch_id, target)

    def refresh(self) -> List[PayrollBatch]:
        self.batches = self.gateway.list_batches(**self.filters)
        self.loaded = True
        return self.batches

    # ========== Payslips ==========

    def download(self, batch_id: int, progress: Optional[ProgressChannel] = None) -> ArchiveResult:
        return self.builder.build(batch_id, progress)

    def render_payslip(self, batch_id: int, employee_id: int) -> GeneratedPayslip:
        return self.builder.render_one(batch_id, employee_id)
