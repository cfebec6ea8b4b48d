import json
import logging
from typing import Any, Dict, List, Optional

import requests

from api.base import PayrollGateway
from config.settings import PAYROLL_API_TIMEOUT, PAYROLL_API_URL
from core.exceptions import DomainError, NetworkError, NotFoundError
from models.payroll import BatchEmployeeRecord, PayrollBatch

logger = logging.getLogger(__name__)


class PayrollApiClient(PayrollGateway):
    """Client for the external payroll service (payroll.php operations)"""

    concurrent_reads = True

    def __init__(self, base_url: str = PAYROLL_API_URL, timeout: float = PAYROLL_API_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.endpoint = f"{base_url.rstrip('/')}/payroll.php"
        self.timeout = timeout
        self.session = session or requests.Session()

    # ========== Reads ==========

    def list_batches(self, search: Optional[str] = None, status: Optional[str] = None,
                     date: Optional[str] = None) -> List[PayrollBatch]:
        params = {'operation': 'listPayrollBatches'}
        if search:
            params['search'] = search
        if status:
            params['status'] = status
        if date:
            params['date'] = date
        data = self._get(params)
        items = data if isinstance(data, list) else []
        return [PayrollBatch.from_dict(item) for item in items]

    def get_batch(self, batch_id: int) -> PayrollBatch:
        data = self._get({'operation': 'getPayrollBatch', 'batch_id': batch_id})
        if not isinstance(data, dict) or not data.get('success') or not data.get('batch'):
            raise NotFoundError(f"Batch {batch_id} not found")
        return PayrollBatch.from_dict(data['batch'])

    def list_batch_employees(self, batch_id: int) -> List[BatchEmployeeRecord]:
        data = self._get({'operation': 'listPayrollBatchEmployees', 'batch_id': batch_id})
        items = data if isinstance(data, list) else []
        return [BatchEmployeeRecord.from_dict(item) for item in items]

    # ========== Mutations ==========

    def create_batch(self, payload: Dict[str, Any]) -> int:
        data = self._post('createPayrollBatch', payload, "Failed to create batch")
        return int(data.get('batch_id') or 0)

    def update_batch(self, batch_id: int, payload: Dict[str, Any]) -> None:
        self._post('updatePayrollBatch', dict(payload, batch_id=batch_id), "Failed to update batch")

    def set_batch_status(self, batch_id: int, status: str) -> None:
        self._post('setPayrollBatchStatus', {'batch_id': batch_id, 'status': status}, "Failed to update status")

    # ========== Helpers ==========

    def _get(self, params: Dict[str, Any]) -> Any:
        try:
            response = self.session.get(self.endpoint, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error("Payroll API %s failed: %s", params.get('operation'), e)
            raise NetworkError(f"Payroll service request failed: {params.get('operation')}") from e
        except ValueError as e:
            raise NetworkError("Payroll service returned an invalid response") from e

    def _post(self, operation: str, payload: Dict[str, Any], failure_message: str) -> Dict[str, Any]:
        form = {'operation': operation, 'json': json.dumps(payload, default=str)}
        try:
            response = self.session.post(self.endpoint, data=form, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Payroll API %s failed: %s", operation, e)
            raise NetworkError(failure_message) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.ok and isinstance(data, dict) and data.get('success'):
            return data

        message = (data.get('message') if isinstance(data, dict) else None) or failure_message
        if response.status_code == 404:
            raise NotFoundError(message)
        if response.status_code >= 500 or data is None:
            raise NetworkError(message)
        raise DomainError(message)
