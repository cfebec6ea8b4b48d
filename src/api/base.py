from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from models.payroll import BatchEmployeeRecord, PayrollBatch


class PayrollGateway(ABC):
    """Source of payroll batches and their employee rows"""

    # Whether two reads may be issued from different threads at once
    concurrent_reads = False

    @abstractmethod
    def list_batches(self, search: Optional[str] = None, status: Optional[str] = None,
                     date: Optional[str] = None) -> List[PayrollBatch]:
        ...

    @abstractmethod
    def get_batch(self, batch_id: int) -> PayrollBatch:
        """Raises NotFoundError when the batch does not exist"""

    @abstractmethod
    def list_batch_employees(self, batch_id: int) -> List[BatchEmployeeRecord]:
        ...

    @abstractmethod
    def create_batch(self, payload: Dict[str, Any]) -> int:
        """Create a pending batch and return its id"""

    @abstractmethod
    def update_batch(self, batch_id: int, payload: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def set_batch_status(self, batch_id: int, status: str) -> None:
        ...
