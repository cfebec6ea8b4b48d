from dataclasses import dataclass
from typing import Optional

@dataclass
class Employee:
    """Employee reference data (the directory itself lives elsewhere)"""
    employee_id: int
    first_name: str
    last_name: str
    department: Optional[str] = None

    def __str__(self):
        return f"Employee({self.employee_id}, {self.last_name}, {self.first_name})"
