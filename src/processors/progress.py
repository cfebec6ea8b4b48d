import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

GENERATING = "generating"
COMPRESSING = "compressing"
DONE = "done"


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update of an archive build"""
    batch_id: int
    phase: str
    done: int = 0
    total: int = 0
    percent: float = 0.0

    @property
    def message(self) -> str:
        if self.phase == GENERATING:
            return f"Generating payslips ({self.done}/{self.total})..."
        if self.phase == COMPRESSING:
            return f"Zipping ({round(self.percent)}%)..."
        return "Done"

    def to_dict(self) -> dict:
        return {
            'batch_id': self.batch_id,
            'phase': self.phase,
            'done': self.done,
            'total': self.total,
            'percent': round(self.percent, 1),
            'message': self.message
        }


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Fan-out of progress events to subscribers.

    A failing subscriber is logged and skipped; it never interrupts the build
    that publishes the events.
    """

    def __init__(self):
        self._subscribers: List[ProgressCallback] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.warning("Progress subscriber failed for batch %s", event.batch_id, exc_info=True)


class ProgressTracker:
    """Keeps the latest event per batch so it can be polled"""

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Dict[int, ProgressEvent] = {}

    def __call__(self, event: ProgressEvent) -> None:
        with self._lock:
            self._latest[event.batch_id] = event

    def get(self, batch_id: int) -> Optional[ProgressEvent]:
        with self._lock:
            return self._latest.get(batch_id)
