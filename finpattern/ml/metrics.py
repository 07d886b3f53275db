"""
Metrics and observability for pattern engine runs.
"""

import threading
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class PatternEngineMetrics:
    """Track counts and timings of engine operations."""

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        with self._lock:
            self.total_runs = 0
            self.failed_runs = 0
            self.runs_by_operation: Dict[str, int] = {}
            self.items_by_operation: Dict[str, int] = {}
            self.total_processing_time = 0.0
            self.users_analyzed = set()

    def record_run(
        self,
        operation: str,
        items_produced: int,
        processing_time: float,
        user_id: Optional[str] = None,
        success: bool = True
    ):
        """Record one operation."""
        with self._lock:
            self.total_runs += 1
            self.total_processing_time += processing_time
            self.runs_by_operation[operation] = self.runs_by_operation.get(operation, 0) + 1
            if user_id:
                self.users_analyzed.add(user_id)

            if success:
                self.items_by_operation[operation] = (
                    self.items_by_operation.get(operation, 0) + items_produced
                )
            else:
                self.failed_runs += 1

        logger.debug(
            f"Metrics: operation={operation}, items={items_produced}, "
            f"time={processing_time:.3f}s, success={success}"
        )

    def get_average_processing_time(self) -> float:
        """Get average processing time in seconds."""
        if self.total_runs == 0:
            return 0.0
        return self.total_processing_time / self.total_runs

    def get_stats(self) -> Dict[str, Any]:
        """Get current statistics."""
        with self._lock:
            return {
                'total_runs': self.total_runs,
                'failed_runs': self.failed_runs,
                'runs_by_operation': dict(self.runs_by_operation),
                'items_by_operation': dict(self.items_by_operation),
                'unique_users': len(self.users_analyzed),
                'average_processing_time_seconds': self.get_average_processing_time(),
                'success_rate': (
                    (self.total_runs - self.failed_runs) / self.total_runs
                    if self.total_runs > 0 else 0.0
                )
            }


# Global metrics instance
metrics = PatternEngineMetrics()
