"""
Metrics and monitoring for store, index lifecycle and search operations.
"""
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import numpy as np

from vectodb.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class IndexMetrics:
    """Metrics for one store directory."""

    work_dir: str
    appends: int = 0
    vectors_appended: int = 0
    builds: int = 0
    reuses: int = 0
    noops: int = 0
    activations: int = 0
    build_times: List[float] = field(default_factory=list)
    last_training_size: int = 0
    last_build_at: Optional[datetime] = None
    searches: int = 0
    queries: int = 0
    refined_queries: int = 0
    tail_scans: int = 0
    search_time_seconds: float = 0.0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            "work_dir": self.work_dir,
            "appends": self.appends,
            "vectors_appended": self.vectors_appended,
            "builds": self.builds,
            "reuses": self.reuses,
            "noops": self.noops,
            "activations": self.activations,
            "last_training_size": self.last_training_size,
            "last_build_at": (
                self.last_build_at.isoformat() if self.last_build_at else None
            ),
            "avg_build_time": (
                float(np.mean(self.build_times)) if self.build_times else 0.0
            ),
            "max_build_time": max(self.build_times) if self.build_times else 0.0,
            "searches": self.searches,
            "queries": self.queries,
            "refined_queries": self.refined_queries,
            "tail_scans": self.tail_scans,
            "avg_query_time": (
                self.search_time_seconds / self.queries if self.queries else 0.0
            ),
            "created_at": self.created_at.isoformat(),
        }


class IndexMonitor:
    """
    Monitor index lifecycle and search activity per store directory.

    Counters are updated under one lock; searches record from many threads.
    """

    def __init__(self):
        self.metrics: Dict[str, IndexMetrics] = {}
        self._lock = threading.Lock()

    def _get(self, work_dir: str) -> IndexMetrics:
        # Caller holds self._lock
        if work_dir not in self.metrics:
            self.metrics[work_dir] = IndexMetrics(work_dir=work_dir)
        return self.metrics[work_dir]

    def record_append(self, work_dir: str, count: int) -> None:
        with self._lock:
            metrics = self._get(work_dir)
            metrics.appends += 1
            metrics.vectors_appended += count

    def start_build(self, work_dir: str) -> float:
        """Start timing a build."""
        with self._lock:
            self._get(work_dir)
        return time.time()

    def end_build(
        self,
        work_dir: str,
        start_time: float,
        training_size: int,
        reused: bool = False,
    ) -> None:
        """End timing a build and update metrics."""
        elapsed_time = time.time() - start_time
        with self._lock:
            metrics = self._get(work_dir)
            metrics.build_times.append(elapsed_time)
            metrics.last_training_size = training_size
            metrics.last_build_at = datetime.now(timezone.utc)
            if reused:
                metrics.reuses += 1
            else:
                metrics.builds += 1

        logger.debug(
            f"Build completed for {work_dir}: training_size={training_size} "
            f"reused={reused} in {elapsed_time:.2f}s"
        )

    def record_noop(self, work_dir: str) -> None:
        with self._lock:
            self._get(work_dir).noops += 1

    def record_activation(self, work_dir: str) -> None:
        with self._lock:
            self._get(work_dir).activations += 1

    def record_search(
        self,
        work_dir: str,
        start_time: float,
        num_queries: int,
        refined: int = 0,
        tail_scan: bool = False,
    ) -> None:
        elapsed_time = time.time() - start_time
        with self._lock:
            metrics = self._get(work_dir)
            metrics.searches += 1
            metrics.queries += num_queries
            metrics.refined_queries += refined
            if tail_scan:
                metrics.tail_scans += 1
            metrics.search_time_seconds += elapsed_time

    def get_metrics(self, work_dir: str) -> Optional[IndexMetrics]:
        """Get metrics for a specific store directory."""
        return self.metrics.get(work_dir)

    def get_all_metrics(self) -> Dict[str, IndexMetrics]:
        """Get all metrics."""
        return self.metrics

    def reset_metrics(self, work_dir: Optional[str] = None) -> None:
        """Reset metrics for a specific directory or all directories."""
        with self._lock:
            if work_dir:
                self.metrics.pop(work_dir, None)
            else:
                self.metrics.clear()

    def log_summary(self, work_dir: str) -> None:
        """Log a summary of metrics for a store directory."""
        metrics = self.metrics.get(work_dir)
        if not metrics:
            logger.warning(f"No metrics found for store: {work_dir}")
            return

        logger.info(
            f"Index metrics for {work_dir}: "
            f"Vectors: {metrics.vectors_appended}, "
            f"Builds: {metrics.builds}, Reuses: {metrics.reuses}, "
            f"No-ops: {metrics.noops}, Queries: {metrics.queries}, "
            f"Tail scans: {metrics.tail_scans}"
        )


# Global monitor instance
index_monitor = IndexMonitor()
