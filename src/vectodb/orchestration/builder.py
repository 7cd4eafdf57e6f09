"""
Background index builder.

Runs ``VectoDB.update_index()`` periodically on a daemon thread so that
appends stay cheap while the approximate index keeps up with the log.
A failed build stops the loop; the error is kept in ``last_error``.

Example:
    >>> with IndexBuilder(db, interval=5.0, exhaust_threshold=1000):
    ...     for batch_ids, batch in batches:
    ...         db.add_with_ids(batch, batch_ids)
"""

import threading
import time
from typing import Any, Dict, Optional

from vectodb.core.logging.logger import bind_work_dir, get_logger

logger = get_logger(__name__)


class IndexBuilder:
    """Periodically rebuilds the index of one VectoDB instance."""

    def __init__(
        self,
        db,
        interval: Optional[float] = None,
        exhaust_threshold: Optional[int] = None,
    ) -> None:
        self.db = db
        self.interval = (
            interval if interval is not None else db.settings.BUILD_INTERVAL_SEC
        )
        if self.interval < 0:
            raise ValueError(f"Interval must be >= 0 seconds: {self.interval}")
        self.exhaust_threshold = exhaust_threshold
        self.iterations = 0
        self.activations = 0
        self.last_run: Optional[float] = None
        self.last_error: Optional[BaseException] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._logger = bind_work_dir(logger, db.work_dir)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Index builder already running")
        self._stop_event.clear()
        self.last_error = None
        self._thread = threading.Thread(
            target=self._run, name="vectodb-index-builder", daemon=True
        )
        self._thread.start()
        self._logger.info(
            "Started index builder",
            interval=self.interval,
            exhaust_threshold=self.exhaust_threshold,
        )

    def run_once(self) -> bool:
        """One builder iteration; returns True if a new index was activated."""
        activated = self.db.update_index(self.exhaust_threshold)
        self.iterations += 1
        self.last_run = time.monotonic()
        if activated:
            self.activations += 1
        self._logger.debug(
            "Builder iteration",
            iteration=self.iterations,
            activated=activated,
            indexed=self.db.get_index_size(),
            unindexed=self.db.get_flat_size(),
        )
        return activated

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                self.last_error = e
                self._logger.exception("Index builder failed, stopping", error=str(e))
                return
            self._stop_event.wait(self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the current iteration."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._logger.info("Stopped index builder", iterations=self.iterations)

    def get_status(self) -> Dict[str, Any]:
        return {
            "status": "running" if self.running else "stopped",
            "interval_sec": self.interval,
            "iterations": self.iterations,
            "activations": self.activations,
            "last_error": str(self.last_error) if self.last_error else None,
        }

    def __enter__(self) -> "IndexBuilder":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
