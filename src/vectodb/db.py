"""
VectoDB facade: one vector store, its index lifecycle and its query engine.

The facade wires a VectorStore, an IndexLifecycleManager and a QueryEngine
over a single working directory and serializes every writer operation
(appends, builds, activation) behind one lock. Searches never take that
lock.

Example:
    >>> import numpy as np
    >>> from vectodb import VectoDB
    >>>
    >>> db = VectoDB("/tmp/vectodb", dim=64, index_key="IVF4096,PQ32")
    >>> db.add_with_ids(np.random.rand(1000, 64), np.arange(1000))
    >>> db.update_index()
    >>> distances, ids = db.search(np.random.rand(5, 64))
"""

import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from vectodb.core.config.settings import Settings, settings
from vectodb.core.config.validation import ConfigValidator
from vectodb.core.exceptions.custom_exceptions import StorageIOError
from vectodb.core.logging.logger import bind_work_dir, get_logger
from vectodb.search.query_engine import QueryEngine
from vectodb.storage.lifecycle import BuildResult, IndexLifecycleManager
from vectodb.storage.monitoring import IndexMonitor, index_monitor
from vectodb.storage.snapshot import SNAPSHOT_SUFFIX
from vectodb.storage.vector_store import BASE_FILENAME, VectorStore

logger = get_logger(__name__)


class VectoDB:
    """
    Embedded vector database over a single working directory.

    Args:
        work_dir: Directory holding base.fvecs and the index snapshot
        dim: Vector dimensionality
        metric: "L2" or "IP" (0 - IP, 1 - L2 also accepted)
        index_key: FAISS index factory key; "Flat" means exact search
        query_params: FAISS ParameterSpace string applied to trained indexes
        search_width: Candidates fetched from a trained index before refining
        max_train: Cap on the training sample size
        distance_threshold: Default threshold applied by search()
        initial_capacity: Preallocated mirror rows
        app_settings: Settings used for every default
    """

    def __init__(
        self,
        work_dir: Union[str, Path],
        dim: int,
        metric: Optional[Union[str, int]] = None,
        index_key: Optional[str] = None,
        query_params: Optional[str] = None,
        *,
        search_width: Optional[int] = None,
        max_train: Optional[int] = None,
        distance_threshold: Optional[float] = None,
        initial_capacity: Optional[int] = None,
        app_settings: Optional[Settings] = None,
        monitor: Optional[IndexMonitor] = None,
    ) -> None:
        self.settings = app_settings or settings
        self.config = ConfigValidator.from_settings(
            {
                "work_dir": str(work_dir),
                "dim": dim,
                "metric": metric,
                "index_key": index_key,
                "query_params": query_params,
            },
            app_settings=self.settings,
        )
        self._monitor = monitor or index_monitor
        self._write_lock = threading.Lock()

        self.store = VectorStore(
            self.config.work_dir,
            self.config.dim,
            initial_capacity=initial_capacity or self.settings.INITIAL_CAPACITY,
            fsync=self.settings.FSYNC_ON_APPEND,
        )
        try:
            self.lifecycle = IndexLifecycleManager(
                self.store,
                self.config.index_key,
                self.config.metric,
                query_params=self.config.query_params,
                max_train=max_train or self.settings.MAX_TRAIN,
                monitor=self._monitor,
            )
        except Exception:
            self.store.close()
            raise
        self.engine = QueryEngine(
            self.store,
            self.lifecycle,
            search_width=search_width or self.settings.SEARCH_WIDTH,
            distance_threshold=(
                distance_threshold
                if distance_threshold is not None
                else self.settings.DISTANCE_THRESHOLD
            ),
            monitor=self._monitor,
        )
        self._logger = bind_work_dir(logger, self.store.directory)
        self._logger.info(
            "Opened VectoDB",
            dim=self.config.dim,
            metric=self.config.metric,
            index_key=self.config.index_key,
            records=self.store.size,
            state=self.lifecycle.state,
        )

    @property
    def work_dir(self) -> Path:
        return self.store.directory

    @property
    def dim(self) -> int:
        return self.store.dim

    @property
    def metric(self):
        return self.lifecycle.metric

    @property
    def index_key(self) -> str:
        return self.lifecycle.index_key

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def add_with_ids(self, vectors, ids) -> None:
        """Durably append vectors under caller-supplied int64 ids."""
        with self._write_lock:
            before = self.store.size
            self.store.append(ids, vectors)
            self.lifecycle.extend_exact()
            added = self.store.size - before
        if added:
            self._monitor.record_append(str(self.work_dir), added)

    def try_build_index(self, exhaust_threshold: int) -> bool:
        """
        Rebuild and activate when more than ``exhaust_threshold`` vectors
        are not yet covered by the index. Returns True if a new index was
        activated.
        """
        with self._write_lock:
            return self.lifecycle.try_build_index(exhaust_threshold)

    def update_index(self, exhaust_threshold: Optional[int] = None) -> bool:
        """try_build_index() with the configured EXHAUST_THRESHOLD default."""
        if exhaust_threshold is None:
            exhaust_threshold = self.settings.EXHAUST_THRESHOLD
        return self.try_build_index(exhaust_threshold)

    def build_index(self) -> Optional[BuildResult]:
        """Build a candidate index without activating it."""
        with self._write_lock:
            return self.lifecycle.build_index()

    def activate_index(
        self,
        result,
        training_size: Optional[int] = None,
        coverage: Optional[int] = None,
    ) -> None:
        """Persist and swap in a result returned by build_index()."""
        with self._write_lock:
            self.lifecycle.activate_index(result, training_size, coverage)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def search(
        self, queries, distance_threshold: Optional[float] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Nearest stored id for every query; see QueryEngine.search."""
        return self.engine.search(queries, distance_threshold=distance_threshold)

    def get_total(self) -> int:
        """Number of vectors stored."""
        return self.store.size

    def get_index_size(self) -> int:
        """Number of vectors covered by the active index."""
        return self.lifecycle.coverage

    def get_flat_size(self) -> int:
        """Number of vectors only reachable through the exact tail scan."""
        return self.store.size - self.lifecycle.coverage

    def get_metrics(self) -> Dict[str, Any]:
        metrics = self._monitor.get_metrics(str(self.work_dir))
        return {
            "store": {
                "work_dir": str(self.work_dir),
                "dim": self.dim,
                "metric": self.metric.value,
                "index_key": self.index_key,
                "total": self.get_total(),
                "indexed": self.get_index_size(),
                "unindexed": self.get_flat_size(),
                "state": self.lifecycle.state,
                "training_size": self.lifecycle.training_size,
            },
            "activity": metrics.to_dict() if metrics else {},
        }

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def close(self) -> None:
        with self._write_lock:
            self.lifecycle.close()
            self.store.close()
        self._monitor.log_summary(str(self.work_dir))
        self._logger.info("Closed VectoDB")

    def __enter__(self) -> "VectoDB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def clear_work_dir(work_dir: Union[str, Path]) -> int:
    """
    Delete the vector log and every index snapshot under ``work_dir``.

    Other files are left alone. Returns the number of files removed.

    Raises:
        StorageIOError: A file could not be removed
    """
    directory = Path(work_dir)
    if not directory.is_dir():
        return 0

    targets = [directory / BASE_FILENAME]
    targets.extend(directory.glob(f"*{SNAPSHOT_SUFFIX}"))
    targets.extend(directory.glob(f"*{SNAPSHOT_SUFFIX}.tmp"))

    removed = 0
    for path in targets:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            raise StorageIOError(
                f"Failed to remove {path}: {e}",
                error_code="CLEAR_WORK_DIR_ERROR",
                details={"path": str(path)},
            ) from e
        removed += 1

    logger.info("Cleared work directory", work_dir=str(directory), removed=removed)
    return removed
