"""
Index lifecycle: when and how the approximate index is (re)built.

The IndexLifecycleManager owns the active IndexSnapshot of one vector
store. It decides whether a rebuild is warranted, trains or extends an
index, persists the result and swaps it in.

States:
    Empty      no snapshot yet (trained variant before its first build)
    Exact      "Flat" index; extended on every append, never persisted
    Trained    trained index over a fixed training sample size

Rebuild rules (trained variant):
    nt = min(size, max(size // 10, max_train))
    - nt equals the active training size: if everything is covered there is
      nothing to do, otherwise the persisted snapshot for nt is reloaded and
      only the uncovered vectors are added (no retraining).
    - nt differs: a fresh index is trained on the first nt vectors and all
      vectors are added.

Activation writes the new snapshot file first and only then removes the
previous one, so a failed write never loses the last good snapshot.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from vectodb.core.config.settings import settings
from vectodb.core.exceptions.custom_exceptions import IndexBuildError, StorageIOError
from vectodb.core.logging.logger import bind_work_dir, get_logger
from vectodb.storage.approx_index import (
    IndexVariant,
    MetricType,
    apply_query_params,
    create_exact_index,
    create_index,
    read_index,
    write_index,
)
from vectodb.storage.monitoring import IndexMonitor, index_monitor
from vectodb.storage.snapshot import (
    IndexSnapshot,
    SnapshotHolder,
    find_latest_snapshot,
    list_snapshots,
    snapshot_path,
)
from vectodb.storage.vector_store import VectorStore

logger = get_logger(__name__)

MAX_TRAIN = 160000  # training points IVF4096 needs for a 1M dataset


@dataclass
class BuildResult:
    """A built index that has not been activated yet."""

    handle: Any
    training_size: int
    coverage: int
    reused: bool = False


def compute_training_size(size: int, max_train: int = MAX_TRAIN) -> int:
    """Training sample size for a store of ``size`` vectors."""
    return min(size, max(size // 10, max_train))


class IndexLifecycleManager:
    """
    Owns and maintains the active index snapshot of a VectorStore.

    All mutating methods (extend_exact, build_index, activate_index,
    rebuild, try_build_index) expect a single caller at a time. The
    ``snapshot`` property may be read concurrently.

    Example:
        >>> store = VectorStore("/tmp/db", dim=64)
        >>> lifecycle = IndexLifecycleManager(store, "IVF4,Flat", MetricType.L2)
        >>> store.append(ids, vectors)
        >>> lifecycle.try_build_index(exhaust_threshold=1000)
        True
    """

    def __init__(
        self,
        store: VectorStore,
        index_key: str,
        metric: MetricType,
        query_params: str = "",
        max_train: Optional[int] = None,
        monitor: Optional[IndexMonitor] = None,
    ) -> None:
        self.store = store
        self.index_key = index_key
        self.metric = MetricType.parse(metric)
        self.query_params = query_params or ""
        self.variant = IndexVariant.for_key(index_key)
        self.max_train = max_train or settings.MAX_TRAIN
        self._holder = SnapshotHolder()
        self._monitor = monitor or index_monitor
        self._work_dir = str(store.directory)
        self._logger = bind_work_dir(logger, store.directory).bind(
            index_key=index_key
        )
        self._load()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[IndexSnapshot]:
        """The active snapshot, or None while Empty."""
        return self._holder.get()

    @property
    def coverage(self) -> int:
        snapshot = self._holder.get()
        return snapshot.coverage if snapshot is not None else 0

    @property
    def training_size(self) -> int:
        snapshot = self._holder.get()
        return snapshot.training_size if snapshot is not None else 0

    @property
    def uncovered(self) -> int:
        return self.store.size - self.coverage

    @property
    def generation(self) -> int:
        return self._holder.generation

    @property
    def state(self) -> str:
        snapshot = self._holder.get()
        if snapshot is None:
            return "empty"
        if snapshot.is_exact:
            return "exact"
        return f"trained({snapshot.training_size})"

    def snapshot_path(self, training_size: int) -> Path:
        return snapshot_path(self.store.directory, self.index_key, training_size)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _load(self) -> None:
        size = self.store.size
        if self.variant is IndexVariant.EXACT:
            handle = create_exact_index(self.store.dim, self.metric)
            snapshot = IndexSnapshot(handle, IndexVariant.EXACT, coverage=0)
            self._holder.swap(snapshot.extended(self.store.slice(0, size)))
            return

        training_size, path = find_latest_snapshot(self.store.directory, self.index_key)
        if path is None:
            return
        if training_size > size:
            self._logger.warning(
                "Ignoring snapshot trained on more vectors than the log holds",
                path=str(path),
                training_size=training_size,
                records=size,
            )
            return

        self._logger.info("Loading index", path=str(path))
        handle = read_index(path)
        if handle.ntotal > size:
            self._logger.warning(
                "Ignoring snapshot covering more vectors than the log holds",
                path=str(path),
                ntotal=int(handle.ntotal),
                records=size,
            )
            return
        apply_query_params(handle, self.query_params)
        self._holder.swap(
            IndexSnapshot(
                handle,
                IndexVariant.TRAINED,
                coverage=int(handle.ntotal),
                training_size=training_size,
            )
        )

    # ------------------------------------------------------------------
    # Exact variant maintenance
    # ------------------------------------------------------------------

    def extend_exact(self) -> None:
        """Add every uncovered vector to the exact index; no-op otherwise."""
        if self.variant is not IndexVariant.EXACT:
            return
        snapshot = self._holder.get()
        size = self.store.size
        if snapshot is None or snapshot.coverage >= size:
            return
        self._holder.swap(snapshot.extended(self.store.slice(snapshot.coverage, size)))

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def try_build_index(self, exhaust_threshold: int) -> bool:
        """
        Rebuild when more than ``exhaust_threshold`` vectors are unindexed.

        Returns True when a new snapshot was activated. Below the threshold
        this is a silent no-op; queries still see the unindexed vectors
        through the exact tail scan.
        """
        if self.uncovered <= exhaust_threshold:
            self._monitor.record_noop(self._work_dir)
            return False
        return self.rebuild()

    def rebuild(self) -> bool:
        """Build and activate a new snapshot. Returns False if nothing changed."""
        result = self.build_index()
        if result is None:
            return False
        self.activate_index(result)
        return True

    def build_index(self) -> Optional[BuildResult]:
        """
        Build a candidate snapshot without activating it.

        Returns None when the active snapshot already covers the store.

        Raises:
            IndexBuildError: No vectors to train on, or FAISS failed
        """
        size = self.store.size
        self._logger.info(
            "BuildIndex",
            dim=self.store.dim,
            metric=self.metric.value,
            records=size,
        )
        start_time = self._monitor.start_build(self._work_dir)

        if self.variant is IndexVariant.EXACT:
            handle = create_exact_index(self.store.dim, self.metric)
            self._logger.info("Indexing", vectors=size)
            self._add(handle, 0, size)
            self._monitor.end_build(self._work_dir, start_time, 0)
            return BuildResult(handle, training_size=0, coverage=size)

        nt = compute_training_size(size, self.max_train)
        if nt <= 0:
            raise IndexBuildError(
                "Cannot train an index without any vectors",
                error_code="INDEX_EMPTY_TRAINING_SET",
                details={"index_key": self.index_key, "records": size},
            )

        current = self._holder.get()
        if current is not None and nt == current.training_size:
            if size == current.coverage:
                self._logger.info(
                    "Nothing to do since training size and coverage are unchanged",
                    training_size=nt,
                    coverage=current.coverage,
                )
                self._monitor.record_noop(self._work_dir)
                return None

            self._logger.info("Reuse current index since training size is unchanged", training_size=nt)
            handle = read_index(self.snapshot_path(nt))
            apply_query_params(handle, self.query_params)
            ntotal = int(handle.ntotal)
            self._logger.info("Adding vectors to index", added=size - ntotal, ntotal_from=ntotal, ntotal_to=size)
            self._add(handle, ntotal, size)
            self._monitor.end_build(self._work_dir, start_time, nt, reused=True)
            return BuildResult(handle, training_size=nt, coverage=size, reused=True)

        handle = create_index(self.store.dim, self.index_key, self.metric)
        self._logger.info("Training", vectors=nt)
        try:
            handle.train(self.store.slice(0, nt))
        except RuntimeError as e:
            raise IndexBuildError(
                f"Training {self.index_key} on {nt} vectors failed: {e}",
                error_code="INDEX_TRAIN_ERROR",
                details={"index_key": self.index_key, "training_size": nt},
            ) from e
        apply_query_params(handle, self.query_params)

        self._logger.info("Indexing", vectors=size)
        self._add(handle, 0, size)
        self._monitor.end_build(self._work_dir, start_time, nt)
        self._logger.info("BuildIndex done", training_size=nt, coverage=size)
        return BuildResult(handle, training_size=nt, coverage=size)

    def _add(self, handle, start: int, stop: int) -> None:
        if stop <= start:
            return
        try:
            handle.add(self.store.slice(start, stop))
        except RuntimeError as e:
            raise IndexBuildError(
                f"Adding vectors [{start}, {stop}) to {self.index_key} failed: {e}",
                error_code="INDEX_ADD_ERROR",
                details={"index_key": self.index_key, "start": start, "stop": stop},
            ) from e

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate_index(
        self,
        result,
        training_size: Optional[int] = None,
        coverage: Optional[int] = None,
    ) -> None:
        """
        Persist (trained variant only) and swap in a built snapshot.

        ``result`` is a BuildResult, or a bare index handle together with
        its ``training_size``; a bare handle covers ``handle.ntotal``
        vectors unless ``coverage`` says otherwise.

        The new file is durably written before any older snapshot file is
        removed; afterwards exactly one snapshot file exists for this index
        key.

        Raises:
            StorageIOError: Writing the new or removing an old file failed
        """
        if result is None:
            return
        if not isinstance(result, BuildResult):
            result = BuildResult(
                result,
                training_size=training_size or 0,
                coverage=int(result.ntotal) if coverage is None else coverage,
            )

        if self.variant is IndexVariant.TRAINED:
            new_path = self.snapshot_path(result.training_size)
            write_index(result.handle, new_path)
            for training_size, path in list_snapshots(self.store.directory, self.index_key):
                if training_size == result.training_size:
                    continue
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as e:
                    raise StorageIOError(
                        f"Failed to remove old snapshot {path}: {e}",
                        error_code="SNAPSHOT_REMOVE_ERROR",
                        details={"path": str(path)},
                    ) from e
                self._logger.info("Removed old snapshot", path=str(path))

        snapshot = IndexSnapshot(
            result.handle,
            self.variant,
            coverage=result.coverage,
            training_size=result.training_size,
        )
        self._holder.swap(snapshot)
        self._monitor.record_activation(self._work_dir)
        self._logger.info(
            "Activated index",
            training_size=result.training_size,
            coverage=result.coverage,
        )

    def close(self) -> None:
        """Release the active snapshot."""
        self._holder.swap(None)
