"""
Unit tests for index lifecycle decisions, snapshot rotation and restart
"""

import faiss
import numpy as np
import pytest

from vectodb.core.exceptions.custom_exceptions import (
    ConfigurationError,
    IndexBuildError,
    StorageIOError,
)
from vectodb.storage.approx_index import IndexVariant, MetricType
from vectodb.storage.lifecycle import (
    MAX_TRAIN,
    IndexLifecycleManager,
    compute_training_size,
)
from vectodb.storage.monitoring import IndexMonitor
from vectodb.storage.snapshot import list_snapshots
from vectodb.storage.vector_store import VectorStore

DIM = 8
IVF_KEY = "IVF4,Flat"


def _append(store, vectors, start=0):
    store.append(np.arange(start, start + len(vectors)), vectors)


def _snapshot_names(work_dir):
    return sorted(p.name for p in work_dir.glob("*.index"))


@pytest.mark.parametrize(
    "size,expected",
    [
        (0, 0),
        (500, 500),
        (MAX_TRAIN, MAX_TRAIN),
        (MAX_TRAIN * 5, MAX_TRAIN),
        (MAX_TRAIN * 20, MAX_TRAIN * 2),
    ],
)
def test_compute_training_size(size, expected):
    assert compute_training_size(size) == expected


class TestExactVariant:
    """Test the "Flat" variant that tracks every append"""

    def test_empty_store_starts_exact(self, work_dir):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, "Flat", MetricType.L2)
            assert lifecycle.variant is IndexVariant.EXACT
            assert lifecycle.state == "exact"
            assert lifecycle.coverage == 0

    def test_extend_exact_covers_appends(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, "Flat", MetricType.L2)
            _append(store, make_vectors(20))
            assert lifecycle.uncovered == 20
            lifecycle.extend_exact()
            assert lifecycle.coverage == 20
            assert lifecycle.snapshot.ntotal == 20

    def test_exact_loads_from_log(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            _append(store, make_vectors(30))
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, "Flat", MetricType.L2)
            assert lifecycle.coverage == 30

    def test_exact_never_writes_snapshots(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, "Flat", MetricType.L2)
            _append(store, make_vectors(30))
            assert lifecycle.try_build_index(0) is True
            assert lifecycle.coverage == 30
        assert _snapshot_names(work_dir) == []


class TestTrainedVariant:
    """Test rebuild rules of a trained index"""

    def test_starts_empty(self, work_dir):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            assert lifecycle.snapshot is None
            assert lifecycle.state == "empty"

    def test_build_on_empty_store_fails(self, work_dir):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            with pytest.raises(IndexBuildError) as exc_info:
                lifecycle.build_index()
            assert exc_info.value.error_code == "INDEX_EMPTY_TRAINING_SET"

    def test_below_threshold_is_noop(self, work_dir, make_vectors):
        monitor = IndexMonitor()
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(
                store, IVF_KEY, MetricType.L2, monitor=monitor
            )
            _append(store, make_vectors(200))
            assert lifecycle.try_build_index(200) is False
            assert lifecycle.snapshot is None
        assert _snapshot_names(work_dir) == []
        assert monitor.get_metrics(str(work_dir.absolute())).noops == 1

    def test_build_covers_all_vectors(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            assert lifecycle.try_build_index(100) is True
            assert lifecycle.coverage == 200
            assert lifecycle.training_size == 200
            assert lifecycle.state == "trained(200)"
        assert _snapshot_names(work_dir) == [f"{IVF_KEY}.200.index"]

    def test_coverage_is_monotonic(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            lifecycle.try_build_index(0)
            _append(store, make_vectors(15), start=200)
            assert lifecycle.coverage == 200
            assert lifecycle.uncovered == 15
            assert lifecycle.coverage < store.size

    def test_idempotent_rebuild(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            assert lifecycle.try_build_index(0) is True
            generation = lifecycle.generation
            path = lifecycle.snapshot_path(200)
            mtime = path.stat().st_mtime_ns

            assert lifecycle.try_build_index(0) is False
            assert lifecycle.build_index() is None
            assert lifecycle.generation == generation
            assert path.stat().st_mtime_ns == mtime

    def test_snapshot_rotation(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            lifecycle.try_build_index(0)
            _append(store, make_vectors(100), start=200)
            assert lifecycle.try_build_index(50) is True
            assert lifecycle.training_size == 300
            assert lifecycle.coverage == 300
        assert _snapshot_names(work_dir) == [f"{IVF_KEY}.300.index"]

    def test_unchanged_training_size_reuses_snapshot(self, work_dir, make_vectors):
        monitor = IndexMonitor()
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(
                store, IVF_KEY, MetricType.L2, max_train=100, monitor=monitor
            )
            _append(store, make_vectors(200))
            lifecycle.try_build_index(0)
            assert lifecycle.training_size == 100

            _append(store, make_vectors(100), start=200)
            result = lifecycle.build_index()
            assert result.reused is True
            assert result.training_size == 100
            assert result.coverage == 300
            assert result.handle.ntotal == 300

            lifecycle.activate_index(result)
            assert lifecycle.coverage == 300

        metrics = monitor.get_metrics(str(work_dir.absolute()))
        assert metrics.builds == 1
        assert metrics.reuses == 1
        assert _snapshot_names(work_dir) == [f"{IVF_KEY}.100.index"]

    def test_build_without_activation_keeps_active_snapshot(
        self, work_dir, make_vectors
    ):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            lifecycle.try_build_index(0)
            _append(store, make_vectors(50), start=200)
            result = lifecycle.build_index()
            assert result.coverage == 250
            assert lifecycle.coverage == 200
            assert _snapshot_names(work_dir) == [f"{IVF_KEY}.200.index"]

    def test_restart_loads_latest_snapshot(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            lifecycle.try_build_index(0)
            _append(store, make_vectors(20), start=200)

        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            assert lifecycle.training_size == 200
            assert lifecycle.coverage == 200
            assert lifecycle.uncovered == 20

    def test_snapshot_larger_than_log_is_ignored(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            lifecycle.try_build_index(0)

        snapshot = work_dir / f"{IVF_KEY}.200.index"
        snapshot.rename(work_dir / f"{IVF_KEY}.900.index")

        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            assert lifecycle.snapshot is None
            assert lifecycle.try_build_index(0) is True
        assert _snapshot_names(work_dir) == [f"{IVF_KEY}.200.index"]

    def test_other_index_keys_are_untouched(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            _append(store, make_vectors(200))
            IndexLifecycleManager(store, IVF_KEY, MetricType.L2).try_build_index(0)
            IndexLifecycleManager(store, "IVF2,Flat", MetricType.L2).try_build_index(0)
        assert len(list_snapshots(work_dir, IVF_KEY)) == 1
        assert len(list_snapshots(work_dir, "IVF2,Flat")) == 1

    def test_invalid_index_key(self, work_dir, make_vectors):
        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, "NotAnIndex", MetricType.L2)
            _append(store, make_vectors(20))
            with pytest.raises(ConfigurationError):
                lifecycle.build_index()

    def test_activate_bare_handle(self, work_dir, make_vectors):
        with VectorStore.open(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            result = lifecycle.build_index()
            lifecycle.activate_index(result.handle, result.training_size)
            assert lifecycle.coverage == 200
            assert lifecycle.training_size == 200
        assert _snapshot_names(work_dir) == [f"{IVF_KEY}.200.index"]

    def test_failed_snapshot_write_keeps_previous_snapshot(
        self, work_dir, make_vectors, monkeypatch
    ):
        def failing_write_index(index, path):
            raise RuntimeError("disk full")

        with VectorStore(work_dir, DIM) as store:
            lifecycle = IndexLifecycleManager(store, IVF_KEY, MetricType.L2)
            _append(store, make_vectors(200))
            assert lifecycle.try_build_index(0) is True
            _append(store, make_vectors(100), start=200)

            monkeypatch.setattr(faiss, "write_index", failing_write_index)
            with pytest.raises(StorageIOError) as exc_info:
                lifecycle.try_build_index(0)
            assert exc_info.value.error_code == "SNAPSHOT_WRITE_ERROR"
            assert lifecycle.coverage == 200
            assert lifecycle.training_size == 200

        names = sorted(p.name for p in work_dir.glob("*.index*"))
        assert names == [f"{IVF_KEY}.200.index"]
