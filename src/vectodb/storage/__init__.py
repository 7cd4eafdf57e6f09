"""
VectoDB Storage Module - Vector Log, Index Snapshots and Lifecycle.

This module keeps the durable vector log, its in-memory mirror and the
approximate index built over it mutually consistent across restarts and
incremental growth.

Components:
    - vector_store: Append-only base.fvecs log with an in-memory mirror
    - approx_index: FAISS wrapper (metrics, variants, snapshot file I/O)
    - snapshot: Immutable index snapshots and their atomic holder
    - lifecycle: Rebuild/retrain decisions and snapshot activation
    - monitoring: Build and search metrics per store directory

On-disk layout of a store directory:
    base.fvecs                         durable vector log
    <index_key>.<training_size>.index  latest trained snapshot (if any)

Example:
    >>> from vectodb.storage import IndexLifecycleManager, MetricType, VectorStore
    >>>
    >>> store = VectorStore("/tmp/db", dim=128)
    >>> store.append(ids, vectors)
    >>> lifecycle = IndexLifecycleManager(store, "IVF4096,PQ32", MetricType.L2)
    >>> lifecycle.try_build_index(exhaust_threshold=1000)
"""

from vectodb.storage.approx_index import EXACT_INDEX_KEY, IndexVariant, MetricType
from vectodb.storage.lifecycle import (
    MAX_TRAIN,
    BuildResult,
    IndexLifecycleManager,
    compute_training_size,
)
from vectodb.storage.snapshot import IndexSnapshot, SnapshotHolder
from vectodb.storage.vector_store import BASE_FILENAME, VectorRecord, VectorStore

__all__ = [
    "BASE_FILENAME",
    "EXACT_INDEX_KEY",
    "MAX_TRAIN",
    "BuildResult",
    "IndexLifecycleManager",
    "IndexSnapshot",
    "IndexVariant",
    "MetricType",
    "SnapshotHolder",
    "VectorRecord",
    "VectorStore",
    "compute_training_size",
]
