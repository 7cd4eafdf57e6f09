"""
Hybrid nearest-neighbor search over the active snapshot and the unindexed tail.

Vectors appended after the last rebuild are invisible to the approximate
index, so every search has two paths:

    indexed path  the active snapshot is searched with an internal width
                  (SEARCH_WIDTH candidates); for trained snapshots the
                  candidates are re-ranked exactly by refine()
    tail path     the vectors in [coverage, size) are brute-force scanned

The better of the two results wins per query; ties keep the indexed result.
Positions are mapped to the caller's identifiers before returning.
"""

import time
from typing import Optional, Tuple

import numpy as np

from vectodb.core.config.settings import settings
from vectodb.core.exceptions.custom_exceptions import (
    DimensionMismatchError,
    SearchError,
)
from vectodb.core.logging.logger import get_logger
from vectodb.storage.approx_index import MetricType, create_exact_index, search_index
from vectodb.storage.lifecycle import IndexLifecycleManager
from vectodb.storage.monitoring import IndexMonitor, index_monitor
from vectodb.storage.vector_store import VectorStore

logger = get_logger(__name__)


def refine(
    query: np.ndarray,
    candidates: np.ndarray,
    positions: np.ndarray,
    metric: MetricType,
) -> Tuple[float, int]:
    """
    Pick the true nearest neighbor among approximate candidates.

    A throwaway exact index is built over the candidate vectors and searched
    for the single best match.

    Args:
        query: Query vector of shape (dim,)
        candidates: Candidate vectors of shape (n, dim), aligned with positions
        positions: Store positions of the candidates; -1 entries are ignored
        metric: Metric used to compare distances

    Returns:
        (distance, position) of the best candidate, or
        (metric.worst_distance, -1) when there is no valid candidate
    """
    positions = np.asarray(positions, dtype=np.int64)
    valid = positions >= 0
    if not valid.any():
        return metric.worst_distance, -1
    vectors = np.ascontiguousarray(np.asarray(candidates)[valid], dtype=np.float32)
    index = create_exact_index(vectors.shape[1], metric)
    index.add(vectors)
    distances, labels = search_index(index, np.reshape(query, (1, -1)), 1)
    return float(distances[0, 0]), int(positions[valid][labels[0, 0]])


def exact_scan(
    queries: np.ndarray,
    vectors: np.ndarray,
    metric: MetricType,
    offset: int = 0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Brute-force 1-NN of every query among ``vectors``.

    Returned positions are shifted by ``offset`` so that they address the
    whole store rather than the scanned slice.
    """
    index = create_exact_index(queries.shape[1], metric)
    index.add(np.ascontiguousarray(vectors, dtype=np.float32))
    distances, labels = search_index(index, queries, 1)
    positions = labels[:, 0].astype(np.int64)
    positions[positions >= 0] += offset
    return distances[:, 0], positions


class QueryEngine:
    """
    Answers nearest-neighbor queries for one store.

    Safe to call concurrently with itself and with appends: the active
    snapshot is captured once per call and the store size is read after it,
    so ``coverage <= size`` always holds for the captured pair.
    """

    def __init__(
        self,
        store: VectorStore,
        lifecycle: IndexLifecycleManager,
        search_width: Optional[int] = None,
        distance_threshold: Optional[float] = None,
        monitor: Optional[IndexMonitor] = None,
    ) -> None:
        self.store = store
        self.lifecycle = lifecycle
        self.metric = lifecycle.metric
        self.search_width = search_width or settings.SEARCH_WIDTH
        self.distance_threshold = (
            distance_threshold
            if distance_threshold is not None
            else settings.DISTANCE_THRESHOLD
        )
        self._monitor = monitor or index_monitor
        self._work_dir = str(store.directory)

    def _prepare_queries(self, queries) -> np.ndarray:
        try:
            matrix = np.asarray(queries, dtype=np.float32)
        except ValueError as e:
            raise SearchError(f"Queries must be a numeric matrix: {e}") from e
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2:
            raise SearchError(
                f"Queries must be 2-dimensional, got shape {matrix.shape}",
                details={"shape": list(matrix.shape)},
            )
        if matrix.shape[1] != self.store.dim:
            raise DimensionMismatchError(
                f"Query dimension {matrix.shape[1]} does not match store "
                f"dimension {self.store.dim}",
                details={"expected": self.store.dim, "actual": matrix.shape[1]},
            )
        return np.ascontiguousarray(matrix)

    def search(
        self, queries, distance_threshold: Optional[float] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Nearest stored vector for every query.

        Args:
            queries: Array-like of shape (nq, dim), or a single vector
            distance_threshold: Results worse than this are reported as
                id -1 (defaults to the engine's threshold)

        Returns:
            (distances, ids), both of shape (nq,). Misses have id -1.
        """
        q = self._prepare_queries(queries)
        nq = q.shape[0]
        start_time = time.time()

        distances = np.full(nq, self.metric.worst_distance, dtype=np.float32)
        positions = np.full(nq, -1, dtype=np.int64)

        snapshot = self.lifecycle.snapshot
        size = self.store.size
        coverage = snapshot.coverage if snapshot is not None else 0

        refined = 0
        if nq and snapshot is not None and coverage > 0:
            k = min(self.search_width, coverage)
            index_distances, index_positions = snapshot.search(q, k)
            if snapshot.is_exact:
                distances[:] = index_distances[:, 0]
                positions[:] = index_positions[:, 0]
            else:
                for i in range(nq):
                    row = index_positions[i]
                    candidates = row[row >= 0]
                    if candidates.size == 0:
                        continue
                    distances[i], positions[i] = refine(
                        q[i], self.store.vectors_at(candidates), candidates, self.metric
                    )
                    refined += 1

        uncovered = size - coverage
        if nq and uncovered > 0:
            tail_distances, tail_positions = exact_scan(
                q, self.store.slice(coverage, size), self.metric, offset=coverage
            )
            take = (tail_positions >= 0) & (
                (positions < 0) | self.metric.is_better(tail_distances, distances)
            )
            distances[take] = tail_distances[take]
            positions[take] = tail_positions[take]

        threshold = (
            distance_threshold
            if distance_threshold is not None
            else self.distance_threshold
        )
        if threshold is not None:
            positions[~self.metric.within(distances, threshold)] = -1

        self._monitor.record_search(
            self._work_dir,
            start_time,
            nq,
            refined=refined,
            tail_scan=uncovered > 0,
        )
        logger.debug(
            "Search done",
            queries=nq,
            coverage=coverage,
            uncovered=uncovered,
            refined=refined,
        )
        return distances, self.store.ids_at(positions)
