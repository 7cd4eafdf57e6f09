"""
Thin wrapper over the FAISS capabilities VectoDB relies on.

VectoDB never looks inside an approximate index. It only needs to build one
from a factory key, train it, add vectors, search it, ask how many vectors
it holds, and move it to and from disk. Everything FAISS-specific lives in
this module so the store, the lifecycle manager and the query engine deal
with metrics and variants as plain enums.

Index variants:
    EXACT: the "Flat" factory key. Brute force, no training, never
           persisted; rebuilt from the vector log whenever needed.
    TRAINED: any other factory key (e.g. "IVF4096,PQ32"). Needs a training
           sample before it can absorb vectors and is persisted as a
           snapshot file after every rebuild.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Tuple, Union

import numpy as np

from vectodb.core import environment

import faiss  # noqa: E402  (threading environment must be set first)

from vectodb.core.exceptions.custom_exceptions import (
    ConfigurationError,
    StorageIOError,
)
from vectodb.core.logging.logger import get_logger

logger = get_logger(__name__)

environment.configure_faiss_threads(faiss)

EXACT_INDEX_KEY = "Flat"


class MetricType(str, Enum):
    """Distance metric of an index and of every result it produces."""

    INNER_PRODUCT = "IP"
    L2 = "L2"

    @classmethod
    def parse(cls, value: Union["MetricType", str, int]) -> "MetricType":
        """Accept an enum member, "IP"/"L2", or the selectors 0 (IP) / 1 (L2)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value == 0:
                return cls.INNER_PRODUCT
            if value == 1:
                return cls.L2
        if isinstance(value, str) and value.upper() in ("IP", "L2"):
            return cls(value.upper())
        raise ConfigurationError(
            f"Unsupported metric: {value!r}",
            error_code="CONFIG_INVALID_METRIC",
            details={"metric": value, "supported": ["IP", "L2", 0, 1]},
        )

    @property
    def faiss_metric(self) -> int:
        if self is MetricType.INNER_PRODUCT:
            return faiss.METRIC_INNER_PRODUCT
        return faiss.METRIC_L2

    @property
    def worst_distance(self) -> float:
        """Distance reported for "no result"."""
        return -np.inf if self is MetricType.INNER_PRODUCT else np.inf

    def is_better(self, candidate, current):
        """
        Strict comparison of distances, elementwise for arrays.

        FAISS reports similarities for inner product (larger is better) and
        squared distances for L2 (smaller is better).
        """
        if self is MetricType.INNER_PRODUCT:
            return np.greater(candidate, current)
        return np.less(candidate, current)

    def within(self, distances, threshold):
        """True where a distance is at least as good as threshold."""
        if self is MetricType.INNER_PRODUCT:
            return np.greater_equal(distances, threshold)
        return np.less_equal(distances, threshold)


class IndexVariant(str, Enum):
    """Whether an index needs training and persistence."""

    EXACT = "exact"
    TRAINED = "trained"

    @classmethod
    def for_key(cls, index_key: str) -> "IndexVariant":
        return cls.EXACT if index_key == EXACT_INDEX_KEY else cls.TRAINED


def create_index(dim: int, index_key: str, metric: MetricType):
    """Build an empty index from a FAISS factory key."""
    try:
        return faiss.index_factory(dim, index_key, metric.faiss_metric)
    except RuntimeError as e:
        raise ConfigurationError(
            f"FAISS cannot build index {index_key!r}: {e}",
            error_code="CONFIG_INVALID_INDEX_KEY",
            details={"index_key": index_key, "dim": dim},
        ) from e


def create_exact_index(dim: int, metric: MetricType):
    """Build an empty brute-force index."""
    return faiss.IndexFlat(dim, metric.faiss_metric)


def apply_query_params(index, query_params: str) -> None:
    """
    Apply a FAISS ParameterSpace string such as "nprobe=256,ht=256".

    The string is opaque to VectoDB; an empty string leaves the index as is.
    """
    if not query_params:
        return
    params = faiss.ParameterSpace()
    params.initialize(index)
    try:
        params.set_index_parameters(index, query_params)
    except RuntimeError as e:
        raise ConfigurationError(
            f"Invalid query parameters {query_params!r}: {e}",
            error_code="CONFIG_INVALID_QUERY_PARAMS",
            details={"query_params": query_params},
        ) from e


def search_index(index, queries: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
    """Search ``k`` neighbors; missing neighbors come back as position -1."""
    return index.search(np.ascontiguousarray(queries, dtype=np.float32), k)


def write_index(index, path: Path) -> None:
    """
    Serialize an index to ``path`` without ever exposing a partial file.

    The index is written next to the target and renamed over it, so a crash
    leaves either the previous file or the complete new one.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        faiss.write_index(index, str(tmp_path))
        os.replace(tmp_path, path)
    except (RuntimeError, OSError) as e:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise StorageIOError(
            f"Failed to write index snapshot {path}: {e}",
            error_code="SNAPSHOT_WRITE_ERROR",
            details={"path": str(path)},
        ) from e


def read_index(path: Path):
    """Deserialize an index written by write_index()."""
    try:
        return faiss.read_index(str(path))
    except RuntimeError as e:
        raise StorageIOError(
            f"Failed to read index snapshot {path}: {e}",
            error_code="SNAPSHOT_READ_ERROR",
            details={"path": str(path)},
        ) from e
