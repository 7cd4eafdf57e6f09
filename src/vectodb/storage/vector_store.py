"""
Durable append-only vector log with an in-memory mirror.

The VectorStore is the single source of truth for every vector ever added.
Each append is written to ``<work_dir>/base.fvecs`` and then mirrored in a
dense float32 buffer, an identifier buffer and an identifier -> position
map. On open, the whole log is replayed into the mirror, so queries and
index rebuilds never read the log back from disk.

Log format:
    A sequence of fixed-length records, native byte order:
        int64 id | dim x float32 vector
    The file length is always a multiple of ``8 + 4 * dim``.

Mirror growth:
    The buffers grow by reallocation and copy. Views handed out by slice()
    keep referencing the buffer they were taken from, and rows are written
    before the size is published, so readers never observe a row that is
    still being filled in.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Sequence

import numpy as np

from vectodb.core.config.settings import settings
from vectodb.core.exceptions.custom_exceptions import (
    CorruptStoreError,
    DimensionMismatchError,
    StorageIOError,
    ValidationError,
)
from vectodb.core.logging.logger import bind_work_dir, get_logger

logger = get_logger(__name__)

BASE_FILENAME = "base.fvecs"
ID_SIZE = 8
FLOAT_SIZE = 4


def record_length(dim: int) -> int:
    """Length in bytes of one log record."""
    return ID_SIZE + FLOAT_SIZE * dim


def record_dtype(dim: int) -> np.dtype:
    return np.dtype([("id", "=i8"), ("vector", "=f4", (dim,))])


@dataclass(frozen=True)
class VectorRecord:
    """An identifier and its vector as stored in the log."""

    id: int
    vector: np.ndarray


class VectorStore:
    """
    Append-only durable vector log plus its in-memory mirror.

    The store is opened on construction. Appends are expected from a single
    writer; size, slice() and the lookup helpers may be called concurrently
    with an append.

    Example:
        >>> store = VectorStore("/tmp/db", dim=4)
        >>> store.append([7, 8], np.eye(2, 4, dtype=np.float32))
        >>> store.size
        2
        >>> store.slice(0, 2).shape
        (2, 4)
    """

    def __init__(
        self,
        directory,
        dim: int,
        initial_capacity: Optional[int] = None,
        fsync: Optional[bool] = None,
    ) -> None:
        if dim <= 0:
            raise ValidationError(
                f"Vector dimension must be positive, got {dim}",
                details={"dim": dim},
            )
        self.directory = Path(directory).absolute()
        self.dim = dim
        self.path = self.directory / BASE_FILENAME
        self.record_length = record_length(dim)
        self._dtype = record_dtype(dim)
        self._fsync = settings.FSYNC_ON_APPEND if fsync is None else fsync

        capacity = max(initial_capacity or settings.INITIAL_CAPACITY, 1)
        self._vectors = np.empty((capacity, dim), dtype=np.float32)
        self._ids = np.empty(capacity, dtype=np.int64)
        self._size = 0
        self._id_index: Dict[int, int] = {}
        self._log = None
        self._logger = bind_work_dir(logger, self.directory)

        self._open()

    @classmethod
    def open(cls, directory, dim: int, **kwargs) -> "VectorStore":
        """Open (creating if absent) the store in ``directory``."""
        return cls(directory, dim, **kwargs)

    # ------------------------------------------------------------------
    # Opening and replay
    # ------------------------------------------------------------------

    def _open(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Append mode creates the log if it does not exist yet
            self._log = open(self.path, "ab")
            file_size = os.path.getsize(self.path)
        except OSError as e:
            self._close_log()
            raise StorageIOError(
                f"Failed to open vector log {self.path}: {e}",
                error_code="STORE_OPEN_ERROR",
                details={"path": str(self.path)},
            ) from e

        if file_size % self.record_length != 0:
            self._close_log()
            raise CorruptStoreError(
                f"{self.path} file size {file_size} is not multiple of "
                f"record length {self.record_length}",
                error_code="STORE_LOG_CORRUPT",
                details={
                    "path": str(self.path),
                    "file_size": file_size,
                    "record_length": self.record_length,
                    "dim": self.dim,
                },
            )

        num_records = file_size // self.record_length
        if num_records > 0:
            self._logger.info("Loading base", path=str(self.path), records=num_records)
            self._replay(num_records)

    def _replay(self, num_records: int) -> None:
        try:
            records = np.fromfile(self.path, dtype=self._dtype, count=num_records)
        except OSError as e:
            self._close_log()
            raise StorageIOError(
                f"Failed to read vector log {self.path}: {e}",
                error_code="STORE_READ_ERROR",
                details={"path": str(self.path)},
            ) from e

        self._ensure_capacity(num_records)
        self._vectors[:num_records] = records["vector"]
        self._ids[:num_records] = records["id"]
        for position, uid in enumerate(records["id"].tolist()):
            self._id_index[uid] = position
        self._size = num_records

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, ids: Sequence[int], vectors) -> None:
        """
        Durably append ``len(ids)`` records and mirror them in memory.

        Args:
            ids: Caller-supplied int64 identifiers, one per vector
            vectors: Array-like of shape (n, dim); a single vector is accepted

        Raises:
            DimensionMismatchError: A vector's length differs from dim
            ValidationError: Number of ids differs from number of vectors
            StorageIOError: The log write failed; re-open the store
        """
        ids_arr, vecs = self._validate_batch(ids, vectors)
        n = len(ids_arr)
        if n == 0:
            return
        if self._log is None:
            raise StorageIOError(
                f"Vector store {self.directory} is closed",
                error_code="STORE_CLOSED",
            )

        records = np.empty(n, dtype=self._dtype)
        records["id"] = ids_arr
        records["vector"] = vecs
        try:
            self._log.write(records.tobytes())
            self._log.flush()
            if self._fsync:
                os.fsync(self._log.fileno())
        except OSError as e:
            raise StorageIOError(
                f"Failed to append {n} records to {self.path}: {e}",
                error_code="STORE_APPEND_WRITE_ERROR",
                details={"path": str(self.path), "count": n},
            ) from e

        start = self._size
        end = start + n
        self._ensure_capacity(end)
        self._vectors[start:end] = vecs
        self._ids[start:end] = ids_arr
        for position, uid in enumerate(ids_arr.tolist(), start=start):
            self._id_index[uid] = position
        self._size = end

    def _validate_batch(self, ids, vectors):
        try:
            vecs = np.asarray(vectors, dtype=np.float32)
        except ValueError as e:
            raise DimensionMismatchError(
                f"Vectors must all have dimension {self.dim}",
                details={"expected": self.dim},
            ) from e
        if vecs.ndim == 1 and vecs.size == self.dim:
            vecs = vecs.reshape(1, self.dim)
        if vecs.ndim == 1 and vecs.size == 0:
            vecs = vecs.reshape(0, self.dim)
        if vecs.ndim != 2 or vecs.shape[1] != self.dim:
            actual = vecs.shape[-1] if vecs.ndim else 0
            raise DimensionMismatchError(
                f"Vector dimension {actual} does not match store dimension {self.dim}",
                details={"expected": self.dim, "shape": list(vecs.shape)},
            )

        try:
            ids_arr = np.asarray(ids, dtype=np.int64).reshape(-1)
        except (TypeError, ValueError, OverflowError) as e:
            raise ValidationError(
                f"Identifiers must be 64-bit integers: {e}",
                error_code="STORE_INVALID_IDS",
            ) from e
        if len(ids_arr) != vecs.shape[0]:
            raise ValidationError(
                f"Got {len(ids_arr)} ids for {vecs.shape[0]} vectors",
                error_code="STORE_ID_COUNT_MISMATCH",
                details={"ids": len(ids_arr), "vectors": vecs.shape[0]},
            )
        return ids_arr, vecs

    def _ensure_capacity(self, needed: int) -> None:
        capacity = len(self._ids)
        if needed <= capacity:
            return
        new_capacity = max(capacity * 2, needed)
        vectors = np.empty((new_capacity, self.dim), dtype=np.float32)
        ids = np.empty(new_capacity, dtype=np.int64)
        vectors[: self._size] = self._vectors[: self._size]
        ids[: self._size] = self._ids[: self._size]
        self._vectors = vectors
        self._ids = ids

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Number of records in the mirror."""
        return self._size

    def __len__(self) -> int:
        return self._size

    def slice(self, start: int, stop: int) -> np.ndarray:
        """View over vectors ``[start, stop)``, without copying."""
        if not 0 <= start <= stop <= self._size:
            raise ValueError(
                f"Invalid slice [{start}, {stop}) of a store with {self._size} records"
            )
        return self._vectors[start:stop]

    def vectors_at(self, positions) -> np.ndarray:
        """Copy of the vectors at the given positions."""
        positions = np.asarray(positions, dtype=np.int64)
        if positions.size and (positions.min() < 0 or positions.max() >= self._size):
            raise ValueError("position out of range")
        return self._vectors[positions]

    def ids_at(self, positions) -> np.ndarray:
        """Identifiers at the given positions; position -1 maps to id -1."""
        positions = np.asarray(positions, dtype=np.int64)
        result = np.full(positions.shape, -1, dtype=np.int64)
        mask = positions >= 0
        result[mask] = self._ids[positions[mask]]
        return result

    @property
    def ids(self) -> np.ndarray:
        return self._ids[: self._size]

    def position_of(self, uid: int) -> Optional[int]:
        """Position of the last record written with ``uid``."""
        return self._id_index.get(int(uid))

    def __contains__(self, uid) -> bool:
        return int(uid) in self._id_index

    def get(self, uid: int) -> Optional[np.ndarray]:
        position = self.position_of(uid)
        if position is None:
            return None
        return self._vectors[position].copy()

    def records(self, start: int = 0, stop: Optional[int] = None) -> Iterator[VectorRecord]:
        """Iterate records in log order."""
        stop = self._size if stop is None else stop
        for position in range(start, stop):
            yield VectorRecord(
                id=int(self._ids[position]),
                vector=self._vectors[position].copy(),
            )

    def unique_ids(self) -> Iterable[int]:
        return self._id_index.keys()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._log is None

    def _close_log(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None

    def close(self) -> None:
        self._close_log()

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
