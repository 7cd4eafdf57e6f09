"""
Index snapshots, their atomic holder, and snapshot file naming.

An IndexSnapshot pairs an index handle with the number of leading store
records it covers. Snapshots are immutable: a rebuild produces a new one and
the SnapshotHolder swaps it in under a lock. Searches capture the current
snapshot once and keep using it until they finish, so a reader in flight
is never affected by a concurrent swap; the replaced handle is released by
reference counting once the last reader drops it.

The exact variant is the one exception to immutability of the handle: its
flat index is extended in place on every append. Those additions and all
searches against that handle go through the snapshot's handle lock.

Snapshot files:
    <work_dir>/<index_key>.<training_size>.index
"""

import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List, Optional, Tuple

import numpy as np

from vectodb.storage.approx_index import IndexVariant, search_index

SNAPSHOT_SUFFIX = ".index"


@dataclass(frozen=True)
class IndexSnapshot:
    """
    An index handle and the prefix of the vector store it has absorbed.

    Attributes:
        handle: FAISS index object
        variant: IndexVariant.EXACT or IndexVariant.TRAINED
        coverage: Number of leading store records present in the handle
        training_size: Training sample size (0 for the exact variant)
        handle_lock: Serializes in-place additions and searches on exact handles
    """

    handle: Any
    variant: IndexVariant
    coverage: int
    training_size: int = 0
    handle_lock: threading.Lock = field(
        default_factory=threading.Lock, compare=False, repr=False
    )

    @property
    def is_exact(self) -> bool:
        return self.variant is IndexVariant.EXACT

    @property
    def ntotal(self) -> int:
        return int(self.handle.ntotal)

    def search(self, queries: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        if self.is_exact:
            with self.handle_lock:
                return search_index(self.handle, queries, k)
        return search_index(self.handle, queries, k)

    def extended(self, vectors: np.ndarray) -> "IndexSnapshot":
        """
        Add vectors to an exact handle and return the snapshot covering them.

        The returned snapshot shares the handle and its lock.
        """
        if not self.is_exact:
            raise TypeError("only exact snapshots can be extended in place")
        with self.handle_lock:
            if len(vectors):
                self.handle.add(np.ascontiguousarray(vectors, dtype=np.float32))
            coverage = int(self.handle.ntotal)
        return replace(self, coverage=coverage)


class SnapshotHolder:
    """Owns the active snapshot reference and swaps it atomically."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[IndexSnapshot] = None
        self._generation = 0

    def get(self) -> Optional[IndexSnapshot]:
        with self._lock:
            return self._snapshot

    def swap(self, snapshot: Optional[IndexSnapshot]) -> Optional[IndexSnapshot]:
        """Install ``snapshot`` and return the one it replaced."""
        with self._lock:
            previous, self._snapshot = self._snapshot, snapshot
            self._generation += 1
            return previous

    @property
    def generation(self) -> int:
        """Number of swaps so far."""
        with self._lock:
            return self._generation


def snapshot_path(work_dir: Path, index_key: str, training_size: int) -> Path:
    return Path(work_dir) / f"{index_key}.{training_size}{SNAPSHOT_SUFFIX}"


def list_snapshots(work_dir: Path, index_key: str) -> List[Tuple[int, Path]]:
    """Snapshot files for ``index_key`` as (training_size, path), ascending."""
    prefix = f"{index_key}."
    found = []
    for path in Path(work_dir).iterdir():
        name = path.name
        if not path.is_file():
            continue
        if not (name.startswith(prefix) and name.endswith(SNAPSHOT_SUFFIX)):
            continue
        middle = name[len(prefix) : len(name) - len(SNAPSHOT_SUFFIX)]
        if not middle.isdigit():
            continue
        found.append((int(middle), path))
    return sorted(found)


def find_latest_snapshot(work_dir: Path, index_key: str) -> Tuple[int, Optional[Path]]:
    """The snapshot with the largest training size, or (0, None)."""
    snapshots = list_snapshots(work_dir, index_key)
    if not snapshots:
        return 0, None
    return snapshots[-1]
