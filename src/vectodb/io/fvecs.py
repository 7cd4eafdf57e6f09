"""
Readers and writers for the TEXMEX ``.fvecs`` / ``.ivecs`` formats.

Every row is stored as a little-endian ``int32`` dimension ``d`` followed by
``d`` components (``float32`` for fvecs, ``int32`` for ivecs). All rows of
one file share the same dimension.

These files are the usual way to feed benchmark datasets such as SIFT1M
into the store; they are unrelated to the store's own base.fvecs log.
"""

from pathlib import Path
from typing import Union

import numpy as np

from vectodb.core.exceptions.custom_exceptions import StorageIOError, ValidationError
from vectodb.core.logging.logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _read_vecs(path: PathLike, dtype) -> np.ndarray:
    path = Path(path)
    try:
        raw = np.fromfile(path, dtype="<i4")
    except OSError as e:
        raise StorageIOError(
            f"Failed to read {path}: {e}",
            error_code="VECS_READ_ERROR",
            details={"path": str(path)},
        ) from e

    if raw.size == 0:
        return np.empty((0, 0), dtype=dtype)

    d = int(raw[0])
    if d <= 0 or raw.size % (d + 1) != 0:
        raise ValidationError(
            f"{path} is not a valid vecs file (dimension {d}, {raw.size * 4} bytes)",
            error_code="VECS_MALFORMED",
            details={"path": str(path), "dim": d},
        )

    rows = raw.reshape(-1, d + 1)
    if not (rows[:, 0] == d).all():
        raise ValidationError(
            f"{path} has rows with differing dimensions",
            error_code="VECS_MALFORMED",
            details={"path": str(path), "dim": d},
        )
    logger.debug("Read vecs file", path=str(path), rows=rows.shape[0], dim=d)
    return np.ascontiguousarray(rows[:, 1:].view(dtype))


def read_fvecs(path: PathLike) -> np.ndarray:
    """Load an fvecs file as a float32 array of shape (n, d)."""
    return _read_vecs(path, "<f4").astype(np.float32, copy=False)


def read_ivecs(path: PathLike) -> np.ndarray:
    """Load an ivecs file (e.g. ground truth) as an int32 array of shape (n, d)."""
    return _read_vecs(path, "<i4").astype(np.int32, copy=False)


def write_fvecs(path: PathLike, vectors) -> None:
    """Write a 2-D array in fvecs format."""
    vectors = np.ascontiguousarray(vectors, dtype="<f4")
    if vectors.ndim != 2 or vectors.shape[1] == 0:
        raise ValidationError(
            f"Expected a non-empty 2-D array, got shape {vectors.shape}",
            error_code="VECS_INVALID_ARRAY",
        )
    n, d = vectors.shape
    out = np.empty((n, d + 1), dtype="<i4")
    out[:, 0] = d
    out[:, 1:] = vectors.view("<i4")
    try:
        out.tofile(Path(path))
    except OSError as e:
        raise StorageIOError(
            f"Failed to write {path}: {e}",
            error_code="VECS_WRITE_ERROR",
            details={"path": str(path)},
        ) from e
