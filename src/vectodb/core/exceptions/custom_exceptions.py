"""
Custom exception hierarchy for VectoDB error handling.

This module defines the structured exceptions raised by the vector store,
the index lifecycle manager and the query engine. Each exception carries a
human-readable message, a machine-readable error code and a details
dictionary so callers can log or react to failures without parsing text.

Exception Hierarchy:
    VectoDBError (base)
    ├── ConfigurationError: Invalid construction parameters or settings
    ├── ValidationError: Malformed input batches
    │   └── DimensionMismatchError: Vector length differs from the store dim
    ├── StorageError: Durable log and snapshot file failures
    │   ├── CorruptStoreError: Log size is not a multiple of the record size
    │   └── StorageIOError: Failed open/read/write of a log or snapshot
    ├── IndexBuildError: Training or indexing failures
    └── SearchError: Malformed query batches

Error Semantics:
    - Validation errors are raised before any mutation takes place, so a
      rejected append never leaves a partial batch behind.
    - StorageIOError during an append means the durable log and the
      in-memory mirror may disagree; re-open the store to replay the log.
    - CorruptStoreError is fatal and never repaired automatically.
    - Nothing is retried internally; retry policy belongs to the caller.

Example:
    >>> try:
    ...     db.add_with_ids(vectors, ids)
    ... except DimensionMismatchError as e:
    ...     logger.error("Rejected batch",
    ...                  error_code=e.error_code,
    ...                  details=e.details)
    >>>
    >>> raise CorruptStoreError(
    ...     "base.fvecs size is not a multiple of the record length",
    ...     error_code="STORE_LOG_CORRUPT",
    ...     details={"file_size": 1037, "record_length": 520}
    ... )
"""

from typing import Any, Dict, Optional


class VectoDBError(Exception):
    """
    Base exception class for all VectoDB errors.

    Attributes:
        message (str): Human-readable error description
        error_code (str): Machine-readable error identifier
        details (Dict[str, Any]): Additional contextual information

    The error_code follows a MODULE_OPERATION_ERROR convention
    (e.g. "STORE_APPEND_WRITE_ERROR") and defaults to the class name.

    Example:
        >>> raise VectoDBError(
        ...     "Snapshot write failed",
        ...     error_code="SNAPSHOT_WRITE_ERROR",
        ...     details={"path": "/data/IVF4096,PQ32.160000.index"}
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(VectoDBError):
    """
    Raised when construction parameters or settings are invalid.

    Common scenarios:
        - Non-positive vector dimension
        - Unknown metric selector
        - Index key that cannot be used as a file name component
        - Unreadable or malformed configuration file

    Example:
        >>> raise ConfigurationError(
        ...     "Unsupported metric",
        ...     error_code="CONFIG_INVALID_METRIC",
        ...     details={"metric": "cosine", "supported": ["IP", "L2"]}
        ... )
    """

    pass


class ValidationError(VectoDBError):
    """Raised when an input batch is malformed"""

    pass


class DimensionMismatchError(ValidationError):
    """
    Raised when a vector's length differs from the configured dimension.

    Raised before any mutation, so the store is left untouched.

    Example:
        >>> raise DimensionMismatchError(
        ...     "Vector dimension 64 does not match store dimension 128",
        ...     details={"expected": 128, "actual": 64}
        ... )
    """

    pass


class StorageError(VectoDBError):
    """
    Raised when durable storage operations fail.

    Covers the append-only vector log (``base.fvecs``) and the persisted
    index snapshot files (``<index_key>.<training_size>.index``).
    """

    pass


class CorruptStoreError(StorageError):
    """
    Raised when the durable log fails validation at open time.

    The log length must always be an exact multiple of the record length
    ``8 + 4 * dim``. A violation usually means a torn write or a log opened
    with the wrong dimension. It is never repaired automatically.
    """

    pass


class StorageIOError(StorageError):
    """Raised when reading or writing the log or a snapshot file fails"""

    pass


class IndexBuildError(VectoDBError):
    """Raised when training or populating an index fails"""

    pass


class SearchError(VectoDBError):
    """Raised when a query batch cannot be searched"""

    pass
