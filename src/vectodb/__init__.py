"""
VectoDB - Embedded vector database with incremental FAISS indexing

VectoDB stores vectors in a durable append-only log and keeps a FAISS
index over them that is retrained or extended only when enough new
vectors have accumulated. Searches combine the index with an exact scan
of the vectors it does not cover yet, so every stored vector is always
searchable.

Modules:
    core: Configuration, logging, exceptions and threading environment
    storage: Vector log, index snapshots and index lifecycle
    search: Hybrid index + tail nearest-neighbor search
    orchestration: Background index builder
    io: TEXMEX fvecs/ivecs dataset files
    cli: Command-line interface tools

Example:
    >>> from vectodb import VectoDB
    >>> db = VectoDB("./vectodb_data", dim=128, index_key="IVF4096,PQ32")
    >>> db.add_with_ids(vectors, ids)
    >>> db.update_index()
    >>> distances, ids = db.search(queries)
"""

__version__ = "0.1.0"
__description__ = (
    "Embedded vector database that persists vectors in an append-only log "
    "and maintains an incrementally rebuilt FAISS index over them."
)

from vectodb.core.config.settings import Settings
from vectodb.core.logging.logger import get_logger
from vectodb.db import VectoDB, clear_work_dir

__all__ = [
    "Settings",
    "VectoDB",
    "clear_work_dir",
    "get_logger",
]
