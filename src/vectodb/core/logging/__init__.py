"""
VectoDB Logging Module - Structured Application Logging.

Structured logging for the vector store, the index lifecycle manager and
the query engine, built on structlog with rich console output in
development and JSON lines in production.

Components:
    - logger: Logging configuration and factory functions

Example:
    >>> from vectodb.core.logging import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("Activated index", training_size=160000, coverage=1000000)
    >>>
    >>> store_logger = logger.bind(work_dir="/data/db0")
    >>> store_logger.warning("Ignoring stale snapshot", training_size=200)
"""

from vectodb.core.logging.logger import bind_work_dir, get_logger, setup_logging

__all__ = ["bind_work_dir", "get_logger", "setup_logging"]
