"""
Structured logging configuration for VectoDB.

This module sets up structlog on top of the standard logging module. In
development the output goes through a rich console handler; elsewhere log
records are rendered as JSON lines for aggregation. An optional file
handler is added when LOG_FILE_PATH is configured.

Functions:
    setup_logging(): Initialize logging configuration
    get_logger(name): Get configured logger instance
    bind_work_dir(logger, work_dir): Bind the store directory to a logger

Configuration:
    Logging behavior is controlled by Settings (see core.config.settings):
    - LOG_LEVEL: Minimum log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
    - LOG_FORMAT: Output format (json/text)
    - LOG_FILE_PATH: Optional file output path
    - DEBUG / ENVIRONMENT: Select the rich console handler

Example:
    >>> from vectodb.core.logging.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Loading base", path="/data/base.fvecs", records=1000)
"""

import logging
import logging.config
import sys
from pathlib import Path

import structlog
from rich.console import Console
from rich.logging import RichHandler

from vectodb.core.config.settings import settings


def setup_logging() -> None:
    """
    Initialize logging configuration.

    Configures structlog processors and the standard library root logger.
    The handler set depends on the environment:
        - Development (or DEBUG): rich console handler on stderr
        - Otherwise: plain stream handler on stdout carrying JSON lines
        - File: additional handler when LOG_FILE_PATH is set

    Safe to call more than once; the root logger handlers are replaced.
    """

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    handlers = []

    if settings.DEBUG or settings.ENVIRONMENT == "development":
        console = Console(stderr=True)
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=True,
            markup=False,
            rich_tracebacks=True,
        )
        rich_handler.setLevel(settings.LOG_LEVEL)
        handlers.append(rich_handler)
    else:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(settings.LOG_LEVEL)
        handlers.append(stream_handler)

    if settings.LOG_FILE_PATH:
        file_path = Path(settings.LOG_FILE_PATH)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path)
        file_handler.setLevel(settings.LOG_LEVEL)
        handlers.append(file_handler)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    # FAISS bindings log through the root logger at import time
    logging.getLogger("faiss").setLevel(logging.WARNING)
    logging.getLogger("faiss.loader").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a configured structured logger instance.

    Args:
        name (str): Logger name, typically __name__ of the calling module

    Returns:
        structlog.BoundLogger: Configured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Training", vectors=160000, index_key="IVF4096,PQ32")
        >>> build_logger = logger.bind(work_dir="/data/db0")
        >>> build_logger.info("Indexing", vectors=1000000)

    Note:
        If logging hasn't been configured yet, this function calls
        setup_logging() first.
    """
    if not structlog.is_configured():
        setup_logging()
    return structlog.get_logger(name)


def bind_work_dir(logger: structlog.BoundLogger, work_dir: str) -> structlog.BoundLogger:
    """
    Bind the store working directory to every message of a logger.

    Several stores can live in one process (one per directory), so the
    lifecycle and store components log with their directory attached.
    """
    return logger.bind(work_dir=str(work_dir))


# Setup logging on import
setup_logging()
