"""
Threading environment setup for VectoDB.

FAISS parallelizes training, adding and searching with OpenMP, and numpy
may bring its own BLAS thread pool. Running both unconstrained inside a
process that also serves concurrent searches leads to thread
over-subscription and, on some platforms, duplicate OpenMP runtime
crashes. VectoDB therefore pins the BLAS pools to a single thread and sets
the FAISS OpenMP pool size from settings (one thread by default).

Environment Variables Configured:
    - KMP_DUPLICATE_LIB_OK: Allows multiple OpenMP libraries
    - OMP_NUM_THREADS: OpenMP thread pool size
    - MKL_NUM_THREADS / OPENBLAS_NUM_THREADS / VECLIB_MAXIMUM_THREADS /
      NUMEXPR_NUM_THREADS: single-threaded BLAS

This module must be imported before faiss. setup_threading_environment()
runs on import; configure_faiss_threads() is called once faiss is loaded.

Example:
    >>> from vectodb.core.environment import configure_faiss_threads
    >>> import faiss
    >>> configure_faiss_threads(faiss)
"""
import os

from vectodb.core.config.settings import settings


def setup_threading_environment():
    """
    Configure environment variables to prevent threading conflicts.

    Existing values are kept so that an operator can still override them
    from the process environment.
    """
    os.environ.setdefault("KMP_DUPLICATE_LIB_OK", "TRUE")

    os.environ.setdefault("OMP_NUM_THREADS", str(settings.OMP_NUM_THREADS))
    os.environ.setdefault("MKL_NUM_THREADS", "1")
    os.environ.setdefault("OPENBLAS_NUM_THREADS", "1")
    os.environ.setdefault("VECLIB_MAXIMUM_THREADS", "1")
    os.environ.setdefault("NUMEXPR_NUM_THREADS", "1")


def configure_faiss_threads(faiss_module, num_threads=None):
    """Set the FAISS OpenMP pool size (settings.OMP_NUM_THREADS by default)."""
    faiss_module.omp_set_num_threads(num_threads or settings.OMP_NUM_THREADS)


setup_threading_environment()
