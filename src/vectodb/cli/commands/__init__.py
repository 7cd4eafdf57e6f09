"""
CLI commands module for VectoDB
"""

from . import vector_store

__all__ = ["vector_store"]
