"""
VectoDB Search Module - Hybrid index + tail nearest-neighbor search.
"""

from vectodb.search.query_engine import QueryEngine, exact_scan, refine

__all__ = ["QueryEngine", "exact_scan", "refine"]
