"""
VectoDB Orchestration Module - Background index maintenance.
"""

from vectodb.orchestration.builder import IndexBuilder

__all__ = ["IndexBuilder"]
