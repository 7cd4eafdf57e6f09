"""
VectoDB I/O Module - TEXMEX fvecs/ivecs dataset files.
"""

from vectodb.io.fvecs import read_fvecs, read_ivecs, write_fvecs

__all__ = ["read_fvecs", "read_ivecs", "write_fvecs"]
