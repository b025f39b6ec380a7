"""
Vector layer: embedding matrix, encoders, nearest-neighbor indexes and ranking.
"""

# Package initialization for vector module
from .types import EmbeddingMatrix, SearchHit
from .matrix import load_matrix, parse_matrix, matrix_byte_length, matrix_fingerprint
from .similarity import cosine_similarity, order_hits, rank_by_similarity
from .index import IVectorIndex, SimpleInMemoryVectorIndex, FaissVectorIndex
from .encoders import ITextEncoder, IImageEncoder, DeterministicHashEncoder

__all__ = [
    'EmbeddingMatrix',
    'SearchHit',
    'load_matrix',
    'parse_matrix',
    'matrix_byte_length',
    'matrix_fingerprint',
    'cosine_similarity',
    'order_hits',
    'rank_by_similarity',
    'IVectorIndex',
    'SimpleInMemoryVectorIndex',
    'FaissVectorIndex',
    'ITextEncoder',
    'IImageEncoder',
    'DeterministicHashEncoder'
]
