"""
Cosine similarity and descending-score ordering.

Used as the native metric of the in-memory index and as an exhaustive
cross-check for small corpora.
"""

from typing import Iterable, List

import numpy as np

from .types import SearchHit


def cosine_similarity(a, b) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.
    """
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()
    if a.shape != b.shape:
        raise ValueError(f"Vector lengths differ: {a.shape[0]} != {b.shape[0]}")

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """L2-normalize each row; zero rows stay zero."""
    vectors = np.asarray(vectors, dtype=np.float32)
    if vectors.ndim == 1:
        vectors = vectors.reshape(1, -1)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(norms == 0, 1.0, norms)
    return (vectors / safe).astype(np.float32)


def order_hits(hits: Iterable[SearchHit]) -> List[SearchHit]:
    """Order by descending score; equal scores keep ascending key order."""
    return sorted(hits, key=lambda hit: (-hit.score, hit.key))


def rank_by_similarity(query, vectors: np.ndarray, k: int, keys=None) -> List[SearchHit]:
    """
    Exhaustively score every row against the query and return the top k.

    Args:
        query: Query embedding
        vectors: Matrix of shape (n, dimension)
        k: Maximum number of hits
        keys: Optional key per row, defaults to the row index

    Returns:
        Hits in descending score order, ties broken by key
    """
    vectors = np.asarray(vectors, dtype=np.float32)
    if k <= 0 or vectors.size == 0:
        return []

    query = np.asarray(query, dtype=np.float32).ravel()
    if query.shape[0] != vectors.shape[1]:
        raise ValueError(f"Query dimension {query.shape[0]} does not match {vectors.shape[1]}")

    query_norm = float(np.linalg.norm(query))
    if query_norm == 0:
        scores = np.zeros(vectors.shape[0], dtype=np.float32)
    else:
        scores = normalize_rows(vectors) @ (query / query_norm)

    if keys is None:
        keys = range(vectors.shape[0])
    hits = [SearchHit(key=int(key), score=float(score)) for key, score in zip(keys, scores)]
    return order_hits(hits)[:k]
