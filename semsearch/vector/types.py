"""
Value types shared by the vector layer.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class EmbeddingMatrix:
    """Row-major float32 embeddings, one row per catalog item."""

    rows: int
    """Number of embedded items"""

    columns: int
    """Embedding dimension"""

    data: np.ndarray
    """Read-only float32 array of shape (rows, columns)"""

    def __post_init__(self):
        if self.data.shape != (self.rows, self.columns):
            raise ValueError(
                f"Matrix data shape {self.data.shape} does not match {self.rows} x {self.columns}"
            )

    def row(self, index: int) -> np.ndarray:
        return self.data[index]

    def __len__(self) -> int:
        return self.rows


@dataclass(frozen=True)
class SearchHit:
    """A single nearest-neighbor match."""

    key: int
    """Row index of the matching item"""

    score: float
    """Cosine similarity to the query, higher is closer"""
