"""
Test helpers: matrix writer and a fixed-vector encoder.
"""

import struct
import time

import numpy as np

from semsearch.core.errors import QueryEncodingError


def write_matrix(path, vectors):
    """Write vectors in the legacy matrix layout."""
    vectors = np.asarray(vectors, dtype="<f4")
    rows, columns = vectors.shape
    path.write_bytes(struct.pack("<II", rows, columns) + vectors.tobytes())
    return path


class StaticEncoder:
    """Encoder returning fixed vectors for known inputs."""

    def __init__(self, vectors, dimension=2, delays=None):
        self.vectors = {key: np.asarray(value, dtype=np.float32) for key, value in vectors.items()}
        self.dimension = dimension
        self.delays = delays or {}
        self.calls = []

    def embed(self, value):
        key = value if isinstance(value, str) else bytes(value)
        self.calls.append(key)
        if key in self.delays:
            time.sleep(self.delays[key])
        if key not in self.vectors:
            raise QueryEncodingError(f"No vector for {key!r}")
        return self.vectors[key]

    def get_dimension(self):
        return self.dimension
