"""
Vector index capability and its implementations.

Insertion discipline: add() and add_batch() may be called from several
threads at once as long as the keys are distinct. Each implementation
serializes the native insert behind its own lock; searches do not take the
insert lock on the faiss backend and may run concurrently with each other.
Duplicate keys raise ValueError.
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np

from ..core.errors import IndexLoadError
from .similarity import normalize_rows, order_hits, rank_by_similarity
from .types import SearchHit

PathLike = Union[str, Path]


class IVectorIndex(ABC):
    """Abstract interface for nearest-neighbor indexes keyed by integer ids."""

    dimension: int

    @abstractmethod
    def reserve(self, capacity: int) -> None:
        """Hint the number of vectors about to be inserted."""
        pass

    @abstractmethod
    def add(self, key: int, vector: np.ndarray) -> None:
        """Insert a single vector under a key."""
        pass

    @abstractmethod
    def add_batch(self, keys: Sequence[int], vectors: np.ndarray) -> None:
        """Insert several vectors, one key per row."""
        pass

    @abstractmethod
    def search(self, vector: np.ndarray, k: int) -> List[SearchHit]:
        """Return up to k hits ordered by descending similarity."""
        pass

    @abstractmethod
    def save(self, path: PathLike) -> None:
        """Persist the index to disk."""
        pass

    @abstractmethod
    def load(self, path: PathLike) -> None:
        """Replace the contents of this index with a persisted one."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    def _check_batch(self, keys: Sequence[int], vectors: np.ndarray) -> np.ndarray:
        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim == 1:
            vectors = vectors.reshape(1, -1)
        if vectors.shape[1] != self.dimension:
            raise ValueError(f"Vector dimension {vectors.shape[1]} does not match expected dimension {self.dimension}")
        if len(keys) != vectors.shape[0]:
            raise ValueError(f"Got {len(keys)} keys for {vectors.shape[0]} vectors")
        if len(set(keys)) != len(keys):
            raise ValueError("Duplicate keys within batch")
        return vectors


class SimpleInMemoryVectorIndex(IVectorIndex):
    """Exact in-memory index ranking every vector by cosine similarity."""

    def __init__(self, dimension: int):
        self.dimension = dimension
        self._keys: List[int] = []
        self._vectors: List[np.ndarray] = []
        self._key_set = set()
        self._lock = threading.Lock()

    def reserve(self, capacity: int) -> None:
        # Python lists grow on demand
        pass

    def add(self, key: int, vector: np.ndarray) -> None:
        self.add_batch([key], np.asarray(vector, dtype=np.float32).reshape(1, -1))

    def add_batch(self, keys: Sequence[int], vectors: np.ndarray) -> None:
        keys = [int(key) for key in keys]
        vectors = self._check_batch(keys, vectors)
        with self._lock:
            clashes = self._key_set.intersection(keys)
            if clashes:
                raise ValueError(f"Keys already present: {sorted(clashes)[:10]}")
            self._key_set.update(keys)
            self._keys.extend(keys)
            self._vectors.extend(np.array(row, dtype=np.float32) for row in vectors)

    def search(self, vector: np.ndarray, k: int) -> List[SearchHit]:
        with self._lock:
            if not self._vectors:
                return []
            keys = list(self._keys)
            matrix = np.vstack(self._vectors)
        return rank_by_similarity(vector, matrix, k, keys=keys)

    def save(self, path: PathLike) -> None:
        with self._lock:
            keys = np.array(self._keys, dtype=np.int64)
            vectors = np.vstack(self._vectors) if self._vectors else np.zeros((0, self.dimension), dtype=np.float32)
        # Write through a handle so numpy keeps the caller's file name
        with open(path, "wb") as fh:
            np.savez(fh, keys=keys, vectors=vectors)

    def load(self, path: PathLike) -> None:
        try:
            with np.load(path) as archive:
                keys = archive["keys"].astype(np.int64)
                vectors = archive["vectors"].astype(np.float32)
        except (OSError, KeyError, ValueError, AttributeError) as e:
            raise IndexLoadError(f"Cannot read index file {path}: {e}") from e

        if vectors.ndim != 2 or (vectors.shape[0] and vectors.shape[1] != self.dimension):
            raise IndexLoadError(f"Persisted index has shape {vectors.shape}, expected dimension {self.dimension}")

        with self._lock:
            self._keys = [int(key) for key in keys]
            self._vectors = [row for row in vectors]
            self._key_set = set(self._keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


class FaissVectorIndex(IVectorIndex):
    """FAISS-backed cosine index.

    Vectors are L2-normalized and compared by inner product. `exact=True` uses
    a flat index, otherwise an HNSW graph with `connectivity` neighbors per
    node. `quantization="f16"` stores vectors as half floats.
    """

    def __init__(self, dimension: int, exact: bool = False, connectivity: int = 32,
                 quantization: str = "f16", expansion_search: int = 128):
        """
        Initialize FAISS vector index.

        Args:
            dimension: Dimension of the vectors
            exact: Use brute-force search instead of HNSW
            connectivity: HNSW neighbors per node
            quantization: Storage precision, "f32" or "f16"
            expansion_search: HNSW candidate list size at query time
        """
        try:
            import faiss
            self.faiss = faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        if quantization not in ("f32", "f16"):
            raise ValueError(f"Unsupported quantization: {quantization}")

        self.dimension = dimension
        self.exact = exact
        self.connectivity = connectivity
        self.quantization = quantization
        self.expansion_search = expansion_search
        self.capacity = 0

        self._lock = threading.Lock()
        self._keys = set()
        self.index = self._create_index()

    def _create_index(self):
        faiss = self.faiss
        metric = faiss.METRIC_INNER_PRODUCT
        if self.exact:
            if self.quantization == "f16":
                base = faiss.IndexScalarQuantizer(self.dimension, faiss.ScalarQuantizer.QT_fp16, metric)
            else:
                base = faiss.IndexFlatIP(self.dimension)
        else:
            if self.quantization == "f16":
                base = faiss.IndexHNSWSQ(self.dimension, faiss.ScalarQuantizer.QT_fp16, self.connectivity, metric)
            else:
                base = faiss.IndexHNSWFlat(self.dimension, self.connectivity, metric)
            base.hnsw.efSearch = self.expansion_search

        return faiss.IndexIDMap2(base)

    def reserve(self, capacity: int) -> None:
        # faiss grows its storage on add; the hint is kept for reporting only
        self.capacity = max(self.capacity, int(capacity))

    def add(self, key: int, vector: np.ndarray) -> None:
        self.add_batch([key], np.asarray(vector, dtype=np.float32).reshape(1, -1))

    def add_batch(self, keys: Sequence[int], vectors: np.ndarray) -> None:
        keys = [int(key) for key in keys]
        vectors = normalize_rows(self._check_batch(keys, vectors))
        ids = np.array(keys, dtype=np.int64)

        with self._lock:
            clashes = self._keys.intersection(keys)
            if clashes:
                raise ValueError(f"Keys already present: {sorted(clashes)[:10]}")
            if not self.index.is_trained:
                self.index.train(vectors)
            self.index.add_with_ids(vectors, ids)
            self._keys.update(keys)

    def search(self, vector: np.ndarray, k: int) -> List[SearchHit]:
        total = self.index.ntotal
        if not total or k <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32).ravel()
        if query.shape[0] != self.dimension:
            raise ValueError(f"Query dimension {query.shape[0]} does not match expected dimension {self.dimension}")
        scores, ids = self.index.search(normalize_rows(query), min(k, total))

        hits = [
            SearchHit(key=int(key), score=float(score))
            for key, score in zip(ids[0], scores[0])
            if key != -1
        ]
        return order_hits(hits)

    def save(self, path: PathLike) -> None:
        with self._lock:
            self.faiss.write_index(self.index, str(path))

    def load(self, path: PathLike) -> None:
        try:
            index = self.faiss.read_index(str(path))
            index = self.faiss.downcast_index(index)
        except RuntimeError as e:
            # faiss reports unreadable or corrupt files as RuntimeError
            raise IndexLoadError(f"Cannot read index file {path}: {e}") from e

        if index.d != self.dimension:
            raise IndexLoadError(f"Persisted index has dimension {index.d}, expected {self.dimension}")
        if index.metric_type != self.faiss.METRIC_INNER_PRODUCT:
            raise IndexLoadError("Persisted index does not use the inner product metric")

        id_map = getattr(index, "id_map", None)
        if id_map is None:
            raise IndexLoadError("Persisted index carries no key mapping")

        with self._lock:
            self.index = index
            self._keys = set(int(key) for key in self.faiss.vector_to_array(id_map))

    def __len__(self) -> int:
        return int(self.index.ntotal)
