"""
Load-once asynchronous resource loaders.

Each loader constructs its resource at most once. The first call to load()
starts construction on a worker thread; every other caller, concurrent or
later, awaits the same shared future. A failed load stays failed: the same
error is re-raised to every caller and nothing is retried.

A loader belongs to the event loop that first called load().
"""

import asyncio
import functools
import json
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional, Union

from util.logging import logger
from semsearch.vector.matrix import matrix_fingerprint
from . import config
from .errors import EncoderLoadError, IndexLoadError, SearchEngineError


class ResourceLoader(ABC):
    """Base class for single-resource, load-once loaders."""

    resource = "resource"
    error_class = SearchEngineError

    def __init__(self, executor: Optional[Executor] = None):
        self.executor = executor
        self.load_count = 0
        self._lock = threading.Lock()
        self._future: Optional[asyncio.Future] = None
        self._handle = None

    @property
    def handle(self):
        """The loaded resource, or None until loading succeeds."""
        return self._handle

    @property
    def started(self) -> bool:
        return self._future is not None

    async def load(self, *args) -> Any:
        """
        Load the resource, or attach to a load already in flight.

        Cancelling one caller does not cancel the shared construction.

        Raises:
            The loader's error class if construction failed.
        """
        with self._lock:
            if self._future is None:
                self._future = asyncio.ensure_future(self._run(*args))
            future = self._future
        return await asyncio.shield(future)

    async def _run(self, *args) -> Any:
        loop = asyncio.get_running_loop()
        start_time = time.monotonic()
        try:
            handle = await loop.run_in_executor(self.executor, functools.partial(self._construct_once, *args))
        except self.error_class as e:
            logger.log_load(self.resource, start_time, time.monotonic(), "failed", {"error": str(e)})
            raise
        except Exception as e:
            logger.log_load(self.resource, start_time, time.monotonic(), "failed", {"error": str(e)})
            raise self.error_class(f"Failed to load {self.resource}: {e}") from e

        logger.log_load(self.resource, start_time, time.monotonic(), details=self.describe(handle))
        self._handle = handle
        return handle

    def _construct_once(self, *args) -> Any:
        self.load_count += 1
        return self.construct(*args)

    @abstractmethod
    def construct(self, *args) -> Any:
        """Build the resource. Runs on a worker thread."""
        pass

    def describe(self, handle) -> dict:
        """Details recorded in the load log entry."""
        return {}


class TextEncoderLoader(ResourceLoader):
    """Loads the text encoder."""

    resource = "text_encoder"
    error_class = EncoderLoadError

    def __init__(self, factory: Callable[[], Any] = None, executor: Optional[Executor] = None):
        super().__init__(executor)
        self.factory = factory or config.get_text_encoder

    def construct(self):
        return self.factory()

    def describe(self, handle) -> dict:
        return {"encoder": type(handle).__name__}


class ImageEncoderLoader(ResourceLoader):
    """Loads the image encoder."""

    resource = "image_encoder"
    error_class = EncoderLoadError

    def __init__(self, factory: Callable[[], Any] = None, executor: Optional[Executor] = None):
        super().__init__(executor)
        self.factory = factory or config.get_image_encoder

    def construct(self):
        return self.factory()

    def describe(self, handle) -> dict:
        return {"encoder": type(handle).__name__}


class VectorIndexLoader(ResourceLoader):
    """
    Restores the vector index from disk, or builds and persists it.

    A persisted index is used only if its manifest matches the current
    matrix fingerprint, it loads cleanly and it holds exactly one vector per
    matrix row; anything else is discarded and rebuilt. Builds
    insert row chunks from a thread pool, relying on the index accepting
    concurrent inserts with distinct keys.
    """

    resource = "vector_index"
    error_class = IndexLoadError

    def __init__(self, index_path: Union[str, Path, None] = None,
                 index_factory: Callable[[int], Any] = None,
                 workers: int = None, chunk_size: int = 1024,
                 executor: Optional[Executor] = None):
        super().__init__(executor)
        self.index_path = Path(index_path) if index_path else None
        self.index_factory = index_factory or config.get_vector_index
        self.workers = workers or config.LOADER_WORKERS
        self.chunk_size = chunk_size
        self.build_count = 0
        self.restored = False

    @property
    def manifest_path(self) -> Optional[Path]:
        """Sidecar recording the shape and fingerprint of the indexed matrix."""
        if self.index_path is None:
            return None
        return self.index_path.with_name(self.index_path.name + ".manifest.json")

    def construct(self, matrix):
        index = self._restore(matrix)
        if index is not None:
            self.restored = True
            return index

        index = self.index_factory(matrix.columns)
        self.build(index, matrix)
        self.build_count += 1
        self._persist(index, matrix)
        return index

    def _restore(self, matrix):
        path = self.index_path
        if path is None or not path.exists():
            return None

        if not self._manifest_matches(matrix):
            logger.warning(f"Discarding index {path}: built from a different matrix")
            return None

        index = self.index_factory(matrix.columns)
        try:
            index.load(path)
        except IndexLoadError as e:
            logger.warning(f"Discarding unreadable index {path}: {e}")
            return None

        if len(index) != matrix.rows:
            logger.warning(f"Discarding stale index {path}: holds {len(index)} vectors, matrix has {matrix.rows} rows")
            return None

        logger.log_operation("index.restore", "success", {"path": str(path), "vectors": len(index)})
        return index

    def build(self, index, matrix) -> None:
        """Insert every matrix row into the index, keyed by row number."""
        index.reserve(matrix.rows)
        spans = [
            (start, min(start + self.chunk_size, matrix.rows))
            for start in range(0, matrix.rows, self.chunk_size)
        ]

        def insert(span):
            start, end = span
            index.add_batch(list(range(start, end)), matrix.data[start:end])
            return end - start

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            inserted = sum(pool.map(insert, spans))

        logger.log_operation("index.build", "success", {"vectors": inserted, "chunks": len(spans)})

    def _manifest_matches(self, matrix) -> bool:
        try:
            with open(self.manifest_path, "r", encoding="utf-8") as f:
                manifest = json.load(f)
            return (
                manifest["rows"] == matrix.rows
                and manifest["columns"] == matrix.columns
                and manifest["fingerprint"] == matrix_fingerprint(matrix)
            )
        except (OSError, ValueError, KeyError, TypeError):
            return False

    def _persist(self, index, matrix) -> None:
        path = self.index_path
        if path is None:
            return
        manifest = {
            "rows": matrix.rows,
            "columns": matrix.columns,
            "fingerprint": matrix_fingerprint(matrix),
            "vectors": len(index),
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            index.save(path)
            # Written last: an index without a matching manifest is rebuilt
            with open(self.manifest_path, "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2)
        except (OSError, RuntimeError) as e:
            # The in-memory index stays usable; the next run rebuilds
            logger.warning(f"Failed to persist index to {path}: {e}")
            return
        logger.log_operation("index.save", "success", {"path": str(path), "vectors": len(index)})

    def describe(self, handle) -> dict:
        return {"vectors": len(handle), "restored": self.restored}
