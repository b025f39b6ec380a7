"""
Search engine: readiness state, bootstrap orchestration and query execution.

Construction loads the catalog and the embedding matrix synchronously and
marks the engine ready to show. bootstrap() then loads the text encoder, the
image encoder and the vector index concurrently. Only when all three succeed
are the handles published, as one immutable EngineResources object, and the
engine marked ready to search. A failed bootstrap is logged and recorded but
never raised, and the engine stays not-ready for the rest of the session.
"""

import asyncio
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from util.logging import logger, summarize_query
from semsearch.vector.matrix import load_matrix
from semsearch.vector.similarity import order_hits
from . import config
from .catalog import load_catalog
from .errors import CorpusLoadError, EncoderLoadError, QueryEncodingError
from .loaders import ImageEncoderLoader, TextEncoderLoader, VectorIndexLoader

TEXT_CHANNEL = "text"
IMAGE_CHANNEL = "image"


@dataclass(frozen=True)
class EngineResources:
    """Handles published together once every loader has finished."""

    text_encoder: Any
    image_encoder: Any
    index: Any


@dataclass(frozen=True)
class QueryRequest:
    """A text or image query. Exactly one of the two is set."""

    text: Optional[str] = None
    image: Any = None

    def __post_init__(self):
        if (self.text is None) == (self.image is None):
            raise ValueError("QueryRequest needs exactly one of text or image")

    @property
    def channel(self) -> str:
        return TEXT_CHANNEL if self.text is not None else IMAGE_CHANNEL


class ReadinessState:
    """
    Two monotonic flags: ready_to_show (catalog available) and
    ready_to_search (all resources loaded).

    ready_to_search can only be set after ready_to_show. The settled signal
    fires when the bootstrap attempt ends, successfully or not, so waiters
    never hang on a failed session.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ready_to_show = False
        self._ready_to_search = False
        self._settled = asyncio.Event()

    @property
    def ready_to_show(self) -> bool:
        with self._lock:
            return self._ready_to_show

    @property
    def ready_to_search(self) -> bool:
        with self._lock:
            return self._ready_to_search

    @property
    def settled(self) -> bool:
        return self._settled.is_set()

    def mark_ready_to_show(self) -> None:
        with self._lock:
            self._ready_to_show = True

    def mark_ready_to_search(self) -> None:
        with self._lock:
            if not self._ready_to_show:
                raise RuntimeError("ready_to_search cannot be set before ready_to_show")
            self._ready_to_search = True

    def mark_settled(self) -> None:
        self._settled.set()

    async def wait_until_settled(self) -> bool:
        """Suspend until bootstrap has ended; returns whether search is possible."""
        if not self.ready_to_search:
            await self._settled.wait()
        return self.ready_to_search


class SearchEngine:
    """Concurrent embedding-search engine over a fixed corpus."""

    def __init__(self, names_path: Union[str, Path], matrix_path: Union[str, Path],
                 images_dir: Union[str, Path, None] = None,
                 text_loader: TextEncoderLoader = None,
                 image_loader: ImageEncoderLoader = None,
                 index_loader: VectorIndexLoader = None,
                 name_suffix: str = None,
                 result_limit: int = None,
                 executor: Optional[Executor] = None):
        """
        Load the corpus and prepare (but do not start) resource loading.

        Args:
            names_path: Identifier list file
            matrix_path: Embedding matrix file
            images_dir: Resource directory, used for the catalog cross-check
            text_loader: Loader for the text encoder
            image_loader: Loader for the image encoder
            index_loader: Loader for the vector index
            name_suffix: Extension appended to identifiers
            result_limit: Maximum results per query
            executor: Thread pool for encoding and index searches

        Raises:
            CorpusLoadError: If the catalog or matrix cannot be loaded, or
                they disagree on the number of items.
        """
        self.readiness = ReadinessState()
        self.executor = executor
        self.result_limit = config.RESULT_LIMIT if result_limit is None else result_limit

        suffix = config.NAME_SUFFIX if name_suffix is None else name_suffix
        self.catalog = load_catalog(names_path, images_dir, suffix)
        self.matrix = load_matrix(matrix_path)
        if len(self.catalog) != self.matrix.rows:
            raise CorpusLoadError(
                f"Catalog lists {len(self.catalog)} items but the matrix has {self.matrix.rows} rows"
            )

        self.text_loader = text_loader or TextEncoderLoader()
        self.image_loader = image_loader or ImageEncoderLoader()
        self.index_loader = index_loader or VectorIndexLoader(config.INDEX_PATH)

        self.bootstrap_errors: List[BaseException] = []
        self._resources: Optional[EngineResources] = None
        self._bootstrap_task: Optional[asyncio.Future] = None
        self._bootstrap_lock = threading.Lock()

        self.readiness.mark_ready_to_show()

    @property
    def ready_to_show(self) -> bool:
        return self.readiness.ready_to_show

    @property
    def ready_to_search(self) -> bool:
        return self.readiness.ready_to_search

    @property
    def resources(self) -> Optional[EngineResources]:
        return self._resources

    async def bootstrap(self) -> bool:
        """
        Load encoders and index concurrently, once per engine.

        Concurrent and repeated callers attach to the same attempt.

        Returns:
            True if the engine is ready to search
        """
        with self._bootstrap_lock:
            if self._bootstrap_task is None:
                self._bootstrap_task = asyncio.ensure_future(self._bootstrap())
            task = self._bootstrap_task
        return await asyncio.shield(task)

    async def _bootstrap(self) -> bool:
        start_time = time.monotonic()
        logger.log_bootstrap("started", {"items": len(self.catalog), "dimensions": self.matrix.columns})

        try:
            results = await asyncio.gather(
                self.text_loader.load(),
                self.image_loader.load(),
                self.index_loader.load(self.matrix),
                return_exceptions=True,
            )

            failures = [result for result in results if isinstance(result, BaseException)]
            if not failures:
                resources = EngineResources(*results)
                failures = await self._check_dimensions(resources)

            if failures:
                self.bootstrap_errors.extend(failures)
                for failure in failures:
                    logger.log_bootstrap("failed", {"error": str(failure), "type": type(failure).__name__})
                return False

            self._resources = resources
            self.readiness.mark_ready_to_search()
            logger.log_bootstrap("ready", {"duration_ms": round((time.monotonic() - start_time) * 1000, 2)})
            return True
        finally:
            self.readiness.mark_settled()

    async def _check_dimensions(self, resources: EngineResources) -> List[BaseException]:
        """Encoders must produce vectors of the matrix width."""
        loop = asyncio.get_running_loop()
        failures = []
        for name, encoder in (("text", resources.text_encoder), ("image", resources.image_encoder)):
            get_dimension = getattr(encoder, "get_dimension", None)
            if get_dimension is None:
                continue
            try:
                dimension = await loop.run_in_executor(self.executor, get_dimension)
            except Exception as e:
                failures.append(EncoderLoadError(f"Cannot determine {name} encoder dimension: {e}"))
                continue
            if dimension != self.matrix.columns:
                failures.append(EncoderLoadError(
                    f"{name} encoder produces {dimension}-d vectors, matrix has {self.matrix.columns} columns"
                ))
        return failures

    async def search_text(self, text: str, limit: int = None) -> List[str]:
        """
        Rank catalog items against a text query.

        An empty query returns the whole catalog in catalog order.
        """
        if not text:
            return list(self.catalog.names)

        resources = await self._await_resources(TEXT_CHANNEL)
        if resources is None:
            return []
        return await self._search(TEXT_CHANNEL, resources.text_encoder, text, resources.index, limit)

    async def search_image(self, image: Any, limit: int = None) -> List[str]:
        """Rank catalog items against a query image."""
        resources = await self._await_resources(IMAGE_CHANNEL)
        if resources is None:
            return []
        return await self._search(IMAGE_CHANNEL, resources.image_encoder, image, resources.index, limit)

    async def query(self, request: QueryRequest, limit: int = None) -> List[str]:
        """Dispatch a query request to its channel."""
        if request.channel == TEXT_CHANNEL:
            return await self.search_text(request.text, limit)
        return await self.search_image(request.image, limit)

    async def _await_resources(self, channel: str) -> Optional[EngineResources]:
        if not await self.readiness.wait_until_settled():
            logger.log_query(channel, "failed", {"reason": "engine not ready to search"})
            return None
        return self._resources

    async def _search(self, channel: str, encoder, value, index, limit: Optional[int]) -> List[str]:
        if limit is None:
            limit = self.result_limit
        if limit < 1:
            return []
        loop = asyncio.get_running_loop()
        start_time = time.monotonic()

        try:
            vector = await loop.run_in_executor(self.executor, encoder.embed, value)
        except Exception as e:
            error = e if isinstance(e, QueryEncodingError) else QueryEncodingError(str(e))
            logger.log_query(channel, "failed", {"query": summarize_query(value), "error": str(error)})
            return []

        try:
            hits = await loop.run_in_executor(self.executor, index.search, vector, limit)
        except Exception as e:
            logger.log_query(channel, "failed", {"query": summarize_query(value), "error": str(e)})
            return []

        names = self.rank(hits, limit)
        logger.log_query(channel, "success", {
            "query": summarize_query(value),
            "results": len(names),
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        })
        return names

    def rank(self, hits, limit: int = None) -> List[str]:
        """Map index hits to identifiers, best first, ties by row order."""
        if limit is None:
            limit = self.result_limit
        names = []
        for hit in order_hits(hits)[:limit]:
            name = self.catalog.name_for_key(hit.key)
            if name is None:
                logger.warning(f"Index returned key {hit.key} outside the catalog")
                continue
            names.append(name)
        return names

    def status(self) -> Dict[str, Any]:
        """Diagnostic snapshot of the engine."""
        return {
            "ready_to_show": self.ready_to_show,
            "ready_to_search": self.ready_to_search,
            "items": len(self.catalog),
            "dimensions": self.matrix.columns,
            "catalog_consistent": self.catalog.report.consistent,
            "bootstrap_errors": [str(error) for error in self.bootstrap_errors],
        }


def create_engine(executor: Optional[Executor] = None) -> SearchEngine:
    """Build an engine wired from configuration."""
    return SearchEngine(
        names_path=config.NAMES_PATH,
        matrix_path=config.MATRIX_PATH,
        images_dir=config.IMAGES_DIR,
        text_loader=TextEncoderLoader(executor=executor),
        image_loader=ImageEncoderLoader(executor=executor),
        index_loader=VectorIndexLoader(config.INDEX_PATH, workers=config.LOADER_WORKERS, executor=executor),
        name_suffix=config.NAME_SUFFIX,
        result_limit=config.RESULT_LIMIT,
        executor=executor,
    )
