"""
HTTP boundary for the search engine.

Exposes the readiness flags and published results of a SearchSession, the
debounced submit endpoints a front end drives, and direct ranked searches.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from util.logging import logger
from .schemas import (
    HealthResponse,
    ResultsResponse,
    SearchResponse,
    SubmitResponse,
    TextQueryRequest,
)
from ..core import config
from ..core.engine import IMAGE_CHANNEL, TEXT_CHANNEL, SearchEngine, create_engine
from ..core.pipeline import SearchSession


def create_app(engine: Optional[SearchEngine] = None, debounce_seconds: float = None) -> FastAPI:
    """
    Build the API application.

    Args:
        engine: Engine to serve; built from configuration at startup if omitted
        debounce_seconds: Text query debounce window, defaults to configuration
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        served = engine if engine is not None else create_engine()
        app.state.engine = served
        app.state.session = SearchSession(served, debounce_seconds=debounce_seconds)
        # Bootstrap runs in the background; endpoints report readiness meanwhile
        app.state.bootstrap_task = asyncio.ensure_future(served.bootstrap())
        logger.info(f"Search API serving {len(served.catalog)} items")
        yield
        app.state.session.cancel_all()

    app = FastAPI(
        title="Semantic Search API",
        version=config.VERSION,
        description="Text and image similarity search over a precomputed embedding corpus",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(request: Request):
        """Engine readiness and corpus summary."""
        served: SearchEngine = request.app.state.engine
        status = served.status()
        if served.ready_to_search:
            label = "ready"
        elif served.readiness.settled:
            label = "failed"
        else:
            label = "loading"
        return HealthResponse(status=label, version=config.VERSION, **status)

    @app.get("/results", response_model=ResultsResponse)
    def results_endpoint(request: Request):
        """Results published by the most recent submitted query."""
        session: SearchSession = request.app.state.session
        return ResultsResponse(
            items=session.current_results,
            ready_to_show=session.ready_to_show,
            ready_to_search=session.ready_to_search,
        )

    @app.post("/query/text", response_model=SubmitResponse, status_code=202)
    async def submit_text_endpoint(req: TextQueryRequest, request: Request):
        """Submit a debounced text query; poll /results for the outcome."""
        request.app.state.session.submit_text_query(req.text)
        return SubmitResponse(accepted=True, channel=TEXT_CHANNEL)

    @app.post("/query/image", response_model=SubmitResponse, status_code=202)
    async def submit_image_endpoint(request: Request):
        """Submit an encoded image as the raw request body."""
        payload = await request.body()
        if not payload:
            raise HTTPException(status_code=400, detail="Request body must contain image bytes")
        request.app.state.session.submit_image_query(payload)
        return SubmitResponse(accepted=True, channel=IMAGE_CHANNEL)

    @app.post("/search/text", response_model=SearchResponse)
    async def search_text_endpoint(req: TextQueryRequest, request: Request):
        """Rank the corpus against a text query and return the result directly."""
        served: SearchEngine = request.app.state.engine
        items = await _run_search(served, served.search_text(req.text, req.limit), bool(req.text))
        return SearchResponse(items=items, count=len(items))

    @app.post("/search/image", response_model=SearchResponse)
    async def search_image_endpoint(request: Request):
        """Rank the corpus against an encoded image sent as the raw body."""
        served: SearchEngine = request.app.state.engine
        payload = await request.body()
        if not payload:
            raise HTTPException(status_code=400, detail="Request body must contain image bytes")
        items = await _run_search(served, served.search_image(payload), True)
        return SearchResponse(items=items, count=len(items))

    return app


async def _run_search(served: SearchEngine, search, needs_index: bool):
    if needs_index and served.readiness.settled and not served.ready_to_search:
        search.close()
        raise HTTPException(status_code=503, detail="Search resources failed to load")
    try:
        return await asyncio.wait_for(search, timeout=config.SEARCH_TIMEOUT_SEC)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail="Search engine is still loading")


app = create_app()
