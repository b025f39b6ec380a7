"""
Error taxonomy for the search engine.

Load-time errors after engine construction are recorded and logged, never
raised across the readiness boundary. Query-time errors degrade to empty
results. Cancellation uses asyncio.CancelledError and is not an error.
"""


class SearchEngineError(Exception):
    """Base class for all search engine errors."""


class CorpusLoadError(SearchEngineError):
    """Matrix or identifier file is missing, truncated or unreadable."""


class EncoderLoadError(SearchEngineError):
    """A text or image encoder could not be constructed."""


class IndexLoadError(SearchEngineError):
    """The vector index could not be restored or built."""


class QueryEncodingError(SearchEngineError):
    """A query input could not be embedded."""
