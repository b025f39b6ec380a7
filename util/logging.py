"""
Structured logging for the search engine.
Load, bootstrap and query events are emitted as one-line operation records.
"""

import logging
from typing import Any, Dict, Iterable


class StructuredLogger:
    """Structured logger for corpus loading, resource bootstrap and queries."""

    def __init__(self, name: str = "semsearch"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_load(self, resource: str, start_time: float, end_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log a resource load (matrix, catalog, encoder, index)."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.ERROR
        self.log_operation(f"load.{resource}", status, log_details, level=level)

    def log_catalog_check(self, missing: Iterable[str], unlisted: Iterable[str]):
        """Log the result of cross-checking declared identifiers against files on disk."""
        missing = sorted(missing)
        unlisted = sorted(unlisted)
        if not missing and not unlisted:
            self.log_operation("catalog.check", "consistent")
            return

        details = {
            "missing_count": len(missing),
            "unlisted_count": len(unlisted),
            # Keep the record readable for large corpora
            "missing": missing[:20],
            "unlisted": unlisted[:20],
        }
        self.log_operation("catalog.check", "mismatch", details, level=logging.WARNING)

    def log_bootstrap(self, status: str, details: Dict[str, Any] = None):
        """Log a bootstrap state transition."""
        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation("bootstrap", status, details, level=level)

    def log_query(self, channel: str, status: str, details: Dict[str, Any] = None):
        """Log a query lifecycle event."""
        log_details = {"channel": channel}
        if details:
            log_details.update(details)

        if status == "failed":
            level = logging.WARNING
        elif status in ("cancelled", "superseded", "debounced"):
            level = logging.DEBUG
        else:
            level = logging.INFO
        self.log_operation(f"query.{channel}", status, log_details, level=level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def summarize_query(value: Any) -> str:
    """Short printable form of a query input for log records."""
    if isinstance(value, str):
        return value[:50] + "..." if len(value) > 50 else value
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    shape = getattr(value, "shape", None)
    if shape is not None:
        return f"<array {tuple(shape)}>"
    size = getattr(value, "size", None)
    if size is not None:
        return f"<image {size}>"
    return f"<{type(value).__name__}>"
