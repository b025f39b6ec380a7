"""
Reader for the legacy embedding matrix file.

Layout, little-endian, no header version or checksum:

    u32 rows | u32 columns | float32[rows * columns] (row-major)
"""

import hashlib
import struct
import time
from pathlib import Path
from typing import Union

import numpy as np

from util.logging import logger
from ..core.errors import CorpusLoadError
from .types import EmbeddingMatrix

HEADER = struct.Struct("<II")
FLOAT_DTYPE = np.dtype("<f4")


def matrix_byte_length(rows: int, columns: int) -> int:
    """Exact file size of a matrix with the given shape."""
    return HEADER.size + rows * columns * FLOAT_DTYPE.itemsize


def matrix_fingerprint(matrix: EmbeddingMatrix) -> str:
    """sha256 over the shape and the float32 body, identifying matrix contents."""
    digest = hashlib.sha256(HEADER.pack(matrix.rows, matrix.columns))
    digest.update(np.ascontiguousarray(matrix.data, dtype=FLOAT_DTYPE).tobytes())
    return digest.hexdigest()


def parse_matrix(payload: bytes) -> EmbeddingMatrix:
    """
    Decode matrix bytes.

    The header is checked against the total length before any part of the
    body is interpreted, so short or oversized payloads never produce a
    partially filled matrix.

    Raises:
        CorpusLoadError: If the header is incomplete or the body length does
            not match rows * columns float32 values.
    """
    if len(payload) < HEADER.size:
        raise CorpusLoadError(
            f"Matrix header needs {HEADER.size} bytes, got {len(payload)}"
        )

    rows, columns = HEADER.unpack_from(payload, 0)
    expected = matrix_byte_length(rows, columns)
    if len(payload) != expected:
        raise CorpusLoadError(
            f"Matrix of {rows} x {columns} needs {expected} bytes, got {len(payload)}"
        )

    data = np.frombuffer(payload, dtype=FLOAT_DTYPE, count=rows * columns, offset=HEADER.size)
    data = data.astype(np.float32).reshape(rows, columns)
    data.setflags(write=False)
    return EmbeddingMatrix(rows=rows, columns=columns, data=data)


def load_matrix(path: Union[str, Path]) -> EmbeddingMatrix:
    """
    Load an embedding matrix from disk.

    Args:
        path: Location of the binary matrix file

    Returns:
        The decoded, read-only matrix

    Raises:
        CorpusLoadError: If the file is missing, unreadable or malformed.
    """
    path = Path(path)
    start_time = time.monotonic()
    try:
        payload = path.read_bytes()
    except OSError as e:
        logger.log_load("matrix", start_time, time.monotonic(), "failed", {"path": str(path), "error": str(e)})
        raise CorpusLoadError(f"Cannot read matrix file {path}: {e}") from e

    try:
        matrix = parse_matrix(payload)
    except CorpusLoadError as e:
        logger.log_load("matrix", start_time, time.monotonic(), "failed", {"path": str(path), "error": str(e)})
        raise

    logger.log_load("matrix", start_time, time.monotonic(), details={
        "path": str(path),
        "rows": matrix.rows,
        "columns": matrix.columns,
    })
    return matrix
