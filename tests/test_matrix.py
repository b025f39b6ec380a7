"""
Test cases for the embedding matrix reader.
"""

import struct

import numpy as np
import pytest

from semsearch.core.errors import CorpusLoadError
from semsearch.vector import load_matrix, matrix_byte_length, matrix_fingerprint, parse_matrix
from tests.helpers import write_matrix


def test_load_valid_matrix(tmp_path):
    """Test that a well-formed file decodes row-major."""
    path = write_matrix(tmp_path / "m.fbin", [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])

    matrix = load_matrix(path)

    assert matrix.rows == 2
    assert matrix.columns == 3
    assert matrix.data.dtype == np.float32
    assert matrix.data.shape == (2, 3)
    np.testing.assert_array_equal(matrix.row(1), [4.0, 5.0, 6.0])


def test_file_size_matches_header(tmp_path):
    """Test that valid files are exactly 8 + rows * columns * 4 bytes."""
    path = write_matrix(tmp_path / "m.fbin", np.ones((5, 7)))

    matrix = load_matrix(path)

    assert path.stat().st_size == matrix_byte_length(matrix.rows, matrix.columns)
    assert path.stat().st_size == 8 + 5 * 7 * 4


def test_truncated_by_one_byte_fails(tmp_path):
    """Test that a file one byte short is rejected rather than under-read."""
    path = write_matrix(tmp_path / "m.fbin", np.ones((4, 3)))
    path.write_bytes(path.read_bytes()[:-1])

    with pytest.raises(CorpusLoadError):
        load_matrix(path)


def test_trailing_bytes_fail(tmp_path):
    """Test that extra bytes after the body are rejected."""
    path = write_matrix(tmp_path / "m.fbin", np.ones((4, 3)))
    path.write_bytes(path.read_bytes() + b"\x00")

    with pytest.raises(CorpusLoadError):
        load_matrix(path)


def test_incomplete_header_fails():
    """Test that payloads shorter than the header are rejected."""
    with pytest.raises(CorpusLoadError, match="header"):
        parse_matrix(b"\x01\x00\x00")


def test_header_claiming_more_rows_than_present_fails():
    """Test that the header is validated before the body is interpreted."""
    payload = struct.pack("<II", 1000, 512) + b"\x00" * 16

    with pytest.raises(CorpusLoadError, match="needs"):
        parse_matrix(payload)


def test_missing_file_fails(tmp_path):
    """Test that a missing file raises CorpusLoadError."""
    with pytest.raises(CorpusLoadError, match="Cannot read"):
        load_matrix(tmp_path / "absent.fbin")


def test_empty_matrix(tmp_path):
    """Test that a zero-row matrix is valid."""
    path = tmp_path / "empty.fbin"
    path.write_bytes(struct.pack("<II", 0, 16))

    matrix = load_matrix(path)

    assert matrix.rows == 0
    assert matrix.columns == 16
    assert len(matrix) == 0


def test_matrix_is_read_only(tmp_path):
    """Test that loaded data cannot be mutated."""
    matrix = load_matrix(write_matrix(tmp_path / "m.fbin", [[1.0, 2.0]]))

    with pytest.raises(ValueError):
        matrix.data[0, 0] = 9.0


def test_values_are_little_endian():
    """Test that float values are decoded little-endian regardless of host order."""
    payload = struct.pack("<II", 1, 2) + struct.pack("<ff", 0.5, -2.25)

    matrix = parse_matrix(payload)

    np.testing.assert_array_equal(matrix.data, [[0.5, -2.25]])


def test_fingerprint_tracks_contents_and_shape(tmp_path):
    """Test that reordered rows or a reshaped body change the fingerprint."""
    a = load_matrix(write_matrix(tmp_path / "a.fbin", [[1.0, 0.0], [0.0, 1.0]]))
    same = load_matrix(write_matrix(tmp_path / "same.fbin", [[1.0, 0.0], [0.0, 1.0]]))
    swapped = load_matrix(write_matrix(tmp_path / "b.fbin", [[0.0, 1.0], [1.0, 0.0]]))
    flat = load_matrix(write_matrix(tmp_path / "c.fbin", [[1.0, 0.0, 0.0, 1.0]]))

    assert matrix_fingerprint(a) == matrix_fingerprint(same)
    assert matrix_fingerprint(a) != matrix_fingerprint(swapped)
    assert matrix_fingerprint(a) != matrix_fingerprint(flat)
