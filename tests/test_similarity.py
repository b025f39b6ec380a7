"""
Test cases for cosine similarity and ranking.
"""

import numpy as np
import pytest

from semsearch.vector import SearchHit, cosine_similarity, order_hits, rank_by_similarity


@pytest.mark.parametrize("vector", [
    [1.0, 0.0],
    [0.3, -2.0, 5.5],
    [1e-3] * 64,
])
def test_self_similarity_is_one(vector):
    """Test that a nonzero vector is maximally similar to itself."""
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_zero_vector_similarity_is_zero():
    """Test that a zero magnitude gives 0 instead of NaN."""
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_orthogonal_and_opposite_vectors():
    """Test the range of cosine similarity."""
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)


def test_length_mismatch_raises():
    """Test that vectors of different lengths are rejected."""
    with pytest.raises(ValueError):
        cosine_similarity([1, 0], [1, 0, 0])


def test_order_hits_descending_with_key_tie_break():
    """Test that equal scores fall back to ascending key order."""
    hits = [SearchHit(3, 0.5), SearchHit(1, 0.9), SearchHit(2, 0.5), SearchHit(0, 0.1)]

    assert [hit.key for hit in order_hits(hits)] == [1, 2, 3, 0]


def test_rank_by_similarity_known_layout():
    """Test that [1,0], [0,1], [0.7,0.7] rank as 0, 2, 1 against [1,0]."""
    vectors = np.array([[1.0, 0.0], [0.0, 1.0], [0.7, 0.7]], dtype=np.float32)

    hits = rank_by_similarity([1.0, 0.0], vectors, k=3)

    assert [hit.key for hit in hits] == [0, 2, 1]
    assert hits[0].score == pytest.approx(1.0)
    assert hits[1].score == pytest.approx(0.7071, abs=1e-4)


def test_rank_by_similarity_truncates_and_uses_custom_keys():
    """Test top-k truncation with explicit keys."""
    vectors = np.eye(4, dtype=np.float32)

    hits = rank_by_similarity([0, 0, 1, 0], vectors, k=2, keys=[10, 11, 12, 13])

    assert len(hits) == 2
    assert hits[0].key == 12


def test_rank_by_similarity_empty_inputs():
    """Test that empty matrices or k=0 produce no hits."""
    assert rank_by_similarity([1.0], np.zeros((0, 1), dtype=np.float32), k=5) == []
    assert rank_by_similarity([1.0, 0.0], np.eye(2), k=0) == []
