"""
Shared fixtures: a small on-disk corpus and in-process encoders.
"""

from types import SimpleNamespace

import pytest

from semsearch.core.engine import SearchEngine
from semsearch.core.loaders import ImageEncoderLoader, TextEncoderLoader, VectorIndexLoader
from semsearch.vector.index import SimpleInMemoryVectorIndex
from tests.helpers import StaticEncoder, write_matrix

CORPUS_NAMES = ["item0", "item1", "item2"]
CORPUS_VECTORS = [[1.0, 0.0], [0.0, 1.0], [0.7, 0.7]]


@pytest.fixture
def corpus(tmp_path):
    """Three items whose embeddings are [1,0], [0,1] and [0.7,0.7]."""
    names_path = tmp_path / "images.names.txt"
    names_path.write_text("\n".join(CORPUS_NAMES) + "\n", encoding="utf-8")

    images_dir = tmp_path / "images"
    images_dir.mkdir()
    for name in CORPUS_NAMES:
        (images_dir / f"{name}.jpg").write_bytes(b"jpeg")

    matrix_path = write_matrix(tmp_path / "images.fbin", CORPUS_VECTORS)

    return SimpleNamespace(
        names_path=names_path,
        images_dir=images_dir,
        matrix_path=matrix_path,
        index_path=tmp_path / "index" / "images.index",
        names=[f"{name}.jpg" for name in CORPUS_NAMES],
    )


@pytest.fixture
def text_encoder():
    return StaticEncoder({
        "east": [1.0, 0.0],
        "north": [0.0, 1.0],
        "diagonal": [1.0, 1.0],
    })


@pytest.fixture
def image_encoder():
    return StaticEncoder({
        b"east-photo": [1.0, 0.0],
        b"north-photo": [0.0, 1.0],
    })


@pytest.fixture
def make_engine(corpus, text_encoder, image_encoder):
    """Build an engine over the corpus fixture with in-process resources."""

    def factory(text_factory=None, image_factory=None, index_factory=SimpleInMemoryVectorIndex, **kwargs):
        return SearchEngine(
            names_path=corpus.names_path,
            matrix_path=corpus.matrix_path,
            images_dir=corpus.images_dir,
            text_loader=TextEncoderLoader(text_factory or (lambda: text_encoder)),
            image_loader=ImageEncoderLoader(image_factory or (lambda: image_encoder)),
            index_loader=VectorIndexLoader(corpus.index_path, index_factory=index_factory, workers=2, chunk_size=1),
            name_suffix=".jpg",
            **kwargs,
        )

    return factory
