"""
Search engine configuration.
Everything is read from environment variables with local-first defaults.
"""

import os
from pathlib import Path

from util.logging import logger

# Corpus locations
DATA_DIR = os.getenv("DATA_DIR", "./data")
NAMES_PATH = os.getenv("NAMES_PATH", os.path.join(DATA_DIR, "images.names.txt"))
IMAGES_DIR = os.getenv("IMAGES_DIR", os.path.join(DATA_DIR, "images"))
MATRIX_PATH = os.getenv("MATRIX_PATH", os.path.join(DATA_DIR, "images.clip-ViT-B-32.fbin"))
INDEX_PATH = os.getenv("INDEX_PATH", os.path.join(DATA_DIR, "images.clip-ViT-B-32.index"))
NAME_SUFFIX = os.getenv("NAME_SUFFIX", ".jpg")

# Encoders (CLIP checkpoints put text and images in one embedding space)
ENCODER_PROVIDER = os.getenv("ENCODER_PROVIDER", "sentence_transformers")  # sentence_transformers|hash
TEXT_MODEL_NAME = os.getenv("TEXT_MODEL_NAME", "clip-ViT-B-32")
IMAGE_MODEL_NAME = os.getenv("IMAGE_MODEL_NAME", "clip-ViT-B-32")
HASH_DIMENSION = int(os.getenv("HASH_DIMENSION", "512"))

# Vector index
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "faiss")  # faiss|memory
INDEX_EXACT = os.getenv("INDEX_EXACT", "false").lower() == "true"
INDEX_CONNECTIVITY = int(os.getenv("INDEX_CONNECTIVITY", "32"))
INDEX_QUANTIZATION = os.getenv("INDEX_QUANTIZATION", "f16")  # f32|f16

# Query pipeline
RESULT_LIMIT = int(os.getenv("RESULT_LIMIT", "100"))
DEBOUNCE_MS = int(os.getenv("DEBOUNCE_MS", "100"))
LOADER_WORKERS = int(os.getenv("LOADER_WORKERS", "4"))
SEARCH_TIMEOUT_SEC = float(os.getenv("SEARCH_TIMEOUT_SEC", "30"))

# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Version string
VERSION = "0.3.0"


def get_text_encoder():
    """Construct the configured text encoder. Slow: call from a worker thread."""
    if ENCODER_PROVIDER == "hash":
        from semsearch.vector.encoders import DeterministicHashEncoder
        return DeterministicHashEncoder(dimension=HASH_DIMENSION)

    from semsearch.vector.encoders import SentenceTransformerTextEncoder
    return SentenceTransformerTextEncoder(TEXT_MODEL_NAME)


def get_image_encoder():
    """Construct the configured image encoder. Slow: call from a worker thread."""
    if ENCODER_PROVIDER == "hash":
        from semsearch.vector.encoders import DeterministicHashEncoder
        return DeterministicHashEncoder(dimension=HASH_DIMENSION)

    from semsearch.vector.encoders import SentenceTransformerImageEncoder
    return SentenceTransformerImageEncoder(IMAGE_MODEL_NAME)


def get_vector_index(dimension: int):
    """Get an empty vector index of the configured kind for the given dimension."""
    if VECTOR_PROVIDER == "memory":
        from semsearch.vector.index import SimpleInMemoryVectorIndex
        return SimpleInMemoryVectorIndex(dimension)

    from semsearch.vector.index import FaissVectorIndex
    return FaissVectorIndex(
        dimension,
        exact=INDEX_EXACT,
        connectivity=INDEX_CONNECTIVITY,
        quantization=INDEX_QUANTIZATION,
    )


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_debounce_seconds():
    """Debounce window for text queries in seconds."""
    return DEBOUNCE_MS / 1000.0


def ensure_index_directory():
    """Ensure the directory holding the persisted index exists."""
    Path(INDEX_PATH).parent.mkdir(parents=True, exist_ok=True)


def validate_search_config():
    """Validate search configuration and return any issues."""
    issues = []

    if ENCODER_PROVIDER not in ["sentence_transformers", "hash"]:
        issues.append(f"Invalid ENCODER_PROVIDER: {ENCODER_PROVIDER}")

    if VECTOR_PROVIDER not in ["faiss", "memory"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")

    if INDEX_QUANTIZATION not in ["f32", "f16"]:
        issues.append(f"Invalid INDEX_QUANTIZATION: {INDEX_QUANTIZATION}")

    if INDEX_CONNECTIVITY < 2:
        issues.append("INDEX_CONNECTIVITY must be >= 2")

    if RESULT_LIMIT < 1:
        issues.append("RESULT_LIMIT must be >= 1")

    if DEBOUNCE_MS < 0:
        issues.append("DEBOUNCE_MS must be >= 0")

    if LOADER_WORKERS < 1:
        issues.append("LOADER_WORKERS must be >= 1")

    if ENCODER_PROVIDER == "sentence_transformers" and TEXT_MODEL_NAME != IMAGE_MODEL_NAME:
        logger.warning("TEXT_MODEL_NAME and IMAGE_MODEL_NAME differ; queries may not share the corpus embedding space")

    return issues
