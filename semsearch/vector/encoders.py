"""
Text and image encoders.

Encoders are constructed once by the resource loaders and then shared
read-only; embed() may be called from several worker threads at once.
"""

import hashlib
import io
from abc import ABC, abstractmethod
from typing import Any

import numpy as np
from PIL import Image

from ..core.errors import QueryEncodingError


class ITextEncoder(ABC):
    """Abstract interface for text -> vector encoders."""

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        """Generate an embedding vector for the given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class IImageEncoder(ABC):
    """Abstract interface for image -> vector encoders."""

    @abstractmethod
    def embed(self, image: Any) -> np.ndarray:
        """Generate an embedding vector for an encoded image, PIL image or pixel array."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


def to_pil_image(image: Any) -> Image.Image:
    """
    Decode a query image buffer.

    Accepts encoded bytes (JPEG, PNG, ...), a PIL image, or an HxW / HxWxC
    uint8 pixel array.
    """
    if isinstance(image, Image.Image):
        return image.convert("RGB")

    if isinstance(image, (bytes, bytearray, memoryview)):
        if not len(image):
            raise QueryEncodingError("Image buffer is empty")
        try:
            with Image.open(io.BytesIO(bytes(image))) as decoded:
                return decoded.convert("RGB")
        except (OSError, ValueError) as e:
            raise QueryEncodingError(f"Cannot decode image buffer: {e}") from e

    if isinstance(image, np.ndarray):
        if image.ndim not in (2, 3) or image.size == 0:
            raise QueryEncodingError(f"Unsupported pixel buffer shape {image.shape}")
        pixels = image
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        return Image.fromarray(pixels).convert("RGB")

    raise QueryEncodingError(f"Unsupported image input type: {type(image).__name__}")


class DeterministicHashEncoder(ITextEncoder, IImageEncoder):
    """Deterministic hash-based encoder for tests and offline development.

    The same input always maps to the same unit vector, without requiring
    model downloads. Text and image bytes share one hashing scheme, so the
    vectors carry no semantic meaning.
    """

    def __init__(self, dimension: int = 512):
        self.dimension = dimension

    def embed(self, value: Any) -> np.ndarray:
        """Generate a deterministic embedding by expanding a hash of the input."""
        if isinstance(value, str):
            payload = value.encode("utf-8")
        elif isinstance(value, (bytes, bytearray, memoryview)):
            payload = bytes(value)
        else:
            payload = to_pil_image(value).tobytes()

        # Expand the digest into a seed so every dimension is populated
        seed = int.from_bytes(hashlib.sha256(payload).digest()[:8], "little")
        rng = np.random.default_rng(seed)
        vector = rng.standard_normal(self.dimension).astype(np.float32)
        return vector / np.linalg.norm(vector)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerTextEncoder(ITextEncoder):
    """Sentence transformers text encoder.

    Defaults to the CLIP ViT-B/32 checkpoint so text queries land in the
    same space as image embeddings.
    """

    def __init__(self, model_name: str = "clip-ViT-B-32"):
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self.model = SentenceTransformer(model_name)
        self._dimension = None

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding vector using sentence transformers."""
        try:
            embedding = self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise QueryEncodingError(f"Text encoding failed: {e}") from e
        return np.asarray(embedding, dtype=np.float32)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            dimension = self.model.get_sentence_embedding_dimension()
            if dimension is None:
                # CLIP models do not report it up front
                dimension = len(self.embed("test"))
            self._dimension = dimension
        return self._dimension


class SentenceTransformerImageEncoder(IImageEncoder):
    """Sentence transformers CLIP image encoder."""

    def __init__(self, model_name: str = "clip-ViT-B-32"):
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self.model = SentenceTransformer(model_name)
        self._dimension = None

    def embed(self, image: Any) -> np.ndarray:
        """Generate embedding vector for a query image."""
        picture = to_pil_image(image)
        try:
            embedding = self.model.encode(picture, convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise QueryEncodingError(f"Image encoding failed: {e}") from e
        return np.asarray(embedding, dtype=np.float32)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            blank = Image.new("RGB", (224, 224))
            self._dimension = len(self.embed(blank))
        return self._dimension
