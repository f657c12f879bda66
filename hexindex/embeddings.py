"""
Embedding provider adapter for hexindex.

Wraps a sentence-transformers model behind an explicit Uninitialized -> Ready
lifecycle. The model handle is guarded by a single lock, so concurrent callers
queue rather than race.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence

from sentence_transformers import SentenceTransformer

from .errors import EmbeddingError, InitializationError, NotInitializedError
from .utils import retry_on_failure

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"
DEFAULT_DIMENSION = 384  # all-MiniLM-L6-v2

ProgressCallback = Callable[[int, int], None]


class Embedder:
    """
    Local text embedding model.

    Features:
    - Explicit, idempotent initialize() that loads (and on first run downloads)
      the model into cache_dir
    - Batch and single-text embedding with order preserved
    - Batched embedding with a (processed, total) progress callback
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        dimension: int = DEFAULT_DIMENSION,
        cache_dir: Optional[Path] = None,
        device: Optional[str] = None,
        batch_size: int = 32,
    ):
        """
        Create an uninitialized embedder.

        Args:
            model_name: sentence-transformers model to load
            dimension: Vector width the model is expected to produce
            cache_dir: Directory for persisted model files
            device: Device to use ('cuda', 'cpu', or None for auto-detect)
            batch_size: Batch size passed to the model's encode()
        """
        self.model_name = model_name
        self.dimension = dimension
        self.cache_dir = cache_dir
        self.device = device
        self.batch_size = batch_size
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """
        Load the embedding model. A no-op if already loaded.

        Raises:
            InitializationError: If the model cannot be loaded or produces
                vectors of an unexpected width
        """
        with self._lock:
            if self._model is not None:
                return

            logger.info(f"Loading embedding model: {self.model_name}")
            try:
                if self.cache_dir is not None:
                    self.cache_dir.mkdir(parents=True, exist_ok=True)
                model = SentenceTransformer(
                    self.model_name,
                    device=self.device,
                    cache_folder=str(self.cache_dir) if self.cache_dir else None,
                )
            except Exception as e:
                logger.error(f"Failed to load embedding model {self.model_name}: {e}")
                raise InitializationError(str(e)) from e

            model_dimension = model.get_sentence_embedding_dimension()
            if model_dimension is not None and model_dimension != self.dimension:
                raise InitializationError(
                    f"model {self.model_name} produces {model_dimension}-dimensional "
                    f"vectors, expected {self.dimension}"
                )

            self._model = model
            logger.info(f"Model loaded on device: {model.device}")

    def is_initialized(self) -> bool:
        """Check whether the model is loaded."""
        with self._lock:
            return self._model is not None

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Generate embeddings for a batch of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in input order

        Raises:
            NotInitializedError: If initialize() has not succeeded
            EmbeddingError: If the model fails or returns the wrong number of vectors
        """
        texts = list(texts)
        with self._lock:
            if self._model is None:
                raise NotInitializedError("Embedding model")
            if not texts:
                return []

            try:
                vectors = self._encode(self._model, texts)
            except Exception as e:
                logger.error(f"Embedding generation failed for {len(texts)} texts: {e}")
                raise EmbeddingError(str(e)) from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"model returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors

    @retry_on_failure(max_attempts=3, delay=0.5, exceptions=(RuntimeError, OSError))
    def _encode(self, model: SentenceTransformer, texts: list[str]) -> list[list[float]]:
        embeddings = model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return [emb.tolist() for emb in embeddings]

    def embed_one(self, text: str) -> list[float]:
        """
        Generate the embedding for a single text.

        Raises:
            NotInitializedError: If initialize() has not succeeded
            EmbeddingError: If no vector is returned
        """
        vectors = self.embed([text])
        if not vectors:
            raise EmbeddingError("No embedding returned")
        return vectors[0]

    def embed_with_progress(
        self,
        texts: Sequence[str],
        batch_size: int,
        callback: Optional[ProgressCallback] = None,
    ) -> list[list[float]]:
        """
        Embed texts in fixed-size batches, reporting progress after each batch.

        Batching does not change the vectors; the result equals embed(texts).

        Args:
            texts: Texts to embed
            batch_size: Number of texts per batch (the last batch may be smaller)
            callback: Called as callback(processed_count, total_count)

        Returns:
            One vector per input text, in input order
        """
        if not self.is_initialized():
            raise NotInitializedError("Embedding model")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        texts = list(texts)
        total = len(texts)
        vectors: list[list[float]] = []

        for offset in range(0, total, batch_size):
            vectors.extend(self.embed(texts[offset:offset + batch_size]))
            if callback:
                callback(min(offset + batch_size, total), total)

        return vectors

    def __repr__(self) -> str:
        """String representation."""
        loaded = "loaded" if self._model is not None else "not loaded"
        return f"Embedder(model={self.model_name}, {loaded})"
