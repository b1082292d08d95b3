"""Local embedding model — no API key required.

Default model: sentence-transformers/all-MiniLM-L6-v2 (384-dim, mean
pooling).  Swap via EMBEDDING_MODEL env var.  Vectors come back
unit-normalized as float32.

The model is loaded lazily on first use (~1-2s warm-up, then
near-instant).  Loading is single-flight: concurrent first callers wait
on one shared future and all see the same model or the same error.
A failed load clears the gate, so a later call can try again.

One provider is built by the composition root (see
``vector_store.create_store``) and handed to the store; tests pass a
fake that implements the same two methods.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Protocol

import numpy as np
from sentence_transformers import SentenceTransformer

from exceptions import EmbeddingFailure

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length, normalized vector."""

    def load(self) -> None:
        ...

    def embed(self, text: str) -> np.ndarray:
        ...


class SentenceTransformerProvider:
    """EmbeddingProvider backed by a local SentenceTransformer model."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._lock = threading.Lock()
        self._future: Future | None = None

    def _get_model(self) -> SentenceTransformer:
        with self._lock:
            future = self._future
            owner = future is None
            if owner:
                future = self._future = Future()

        if owner:
            logger.info(f"Loading embedding model {self.model_name}...")
            try:
                model = SentenceTransformer(self.model_name)
            except BaseException as e:
                # waiters must never block on a gate whose owner died
                failure = EmbeddingFailure(f"Cannot load embedding model {self.model_name}: {e}", operation="load")
                failure.__cause__ = e
                with self._lock:
                    self._future = None
                future.set_exception(failure)
                if not isinstance(e, Exception):
                    raise
            else:
                future.set_result(model)
                logger.info(f"Embedding model ready ({self.model_name})")

        try:
            return future.result()
        except EmbeddingFailure as e:
            # each waiter raises its own copy chained to the same cause
            raise EmbeddingFailure(str(e), operation="load") from e.__cause__

    def load(self) -> None:
        """Force model initialization (idempotent)."""
        self._get_model()

    @property
    def dimension(self) -> int:
        return int(self._get_model().get_sentence_embedding_dimension())

    def embed(self, text: str) -> np.ndarray:
        """Encode *text* into a unit-normalized float32 vector."""
        model = self._get_model()
        try:
            vec = model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingFailure(f"Embedding error: {e}", operation="embed") from e
        return np.asarray(vec, dtype="float32")
