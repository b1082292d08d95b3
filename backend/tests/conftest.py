"""Pytest conftest — backend/ on sys.path plus a fake embedding provider."""

import re
import sys
import threading
import time
from pathlib import Path

import numpy as np
import pytest

# Add backend/ to sys.path so `import vector_store`, `from records import ...` etc. work
_backend_dir = str(Path(__file__).resolve().parent.parent)
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)


class FakeProvider:
    """Deterministic bag-of-words embedder.

    Each distinct word gets its own axis (in order of first sight), so two
    texts are similar exactly when they share words.  Vectors are
    unit-normalized like the real model's.
    """

    def __init__(self, dimension: int = 32):
        self.dimension = dimension
        self.vocab: dict[str, int] = {}
        self.load_calls = 0
        self.embed_calls: list[str] = []
        self.fail_on: set[str] = set()
        self.delay = 0.0
        self._lock = threading.Lock()

    def load(self) -> None:
        self.load_calls += 1

    def embed(self, text: str) -> np.ndarray:
        if self.delay:
            time.sleep(self.delay)
        self.embed_calls.append(text)
        if text in self.fail_on:
            raise RuntimeError(f"model crashed on {text!r}")
        vec = np.zeros(self.dimension, dtype="float32")
        for word in re.findall(r"[a-z]+", text.lower()):
            with self._lock:
                idx = self.vocab.setdefault(word, len(self.vocab) % self.dimension)
            vec[idx] += 1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm else vec


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(provider, data_dir):
    from vector_store import VectorStore

    return VectorStore(provider, data_dir, ("erp", "hrms"), dimension=provider.dimension)
