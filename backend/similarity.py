"""Cosine similarity and top-N ranking over a resident collection.

Exhaustive scan: every stored vector is compared with the query.  Fine
for collections in the low thousands; no index structure is kept.

Zero-magnitude vectors have no direction, so their similarity to
anything is defined as 0.0 rather than NaN.

Ties keep insertion order (stable sort), which makes search results
deterministic for identical scores.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero magnitude."""
    a = np.asarray(a, dtype="float32")
    b = np.asarray(b, dtype="float32")
    if a.shape != b.shape:
        raise ValueError(f"dimension mismatch: {a.shape} vs {b.shape}")
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b)) / norm


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Vectorised cosine of *query* against every row of *matrix*.

    Rows (or a query) with zero magnitude score 0.0.
    """
    query = np.asarray(query, dtype="float32")
    if matrix.shape[0] == 0:
        return np.zeros(0, dtype="float32")
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise ValueError(f"dimension mismatch: query {query.shape} vs matrix {matrix.shape}")

    dots = matrix @ query
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    sims = np.zeros_like(dots)
    nonzero = norms > 0
    sims[nonzero] = dots[nonzero] / norms[nonzero]
    return sims


def top_indices(scores: Sequence[float] | np.ndarray, n: int) -> list[int]:
    """Indices of the *n* highest scores, best first, ties by index."""
    if n <= 0:
        return []
    scores = np.asarray(scores, dtype="float64")
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:n]]


def stack(vectors: Sequence[np.ndarray]) -> np.ndarray:
    """Stack equally-sized vectors into a float32 matrix (0 rows allowed)."""
    if not vectors:
        return np.zeros((0, 0), dtype="float32")
    return np.vstack(vectors).astype("float32", copy=False)
