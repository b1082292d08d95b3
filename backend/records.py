"""Stored record types: one DocumentRecord per embedded chunk.

Records are immutable once built: the dataclass is frozen and the
embedding array is flagged read-only.  Shape problems (empty, nested,
non-finite vectors) are rejected at construction so a bad vector never
reaches the ranker or the disk.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np


def make_document_id(domain: str, chunk_index: int) -> str:
    return f"{domain}_doc_{chunk_index}"


def source_name_for(domain: str) -> str:
    return f"{domain}_guide.pdf"


def as_vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Coerce *values* into a read-only 1-D float32 vector.

    Raises ValueError for empty, multi-dimensional or non-finite input.
    """
    vec = np.array(values, dtype="float32")
    if vec.ndim != 1:
        raise ValueError(f"embedding must be one-dimensional, got shape {vec.shape}")
    if vec.size == 0:
        raise ValueError("embedding must not be empty")
    if not np.all(np.isfinite(vec)):
        raise ValueError("embedding contains NaN or infinite values")
    vec.setflags(write=False)
    return vec


@dataclass(frozen=True)
class DocumentMetadata:
    chunk_index: int
    source_name: str
    domain: str

    def to_dict(self) -> dict[str, Any]:
        """Persisted key names."""
        return {
            "chunk_id": self.chunk_index,
            "source": self.source_name,
            "documentType": self.domain,
        }


@dataclass(frozen=True, eq=False)
class DocumentRecord:
    """A chunk of text with its embedding and provenance."""

    id: str
    text: str
    embedding: np.ndarray
    metadata: DocumentMetadata

    def __post_init__(self):
        # frozen → bypass __setattr__ to store the normalized vector
        object.__setattr__(self, "embedding", as_vector(self.embedding))

    @classmethod
    def from_chunk(cls, domain: str, chunk_index: int, text: str, embedding) -> DocumentRecord:
        """Build the record for chunk *chunk_index* of a training run."""
        return cls(
            id=make_document_id(domain, chunk_index),
            text=text,
            embedding=embedding,
            metadata=DocumentMetadata(
                chunk_index=chunk_index,
                source_name=source_name_for(domain),
                domain=domain,
            ),
        )

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "embedding": self.embedding.tolist(),
            "metadata": self.metadata.to_dict(),
        }
