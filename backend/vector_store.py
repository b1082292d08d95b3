"""Document vector store — one JSON-persisted collection per domain.

The set of domains is fixed when the store is built (default: erp, hrms).
Each domain keeps its records resident in memory after the first load
and is searched by exhaustive cosine similarity (see similarity.py).

Lifecycle of a domain:
  - empty at construction
  - replaced wholesale by ``add_documents`` (never merged)
  - loaded from disk on the first search that finds it empty
  - overwritten on disk only by the next ``add_documents``

Concurrency (asyncio):
  - embedding calls and file I/O run in worker threads
  - ``add_documents`` holds the domain lock for the whole rebuild and
    swaps the finished collection in with a single assignment, so
    readers see the old collection or the new one, never a mix
  - a failed rebuild leaves both the file and the resident collection
    exactly as they were
  - lazy loads take the same lock, so a load can't overwrite a
    collection that a concurrent rebuild just installed
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

import numpy as np

from exceptions import EmbeddingFailure, InvalidDomain, PersistenceError, UntrainedDomain
from persistence import load_documents, save_documents, store_path
from records import DocumentRecord, as_vector
from similarity import cosine_similarities, stack, top_indices

if TYPE_CHECKING:
    from embeddings import EmbeddingProvider
    from settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_DOMAINS = ("erp", "hrms")

# Domain keys end up in file names.
_DOMAIN_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True, eq=False)
class Collection:
    """An immutable snapshot of a domain's records plus their stacked vectors."""

    documents: tuple[DocumentRecord, ...] = ()
    matrix: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype="float32"))

    @classmethod
    def of(cls, documents: Iterable[DocumentRecord]) -> Collection:
        docs = tuple(documents)
        return cls(docs, stack([d.embedding for d in docs]))

    @property
    def dimension(self) -> int | None:
        return self.documents[0].dimension if self.documents else None

    def __len__(self) -> int:
        return len(self.documents)


@dataclass
class DomainStore:
    name: str
    path: Path
    collection: Collection = field(default_factory=Collection)
    _lock: asyncio.Lock | None = field(default=None, repr=False)
    _lock_loop: object = field(default=None, repr=False)

    @property
    def documents(self) -> tuple[DocumentRecord, ...]:
        return self.collection.documents

    @property
    def lock(self) -> asyncio.Lock:
        """The domain lock for the running event loop.

        asyncio locks bind to the first loop that contends for them, so a
        store driven by successive ``asyncio.run`` calls gets a fresh lock
        per loop.  Only one loop may drive the store at a time.
        """
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock


class VectorStore:
    """Per-domain semantic store: ingestion, persistence, lazy loading, search.

    Build one per process (``create_store``) and pass it to whatever needs it.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        data_dir: Path | str,
        domains: Sequence[str] = DEFAULT_DOMAINS,
        dimension: int | None = None,
        embed_timeout: float | None = None,
    ):
        keys = tuple(domains)
        if not keys:
            raise ValueError("At least one domain is required")
        for key in keys:
            if not isinstance(key, str) or not _DOMAIN_KEY.match(key):
                raise ValueError(f"Invalid domain key: {key!r}")
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate domain keys: {keys}")

        self.provider = provider
        self.data_dir = Path(data_dir)
        self.dimension = dimension or None
        self.embed_timeout = embed_timeout or None
        self._stores: dict[str, DomainStore] = {
            key: DomainStore(key, store_path(self.data_dir, key)) for key in keys
        }

    # ── Registry ──────────────────────────────────────────────────

    @property
    def domains(self) -> tuple[str, ...]:
        return tuple(self._stores)

    def _store(self, domain: str, operation: str) -> DomainStore:
        store = self._stores.get(domain)
        if store is None:
            raise InvalidDomain(domain, operation)
        return store

    def path_for(self, domain: str) -> Path:
        return self._store(domain, "path_for").path

    # ── Lifecycle ─────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Create the data directory and preload the embedding model.

        Safe to call more than once; the model loads a single time.
        """
        try:
            await asyncio.to_thread(self.data_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data dir: {e}", None, self.data_dir, "initialize") from e

        logger.info("Loading embedding model...")
        try:
            await asyncio.to_thread(self.provider.load)
        except EmbeddingFailure as e:
            e.operation = "initialize"
            raise
        except Exception as e:
            raise EmbeddingFailure(f"Cannot load embedding model: {e}", operation="initialize") from e
        logger.info("Embedding model ready")

    async def _embed(self, text: str, domain: str, operation: str, expected_dim: int | None) -> np.ndarray:
        """Embed through the provider with timeout and shape checks."""
        call = asyncio.to_thread(self.provider.embed, text)
        try:
            if self.embed_timeout:
                raw = await asyncio.wait_for(call, self.embed_timeout)
            else:
                raw = await call
        except EmbeddingFailure as e:
            e.domain = e.domain or domain
            e.operation = operation
            raise
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Embedding timed out after {self.embed_timeout}s for {domain}; worker thread left running"
            )
            raise EmbeddingFailure(
                f"Embedding timed out after {self.embed_timeout}s", domain=domain, operation=operation
            ) from e
        except Exception as e:
            raise EmbeddingFailure(f"Embedding error: {e}", domain=domain, operation=operation) from e

        try:
            vec = as_vector(raw)
        except ValueError as e:
            raise EmbeddingFailure(f"Provider returned a bad vector: {e}", domain=domain, operation=operation) from e
        if expected_dim is not None and vec.shape[0] != expected_dim:
            raise EmbeddingFailure(
                f"Provider returned {vec.shape[0]}-dim vector, expected {expected_dim}",
                domain=domain,
                operation=operation,
            )
        return vec

    # ── Ingestion ─────────────────────────────────────────────────

    async def add_documents(self, chunks: Sequence[str], domain: str) -> int:
        """Replace *domain*'s collection with embeddings of *chunks*.

        Chunk ``i`` becomes record ``<domain>_doc_<i>``.  The collection is
        written to disk in one atomic write and only then made resident.
        Returns the number of records stored.
        """
        store = self._store(domain, "add_documents")
        chunks = list(chunks)
        for i, chunk in enumerate(chunks):
            if not isinstance(chunk, str):
                raise TypeError(f"Chunk {i} must be str, got {type(chunk).__name__}")

        async with store.lock:
            logger.info(f"Generating embeddings for {domain.upper()}...")
            records: list[DocumentRecord] = []
            expected = self.dimension
            for i, chunk in enumerate(chunks):
                logger.debug(f"Processing chunk {i + 1}/{len(chunks)}...")
                vec = await self._embed(chunk, domain, "add_documents", expected)
                expected = expected or vec.shape[0]
                records.append(DocumentRecord.from_chunk(domain, i, chunk, vec))

            await asyncio.to_thread(save_documents, store.path, domain, records)
            store.collection = Collection.of(records)

        logger.info(f"{len(records)} {domain.upper()} documents stored")
        return len(records)

    # ── Loading ───────────────────────────────────────────────────

    async def _load_into(self, store: DomainStore) -> bool:
        docs = await asyncio.to_thread(load_documents, store.path, store.name, self.dimension)
        if docs is None:
            return False
        store.collection = Collection.of(docs)
        logger.info(f"Loaded {len(docs)} {store.name.upper()} docs")
        return True

    async def load(self, domain: str) -> bool:
        """Reload *domain* from disk, replacing the resident collection.

        Returns False (and leaves memory untouched) if nothing is persisted.
        """
        store = self._store(domain, "load")
        async with store.lock:
            return await self._load_into(store)

    async def _resident(self, store: DomainStore) -> Collection:
        if store.collection.documents:
            return store.collection
        async with store.lock:
            if not store.collection.documents:
                await self._load_into(store)
            return store.collection

    # ── Search ────────────────────────────────────────────────────

    async def search_with_scores(self, query: str, domain: str, top_n: int = 3) -> list[tuple[str, float]]:
        """Same as search() but returns ``(text, similarity)`` pairs."""
        store = self._store(domain, "search")
        collection = await self._resident(store)
        if not collection.documents:
            raise UntrainedDomain(domain)
        if top_n <= 0:
            return []

        query_emb = await self._embed(query, domain, "search", collection.dimension)
        sims = cosine_similarities(query_emb, collection.matrix)
        results = [(collection.documents[i].text, float(sims[i])) for i in top_indices(sims, top_n)]

        logger.info(f"Top similarity: {results[0][1]:.3f}")
        return results

    async def search(self, query: str, domain: str, top_n: int = 3) -> list[str]:
        """Texts of the *top_n* records most similar to *query*, best first.

        Equal scores keep insertion order.
        """
        return [text for text, _ in await self.search_with_scores(query, domain, top_n)]

    # ── Introspection ─────────────────────────────────────────────

    def is_trained(self, domain: str) -> bool:
        """True iff the domain has a persisted file (resident state ignored)."""
        return self._store(domain, "is_trained").path.exists()

    def is_loaded(self, domain: str) -> bool:
        """True iff the domain has records resident in memory."""
        return bool(self._store(domain, "is_loaded").documents)

    def document_count(self, domain: str) -> int:
        """Number of resident records (0 until trained or loaded)."""
        return len(self._store(domain, "document_count").collection)

    def get_available_documents(self) -> list[str]:
        return [key for key in self._stores if self.is_trained(key)]


def create_store(config: Settings | None = None) -> VectorStore:
    """Build the process-wide store from settings with the local model."""
    from embeddings import SentenceTransformerProvider
    from settings import settings

    config = config or settings
    return VectorStore(
        SentenceTransformerProvider(config.EMBEDDING_MODEL),
        config.DATA_DIR,
        config.domain_keys,
        dimension=config.EMBEDDING_DIMENSION,
        embed_timeout=config.EMBEDDING_TIMEOUT,
    )
