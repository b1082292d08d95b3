"""Error hierarchy for the domain vector store.

Every error carries the domain and the operation that failed so callers
can decide whether to retry, re-train, or give up.  Nothing here is fatal
to the process; failures are scoped to the call that raised them.
"""

from __future__ import annotations

from pathlib import Path


class VectorStoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, domain: str | None = None, operation: str | None = None):
        super().__init__(message)
        self.domain = domain
        self.operation = operation


class InvalidDomain(VectorStoreError):
    """The domain key is not registered with the store.

    Raised before any side effect happens.
    """

    def __init__(self, domain: str, operation: str | None = None):
        super().__init__(f"Invalid document type: {domain}", domain=domain, operation=operation)


class EmbeddingFailure(VectorStoreError):
    """The embedding provider raised, timed out, or returned a bad vector.

    The underlying exception, if any, is chained as ``__cause__``.
    """


class UntrainedDomain(VectorStoreError):
    """Search on a domain with no resident and no persisted documents."""

    def __init__(self, domain: str, operation: str = "search"):
        super().__init__(
            f"No documents in {domain.upper()} vector store. Please train first.",
            domain=domain,
            operation=operation,
        )


class CorruptStore(VectorStoreError):
    """The persisted file exists but does not hold a valid collection."""

    def __init__(self, message: str, domain: str | None, path: Path | str, operation: str = "load"):
        super().__init__(f"{message} ({path})", domain=domain, operation=operation)
        self.path = Path(path)


class PersistenceError(VectorStoreError):
    """The operating system refused to read or write the store file."""

    def __init__(self, message: str, domain: str | None, path: Path | str, operation: str):
        super().__init__(f"{message} ({path})", domain=domain, operation=operation)
        self.path = Path(path)
