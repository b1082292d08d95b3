"""JSON persistence, one file per domain.

Layout: ``<data_dir>/vector_store_<domain>.json``, a pretty-printed array
of records.  The file's existence is what marks a domain as trained.

Writes never leave a half-written file behind: the collection is written
to a temp file in the same directory, fsynced, then renamed over the
target.  Loads validate every record and raise CorruptStore on anything
that does not fit the expected shape.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Sequence

from exceptions import CorruptStore, PersistenceError
from records import DocumentMetadata, DocumentRecord

logger = logging.getLogger(__name__)


def store_path(data_dir: Path | str, domain: str) -> Path:
    return Path(data_dir) / f"vector_store_{domain}.json"


def save_documents(path: Path, domain: str, documents: Sequence[DocumentRecord]) -> None:
    """Atomically replace *path* with the serialized *documents*."""
    payload = [doc.to_dict() for doc in documents]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise PersistenceError(f"Cannot write {domain} store: {e}", domain, path, "save") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        _discard(tmp_path)
        raise PersistenceError(f"Cannot write {domain} store: {e}", domain, path, "save") from e
    except BaseException:
        _discard(tmp_path)
        raise

    logger.debug(f"Wrote {len(payload)} records to {path}")


def _discard(tmp_path: str) -> None:
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass


def load_documents(path: Path, domain: str, dimension: int | None = None) -> list[DocumentRecord] | None:
    """Read and validate the collection at *path*.

    Returns None when the file does not exist.  *dimension*, when given,
    is the vector size every record must have.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as e:
        raise CorruptStore(f"{domain} store is not valid UTF-8", domain, path) from e
    except OSError as e:
        raise PersistenceError(f"Cannot read {domain} store: {e}", domain, path, "load") from e

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        reason = f"{e.msg} at line {e.lineno}" if isinstance(e, json.JSONDecodeError) else "nesting too deep"
        raise CorruptStore(f"{domain} store is not valid JSON: {reason}", domain, path) from e

    if not isinstance(data, list):
        raise CorruptStore(f"{domain} store must hold a JSON array, got {type(data).__name__}", domain, path)

    documents = [_parse_record(entry, i, path, domain) for i, entry in enumerate(data)]

    expected = dimension or (documents[0].dimension if documents else None)
    for doc in documents:
        if doc.dimension != expected:
            raise CorruptStore(
                f"{domain} record {doc.id} has {doc.dimension}-dim embedding, expected {expected}",
                domain,
                path,
            )
    return documents


def _parse_record(entry: Any, position: int, path: Path, domain: str) -> DocumentRecord:
    def bad(reason: str) -> CorruptStore:
        return CorruptStore(f"{domain} record #{position}: {reason}", domain, path)

    if not isinstance(entry, dict):
        raise bad("not an object")
    doc_id, text, embedding, meta = (entry.get(k) for k in ("id", "text", "embedding", "metadata"))
    if not isinstance(doc_id, str) or not isinstance(text, str):
        raise bad("'id' and 'text' must be strings")
    if not isinstance(embedding, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in embedding
    ):
        raise bad("'embedding' must be an array of numbers")
    if not isinstance(meta, dict):
        raise bad("'metadata' must be an object")

    chunk_id, source, doc_type = meta.get("chunk_id"), meta.get("source"), meta.get("documentType")
    if not isinstance(chunk_id, int) or isinstance(chunk_id, bool) or not isinstance(source, str):
        raise bad("metadata needs integer 'chunk_id' and string 'source'")
    if doc_type != domain:
        raise bad(f"documentType {doc_type!r} does not match domain {domain!r}")

    try:
        return DocumentRecord(
            id=doc_id,
            text=text,
            embedding=embedding,
            metadata=DocumentMetadata(chunk_index=chunk_id, source_name=source, domain=doc_type),
        )
    except (ValueError, OverflowError) as e:
        raise bad(str(e)) from e
