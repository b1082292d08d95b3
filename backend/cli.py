"""Vector store CLI — init, train, search, status, and dev server.

Usage:
    python cli.py init                       Create data/ dir and .env from template
    python cli.py train DOMAIN FILE          Embed FILE's chunks into DOMAIN (replaces it)
    python cli.py search DOMAIN "QUERY"      Print the closest chunks
    python cli.py status                     Show which domains are trained
    python cli.py dev                        Start uvicorn with hot-reload

FILE is a UTF-8 text file; chunks are separated by blank lines.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import shutil
import sys
from pathlib import Path

from exceptions import VectorStoreError

logger = logging.getLogger("rag-store")


def _configure_logging():
    from settings import settings

    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(message)s")


def _store():
    from vector_store import create_store

    return create_store()


def read_chunks(path: Path) -> list[str]:
    """Split a text file into blank-line separated chunks."""
    text = path.read_text(encoding="utf-8")
    return [c.strip() for c in re.split(r"\n\s*\n", text) if c.strip()]


def cmd_init(args):
    """Scaffold project: create data/ dir, copy .env.example → .env."""
    from settings import settings

    root = Path(__file__).resolve().parent.parent

    data_dir = Path(settings.DATA_DIR)
    if not data_dir.exists():
        data_dir.mkdir(parents=True)
        logger.info(f"[+] Created {data_dir}")
    else:
        logger.info(f"[=] {data_dir} already exists")

    env_example = root / ".env.example"
    env_file = root / ".env"
    if not env_file.exists() and env_example.exists():
        shutil.copy(env_example, env_file)
        logger.info("[+] Created .env from .env.example")
    elif env_file.exists():
        logger.info("[=] .env already exists")
    else:
        logger.warning("[!] No .env.example found")

    logger.info("")
    logger.info("Next steps:")
    logger.info("  1. Export each guide to a text file (one chunk per paragraph)")
    logger.info("  2. Run: python cli.py train erp erp_guide.txt")
    logger.info("  3. Run: python cli.py search erp \"your question\"")


def cmd_train(args):
    """Read FILE, chunk it, and replace DOMAIN's collection."""
    path = Path(args.file)
    if not path.is_file():
        logger.error(f"File not found: {path}")
        sys.exit(1)

    try:
        chunks = read_chunks(path)
    except UnicodeDecodeError:
        logger.error(f"{path} is not valid UTF-8 text")
        sys.exit(1)
    if not chunks:
        logger.error(f"No text found in {path}")
        sys.exit(1)

    store = _store()
    logger.info(f"Training {args.domain} on {len(chunks)} chunk(s) from {path.name}")
    try:
        count = asyncio.run(store.add_documents(chunks, args.domain))
    except VectorStoreError as e:
        logger.error(f"Training failed: {e}")
        sys.exit(1)
    logger.info(f"Done — {count} chunks stored in {args.domain}")


def cmd_search(args):
    """Print the top-N chunks for a query."""
    store = _store()
    try:
        results = asyncio.run(store.search_with_scores(args.query, args.domain, args.n))
    except VectorStoreError as e:
        logger.error(f"Search failed: {e}")
        sys.exit(1)

    if not results:
        print("No results.")
        return
    for i, (text, sim) in enumerate(results, 1):
        header = f"{i}. ({sim:.3f})" if args.scores else f"{i}."
        print(header)
        _print_wrapped(text)
        print()


def cmd_status(args):
    """One line per domain: trained on disk / resident in memory."""
    store = _store()
    available = set(store.get_available_documents())
    for domain in store.domains:
        mark = "trained" if domain in available else "untrained"
        print(f"  {domain:<12} {mark:<10} {store.path_for(domain)}")


def cmd_dev(args):
    """Start uvicorn development server with hot-reload."""
    import subprocess

    from settings import settings

    host = args.host or settings.HOST
    port = args.port or settings.PORT

    backend_dir = Path(__file__).resolve().parent
    logger.info(f"Starting dev server at http://{host}:{port}")
    subprocess.run(
        [
            sys.executable, "-m", "uvicorn",
            "main:app",
            "--host", host,
            "--port", str(port),
            "--reload",
        ],
        cwd=str(backend_dir),
        check=False,
    )


def _print_wrapped(text: str, indent: int = 3, width: int = 72):
    """Print text wrapped to *width* with a leading indent."""
    prefix = " " * indent
    words = text.split()
    line = ""
    for w in words:
        if line and len(line) + len(w) + 1 > width:
            print(f"{prefix}{line}")
            line = w
        else:
            line = f"{line} {w}" if line else w
    if line:
        print(f"{prefix}{line}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-store",
        description="Domain vector store — CLI tools",
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    sub.add_parser("init", help="Initialize data dir and .env")

    p_train = sub.add_parser("train", help="Embed a text file into a domain (replaces it)")
    p_train.add_argument("domain", help="Domain key, e.g. erp or hrms")
    p_train.add_argument("file", help="UTF-8 text file, chunks separated by blank lines")

    p_search = sub.add_parser("search", help="Semantic search within a domain")
    p_search.add_argument("domain", help="Domain key")
    p_search.add_argument("query", help="Natural-language query")
    p_search.add_argument("-n", type=int, default=None, help="Max results (default: SEARCH_TOP_N)")
    p_search.add_argument("--scores", action="store_true", help="Show similarity scores")

    sub.add_parser("status", help="Show trained domains")

    p_dev = sub.add_parser("dev", help="Start development server")
    p_dev.add_argument("--host", help="Bind host")
    p_dev.add_argument("--port", type=int, help="Bind port")

    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging()

    if args.command == "search" and args.n is None:
        from settings import settings
        args.n = settings.SEARCH_TOP_N

    if args.command == "init":
        cmd_init(args)
    elif args.command == "train":
        cmd_train(args)
    elif args.command == "search":
        cmd_search(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "dev":
        cmd_dev(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
