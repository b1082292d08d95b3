"""Centralized configuration — every tunable in one place.

Environment variables override defaults. Import anywhere:

    from settings import settings

All values are frozen at startup. To change, update .env and restart.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (one level above backend/)
_project_root = Path(__file__).resolve().parent.parent
load_dotenv(_project_root / ".env")


# ── Helpers ───────────────────────────────────────────────────────────────

def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int = 0) -> int:
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float = 0.0) -> float:
    return float(os.getenv(key, str(default)))


def _env_bool(key: str, default: bool = False) -> bool:
    return os.getenv(key, str(default)).lower() in ("true", "1", "yes")


# ── Settings ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    """Application settings.  Immutable after creation."""

    # ── Embeddings ────────────────────────────────────────────────
    # all-MiniLM-L6-v2: 384-dim, mean pooling, runs locally on CPU.
    # Changing the model means re-training every domain: stored vectors
    # from another model have a different dimension or geometry.
    EMBEDDING_MODEL: str = _env("EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
    # 0 → accept whatever dimension the first stored vector has.
    EMBEDDING_DIMENSION: int = _env_int("EMBEDDING_DIMENSION", 384)
    # Seconds per embed call.  0 disables the timeout.
    EMBEDDING_TIMEOUT: float = _env_float("EMBEDDING_TIMEOUT", 30.0)
    # Load the model during app startup instead of on the first request.
    PRELOAD_MODEL: bool = _env_bool("PRELOAD_MODEL", True)

    # ── Store ─────────────────────────────────────────────────────
    DATA_DIR: str = _env("DATA_DIR", str(_project_root / "data"))
    # Comma-separated, fixed for the process lifetime.
    DOMAINS: str = _env("DOMAINS", "erp,hrms")
    SEARCH_TOP_N: int = _env_int("SEARCH_TOP_N", 3)

    # ── Server ────────────────────────────────────────────────────
    HOST: str = _env("HOST", "0.0.0.0")
    PORT: int = _env_int("PORT", 8000)
    LOG_LEVEL: str = _env("LOG_LEVEL", "INFO")

    @property
    def domain_keys(self) -> tuple[str, ...]:
        """DOMAINS parsed into an ordered, de-duplicated tuple."""
        keys: list[str] = []
        for raw in self.DOMAINS.split(","):
            key = raw.strip()
            if key and key not in keys:
                keys.append(key)
        return tuple(keys)


settings = Settings()
