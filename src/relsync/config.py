from __future__ import annotations

import os
from dataclasses import dataclass

"""
Writer configuration.

Values come from the environment (a .env file is loaded by the package
__init__), and a WriterConfig can always be built by hand and passed to
the writer instead. Per-call arguments on CrudWriter override these.

  RELSYNC_USE_TRANSACTIONS   wrap each write in one transaction (default off)
  RELSYNC_STRICT             raise on malformed submissions (default off)
  RELSYNC_MAX_DEPTH          nested relation depth limit (default 8)
"""

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class WriterConfig:
    use_transactions: bool = False
    strict: bool = False
    max_depth: int = 8


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_config() -> WriterConfig:
    """Build a WriterConfig from RELSYNC_* environment variables."""
    return WriterConfig(
        use_transactions=_env_flag("RELSYNC_USE_TRANSACTIONS", False),
        strict=_env_flag("RELSYNC_STRICT", False),
        max_depth=_env_int("RELSYNC_MAX_DEPTH", 8),
    )
