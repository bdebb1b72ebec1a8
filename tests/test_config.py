# tests/test_config.py
from __future__ import annotations

import pytest

from relsync.config import WriterConfig, load_config


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("RELSYNC_USE_TRANSACTIONS", "RELSYNC_STRICT", "RELSYNC_MAX_DEPTH"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    assert load_config() == WriterConfig(use_transactions=False, strict=False, max_depth=8)


def test_values_from_env(clean_env):
    clean_env.setenv("RELSYNC_USE_TRANSACTIONS", "yes")
    clean_env.setenv("RELSYNC_STRICT", "TRUE")
    clean_env.setenv("RELSYNC_MAX_DEPTH", "3")

    assert load_config() == WriterConfig(use_transactions=True, strict=True, max_depth=3)


def test_blank_and_falsy_values(clean_env):
    clean_env.setenv("RELSYNC_USE_TRANSACTIONS", "0")
    clean_env.setenv("RELSYNC_STRICT", "  ")

    cfg = load_config()
    assert cfg.use_transactions is False
    assert cfg.strict is False


def test_bad_depth_raises(clean_env):
    clean_env.setenv("RELSYNC_MAX_DEPTH", "deep")

    with pytest.raises(ValueError, match="RELSYNC_MAX_DEPTH"):
        load_config()
