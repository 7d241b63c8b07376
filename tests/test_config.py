"""Tests for settings defaults, env overrides, validation and repr redaction."""

import logging
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from persona_memory.config import LOG_FORMAT, MemorySettings, configure_logging, get_settings, load_env


def test_defaults():
    with patch.dict(os.environ, {}, clear=True):
        settings = MemorySettings()
    assert settings.SHORT_TERM_LIMIT == 10
    assert settings.MID_TERM_LIMIT == 20
    assert settings.LONG_TERM_LIMIT == 100
    assert settings.MERGE_THRESHOLD == 0.85
    assert settings.RELEVANCE_FLOOR == 0.5
    assert settings.TOP_K == 3
    assert settings.CAPACITY_GRACE_SLOTS == 15
    assert settings.MAINTENANCE_INTERVAL == 600.0
    assert settings.EMBEDDING_BACKEND == "hash"
    assert settings.OPENROUTER_API_KEY is None


def test_env_overrides_use_prefix():
    with patch.dict(os.environ, {
        "MEMORY_MID_TERM_LIMIT": "5",
        "MEMORY_MERGE_THRESHOLD": "0.9",
        "MID_TERM_LIMIT": "99",
    }, clear=True):
        settings = MemorySettings()
    assert settings.MID_TERM_LIMIT == 5
    assert settings.MERGE_THRESHOLD == 0.9


@pytest.mark.parametrize("env", [
    {"MEMORY_SHORT_TERM_LIMIT": "0"},
    {"MEMORY_MERGE_THRESHOLD": "1.5"},
    {"MEMORY_MAINTENANCE_INTERVAL": "0"},
    {"MEMORY_EMBEDDING_BACKEND": "word2vec"},
    {"MEMORY_LOG_LEVEL": "chatty"},
])
def test_invalid_values_raise(env):
    with patch.dict(os.environ, env, clear=True):
        with pytest.raises(ValidationError):
            MemorySettings()


def test_backend_and_log_level_are_normalised():
    with patch.dict(os.environ, {
        "MEMORY_EMBEDDING_BACKEND": " Ollama ",
        "MEMORY_LOG_LEVEL": "debug",
    }, clear=True):
        settings = MemorySettings()
    assert settings.EMBEDDING_BACKEND == "ollama"
    assert settings.LOG_LEVEL == "DEBUG"


def test_sensitive_fields_redacted_in_repr():
    with patch.dict(os.environ, {"MEMORY_OPENROUTER_API_KEY": "sk-secret-key"}, clear=True):
        r = repr(MemorySettings())
    assert "sk-secret-key" not in r
    assert "OPENROUTER_API_KEY='***'" in r


def test_unset_api_key_shows_none_in_repr():
    with patch.dict(os.environ, {}, clear=True):
        r = repr(MemorySettings())
    assert "OPENROUTER_API_KEY=None" in r


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        with patch.dict(os.environ, {}, clear=True):
            assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()


def test_load_env_reads_dotenv(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("MEMORY_TOP_K=7\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    with patch.dict(os.environ, {}, clear=True):
        assert load_env() is True
        assert MemorySettings().TOP_K == 7


def test_load_env_without_files(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch.dict(os.environ, {}, clear=True):
        assert load_env() is False


def test_configure_logging_uses_settings_level():
    with patch.dict(os.environ, {"MEMORY_LOG_LEVEL": "warning"}, clear=True):
        settings = MemorySettings()
    with patch("persona_memory.config.logging.basicConfig") as basic_config:
        configure_logging(settings)
    kwargs = basic_config.call_args.kwargs
    assert kwargs["level"] == logging.WARNING
    assert kwargs["format"] == LOG_FORMAT
