"""Tests for application configuration."""

import json
from pathlib import Path

import pytest

from trackmybrain.config import (
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_MODEL,
    DEFAULT_VISION_MODEL,
    AppConfig,
    config_from_env,
    load_config,
    save_config,
)

ENV_VARS = [
    "TRACKMYBRAIN_DATA_DIR",
    "TRACKMYBRAIN_LOG_DIR",
    "TRACKMYBRAIN_TOP_K",
    "TRACKMYBRAIN_MAX_CONTEXT_CHARS",
    "TRACKMYBRAIN_RECENT_LIMIT",
    "GROQ_MODEL",
    "GROQ_EMBEDDING_MODEL",
    "GROQ_VISION_MODEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestAppConfig:
    """Tests for AppConfig defaults and validation."""

    def test_defaults(self):
        config = AppConfig()
        assert config.data_dir == Path.home() / ".trackmybrain" / "data"
        assert config.log_dir == Path.home() / ".trackmybrain" / "logs"
        assert config.model == DEFAULT_MODEL
        assert config.embedding_model == DEFAULT_EMBEDDING_MODEL
        assert config.vision_model == "eyes-model"
        assert config.top_k == 5
        assert config.max_context_chars is None
        assert config.recent_limit == 20

    def test_string_dir_becomes_path(self, tmp_path: Path):
        config = AppConfig(data_dir=str(tmp_path))
        assert config.data_dir == tmp_path

    @pytest.mark.parametrize(
        "kwargs",
        [{"top_k": 0}, {"max_context_chars": 0}, {"recent_limit": -1}],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            AppConfig(**kwargs)


class TestLoadConfig:
    """Tests for reading the JSON config file."""

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        assert load_config(tmp_path / "missing.json") == AppConfig()

    def test_invalid_json_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{broken")
        assert load_config(path) == AppConfig()

    def test_non_object_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        assert load_config(path) == AppConfig()

    def test_reads_values(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "data_dir": str(tmp_path / "data"),
            "model": "small-model",
            "vision_model": "eyes-model",
            "retrieval": {"top_k": 3, "max_context_chars": 2000},
            "recent_limit": 30,
        }))

        config = load_config(path)

        assert config.data_dir == tmp_path / "data"
        assert config.model == "small-model"
        assert config.embedding_model == DEFAULT_EMBEDDING_MODEL
        assert config.top_k == 3
        assert config.max_context_chars == 2000
        assert config.recent_limit == 30

    def test_bad_values_fall_back(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "retrieval": {"top_k": 0, "max_context_chars": "lots"},
            "recent_limit": -5,
        }))

        config = load_config(path)

        assert config.top_k == 5
        assert config.max_context_chars is None
        assert config.recent_limit == 20

    def test_save_then_load(self, tmp_path: Path):
        path = tmp_path / "nested" / "config.json"
        config = AppConfig(
            data_dir=tmp_path / "data",
            log_dir=tmp_path / "logs",
            model="m",
            embedding_model="e",
            vision_model="v",
            top_k=7,
            max_context_chars=999,
            recent_limit=3,
        )

        save_config(config, path)

        assert load_config(path) == config


class TestConfigFromEnv:
    """Tests for environment overrides."""

    def test_no_env_keeps_base(self):
        base = AppConfig(top_k=3)
        assert config_from_env(base) == base

    def test_env_overrides(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("TRACKMYBRAIN_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("GROQ_MODEL", "env-model")
        monkeypatch.setenv("GROQ_EMBEDDING_MODEL", "env-embed")
        monkeypatch.setenv("GROQ_VISION_MODEL", "env-vision")
        monkeypatch.setenv("TRACKMYBRAIN_TOP_K", "8")
        monkeypatch.setenv("TRACKMYBRAIN_MAX_CONTEXT_CHARS", "1500")
        monkeypatch.setenv("TRACKMYBRAIN_RECENT_LIMIT", "4")

        config = config_from_env()

        assert config.data_dir == tmp_path
        assert config.model == "env-model"
        assert config.embedding_model == "env-embed"
        assert config.vision_model == "env-vision"
        assert config.top_k == 8
        assert config.max_context_chars == 1500
        assert config.recent_limit == 4

    def test_invalid_env_keeps_default(self, monkeypatch, caplog):
        monkeypatch.setenv("TRACKMYBRAIN_TOP_K", "many")
        monkeypatch.setenv("TRACKMYBRAIN_RECENT_LIMIT", "-2")

        with caplog.at_level("WARNING", logger="trackmybrain.config"):
            config = config_from_env(AppConfig(top_k=4))

        assert config.top_k == 4
        assert config.recent_limit == 20
        assert "TRACKMYBRAIN_TOP_K" in caplog.text

    def test_zero_top_k_keeps_default(self, monkeypatch):
        monkeypatch.setenv("TRACKMYBRAIN_TOP_K", "0")
        assert config_from_env().top_k == 5

    def test_zero_max_context_chars_keeps_base(self, monkeypatch, caplog):
        """A cap below 1 is ignored with a warning instead of removing the cap."""
        monkeypatch.setenv("TRACKMYBRAIN_MAX_CONTEXT_CHARS", "0")

        with caplog.at_level("WARNING", logger="trackmybrain.config"):
            config = config_from_env(AppConfig(max_context_chars=4000))

        assert config.max_context_chars == 4000
        assert "TRACKMYBRAIN_MAX_CONTEXT_CHARS" in caplog.text

    def test_negative_max_context_chars_keeps_no_cap(self, monkeypatch):
        monkeypatch.setenv("TRACKMYBRAIN_MAX_CONTEXT_CHARS", "-10")
        assert config_from_env().max_context_chars is None

    def test_default_vision_model(self):
        assert config_from_env().vision_model == DEFAULT_VISION_MODEL
