"""Tests for configuration loading."""

import logging

import pytest
from pathlib import Path

from loreweave.config import load_config, setup_logging

_ENV_KEYS = [
    "LOREWEAVE_HISTORY_WINDOW",
    "LOREWEAVE_CONTEXT_BUDGET",
    "LOREWEAVE_SEED",
    "LOREWEAVE_CACHE_SIZE",
    "LOREWEAVE_CACHE_PATH",
    "LOREWEAVE_LIBRARY_DIR",
    "LOREWEAVE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self):
        config = load_config()
        assert config.pipeline.history_window == 20
        assert config.pipeline.context_budget == 1001
        assert config.pipeline.score_cap == 1000.0
        assert config.pipeline.seed is None
        assert config.cache.storage_size == 10
        assert config.cache.path is None
        assert config.library_dir.name == "library"
        assert config.log_level == "INFO"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LOREWEAVE_HISTORY_WINDOW", "5")
        monkeypatch.setenv("LOREWEAVE_SEED", "42")
        monkeypatch.setenv("LOREWEAVE_CACHE_PATH", "/tmp/loreweave-cache.json")

        config = load_config()
        assert config.pipeline.history_window == 5
        assert config.pipeline.seed == 42
        assert config.cache.path == Path("/tmp/loreweave-cache.json")

    def test_toml_file(self, tmp_path: Path):
        toml_path = tmp_path / "custom.toml"
        toml_path.write_text("""
library_dir = "lore"
log_level = "DEBUG"

[pipeline]
history_window = 8
context_budget = 500
score_cap = 50.0
seed = 7

[cache]
storage_size = 3
""")
        config = load_config(toml_path)
        assert config.pipeline.history_window == 8
        assert config.pipeline.context_budget == 500
        assert config.pipeline.score_cap == 50.0
        assert config.pipeline.seed == 7
        assert config.cache.storage_size == 3
        assert config.library_dir == Path("lore")
        assert config.log_level == "DEBUG"

    def test_toml_in_cwd_is_found(self, tmp_path: Path):
        (tmp_path / "loreweave.toml").write_text("""
[pipeline]
context_budget = 300
""")
        config = load_config()
        assert config.pipeline.context_budget == 300

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("LOREWEAVE_CONTEXT_BUDGET", "200")

        toml_path = tmp_path / "loreweave.toml"
        toml_path.write_text("""
[pipeline]
context_budget = 900
""")
        config = load_config(toml_path)
        assert config.pipeline.context_budget == 200  # env wins


class TestSetupLogging:
    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.update(kw))
        setup_logging("chatty")
        assert calls["level"] == logging.INFO

    def test_level_name_is_case_insensitive(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.update(kw))
        setup_logging("debug")
        assert calls["level"] == logging.DEBUG
