"""Tests for TOML-backed engine settings."""

from pathlib import Path

import pytest
import toml

from codecontext import config
from codecontext.config_manager import (
    DEFAULT_ENGINE_CONFIG,
    EngineSettings,
    coerce_setting,
    load_engine_config,
    load_full_config,
    save_engine_config,
)


def test_defaults_without_file():
    assert not config.CONFIG_FILE.exists()
    assert load_full_config() == {}
    assert load_engine_config() == DEFAULT_ENGINE_CONFIG


def test_save_and_load_round_trip():
    assert save_engine_config(max_workers=4, include_patterns=["**/*.ts"])

    values = load_engine_config()
    assert values["max_workers"] == 4
    assert values["include_patterns"] == ["**/*.ts"]
    assert values["cache_dir"] == DEFAULT_ENGINE_CONFIG["cache_dir"]


def test_save_preserves_other_sections():
    config.CONFIG_FILE.write_text('[ui]\ntheme = "dark"\n')

    assert save_engine_config(min_relevance=0.3)

    full = toml.loads(config.CONFIG_FILE.read_text())
    assert full["ui"] == {"theme": "dark"}
    assert full["engine"]["min_relevance"] == 0.3


def test_save_refuses_unknown_keys():
    assert save_engine_config(colour="blue") is False
    assert not config.CONFIG_FILE.exists()


def test_unknown_keys_in_file_are_ignored():
    config.CONFIG_FILE.write_text("[engine]\nmax_workers = 2\nsurprise = 1\n")

    values = load_engine_config()
    assert values["max_workers"] == 2
    assert "surprise" not in values


def test_unreadable_file_falls_back_to_defaults():
    config.CONFIG_FILE.write_text("[engine\nbroken")
    assert load_engine_config() == DEFAULT_ENGINE_CONFIG


def test_explicit_config_file(temp_dir: Path):
    path = temp_dir / "custom.toml"
    assert save_engine_config(path, file_cache_ttl=10)

    assert load_engine_config(path)["file_cache_ttl"] == 10
    assert not config.CONFIG_FILE.exists()


def test_defaults_are_not_shared():
    values = load_engine_config()
    values["include_patterns"].append("**/*.kt")
    assert "**/*.kt" not in DEFAULT_ENGINE_CONFIG["include_patterns"]


class TestCoerce:
    """Tests for converting CLI strings to setting values."""

    def test_list(self):
        assert coerce_setting("exclude_patterns", "**/a/**, **/b/** ,") == ["**/a/**", "**/b/**"]

    def test_numbers(self):
        assert coerce_setting("max_workers", "8") == 8
        assert coerce_setting("min_relevance", "0.25") == 0.25

    def test_string(self):
        assert coerce_setting("cache_dir", "/tmp/cache") == "/tmp/cache"

    def test_invalid_number(self):
        with pytest.raises(ValueError):
            coerce_setting("max_workers", "many")

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            coerce_setting("nope", "1")


class TestEngineSettings:
    """Tests for EngineSettings.from_config."""

    def test_from_defaults(self):
        settings = EngineSettings.from_config()
        assert settings == EngineSettings()

    def test_from_file(self):
        save_engine_config(max_workers=0, index_cache_ttl=120, search_patterns=["**/*.py"])

        settings = EngineSettings.from_config()

        assert settings.max_workers == 1
        assert settings.index_cache_ttl == 120.0
        assert settings.search_patterns == ["**/*.py"]
