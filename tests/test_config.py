"""Tests for environment-driven configuration."""

import logging
from pathlib import Path

import pytest

from src.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def fresh_singleton():
    reset_config()
    yield
    reset_config()


class TestDefaults:
    def test_defaults(self):
        config = Config()
        assert config.display_depth == 2
        assert config.log_level == "WARNING"
        assert config.log_level_number == logging.WARNING
        assert config.index_dir is None


class TestOverrides:
    def test_index_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ASSIST_INDEX_DIR", str(tmp_path))
        assert Config().index_dir == Path(str(tmp_path))

    def test_display_depth(self, monkeypatch):
        monkeypatch.setenv("ASSIST_DISPLAY_DEPTH", "4")
        assert Config().display_depth == 4

    def test_log_level_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("ASSIST_LOG_LEVEL", "debug")
        assert Config().log_level_number == logging.DEBUG


class TestValidation:
    @pytest.mark.parametrize("value", ["deep", "0", "-1"])
    def test_invalid_depth(self, monkeypatch, value):
        monkeypatch.setenv("ASSIST_DISPLAY_DEPTH", value)
        with pytest.raises(ValueError, match="ASSIST_DISPLAY_DEPTH"):
            Config()

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("ASSIST_LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError, match="ASSIST_LOG_LEVEL"):
            Config()


class TestSingleton:
    def test_same_instance(self):
        assert get_config() is get_config()

    def test_reset(self):
        first = get_config()
        reset_config()
        assert get_config() is not first
