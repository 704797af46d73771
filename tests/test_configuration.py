"""Tests for .env configuration and log housekeeping."""

import os
import time
from pathlib import Path

from modlet_patcher import mc_logger
from modlet_patcher.configuration import (
    CONFIG_FILE,
    DEFAULT_CONFIG,
    get_bool_config,
    get_int_config,
    load_config,
)


class TestLoadConfig:
    """Tests for load_config and the typed getters."""

    def test_writes_defaults_only_when_asked(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        load_config()
        assert not (tmp_path / CONFIG_FILE).exists()

        load_config(write_defaults=True)
        written = (tmp_path / CONFIG_FILE).read_text()
        assert all(key in written for key in DEFAULT_CONFIG)

    def test_environment_wins_over_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / CONFIG_FILE).write_text("MAX_WORKERS = 2\nTEST_ONLY_KEY = from-file\n")
        monkeypatch.setenv("MAX_WORKERS", "7")
        monkeypatch.delenv("TEST_ONLY_KEY", raising=False)

        load_config()

        assert get_int_config("MAX_WORKERS", 4) == 7
        assert os.environ["TEST_ONLY_KEY"] == "from-file"
        monkeypatch.delenv("TEST_ONLY_KEY")

    def test_int_config_falls_back(self, monkeypatch):
        monkeypatch.setenv("MAX_WORKERS", "many")

        assert get_int_config("MAX_WORKERS", 4) == 4

    def test_bool_config(self, monkeypatch):
        monkeypatch.setenv("PRETTY_PRINT", "No")
        assert get_bool_config("PRETTY_PRINT", True) is False

        monkeypatch.setenv("PRETTY_PRINT", "yes")
        assert get_bool_config("PRETTY_PRINT") is True

        monkeypatch.delenv("PRETTY_PRINT")
        assert get_bool_config("PRETTY_PRINT", True) is True


class TestLogHousekeeping:
    """Tests for MCLogger.delete_old_logs."""

    def test_deletes_only_old_rotated_files(self, tmp_path: Path, monkeypatch):
        log_file = tmp_path / "patcher.log"
        current, old, recent = log_file, tmp_path / "patcher.log.1", tmp_path / "patcher.log.2"
        for path in (current, old, recent):
            path.write_text("x")
        two_months_ago = time.time() - 60 * 86400
        os.utime(old, (two_months_ago, two_months_ago))
        os.utime(current, (two_months_ago, two_months_ago))
        monkeypatch.setattr(mc_logger.logger, "log_file", str(log_file))
        monkeypatch.setenv("LOG_MAX_AGE_DAYS", "30")

        assert mc_logger.delete_old_logs() == 1
        assert current.exists()
        assert not old.exists()
        assert recent.exists()

    def test_no_log_file(self, monkeypatch):
        monkeypatch.setattr(mc_logger.logger, "log_file", "")

        assert mc_logger.delete_old_logs() == 0

    def test_set_log_level(self):
        previous = mc_logger.get_log_level()
        try:
            mc_logger.set_log_level("warning")
            assert mc_logger.get_log_level() == "WARNING"
        finally:
            mc_logger.set_log_level(previous)
