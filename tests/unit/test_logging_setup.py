"""Unit tests for familycal.core.logging_setup."""

import logging

import pytest

from familycal.core.logging_setup import configure_logging

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_log_levels():
    names = ("", "familycal", "httpx", "aiohttp.client")
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    """Tests for level selection and third-party quieting."""

    def test_uses_requested_level(self):
        assert configure_logging("WARNING") == logging.WARNING
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("familycal").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        assert configure_logging("CHATTY") == logging.INFO

    def test_env_level_overrides_argument(self, monkeypatch):
        monkeypatch.setenv("FAMILYCAL_LOG_LEVEL", "error")
        assert configure_logging("INFO") == logging.ERROR

    def test_debug_flag_forces_debug(self):
        assert configure_logging("ERROR", debug=True) == logging.DEBUG
        assert logging.getLogger("familycal").level == logging.DEBUG

    def test_debug_env_var(self, monkeypatch):
        monkeypatch.setenv("FAMILYCAL_DEBUG", "yes")
        assert configure_logging("INFO") == logging.DEBUG

    def test_explicit_debug_false_wins_over_env(self, monkeypatch):
        monkeypatch.setenv("FAMILYCAL_DEBUG", "1")
        assert configure_logging("INFO", debug=False) == logging.INFO

    def test_http_libraries_quieted(self):
        configure_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("aiohttp.client").level == logging.WARNING
