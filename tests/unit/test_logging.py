"""
Unit tests for logging setup.
"""

import json

import pytest

from geomcp.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    configure_logging("INFO")


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON events go to stderr, never stdout."""
        configure_logging("INFO", json_output=True)
        get_logger("test").info("test_event", key1="value1", key2=42)

        captured = capsys.readouterr()
        assert captured.out == ""
        data = json.loads(captured.err.strip().splitlines()[-1])
        assert data["event"] == "test_event"
        assert data["key1"] == "value1"
        assert data["key2"] == 42
        assert data["level"] == "info"
        assert "timestamp" in data

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Events below the configured level are dropped."""
        configure_logging("WARNING")
        logger = get_logger("test")
        logger.info("quiet")
        logger.warning("loud")

        err = capsys.readouterr().err
        assert "quiet" not in err
        assert "loud" in err
