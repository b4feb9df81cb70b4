"""Tests for console helpers and structlog configuration."""

import json
import logging
from unittest.mock import PropertyMock, patch

import structlog

from push_relay import logging as console
from push_relay.config import Config


class TestConsoleHelpers:
    """Tests for the Rich console helpers."""

    def test_log_line_has_level_and_icon(self):
        with patch("push_relay.logging._console") as mock_console:
            console.info("hello", console.Icon.OK)

        line = mock_console.print.call_args.args[0]
        assert "[info]" in line
        assert console.Icon.OK in line
        assert line.endswith("hello")

    def test_message_text_is_escaped(self):
        """Message text never gets interpreted as Rich markup."""
        with patch("push_relay.logging._console") as mock_console:
            console.low_priority_message("[red]alert", "see [link]")

        line = mock_console.print.call_args.args[0]
        assert "\\[red]alert" in line
        assert "see \\[link]" in line

    def test_reconnecting_in_formats_delay(self):
        with patch("push_relay.logging._console") as mock_console:
            console.reconnecting_in(30.0)

        assert "Reconnecting in 30s" in mock_console.print.call_args.args[0]


def test_configure_writes_json_lines(tmp_path):
    """configure() sends structlog events to the rotating JSON log."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level

    with patch.object(Config, "state_dir", new_callable=PropertyMock, return_value=tmp_path):
        config = Config()
        try:
            console.configure(config)
            structlog.get_logger("push_relay.test").info("relay_test_event", attempt=3)
            for handler in root.handlers:
                handler.flush()
            lines = (tmp_path / "relay.log").read_text().splitlines()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            structlog.reset_defaults()

    data = json.loads(lines[-1])
    assert data["event"] == "relay_test_event"
    assert data["attempt"] == 3
    assert data["level"] == "info"
