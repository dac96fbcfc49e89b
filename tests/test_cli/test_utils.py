"""Tests for db_tunnel.cli.utils module."""

import logging
import signal
from importlib.metadata import PackageNotFoundError
from unittest.mock import patch

import pytest

from db_tunnel.cli.utils import (
    LOG_FORMAT,
    _get_cli_version,
    _handle_sigint,
    _handle_sigterm,
    configure_logging,
    install_signal_handlers,
)
from db_tunnel.config import Settings


class TestGetCliVersion:
    def test_returns_version_string_when_installed(self):
        with patch("db_tunnel.cli.utils.version", return_value="1.2.3"):
            assert _get_cli_version() == "1.2.3"

    def test_returns_unknown_when_not_installed(self):
        with patch(
            "db_tunnel.cli.utils.version", side_effect=PackageNotFoundError("db-tunnel")
        ):
            assert _get_cli_version() == "unknown"


class TestSignals:
    def test_sigint_exits_130(self):
        with patch("db_tunnel.cli.utils.err_console"):
            with pytest.raises(SystemExit) as exc_info:
                _handle_sigint(signal.SIGINT, None)
        assert exc_info.value.code == 130

    def test_sigterm_exits_143(self):
        with pytest.raises(SystemExit) as exc_info:
            _handle_sigterm(signal.SIGTERM, None)
        assert exc_info.value.code == 143

    def test_install_registers_both(self):
        install_signal_handlers()

        assert signal.getsignal(signal.SIGINT) is _handle_sigint
        assert signal.getsignal(signal.SIGTERM) is _handle_sigterm


class TestConfigureLogging:
    def test_uses_settings_level(self):
        with patch("db_tunnel.cli.utils.logging.basicConfig") as basic_config:
            configure_logging(Settings(log_level="info"))

        kwargs = basic_config.call_args.kwargs
        assert kwargs["level"] == "INFO"
        assert kwargs["format"] == LOG_FORMAT

    def test_verbose_forces_debug(self):
        with patch("db_tunnel.cli.utils.logging.basicConfig") as basic_config:
            configure_logging(Settings(log_level="ERROR"), verbose=True)

        assert basic_config.call_args.kwargs["level"] == logging.DEBUG
