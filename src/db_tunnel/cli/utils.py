"""Utility functions for the db-tunnel CLI.

Shared helpers: consoles, version, logging setup, signal handling.
"""

import logging
import signal
import sys
from importlib.metadata import PackageNotFoundError, version

from rich.console import Console

from db_tunnel.config import Settings

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _get_cli_version() -> str:
    """Get installed package version.

    Falls back to "unknown" when package metadata isn't available
    (e.g. running from a source checkout without installation).
    """
    try:
        return version("db-tunnel")
    except PackageNotFoundError:
        return "unknown"


def _handle_sigint(signum, frame):
    """Handle Ctrl-C: exit so any open tunnel gets closed on the way out."""
    err_console.print("\n[dim]Cancelled.[/dim]")
    sys.exit(130)


def _handle_sigterm(signum, frame):
    sys.exit(143)


def install_signal_handlers() -> None:
    """Turn SIGINT/SIGTERM into SystemExit so context managers unwind."""
    signal.signal(signal.SIGINT, _handle_sigint)
    signal.signal(signal.SIGTERM, _handle_sigterm)


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    """Configure logging before anything else."""
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
