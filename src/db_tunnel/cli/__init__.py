"""db-tunnel CLI package.

Re-exports `main` (the click command) so the console script and
``python -m db_tunnel`` share one entry point.
"""

from db_tunnel.cli.main import main

__all__ = ["main"]
