"""Connection sequence: config -> profile -> secret -> tunnel -> client.

Steps run strictly in order and the first failure propagates as a
``DbTunnelError``. The tunnel is always torn down before ``connect`` returns.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from pathlib import Path

from db_tunnel.client import ClientLauncher, build_psql_args
from db_tunnel.config import DatabaseProfile, Settings, get_profile, get_settings, load_config
from db_tunnel.secret_store import SecretStore
from db_tunnel.tunnel import TunnelLauncher, build_ssh_args

logger = logging.getLogger(__name__)

Reporter = Callable[[str], None]


def _log_reporter(message: str) -> None:
    logger.info(message)


def describe(profile: DatabaseProfile, settings: Settings | None = None) -> tuple[str, str]:
    """Return the ssh and client command lines for display."""
    settings = settings or get_settings()
    return (
        shlex.join(build_ssh_args(profile, settings)),
        shlex.join(build_psql_args(profile, settings)),
    )


def connect(
    profile_name: str,
    *,
    secret_value: str | None = None,
    config_path: Path | str | None = None,
    settings: Settings | None = None,
    secrets: SecretStore | None = None,
    tunnels: TunnelLauncher | None = None,
    client: ClientLauncher | None = None,
    report: Reporter | None = None,
) -> int:
    """Open a tunnel for ``profile_name`` and run the SQL client through it.

    Args:
        profile_name: Key under ``databases`` in the profiles file.
        secret_value: When given, written to the profile's secret path first.
        config_path: Override for the profiles file location.
        report: Receives human-readable progress messages.

    Returns:
        0 once the client has exited cleanly and the tunnel is closed.
    """
    settings = settings or get_settings()
    secrets = secrets or SecretStore(settings)
    tunnels = tunnels or TunnelLauncher(settings)
    client = client or ClientLauncher(settings)
    report = report or _log_reporter

    config = load_config(config_path, settings)
    profile = get_profile(config, profile_name)

    if secret_value is not None:
        secrets.store(profile.secret_path, secret_value)
        report(f"Stored password at {profile.secret_path}")

    with secrets.acquire(profile.secret_path) as secret:
        report(f"Starting SSH tunnel to {profile_name}...")
        report(f"Full SSH command: {shlex.join(tunnels.build_args(profile))}")
        with tunnels.open(profile):
            report(
                f"Tunnel established: localhost:{profile.local_port} -> "
                f"{profile.host}:{profile.port}"
            )
            report("Launching psql...")
            status = client.launch(profile, secret)

    logger.debug("Session for %s finished with status %d", profile_name, status)
    return status
