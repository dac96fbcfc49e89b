"""Interactive psql session against the forwarded local port."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping

from db_tunnel.config import DatabaseProfile, Settings, get_settings
from db_tunnel.errors import ClientError
from db_tunnel.secret_store import Secret
from db_tunnel.signals import ignoring_sigint

logger = logging.getLogger(__name__)


def build_psql_args(profile: DatabaseProfile, settings: Settings | None = None) -> list[str]:
    """Build the psql argv. The password is never part of it."""
    settings = settings or get_settings()
    return [
        settings.psql_command,
        "-h", "localhost",
        "-p", str(profile.local_port),
        "-U", profile.user,
    ]


def build_client_env(
    secret: Secret,
    settings: Settings | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return a fresh environment for the client with the password set.

    ``base_env`` defaults to the current process environment, which is copied
    and left untouched.
    """
    settings = settings or get_settings()
    env = dict(os.environ if base_env is None else base_env)
    env[settings.password_env_var] = secret.reveal()
    return env


class ClientLauncher:
    """Runs psql in the foreground."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    def build_args(self, profile: DatabaseProfile) -> list[str]:
        return build_psql_args(profile, self._settings)

    def launch(self, profile: DatabaseProfile, secret: Secret) -> int:
        """Run the client until it exits.

        Returns:
            0 on success.

        Raises:
            ClientError: the client could not be started or exited non-zero.
        """
        args = self.build_args(profile)
        env = build_client_env(secret, self._settings)
        logger.info("Launching client: %s", shlex.join(args))

        # psql owns Ctrl-C while it runs (cancels the current query).
        try:
            with ignoring_sigint():
                result = subprocess.run(args, env=env, check=False)
        except OSError as exc:
            raise ClientError(f"Could not start {args[0]}: {exc}") from exc
        finally:
            env.clear()

        if result.returncode != 0:
            raise ClientError(
                f"{args[0]} exited with status {result.returncode}",
                returncode=result.returncode,
            )
        return 0
