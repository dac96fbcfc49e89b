"""SSH port forwarding through a jump host.

The tunnel runs as a supervised background ``ssh -N`` process. ``open()``
waits until the forwarded local port accepts connections and always tears
the process down when the block exits.

Usage:
    launcher = TunnelLauncher()
    with launcher.open(profile) as tunnel:
        ...  # localhost:<profile.local_port> now reaches profile.host:profile.port
"""

from __future__ import annotations

import logging
import shlex
import socket
import subprocess
import time
from collections.abc import Iterator
from contextlib import contextmanager

from db_tunnel.config import DatabaseProfile, Settings, get_settings
from db_tunnel.errors import TunnelError
from db_tunnel.signals import ignoring_sigint

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"


def build_ssh_args(profile: DatabaseProfile, settings: Settings | None = None) -> list[str]:
    """Build the ssh argv for a profile's port forward."""
    settings = settings or get_settings()
    args = [
        settings.ssh_command,
        "-N",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", f"ServerAliveInterval={settings.server_alive_interval}",
        "-o", "ExitOnForwardFailure=yes",
    ]
    if profile.ssh_jump_port is not None:
        args.extend(["-p", str(profile.ssh_jump_port)])
    args.append(f"-L{profile.local_port}:{profile.host}:{profile.port}")
    args.append(f"{profile.user}@{profile.ssh_jump_host}")
    return args


def is_port_open(port: int, timeout: float = 0.2) -> bool:
    """Check whether something accepts TCP connections on localhost:port."""
    try:
        with socket.create_connection((LOCALHOST, port), timeout=timeout):
            return True
    except OSError:
        return False


class Tunnel:
    """Handle on a running ssh tunnel process."""

    def __init__(self, process: subprocess.Popen, args: list[str], shutdown_timeout: float):
        self._process = process
        self.args = args
        self._shutdown_timeout = shutdown_timeout

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.poll()

    def is_alive(self) -> bool:
        return self._process.poll() is None

    def close(self) -> None:
        """Terminate the tunnel; escalates to SIGKILL after the grace period."""
        if not self.is_alive():
            return
        logger.debug("Terminating ssh tunnel (pid %d)", self.pid)
        self._process.terminate()
        try:
            self._process.wait(timeout=self._shutdown_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("ssh tunnel (pid %d) ignored SIGTERM, killing", self.pid)
            self._process.kill()
            self._process.wait()


class TunnelLauncher:
    """Starts and supervises ssh tunnels."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    def build_args(self, profile: DatabaseProfile) -> list[str]:
        return build_ssh_args(profile, self._settings)

    @contextmanager
    def open(self, profile: DatabaseProfile) -> Iterator[Tunnel]:
        """Start the tunnel, wait for the forward, and close it on exit."""
        if is_port_open(profile.local_port):
            raise TunnelError(f"Local port {profile.local_port} is already in use")

        args = self.build_args(profile)
        logger.info("Starting ssh tunnel: %s", shlex.join(args))

        # stdio stays on the terminal so a jump host password can be typed;
        # SIGINT is ignored in ssh so Ctrl-C in the client keeps the forward up.
        try:
            with ignoring_sigint():
                process = subprocess.Popen(args)
        except OSError as exc:
            raise TunnelError(f"Could not start {args[0]}: {exc}") from exc

        tunnel = Tunnel(process, args, self._settings.shutdown_timeout)
        try:
            self._wait_until_ready(tunnel, profile)
            yield tunnel
        finally:
            tunnel.close()

    def _wait_until_ready(self, tunnel: Tunnel, profile: DatabaseProfile) -> None:
        settings = self._settings
        # No deadline by default: ssh may be waiting on a password prompt.
        deadline = None
        if settings.tunnel_ready_timeout is not None:
            deadline = time.monotonic() + settings.tunnel_ready_timeout
        while True:
            returncode = tunnel.returncode
            if returncode is not None:
                raise TunnelError(
                    f"ssh exited with status {returncode} before "
                    f"localhost:{profile.local_port} was forwarded"
                )
            if is_port_open(profile.local_port, timeout=settings.tunnel_poll_interval):
                logger.info(
                    "Tunnel ready: localhost:%d -> %s:%d",
                    profile.local_port,
                    profile.host,
                    profile.port,
                )
                return
            if deadline is not None and time.monotonic() >= deadline:
                raise TunnelError(
                    f"Timed out after {settings.tunnel_ready_timeout:g}s waiting for "
                    f"localhost:{profile.local_port}"
                )
            time.sleep(settings.tunnel_poll_interval)
