"""Secret retrieval and insertion through the ``pass`` password store.

Usage:
    store = SecretStore()
    store.store("db/prod", "hunter2")
    with store.acquire("db/prod") as secret:
        launch_something(secret.reveal())
    # secret buffer is zeroed here
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager

from db_tunnel.config import Settings, get_settings
from db_tunnel.errors import SecretFetchError, SecretWriteError

logger = logging.getLogger(__name__)

# Secrets are opaque bytes; undecodable bytes survive the round trip to the client.
ENCODING = "utf-8"
ERRORS = "surrogateescape"


class Secret:
    """A credential held in a mutable buffer so it can be wiped after use."""

    __slots__ = ("_buffer",)

    def __init__(self, value: str):
        self._buffer = bytearray(value.encode(ENCODING, ERRORS))

    def reveal(self) -> str:
        """Return the plaintext value."""
        if self.cleared:
            raise ValueError("Secret has already been cleared")
        return self._buffer.decode(ENCODING, ERRORS)

    def clear(self) -> None:
        """Overwrite the buffer with zeros and release it."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer.clear()

    @property
    def cleared(self) -> bool:
        return not self._buffer

    def __repr__(self) -> str:
        return "Secret('********')"

    __str__ = __repr__


class SecretStore:
    """Thin wrapper around the ``pass`` CLI."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    @property
    def command(self) -> str:
        return self._settings.pass_command

    def _run(self, args: list[str], input: str | None = None) -> subprocess.CompletedProcess:
        """Run a pass command, capturing output."""
        return subprocess.run(
            [self.command, *args],
            input=input,
            capture_output=True,
            encoding=ENCODING,
            errors=ERRORS,
            check=False,
        )

    def fetch(self, secret_path: str) -> str:
        """Read a secret with ``pass show``; trailing whitespace is stripped."""
        logger.debug("Fetching secret %s", secret_path)
        try:
            result = self._run(["show", secret_path])
        except FileNotFoundError as exc:
            raise SecretFetchError(f"Secret store command not found: {self.command}") from exc
        except OSError as exc:
            raise SecretFetchError(f"Could not run {self.command}: {exc}") from exc

        if result.returncode != 0:
            raise SecretFetchError(
                f"'{self.command} show {secret_path}' exited with status "
                f"{result.returncode}: {result.stderr.strip()}"
            )
        return result.stdout.rstrip()

    def store(self, secret_path: str, value: str) -> None:
        """Write a secret with ``pass insert -m -f``, overwriting any existing entry."""
        logger.debug("Storing secret %s", secret_path)
        try:
            result = self._run(["insert", "-m", "-f", secret_path], input=value)
        except FileNotFoundError as exc:
            raise SecretWriteError(f"Secret store command not found: {self.command}") from exc
        except OSError as exc:
            raise SecretWriteError(f"Could not run {self.command}: {exc}") from exc

        if result.returncode != 0:
            raise SecretWriteError(
                f"'{self.command} insert {secret_path}' exited with status "
                f"{result.returncode}: {result.stderr.strip()}"
            )

    @contextmanager
    def acquire(self, secret_path: str) -> Iterator[Secret]:
        """Fetch a secret for the duration of the block, then wipe it."""
        secret = Secret(self.fetch(secret_path))
        try:
            yield secret
        finally:
            secret.clear()
