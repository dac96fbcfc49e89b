"""Shared fixtures: profiles files, stub executables, settings isolation."""

import os
import signal
import socket
import stat
import sys
import textwrap
from pathlib import Path
from types import SimpleNamespace

import pytest
import yaml

from db_tunnel.config import DatabaseProfile, Settings, reset_settings

SAMPLE_DATABASES = {
    "db1": {
        "host": "db.internal",
        "port": 5432,
        "user": "alice",
        "ssh_jump_host": "jump.example.com",
        "ssh_jump_port": 22,
        "local_port": 5433,
        "password_pass_path": "databases/db1",
    },
    "analytics": {
        "host": "analytics.internal",
        "port": 5432,
        "user": "bob",
        "ssh_jump_host": "bastion.example.com",
        "local_port": 6543,
        "password_pass_path": "databases/analytics",
    },
}


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch):
    """Keep cached settings and signal handlers from leaking between tests."""
    for var in [name for name in os.environ if name.startswith("DB_TUNNEL_")]:
        monkeypatch.delenv(var)
    reset_settings()
    sigint = signal.getsignal(signal.SIGINT)
    sigterm = signal.getsignal(signal.SIGTERM)
    yield
    signal.signal(signal.SIGINT, sigint)
    signal.signal(signal.SIGTERM, sigterm)
    reset_settings()


@pytest.fixture()
def write_config(tmp_path):
    """Write a profiles file and return its path."""

    def _write(databases: dict | None = None, raw: str | None = None) -> Path:
        path = tmp_path / "config.yaml"
        if raw is not None:
            path.write_text(raw)
        else:
            path.write_text(yaml.dump({"databases": databases or SAMPLE_DATABASES}))
        return path

    return _write


@pytest.fixture()
def sample_databases() -> dict:
    return {name: dict(fields) for name, fields in SAMPLE_DATABASES.items()}


@pytest.fixture()
def profile() -> DatabaseProfile:
    return DatabaseProfile.model_validate(SAMPLE_DATABASES["db1"])


@pytest.fixture()
def make_stub(tmp_path):
    """Create an executable stub script in tmp_path/bin."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str, interpreter: str = "/bin/sh") -> Path:
        path = bin_dir / name
        path.write_text(f"#!{interpreter}\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture()
def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture()
def stub_commands(tmp_path, make_stub):
    """Stub pass/ssh/psql that append their invocations to a shared log.

    The ssh stub listens on the forwarded local port so readiness probes pass.
    """
    log = tmp_path / "calls.log"
    password_file = tmp_path / "psql_password"
    stdin_file = tmp_path / "pass_stdin"

    pass_cmd = make_stub(
        "pass",
        f"""\
        echo "pass $*" >> "{log}"
        case "$1" in
          show) printf 's3cret\\n\\n' ;;
          insert) cat > "{stdin_file}" ;;
        esac
        """,
    )
    ssh_cmd = make_stub(
        "ssh",
        f"""\
        import socket
        import sys
        import time

        with open({str(log)!r}, "a") as f:
            f.write("ssh " + " ".join(sys.argv[1:]) + "\\n")
        forward = next(arg for arg in sys.argv[1:] if arg.startswith("-L"))
        port = int(forward[2:].split(":")[0])
        server = socket.socket()
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind(("127.0.0.1", port))
        server.listen()
        time.sleep(60)
        """,
        interpreter=sys.executable,
    )
    psql_cmd = make_stub(
        "psql",
        f"""\
        echo "psql $*" >> "{log}"
        printf '%s' "$PGPASSWORD" > "{password_file}"
        exit ${{PSQL_EXIT:-0}}
        """,
    )

    settings = Settings(
        pass_command=str(pass_cmd),
        ssh_command=str(ssh_cmd),
        psql_command=str(psql_cmd),
        tunnel_ready_timeout=15.0,
        tunnel_poll_interval=0.05,
        shutdown_timeout=2.0,
    )

    def calls() -> list[str]:
        if not log.exists():
            return []
        return [line.split(" ", 1)[0] for line in log.read_text().splitlines()]

    return SimpleNamespace(
        settings=settings,
        log=log,
        password_file=password_file,
        stdin_file=stdin_file,
        calls=calls,
    )
