"""Click entry point for db-tunnel.

The command stays thin; the connection sequence lives in
``db_tunnel.orchestrator``.
"""

import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.markup import escape
from rich.table import Table

from db_tunnel.cli.utils import (
    _get_cli_version,
    configure_logging,
    console,
    err_console,
    install_signal_handlers,
)
from db_tunnel.config import get_profile, get_settings, list_profiles, load_config
from db_tunnel.errors import DbTunnelError
from db_tunnel.orchestrator import connect, describe


def _print_profiles(config_path: Path | None) -> None:
    config = load_config(config_path)
    table = Table(title="Database profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Database")
    table.add_column("Jump host")
    table.add_column("Local port", justify="right")
    for name in list_profiles(config):
        profile = config.databases[name]
        jump = profile.ssh_jump_host
        if profile.ssh_jump_port is not None:
            jump = f"{jump}:{profile.ssh_jump_port}"
        table.add_row(
            name,
            f"{profile.user}@{profile.host}:{profile.port}",
            jump,
            str(profile.local_port),
        )
    console.print(table)


def _print_plan(profile_name: str, config_path: Path | None) -> None:
    profile = get_profile(load_config(config_path), profile_name)
    ssh_cmd, client_cmd = describe(profile)
    console.print(f"[bold]Tunnel:[/bold] {escape(ssh_cmd)}")
    console.print(f"[bold]Client:[/bold] {escape(client_cmd)}")
    console.print(f"[dim]Password from: {escape(profile.secret_path)}[/dim]")


@click.command()
@click.argument("profile", required=False)
@click.option(
    "-p",
    "--password",
    "secret_value",
    default=None,
    metavar="SECRET",
    help="Store SECRET in pass at the profile's password path before connecting.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Profiles file (default: ~/code/tunnels/config.yaml).",
)
@click.option("--list", "list_only", is_flag=True, help="List configured profiles and exit.")
@click.option("--dry-run", is_flag=True, help="Print the commands that would run and exit.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=_get_cli_version())
def main(
    profile: str | None,
    secret_value: str | None,
    config_path: Path | None,
    list_only: bool,
    dry_run: bool,
    verbose: bool,
):
    """db-tunnel - SSH tunnel through a jump host, then psql.

    PROFILE is the name of an entry under `databases` in the profiles file.

    Examples:
        db-tunnel analytics                # connect to "analytics"
        db-tunnel -p 's3cret' analytics    # save password to pass, then connect
        db-tunnel --list                   # show configured profiles
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        err_console.print(f"[red]Invalid DB_TUNNEL_* settings:[/red] {escape(str(e))}")
        sys.exit(1)

    configure_logging(settings, verbose)

    if not list_only and not profile:
        raise click.UsageError("Missing argument 'PROFILE'.")
    if secret_value is not None and (list_only or dry_run):
        raise click.UsageError("-p/--password cannot be combined with --list or --dry-run.")

    install_signal_handlers()

    try:
        if list_only:
            _print_profiles(config_path)
            return
        if dry_run:
            _print_plan(profile, config_path)
            return
        connect(
            profile,
            secret_value=secret_value,
            config_path=config_path,
            settings=settings,
            report=lambda message: console.print(escape(message), highlight=False),
        )
    except DbTunnelError as e:
        err_console.print(f"[red]{e.step.capitalize()} failed:[/red] {escape(str(e))}")
        sys.exit(1)
