"""Configuration for db-tunnel.

Two layers:

- ``Settings``: tool behaviour (which binaries to run, timeouts, log level),
  read from ``DB_TUNNEL_*`` environment variables.
- ``Configuration``: the named database profiles, read from a YAML file
  (``~/code/tunnels/config.yaml`` by default).
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from db_tunnel.errors import ConfigNotFound, ConfigParseError, ProfileNotFound

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / "code" / "tunnels"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Tool settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DB_TUNNEL_",
        extra="ignore",
    )

    config: str = Field(
        default="",
        description="Path to the profiles file (defaults to ~/code/tunnels/config.yaml)",
    )

    # ==========================================================================
    # External commands
    # ==========================================================================

    ssh_command: str = Field(default="ssh", description="SSH client executable")
    pass_command: str = Field(default="pass", description="Secret store executable")
    psql_command: str = Field(default="psql", description="SQL client executable")
    password_env_var: str = Field(
        default="PGPASSWORD",
        description="Environment variable used to hand the password to the SQL client",
    )

    # ==========================================================================
    # Tunnel supervision
    # ==========================================================================

    server_alive_interval: int = Field(
        default=60,
        ge=1,
        description="SSH keep-alive probe interval in seconds",
    )
    tunnel_ready_timeout: float | None = Field(
        default=None,
        gt=0,
        description=(
            "Seconds to wait for the forwarded port to accept connections; "
            "unset waits as long as ssh is running"
        ),
    )
    tunnel_poll_interval: float = Field(
        default=0.2,
        gt=0,
        description="Seconds between readiness probes of the forwarded port",
    )
    shutdown_timeout: float = Field(
        default=5.0,
        ge=0,
        description="Grace period after SIGTERM before the tunnel is killed",
    )

    log_level: str = Field(default="WARNING", description="Root logging level")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None


class DatabaseProfile(BaseModel):
    """A named database reachable through an SSH jump host."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    host: str = Field(..., min_length=1, description="Database host as seen from the jump host")
    port: int = Field(..., ge=1, le=65535, description="Database port on the remote host")
    user: str = Field(..., min_length=1, description="Login for both the jump host and database")
    ssh_jump_host: str = Field(..., min_length=1, description="SSH-reachable jump host")
    ssh_jump_port: int | None = Field(
        default=None, ge=1, le=65535, description="SSH port on the jump host"
    )
    local_port: int = Field(..., ge=1, le=65535, description="Local end of the port forward")
    secret_path: str = Field(
        ...,
        min_length=1,
        alias="password_pass_path",
        description="Path of the database password inside the secret store",
    )


class Configuration(BaseModel):
    """Shape of the profiles file."""

    model_config = ConfigDict(frozen=True)

    databases: dict[str, DatabaseProfile]


def resolve_config_path(path: Path | str | None = None, settings: Settings | None = None) -> Path:
    """Pick the profiles file: explicit path, then DB_TUNNEL_CONFIG, then the default."""
    if path:
        return Path(path).expanduser()
    settings = settings or get_settings()
    if settings.config:
        return Path(settings.config).expanduser()
    return CONFIG_FILE


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


def load_config(path: Path | str | None = None, settings: Settings | None = None) -> Configuration:
    """Load and validate the profiles file.

    Raises:
        ConfigNotFound: the file does not exist or cannot be read.
        ConfigParseError: the file is not valid YAML or does not match the schema.
    """
    config_path = resolve_config_path(path, settings)
    logger.debug("Loading config from %s", config_path)

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigNotFound(f"Config file not found: {config_path}") from exc
    except OSError as exc:
        raise ConfigNotFound(f"Cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"Invalid YAML in {config_path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigParseError(f"{config_path} is not valid UTF-8: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigParseError(f"Expected a mapping at the top of {config_path}")
    if not isinstance(raw.get("databases"), dict):
        raise ConfigParseError(f"Missing 'databases' mapping in {config_path}")

    try:
        config = Configuration.model_validate(raw)
    except ValidationError as exc:
        raise ConfigParseError(
            f"Invalid config {config_path}: {_format_validation_error(exc)}"
        ) from exc

    logger.debug("Loaded %d profile(s) from %s", len(config.databases), config_path)
    return config


def list_profiles(config: Configuration) -> list[str]:
    """List profile names, sorted."""
    return sorted(config.databases)


def get_profile(config: Configuration, name: str) -> DatabaseProfile:
    """Look up a profile by name."""
    try:
        return config.databases[name]
    except KeyError:
        known = ", ".join(list_profiles(config)) or "none"
        raise ProfileNotFound(
            f"Database config for {name!r} not found (known profiles: {known})"
        ) from None
