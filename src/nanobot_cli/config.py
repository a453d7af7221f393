"""Configuration management for the nanobot CLI.

Implements multi-level configuration with precedence:
1. Environment variables (NANOBOT_* prefix, highest priority)
2. Explicit config file (--config)
3. Project config (./.nanobot.yaml)
4. Global config (~/.nanobot/config.yaml)
5. Built-in defaults (lowest priority)

The server URL may be left unset here; the container then falls back to the
URL saved with ``nanobot config set-server``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, field_validator

from nanobot_cli import __version__
from nanobot_cli.protocol.jsonrpc import DEFAULT_ENDPOINT
from nanobot_cli.storage import DEFAULT_STATE_PATH

TEMPLATE_SERVER_URL = "http://localhost:8080"

_ENV_REFERENCE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def normalize_url(value: str) -> str:
    """Check the scheme and strip trailing slashes.

    Raises:
        ValueError: URL is not http(s)
    """
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return value.rstrip("/")


class ServerConfig(BaseModel):
    """Nanobot server connection configuration."""

    url: str | None = None
    endpoint: str = DEFAULT_ENDPOINT
    timeout: int = Field(default=30, ge=1, le=300)
    stream_read_timeout: float | None = Field(default=None, gt=0)
    retries: int = Field(default=0, ge=0, le=10)
    verify_ssl: bool = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return normalize_url(v)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Endpoint must start with /")
        return v


class ClientConfig(BaseModel):
    """Identity sent in the initialize handshake."""

    name: str = "nanobot-cli"
    version: str = __version__


class StorageConfig(BaseModel):
    """Where the session id and saved server URL are kept."""

    path: Path = DEFAULT_STATE_PATH

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser()


class OutputConfig(BaseModel):
    """Output formatting configuration."""

    format: Literal["json", "table"] = "table"
    color: bool = True
    verbose: bool = False


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error"] = "warning"


class Config(BaseModel):
    """Complete CLI configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        skip_global: bool = False,
        skip_project: bool = False,
    ) -> Config:
        """Load configuration with precedence: env > explicit > project > global > defaults.

        Args:
            config_path: Optional explicit config file path
            skip_global: Skip loading global config
            skip_project: Skip loading project config

        Returns:
            Loaded and merged configuration

        Raises:
            ValueError: If a config file is missing or invalid
        """
        config_data: dict[str, Any] = {}

        if not skip_global:
            global_config_path = Path.home() / ".nanobot" / "config.yaml"
            if global_config_path.exists():
                config_data = cls._load_yaml_file(global_config_path)

        if not skip_project and not config_path:
            project_config_path = Path.cwd() / ".nanobot.yaml"
            if project_config_path.exists():
                project_data = cls._load_yaml_file(project_config_path)
                config_data = cls._deep_merge(config_data, project_data)

        if config_path:
            if not config_path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            explicit_data = cls._load_yaml_file(config_path)
            config_data = cls._deep_merge(config_data, explicit_data)

        config_data = cls._deep_merge(config_data, cls._load_from_env())
        config_data = cls._substitute_env_vars(config_data)

        try:
            return cls(**config_data)
        except Exception as e:
            raise ValueError(f"Invalid configuration: {e}") from e

    @staticmethod
    def _load_yaml_file(path: Path) -> dict[str, Any]:
        """Load and parse a YAML file.

        Raises:
            ValueError: If the file is unreadable or invalid YAML
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise ValueError(f"Failed to read {path}: {e}") from e

    @staticmethod
    def _load_from_env() -> dict[str, Any]:
        """Load configuration from NANOBOT_* environment variables.

        - NANOBOT_SERVER_URL -> server.url
        - NANOBOT_TIMEOUT -> server.timeout
        - NANOBOT_OUTPUT_FORMAT -> output.format
        - NANOBOT_LOG_LEVEL -> logging.level
        - etc.
        """
        env_mapping = {
            "NANOBOT_SERVER_URL": ["server", "url"],
            "NANOBOT_ENDPOINT": ["server", "endpoint"],
            "NANOBOT_TIMEOUT": ["server", "timeout"],
            "NANOBOT_STREAM_READ_TIMEOUT": ["server", "stream_read_timeout"],
            "NANOBOT_RETRIES": ["server", "retries"],
            "NANOBOT_VERIFY_SSL": ["server", "verify_ssl"],
            "NANOBOT_CLIENT_NAME": ["client", "name"],
            "NANOBOT_STATE_PATH": ["storage", "path"],
            "NANOBOT_OUTPUT_FORMAT": ["output", "format"],
            "NANOBOT_COLOR": ["output", "color"],
            "NANOBOT_VERBOSE": ["output", "verbose"],
            "NANOBOT_LOG_LEVEL": ["logging", "level"],
        }

        result: dict[str, Any] = {}
        for env_var, path in env_mapping.items():
            value = os.getenv(env_var)
            if value is not None:
                Config._set_nested(result, path, Config._convert_env_value(value, path))

        return result

    @staticmethod
    def _convert_env_value(value: str, path: list[str]) -> Any:
        """Convert an environment variable string using the target key."""
        key = path[-1]

        if key in ("verify_ssl", "color", "verbose"):
            return value.lower() in ("true", "1", "yes", "on")

        if key in ("timeout", "retries"):
            try:
                return int(value)
            except ValueError:
                return value

        if key == "stream_read_timeout":
            try:
                return float(value)
            except ValueError:
                return value

        if key == "level":
            return value.lower()

        return value

    @staticmethod
    def _substitute_env_vars(data: Any) -> Any:
        """Substitute ${VAR_NAME} references in string values.

        Unknown variables are left as written.
        """
        if isinstance(data, dict):
            return {k: Config._substitute_env_vars(v) for k, v in data.items()}
        if isinstance(data, list):
            return [Config._substitute_env_vars(item) for item in data]
        if isinstance(data, str):
            return _ENV_REFERENCE.sub(lambda m: os.getenv(m.group(1), m.group(0)), data)
        return data

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries, override taking precedence."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def _set_nested(data: dict[str, Any], path: list[str], value: Any) -> None:
        for key in path[:-1]:
            data = data.setdefault(key, {})
        data[path[-1]] = value

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    @classmethod
    def get_template(cls) -> str:
        """Get configuration file template.

        Returns:
            YAML template with comments
        """
        return f"""# nanobot CLI configuration

# Server connection
server:
  url: {TEMPLATE_SERVER_URL}
  endpoint: {DEFAULT_ENDPOINT}
  timeout: 30
  # stream_read_timeout: 300  # seconds of silence before a stream read fails
  retries: 0
  verify_ssl: true

# Identity sent in the initialize handshake
client:
  name: nanobot-cli

# Session id and saved server URL
storage:
  path: ~/.nanobot/state.json

# Output preferences
output:
  format: table  # json | table
  color: true
  verbose: false

logging:
  level: warning  # debug | info | warning | error
"""

    def validate_config(self) -> list[str]:
        """Validate configuration and return any warnings.

        Returns:
            List of validation warnings (empty if valid)
        """
        warnings: list[str] = []

        url = self.server.url or ""
        if not self.server.verify_ssl and url.startswith("https://"):
            warnings.append(
                "SSL verification is disabled for HTTPS URL. "
                "This is insecure and not recommended for production."
            )

        if url.startswith("http://") and not url.startswith(
            ("http://localhost", "http://127.0.0.1")
        ):
            warnings.append(
                "Server URL uses plain HTTP for a remote host. "
                "Session identifiers will be sent unencrypted."
            )

        if self.server.timeout < 5:
            warnings.append(
                f"Server timeout is very low ({self.server.timeout}s). "
                "This may cause frequent timeouts."
            )

        if self.server.stream_read_timeout is not None and self.server.stream_read_timeout < 30:
            warnings.append(
                f"Stream read timeout is very low ({self.server.stream_read_timeout}s). "
                "Long agent runs may be cut off."
            )

        return warnings
