"""Service configuration — lock path, backend selection, timeouts."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from toolhost.errors import ConfigError
from toolhost.lockfile import default_lock_path

ENV_CONFIG = "TOOLHOST_CONFIG"

# Environment variable -> config field.
_ENV_OVERRIDES = {
    "TOOLHOST_LOCK_FILE": "lock_file",
    "TOOLHOST_BACKEND": "backend",
    "TOOLHOST_LOG_LEVEL": "log_level",
    "TOOLHOST_OTLP_ENDPOINT": "otlp_endpoint",
}


class ServiceConfig(BaseModel):
    """Configuration shared by the server and the CLI client."""

    lock_file: Path = Field(default_factory=default_lock_path, description="Lock file path.")
    host: str = Field(default="127.0.0.1", description="Loopback address to bind.")
    backend: Literal["native", "external"] = Field(
        default="native", description="System command backend."
    )
    command_timeout: float = Field(
        default=10.0, gt=0, description="Timeout for external commands, in seconds."
    )
    idle_timeout: float | None = Field(
        default=None, gt=0, description="Close connections idle for this many seconds."
    )
    start_timeout: float = Field(
        default=5.0, gt=0, description="How long ``start`` waits for the server to come up."
    )
    log_level: str = Field(default="INFO", description="Logging level name.")
    otlp_endpoint: str | None = Field(
        default=None, description="Export server traces to this OTLP/gRPC endpoint."
    )

    @property
    def log_dir(self) -> Path:
        """Directory holding the background server's stdout/stderr logs."""
        return self.lock_file.parent


def load_config(path: Path | None = None) -> ServiceConfig:
    """Build a :class:`ServiceConfig` from YAML and environment overrides.

    The YAML file is *path*, else ``$TOOLHOST_CONFIG`` if set; with neither,
    defaults are used.  Environment variables in the form ``${VAR}`` are
    expanded before YAML parsing.

    Raises:
        ConfigError: On unreadable files, YAML parse errors, or invalid values.
    """
    data: dict[str, Any] = {}

    if path is None and os.environ.get(ENV_CONFIG):
        path = Path(os.environ[ENV_CONFIG])

    if path is not None:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read {path}: {exc}") from exc

        try:
            loaded: Any = yaml.safe_load(os.path.expandvars(raw))
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML parse error: {exc}") from exc

        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError("Config YAML must be a mapping")
        data.update(loaded or {})

    for env_key, field in _ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if value:
            data[field] = value

    try:
        return ServiceConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
