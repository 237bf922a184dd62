"""Configuration system for wallet-sync.

Loads service config from ``config.yaml``, supports environment variable
expansion, and resolves the database path relative to the config file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from wallet_sync.chain.network import DEFAULT_NETWORK, Network


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class NetworkConfig(BaseModel):
    """The chain the service watches."""

    name: str = DEFAULT_NETWORK.name
    rpc_url: str = DEFAULT_NETWORK.rpc_url
    chain_id: int = DEFAULT_NETWORK.chain_id
    native_symbol: str = DEFAULT_NETWORK.native_symbol
    explorer_url: str = DEFAULT_NETWORK.explorer_url
    request_timeout: float = 30.0  # seconds, bounds every RPC call

    def to_network(self) -> Network:
        return Network(
            name=self.name,
            chain_id=self.chain_id,
            rpc_url=self.rpc_url,
            native_symbol=self.native_symbol,
            explorer_url=self.explorer_url,
        )


class MonitorConfig(BaseModel):
    """Pending-transaction reconciliation settings."""

    enabled: bool = True
    interval_seconds: float = 10.0
    drop_threshold_blocks: int = 50  # no receipt after this many blocks => dropped

    @field_validator("interval_seconds")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval_seconds must be positive")
        return v

    @field_validator("drop_threshold_blocks")
    @classmethod
    def _non_negative_threshold(cls, v: int) -> int:
        if v < 0:
            raise ValueError("drop_threshold_blocks must be >= 0")
        return v


class TickerConfig(BaseModel):
    """Block height polling settings."""

    enabled: bool = True
    interval_seconds: float = 5.0

    @field_validator("interval_seconds")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval_seconds must be positive")
        return v


class ServerConfig(BaseModel):
    """HTTP / WebSocket server settings."""

    host: str = "127.0.0.1"
    port: int = 8430


class StorageConfig(BaseModel):
    """Ledger database location (relative paths resolve against the config dir)."""

    db_path: str = "wallet-sync.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    """Root configuration object."""

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    ticker: TickerConfig = Field(default_factory=TickerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_NAME = "config.yaml"


def load_config(path: Path) -> AppConfig:
    """Load and validate the service configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.  A missing file yields the defaults.
    """
    path = Path(path)
    if not path.exists():
        return AppConfig()
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return AppConfig.model_validate(expanded)


def save_config(config: AppConfig, path: Path) -> None:
    """Serialize an :class:`AppConfig` to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)


def resolve_db_path(config: AppConfig, config_path: Path | None = None) -> Path:
    """Return the absolute database path for *config*.

    Relative ``storage.db_path`` values are taken relative to the directory
    holding *config_path* (or the current working directory).
    """
    db_path = Path(config.storage.db_path).expanduser()
    if db_path.is_absolute():
        return db_path
    base = Path(config_path).resolve().parent if config_path else Path.cwd()
    return base / db_path
