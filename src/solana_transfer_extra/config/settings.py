"""Configuration management for the transfer tool."""

from __future__ import annotations

import os
import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, cast
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from solders.pubkey import Pubkey

from ..execution.wallet import resolve_pubkey
from ..utils.constants import CLUSTER_MONIKERS, DEFAULT_RPC_URL

DEFAULT_CONFIG_FILE = Path("~/.config/solana-transfer-extra/config.toml")
DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
CONFIG_FILE_ENV_VAR = "SOLANA_TRANSFER_CONFIG"
PROFILE_ENV_VAR = "SOLANA_TRANSFER_PROFILE"

_CONFIG_FILE_OVERRIDE: ContextVar[Optional[Path]] = ContextVar("config_file_override", default=None)


def normalize_to_url_if_moniker(value: str) -> str:
    """Expand cluster monikers (``m``, ``devnet``, ...) into RPC URLs."""

    return CLUSTER_MONIKERS.get(value.strip(), value.strip())


def _resolve_config_path() -> Path:
    override = _CONFIG_FILE_OVERRIDE.get()
    if override is not None:
        return override.expanduser()
    env_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_value:
        candidate = Path(env_value).expanduser()
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        return candidate
    return DEFAULT_CONFIG_FILE.expanduser()


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(cast(Dict[str, Any], result[key]), value)
        else:
            result[key] = value
    return result


def _select_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    if "default" not in data:
        return data
    base_section = cast(Dict[str, Any], data.get("default", {}))
    profile = (os.getenv(PROFILE_ENV_VAR) or "").strip().lower()
    if profile and profile != "default" and isinstance(data.get(profile), dict):
        return _deep_merge(base_section, cast(Dict[str, Any], data[profile]))
    return base_section


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.is_file():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    merged = _select_profile(payload)
    return dict(merged), path


class RPCConfig(BaseModel):
    """JSON RPC endpoint and confirmation settings."""

    json_rpc_url: str = Field(default=DEFAULT_RPC_URL)
    commitment: Literal["processed", "confirmed", "finalized"] = Field(default="confirmed")
    request_timeout: float = Field(default=30.0, ge=1.0, le=300.0)
    confirm_timeout: float = Field(default=60.0, gt=0.0, le=900.0)
    poll_interval: float = Field(default=0.5, gt=0.0, le=30.0)
    max_query_attempts: int = Field(default=3, ge=1, le=10)
    retry_wait_seconds: float = Field(default=0.5, ge=0.0, le=30.0)

    @field_validator("json_rpc_url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        url = normalize_to_url_if_moniker(str(value))
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"expected an http(s) URL or cluster moniker, got {value!r}")
        return url


class WalletConfig(BaseModel):
    """Fee payer signer configuration."""

    keypair_path: Optional[str] = Field(default=DEFAULT_KEYPAIR_PATH)
    private_key: Optional[str] = None


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


class TransferConfig(BaseModel):
    """Per-run transfer options."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    verbose: bool = False
    extra_addresses: List[Pubkey] = Field(default_factory=list)

    @field_validator("extra_addresses", mode="before")
    @classmethod
    def _parse_addresses(cls, value: Any) -> List[Pubkey]:
        if value is None:
            return []
        if isinstance(value, (str, Pubkey)):
            value = [value]
        return [item if isinstance(item, Pubkey) else resolve_pubkey(str(item)) for item in value]


class AppConfig(BaseSettings):
    """Aggregated application configuration."""

    config_file: Optional[Path] = None
    rpc: RPCConfig = Field(default_factory=RPCConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)

    model_config = SettingsConfigDict(
        env_prefix="TRANSFER_",
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def file_settings(_: Optional[BaseSettings] = None) -> Dict[str, Any]:
            payload, path = _load_toml_config()
            if path is not None:
                payload.setdefault("config_file", path)
            return payload

        # Command line overrides beat the environment, which beats the file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )


def load_config(
    config_file: Optional[Path | str] = None,
    *,
    keypair: Optional[str] = None,
    url: Optional[str] = None,
    verbose: Optional[bool] = None,
    extra_addresses: Optional[List[str]] = None,
) -> AppConfig:
    """Resolve the configuration once, applying command line overrides."""

    overrides: Dict[str, Any] = {}
    if url is not None:
        overrides["rpc"] = {"json_rpc_url": url}
    if keypair is not None:
        overrides["wallet"] = {"keypair_path": keypair, "private_key": None}
    transfer: Dict[str, Any] = {}
    if verbose is not None:
        transfer["verbose"] = verbose
    if extra_addresses is not None:
        transfer["extra_addresses"] = extra_addresses
    if transfer:
        overrides["transfer"] = transfer

    token = _CONFIG_FILE_OVERRIDE.set(Path(config_file) if config_file is not None else None)
    try:
        return AppConfig(**overrides)
    finally:
        _CONFIG_FILE_OVERRIDE.reset(token)


__all__ = [
    "AppConfig",
    "MonitoringConfig",
    "RPCConfig",
    "TransferConfig",
    "WalletConfig",
    "load_config",
    "normalize_to_url_if_moniker",
]
