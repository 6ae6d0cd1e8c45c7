# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Configuration for the TLS-DID flow.

Settings come from environment variables (``TLSDID_`` prefix), an optional
``.env`` file, or an environment JSON file in the shape the registry
deployment scripts write::

    {"registryAddress": "0x...", "rpcUrl": "http://localhost:8545", "privateKey": "0x..."}

Usage:
    from tlsdid.core.config import load_settings
    settings = load_settings("environment.json")
    settings.require_registry()

A settings instance is immutable and is handed explicitly to every component
that needs it; there is no module-level singleton.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_RPC_SCHEMES = ("http://", "https://")

# Keys used by environment JSON files, mapped to setting names
ENVIRONMENT_KEYS = {
    "registryAddress": "registry_address",
    "rpcUrl": "rpc_url",
    "privateKey": "private_key",
    "registryAbi": "registry_abi",
    "resolverUrl": "resolver_url",
    "requestTimeout": "request_timeout",
    "sslDir": "ssl_dir",
}


class TLSDIDSettings(BaseSettings):
    """Settings for registry access, resolution, key material and logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TLSDID_",
        extra="ignore",
        frozen=True,
    )

    # ==========================================================================
    # REGISTRY SETTINGS
    # ==========================================================================

    registry_address: str = Field(
        default="",
        description="Address of the TLS-DID registry contract",
    )
    registry_abi: str | None = Field(
        default=None,
        description="Path to the registry contract ABI (bare list or build artifact)",
    )
    rpc_url: str = Field(
        default="",
        description="Ethereum JSON-RPC endpoint of the chain hosting the registry",
    )
    private_key: str | None = Field(
        default=None,
        description="Claimant Ethereum private key used when no key reference is given explicitly",
    )
    request_timeout: float = Field(
        default=30.0,
        description="Network timeout in seconds for registry and resolver calls",
    )

    # ==========================================================================
    # RESOLVER SETTINGS
    # ==========================================================================

    resolver_url: str | None = Field(
        default=None,
        description="Base URL of a universal resolver serving did:tls",
    )

    # ==========================================================================
    # KEY MATERIAL
    # ==========================================================================

    ssl_dir: str = Field(
        default="ssl",
        description="Directory holding certs/ and private/ PEM files",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )

    # ==========================================================================
    # VALIDATION
    # ==========================================================================

    def require_registry(self) -> None:
        """Check that the registry address and RPC endpoint are usable.

        Raises:
            ConfigError: Listing every missing or malformed setting.
        """
        invalid: list[str] = []
        if not _ADDRESS_RE.match(self.registry_address or ""):
            invalid.append("registry_address")
        if not (self.rpc_url or "").startswith(_RPC_SCHEMES):
            invalid.append("rpc_url")
        if invalid:
            raise ConfigError(
                f"Registry configuration is missing or malformed: {', '.join(invalid)}",
                invalid_settings=invalid,
            )


def read_environment_file(path: str | Path) -> dict[str, Any]:
    """Read an environment JSON file.

    Raises:
        ConfigError: If the file is missing or is not a JSON object.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Environment file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Environment file is not valid JSON: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Environment file must hold a JSON object: {path}")
    return data


def load_settings(environment_file: str | Path | None = None, **overrides: Any) -> TLSDIDSettings:
    """Build a settings instance.

    Precedence: overrides > environment file > environment variables > .env > defaults.

    Args:
        environment_file: Optional environment JSON (``environment.json`` or
            ``publicEnv.json``).
        **overrides: Field values that win over every other source.
    """
    values: dict[str, Any] = {}
    if environment_file is not None:
        for key, value in read_environment_file(environment_file).items():
            values[ENVIRONMENT_KEYS.get(key, key)] = value
    values.update({k: v for k, v in overrides.items() if v is not None})
    return TLSDIDSettings(**values)
