"""
Configuration for the bridge wallet SDK.

Values are read from environment variables prefixed with BRIDGE_WALLET_:

- NETWORK: Mainnet, Testnet or Devnet (default Testnet)
- PLATFORMS: comma-separated chain families to enable (default "evm,solana")
- ATTESTATION_TIMEOUT_MS: default attestation wait (default 60000)
- POLL_INTERVAL_SECONDS: attestation poll interval (default 2.0)
- HTTP_TIMEOUT_SECONDS: timeout for HTTP calls (default 30.0)
- WORMHOLESCAN_URL: override for the attestation API base URL
- REGISTRY_PATH: JSON chain registry replacing the built-in table
- RPC_URLS: comma-separated JSON-RPC endpoints for the HTTP wallet provider
- LOG_LEVEL: level for configure_logging (default INFO)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .types import BridgeWalletError, ErrorCode, Network, Platform

logger = logging.getLogger(__name__)

ENV_PREFIX = "BRIDGE_WALLET_"
DEFAULT_ATTESTATION_TIMEOUT_MS = 60_000


@dataclass
class BridgeWalletConfig:
    """Process-wide settings, fixed at startup."""
    network: Network = Network.TESTNET
    platforms: List[Platform] = field(default_factory=lambda: [Platform.EVM, Platform.SOLANA])
    attestation_timeout_ms: int = DEFAULT_ATTESTATION_TIMEOUT_MS
    poll_interval_seconds: float = 2.0
    http_timeout_seconds: float = 30.0
    wormholescan_url: Optional[str] = None
    registry_path: Optional[str] = None
    rpc_urls: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    def is_platform_enabled(self, platform: Platform) -> bool:
        return platform in self.platforms


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable with prefix."""
    return os.getenv(f"{ENV_PREFIX}{key}", default)


def _get_env_list(key: str, default: Optional[List[str]] = None) -> List[str]:
    """Get list environment variable (comma-separated)."""
    value = _get_env(key)
    if value:
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(default or [])


def _get_env_number(key: str, default: float, cast=float):
    value = _get_env(key)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise BridgeWalletError(
            ErrorCode.INVALID_CONFIG, f"{ENV_PREFIX}{key} must be a number, got {value!r}"
        ) from None


def _parse_platform(name: str) -> Platform:
    try:
        return Platform[name.strip().upper()]
    except KeyError:
        raise BridgeWalletError(ErrorCode.INVALID_CONFIG, f"Unknown platform: {name}") from None


def load_config() -> BridgeWalletConfig:
    """Build configuration from the environment."""
    platforms = [_parse_platform(p) for p in _get_env_list("PLATFORMS", ["evm", "solana"])]
    if not platforms:
        raise BridgeWalletError(ErrorCode.INVALID_CONFIG, "At least one platform must be enabled")

    config = BridgeWalletConfig(
        network=Network.parse(_get_env("NETWORK", Network.TESTNET.value)),
        platforms=platforms,
        attestation_timeout_ms=_get_env_number(
            "ATTESTATION_TIMEOUT_MS", DEFAULT_ATTESTATION_TIMEOUT_MS, int
        ),
        poll_interval_seconds=_get_env_number("POLL_INTERVAL_SECONDS", 2.0),
        http_timeout_seconds=_get_env_number("HTTP_TIMEOUT_SECONDS", 30.0),
        wormholescan_url=_get_env("WORMHOLESCAN_URL") or None,
        registry_path=_get_env("REGISTRY_PATH") or None,
        rpc_urls=_get_env_list("RPC_URLS"),
        log_level=(_get_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )
    logger.debug(
        "Loaded config: network=%s platforms=%s",
        config.network.value,
        [p.name for p in config.platforms],
    )
    return config


def configure_logging(level: Optional[str] = None) -> None:
    """Install a basic stream handler for applications embedding the SDK."""
    logging.basicConfig(
        level=(level or get_config().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Global configuration instance
_global_config: Optional[BridgeWalletConfig] = None


def get_config() -> BridgeWalletConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: Optional[BridgeWalletConfig]) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _global_config
    _global_config = config
