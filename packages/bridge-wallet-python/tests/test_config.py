"""
Tests for bridge_wallet.config.
"""
from __future__ import annotations

import logging

import pytest

from bridge_wallet.config import (
    BridgeWalletConfig,
    configure_logging,
    get_config,
    load_config,
    set_config,
)
from bridge_wallet.types import BridgeWalletError, ErrorCode, Network, Platform


@pytest.fixture
def clean_env(monkeypatch):
    for key in (
        "NETWORK",
        "PLATFORMS",
        "ATTESTATION_TIMEOUT_MS",
        "POLL_INTERVAL_SECONDS",
        "HTTP_TIMEOUT_SECONDS",
        "WORMHOLESCAN_URL",
        "REGISTRY_PATH",
        "RPC_URLS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(f"BRIDGE_WALLET_{key}", raising=False)
    return monkeypatch


class TestLoadConfig:
    """Tests for environment loading."""

    def test_defaults(self, clean_env):
        config = load_config()
        assert config.network == Network.TESTNET
        assert config.platforms == [Platform.EVM, Platform.SOLANA]
        assert config.attestation_timeout_ms == 60_000
        assert config.poll_interval_seconds == 2.0
        assert config.wormholescan_url is None
        assert config.rpc_urls == []
        assert config.log_level == "INFO"

    def test_reads_prefixed_variables(self, clean_env):
        clean_env.setenv("BRIDGE_WALLET_NETWORK", "mainnet")
        clean_env.setenv("BRIDGE_WALLET_PLATFORMS", "evm")
        clean_env.setenv("BRIDGE_WALLET_ATTESTATION_TIMEOUT_MS", "5000")
        clean_env.setenv("BRIDGE_WALLET_POLL_INTERVAL_SECONDS", "0.5")
        clean_env.setenv("BRIDGE_WALLET_RPC_URLS", "http://a:8545, http://b:8545")
        clean_env.setenv("BRIDGE_WALLET_LOG_LEVEL", "debug")

        config = load_config()
        assert config.network == Network.MAINNET
        assert config.platforms == [Platform.EVM]
        assert config.is_platform_enabled(Platform.EVM)
        assert not config.is_platform_enabled(Platform.SOLANA)
        assert config.attestation_timeout_ms == 5000
        assert config.poll_interval_seconds == 0.5
        assert config.rpc_urls == ["http://a:8545", "http://b:8545"]
        assert config.log_level == "DEBUG"

    def test_unknown_network(self, clean_env):
        clean_env.setenv("BRIDGE_WALLET_NETWORK", "staging")
        with pytest.raises(BridgeWalletError) as exc_info:
            load_config()
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    def test_unknown_platform(self, clean_env):
        clean_env.setenv("BRIDGE_WALLET_PLATFORMS", "evm,cosmos")
        with pytest.raises(BridgeWalletError) as exc_info:
            load_config()
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    def test_bad_number(self, clean_env):
        clean_env.setenv("BRIDGE_WALLET_ATTESTATION_TIMEOUT_MS", "soon")
        with pytest.raises(BridgeWalletError) as exc_info:
            load_config()
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG


class TestGlobalConfig:
    """Tests for the process-wide instance."""

    def test_set_and_get(self):
        config = BridgeWalletConfig(network=Network.DEVNET)
        set_config(config)
        assert get_config() is config

    def test_reset_reloads_from_env(self, clean_env):
        set_config(None)
        clean_env.setenv("BRIDGE_WALLET_NETWORK", "Devnet")
        assert get_config().network == Network.DEVNET

    def test_configure_logging_uses_config_level(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
        set_config(BridgeWalletConfig(log_level="warning"))
        configure_logging()
        assert calls["level"] == "WARNING"
