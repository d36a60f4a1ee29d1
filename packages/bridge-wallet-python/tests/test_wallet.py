"""
Tests for bridge_wallet.wallet.

Tests cover:
- Connecting once per wallet
- Rebuilding the signer on chainChanged / accountsChanged
- Binding errors clearing the signer
- Switching chains through the wallet
- The process-wide session registry
"""
from __future__ import annotations

from typing import Any

import pytest

from bridge_wallet.config import BridgeWalletConfig, set_config
from bridge_wallet.types import BridgeWalletError, Chain, ErrorCode, Network, Platform
from bridge_wallet.wallet import (
    WalletSession,
    get_wallet_session,
    init_wallet_session,
    reset_wallet_sessions,
)

from conftest import (
    BASE_SEPOLIA_HEX,
    EVM_ADDRESS,
    MAINNET_HEX,
    SOLANA_ADDRESS,
    SOLANA_TESTNET_GENESIS,
    EvmWallet,
    FakeConnector,
    FakeProvider,
)


class RefusingWallet(EvmWallet):
    async def request(self, method: str, params: Any = None) -> Any:
        if method == "wallet_switchEthereumChain":
            raise RuntimeError("User rejected the request.")
        return await super().request(method, params)


class StubbornWallet(EvmWallet):
    """Accepts switch requests but stays where it is."""

    async def request(self, method: str, params: Any = None) -> Any:
        if method == "wallet_switchEthereumChain":
            self.calls.append((method, params))
            return None
        return await super().request(method, params)


def evm_session(wallet: EvmWallet) -> WalletSession:
    return WalletSession(FakeConnector(wallet), Platform.EVM, Network.TESTNET)


class TestConnect:
    """Tests for WalletSession.connect."""

    @pytest.mark.asyncio
    async def test_connect_binds_signer(self, evm_wallet):
        session = evm_session(evm_wallet)
        signer = await session.connect()

        assert signer is session.signer
        assert signer.chain() == Chain.SEPOLIA
        assert signer.address() == EVM_ADDRESS
        assert session.connected
        assert session.is_current(signer)

    @pytest.mark.asyncio
    async def test_connect_twice_reuses_connection(self, evm_wallet):
        connector = FakeConnector(evm_wallet)
        session = WalletSession(connector, Platform.EVM, Network.TESTNET)

        first = await session.connect()
        second = await session.connect()

        assert first is second
        assert connector.connect_calls == 1
        assert evm_wallet.listener_count("chainChanged") == 1

    @pytest.mark.asyncio
    async def test_connect_refused(self, evm_wallet):
        session = WalletSession(
            FakeConnector(evm_wallet, fail=RuntimeError("closed")), Platform.EVM, Network.TESTNET
        )
        with pytest.raises(BridgeWalletError) as exc_info:
            await session.connect()
        assert exc_info.value.code == ErrorCode.NO_ACCOUNT
        assert session.last_error is exc_info.value
        assert not session.connected

    @pytest.mark.asyncio
    async def test_binding_error_clears_signer(self):
        session = evm_session(EvmWallet(chain_id=MAINNET_HEX))
        assert await session.connect() is None
        assert not session.connected
        assert session.last_error.code == ErrorCode.NETWORK_MISMATCH

    @pytest.mark.asyncio
    async def test_solana_session(self):
        wallet = FakeProvider({
            "connect": {"publicKey": SOLANA_ADDRESS},
            "getGenesisHash": SOLANA_TESTNET_GENESIS,
        })
        session = WalletSession(FakeConnector(wallet), Platform.SOLANA, Network.TESTNET)
        signer = await session.connect()
        assert signer.chain() == Chain.SOLANA

        with pytest.raises(BridgeWalletError) as exc_info:
            await session.switch_chain(Chain.SEPOLIA)
        assert exc_info.value.code == ErrorCode.WRONG_CHAIN

    @pytest.mark.asyncio
    async def test_refresh_requires_connection(self, evm_wallet):
        with pytest.raises(BridgeWalletError) as exc_info:
            await evm_session(evm_wallet).refresh()
        assert exc_info.value.code == ErrorCode.NO_ACCOUNT

    @pytest.mark.asyncio
    async def test_disconnect(self, evm_wallet):
        session = evm_session(evm_wallet)
        await session.connect()
        await session.disconnect()

        assert session.signer is None
        assert evm_wallet.listener_count("chainChanged") == 0
        assert evm_wallet.listener_count("accountsChanged") == 0


class TestWalletEvents:
    """Tests for rebuilding the signer when the wallet changes underneath."""

    @pytest.mark.asyncio
    async def test_chain_change_mid_session(self, evm_wallet):
        session = evm_session(evm_wallet)
        old = await session.connect()

        await evm_wallet.change_chain(BASE_SEPOLIA_HEX)

        # The old binding is dropped before the new one exists
        assert session.signer is None
        assert not session.is_current(old)

        new = await session.wait_until_settled()
        assert new.chain() == Chain.BASE_SEPOLIA
        assert session.is_current(new)
        assert not session.is_current(old)
        assert old.chain() == Chain.SEPOLIA

    @pytest.mark.asyncio
    async def test_change_to_other_network_leaves_no_signer(self, evm_wallet):
        session = evm_session(evm_wallet)
        await session.connect()

        await evm_wallet.change_chain(MAINNET_HEX)
        assert await session.wait_until_settled() is None
        assert session.last_error.code == ErrorCode.NETWORK_MISMATCH

        await evm_wallet.change_chain(BASE_SEPOLIA_HEX)
        signer = await session.wait_until_settled()
        assert signer.chain() == Chain.BASE_SEPOLIA
        assert session.last_error is None

    @pytest.mark.asyncio
    async def test_accounts_changed(self, evm_wallet):
        session = evm_session(evm_wallet)
        old = await session.connect()

        evm_wallet.accounts = ["0x" + "22" * 20]
        await evm_wallet.emit("accountsChanged", evm_wallet.accounts)

        new = await session.wait_until_settled()
        assert new.address() == "0x" + "22" * 20
        assert not session.is_current(old)

    @pytest.mark.asyncio
    async def test_rapid_changes_keep_latest(self, evm_wallet):
        session = evm_session(evm_wallet)
        await session.connect()

        await evm_wallet.change_chain(MAINNET_HEX)
        await evm_wallet.change_chain(BASE_SEPOLIA_HEX)

        signer = await session.wait_until_settled()
        assert signer.chain() == Chain.BASE_SEPOLIA

    @pytest.mark.asyncio
    async def test_subscribers_see_every_binding(self, evm_wallet):
        session = evm_session(evm_wallet)
        seen = []
        unsubscribe = session.subscribe(seen.append)

        first = await session.connect()
        await evm_wallet.change_chain(BASE_SEPOLIA_HEX)
        second = await session.wait_until_settled()

        assert seen == [first, None, second]
        unsubscribe()
        await session.refresh()
        assert len(seen) == 3


class TestSwitchChain:
    """Tests for WalletSession.switch_chain."""

    @pytest.mark.asyncio
    async def test_switch(self, evm_wallet):
        session = evm_session(evm_wallet)
        old = await session.connect()

        signer = await session.switch_chain(Chain.BASE_SEPOLIA)

        assert signer.chain() == Chain.BASE_SEPOLIA
        assert session.is_current(signer)
        assert not session.is_current(old)
        assert ("wallet_switchEthereumChain", [{"chainId": BASE_SEPOLIA_HEX}]) in evm_wallet.calls

    @pytest.mark.asyncio
    async def test_switch_to_current_chain_is_noop(self, evm_wallet):
        session = evm_session(evm_wallet)
        signer = await session.connect()
        assert await session.switch_chain(Chain.SEPOLIA) is signer
        assert "wallet_switchEthereumChain" not in evm_wallet.methods()

    @pytest.mark.asyncio
    async def test_switch_refused(self):
        session = evm_session(RefusingWallet())
        await session.connect()
        with pytest.raises(BridgeWalletError) as exc_info:
            await session.switch_chain(Chain.BASE_SEPOLIA)
        assert exc_info.value.code == ErrorCode.WRONG_CHAIN
        assert session.signer.chain() == Chain.SEPOLIA

    @pytest.mark.asyncio
    async def test_wallet_lands_elsewhere(self):
        session = evm_session(StubbornWallet())
        await session.connect()
        with pytest.raises(BridgeWalletError) as exc_info:
            await session.switch_chain(Chain.BASE_SEPOLIA)
        assert exc_info.value.code == ErrorCode.WRONG_CHAIN


class TestSessionRegistry:
    """Tests for the process-wide session registry."""

    def test_init_and_get(self, evm_wallet):
        connector = FakeConnector(evm_wallet)
        session = init_wallet_session(connector, Platform.EVM)

        assert get_wallet_session(Platform.EVM) is session
        assert init_wallet_session(connector, Platform.EVM) is session
        assert session.network == Network.TESTNET

    def test_second_connector_rejected(self, evm_wallet):
        init_wallet_session(FakeConnector(evm_wallet), Platform.EVM)
        with pytest.raises(BridgeWalletError) as exc_info:
            init_wallet_session(FakeConnector(EvmWallet()), Platform.EVM)
        assert exc_info.value.code == ErrorCode.INVALID_STATE

    def test_missing_session(self):
        with pytest.raises(BridgeWalletError) as exc_info:
            get_wallet_session(Platform.SOLANA)
        assert exc_info.value.code == ErrorCode.INVALID_STATE

    def test_disabled_platform(self, evm_wallet):
        set_config(BridgeWalletConfig(platforms=[Platform.SOLANA]))
        with pytest.raises(BridgeWalletError) as exc_info:
            init_wallet_session(FakeConnector(evm_wallet), Platform.EVM)
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    def test_reset(self, evm_wallet):
        init_wallet_session(FakeConnector(evm_wallet), Platform.EVM)
        reset_wallet_sessions()
        with pytest.raises(BridgeWalletError):
            get_wallet_session(Platform.EVM)
