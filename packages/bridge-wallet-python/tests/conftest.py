"""
Pytest configuration and shared fakes for bridge-wallet tests.
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

from bridge_wallet.chains.registry import ChainRegistry, set_default_registry
from bridge_wallet.config import BridgeWalletConfig, set_config
from bridge_wallet.platform import ChainContext
from bridge_wallet.signer import EventEmitter
from bridge_wallet.types import (
    AttestationId,
    Chain,
    ChainAddress,
    Network,
    TokenId,
    TransferDetails,
    UnsignedTransaction,
)
from bridge_wallet.wallet import reset_wallet_sessions

SEPOLIA_HEX = "0xaa36a7"
BASE_SEPOLIA_HEX = "0x14a34"
MAINNET_HEX = "0x1"
EVM_ADDRESS = "0x1234567890123456789012345678901234567890"
SOLANA_ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
SOLANA_TESTNET_GENESIS = "EtWTRABZaYq6iMfeYKouRu166VU2xqa1wcaWoxPkrZBG"
SOLANA_MAINNET_GENESIS = "5eykt4UsFv8P8NJdTREpY1vzqKqZKvdpKuc147dw2N9d"


@pytest.fixture(autouse=True)
def isolated_globals():
    """Keep process-wide config, registry and wallet sessions per test."""
    set_config(BridgeWalletConfig(network=Network.TESTNET))
    set_default_registry(None)
    reset_wallet_sessions()
    yield
    set_config(None)
    set_default_registry(None)
    reset_wallet_sessions()


class FakeProvider(EventEmitter):
    """
    Scriptable wallet provider.

    `responses` maps a method to a value, an exception instance to raise,
    or a callable taking the params.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, Any]] = []

    async def request(self, method: str, params: Any = None) -> Any:
        self.calls.append((method, params))
        await asyncio.sleep(0)
        if method not in self.responses:
            raise RuntimeError(f"unexpected request {method}")
        response = self.responses[method]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


class EvmWallet(FakeProvider):
    """Fake injected EVM wallet that can switch chains."""

    def __init__(self, chain_id: str = SEPOLIA_HEX, accounts: list[str] | None = None) -> None:
        super().__init__()
        self.chain_id = chain_id
        self.accounts = [EVM_ADDRESS] if accounts is None else accounts
        self.sent: list[dict[str, Any]] = []
        self.reject_after: int | None = None
        self.responses.update({
            "eth_requestAccounts": lambda params: list(self.accounts),
            "eth_chainId": lambda params: self.chain_id,
            "eth_sendTransaction": self._send,
        })

    def _send(self, params: Any) -> str:
        if self.reject_after is not None and len(self.sent) >= self.reject_after:
            raise RuntimeError("User rejected the request.")
        self.sent.append(params[0])
        return "0x" + f"{len(self.sent):064x}"

    async def request(self, method: str, params: Any = None) -> Any:
        if method == "wallet_switchEthereumChain":
            self.calls.append((method, params))
            self.chain_id = params[0]["chainId"]
            await self.emit("chainChanged", self.chain_id)
            return None
        return await super().request(method, params)

    async def change_chain(self, chain_id: str) -> None:
        """Simulate the user switching chains in the wallet UI."""
        self.chain_id = chain_id
        await self.emit("chainChanged", chain_id)


class FakeConnector:
    def __init__(self, provider: FakeProvider, fail: Exception | None = None) -> None:
        self.provider = provider
        self.fail = fail
        self.connect_calls = 0

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail is not None:
            raise self.fail

    def get_provider(self) -> FakeProvider:
        return self.provider


class FakeSigner:
    """Signer returning predictable transaction ids."""

    def __init__(self, chain: Chain, address: str = EVM_ADDRESS, prefix: str = "0xtx") -> None:
        self._chain = chain
        self._address = address
        self.prefix = prefix
        self.batches: list[list[UnsignedTransaction]] = []

    def chain(self) -> Chain:
        return self._chain

    def address(self) -> str:
        return self._address

    async def sign_and_send(self, txs: list[UnsignedTransaction]) -> list[str]:
        self.batches.append(list(txs))
        return [f"{self.prefix}{len(self.batches)}_{i}" for i in range(len(txs))]


class FakeHandle:
    """TokenTransferHandle with scriptable phase results."""

    def __init__(self, details: TransferDetails, required_attestations: int = 1) -> None:
        self.details = details
        self.required_attestations = required_attestations
        self.initiate_calls = 0
        self.fetch_calls = 0
        self.complete_calls = 0
        self.initiate_result: list[str] | Exception = ["0xsrc1"]
        self.complete_result: list[str] | Exception = ["0xdst1"]
        self.fetch_results: list[list[AttestationId] | Exception] = []
        self.fetch_delay = 0.0
        self.initiate_gate: asyncio.Event | None = None
        self.src_tx_ids: list[str] = []

    async def initiate_transfer(self, signer) -> list[str]:
        self.initiate_calls += 1
        if self.initiate_gate is not None:
            await self.initiate_gate.wait()
        if isinstance(self.initiate_result, Exception):
            self.src_tx_ids.extend(getattr(self.initiate_result, "tx_ids", []))
            raise self.initiate_result
        self.src_tx_ids.extend(self.initiate_result)
        return list(self.initiate_result)

    async def fetch_attestation(self, timeout_ms: int) -> list[AttestationId]:
        self.fetch_calls += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        result = self.fetch_results.pop(0) if self.fetch_results else []
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def complete_transfer(self, signer) -> list[str]:
        self.complete_calls += 1
        if isinstance(self.complete_result, Exception):
            raise self.complete_result
        return list(self.complete_result)


class FakePlatform:
    """BridgePlatformProtocol backed by the default registry."""

    def __init__(self, network: Network = Network.TESTNET, chains: tuple[Chain, ...] | None = None):
        self.network = network
        self.registry = ChainRegistry.default()
        self.chains = chains or (Chain.SEPOLIA, Chain.BASE_SEPOLIA, Chain.SOLANA)
        self.handles: list[FakeHandle] = []
        self.on_handle: Callable[[FakeHandle], None] | None = None

    def get_chain(self, chain: Chain) -> ChainContext:
        if chain not in self.chains:
            raise KeyError(chain)
        return ChainContext(chain, self.registry.chain_config(self.network, chain))

    async def token_transfer(
        self,
        token: TokenId,
        amount: int,
        sender: ChainAddress,
        receiver: ChainAddress,
        automatic: bool = False,
    ) -> FakeHandle:
        decimals = self.get_chain(sender.chain).native_decimals
        handle = FakeHandle(TransferDetails(sender, receiver, token, amount, decimals, automatic))
        if self.on_handle is not None:
            self.on_handle(handle)
        self.handles.append(handle)
        return handle


def attestation(sequence: int = 1, chain: Chain = Chain.SEPOLIA) -> AttestationId:
    return AttestationId(chain, "0x" + "ab" * 32, sequence)


@pytest.fixture
def evm_wallet() -> EvmWallet:
    return EvmWallet()


@pytest.fixture
def fake_platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def sepolia_signer() -> FakeSigner:
    return FakeSigner(Chain.SEPOLIA)
