"""EVM wallet adapter."""

import asyncio
import contextlib
import logging
from typing import Any

import httpx

from ..config import get_config
from ..signer import EventEmitter, WalletProvider, bind_wallet_chain
from ..types import (
    BridgeWalletError,
    Chain,
    ErrorCode,
    Network,
    Platform,
    SignRejectedError,
    UnsignedTransaction,
)
from .registry import ChainRegistry, default_registry

logger = logging.getLogger(__name__)

# Integer transaction fields that wallets expect as hex quantities
QUANTITY_FIELDS = (
    "value",
    "chainId",
    "gas",
    "gasLimit",
    "gasPrice",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
    "nonce",
)


def encode_quantity(value: int) -> str:
    """Encode an integer as a 0x-prefixed hex quantity."""
    if value < 0:
        raise ValueError(f"Negative quantity: {value}")
    return hex(value)


def encode_transaction(transaction: dict[str, Any]) -> dict[str, Any]:
    """Re-encode a transaction for eth_sendTransaction without mutating it."""
    encoded = dict(transaction)
    for key in QUANTITY_FIELDS:
        value = encoded.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            encoded[key] = encode_quantity(value)
    data = encoded.get("data")
    if isinstance(data, (bytes, bytearray)):
        encoded["data"] = "0x" + bytes(data).hex()
    return encoded


def switch_chain_request(
    network: Network, chain: Chain, registry: ChainRegistry | None = None
) -> tuple[str, list[dict[str, str]]]:
    """Build the wallet_switchEthereumChain request for a chain."""
    if chain.platform != Platform.EVM:
        raise BridgeWalletError(
            ErrorCode.WRONG_CHAIN, f"{chain.value} is not an EVM chain; cannot switch to it"
        )
    if registry is None:
        registry = default_registry()
    native_id = registry.native_id(network, chain)
    return "wallet_switchEthereumChain", [{"chainId": encode_quantity(int(native_id))}]


class EvmSigner:
    """
    Signer backed by an EVM wallet (EIP-1193 style provider).

    Example:
        >>> signer = await EvmSigner.from_provider(provider, Network.TESTNET)
        >>> signer.chain()
        <Chain.SEPOLIA: 'Sepolia'>
        >>> txids = await signer.sign_and_send(unsigned_txs)
    """

    platform = Platform.EVM

    def __init__(
        self,
        provider: WalletProvider,
        address: str,
        chain: Chain,
        network: Network,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._provider = provider
        self._address = address
        self._chain = chain
        self._network = network
        self._lock = lock

    def chain(self) -> Chain:
        return self._chain

    def address(self) -> str:
        return self._address

    @property
    def network(self) -> Network:
        return self._network

    @property
    def provider(self) -> WalletProvider:
        return self._provider

    async def sign_and_send(self, txs: list[UnsignedTransaction]) -> list[str]:
        """Submit each transaction via eth_sendTransaction, in order."""
        txids: list[str] = []
        if not txs:
            return txids

        async with self._lock or contextlib.nullcontext():
            for txn in txs:
                logger.info("Signing %s on %s", txn.description, self._chain.value)
                transaction = encode_transaction(txn.transaction)
                if "from" not in transaction:
                    transaction["from"] = self._address

                logger.debug("Sending eth_sendTransaction: %s", transaction)
                try:
                    txid = await self._provider.request("eth_sendTransaction", [transaction])
                except Exception as e:
                    logger.warning("Wallet rejected %s: %s", txn.description, e)
                    raise SignRejectedError(
                        f"Could not sign transaction: {txn.description}", txids, e
                    ) from e

                if not txid:
                    logger.warning("Wallet returned no transaction id for %s", txn.description)
                    raise SignRejectedError(
                        f"Could not sign transaction: {txn.description}", txids
                    )

                logger.info("Finished request, transaction id: %s", txid)
                txids.append(str(txid))

        return txids

    @classmethod
    async def from_provider(
        cls,
        provider: WalletProvider,
        network: Network | None = None,
        registry: ChainRegistry | None = None,
        *,
        lock: asyncio.Lock | None = None,
    ) -> "EvmSigner":
        """Bind a signer to the wallet's active account and chain."""
        if network is None:
            network = get_config().network
        if registry is None:
            registry = default_registry()

        async with lock or contextlib.nullcontext():
            try:
                accounts = await provider.request("eth_requestAccounts", [])
            except Exception as e:
                raise BridgeWalletError(
                    ErrorCode.NO_ACCOUNT, "Could not retrieve accounts", e
                ) from e
            if not isinstance(accounts, (list, tuple)) or not accounts or not accounts[0]:
                raise BridgeWalletError(ErrorCode.NO_ACCOUNT, "Could not retrieve accounts")

            try:
                chain_id = await provider.request("eth_chainId", [])
            except Exception as e:
                raise BridgeWalletError(ErrorCode.NO_CHAIN, "Could not retrieve chain id", e) from e
            if not chain_id:
                raise BridgeWalletError(ErrorCode.NO_CHAIN, "Could not retrieve chain id")

        chain = bind_wallet_chain(Platform.EVM, chain_id, network, registry)
        logger.info("Bound EVM signer %s on %s", accounts[0], chain.value)
        return cls(provider, str(accounts[0]), chain, network, lock)


class ProviderRpcError(BridgeWalletError):
    """JSON-RPC error returned by the wallet (e.g. user rejected the request)."""

    def __init__(self, rpc_code: int | None, message: str) -> None:
        super().__init__(ErrorCode.WALLET_REQUEST_FAILED, message)
        self.rpc_code = rpc_code


class JsonRpcWalletProvider(EventEmitter):
    """
    Wallet provider speaking JSON-RPC over HTTP.

    Suits development nodes that manage unlocked accounts and answer
    eth_requestAccounts / eth_sendTransaction themselves.

    Example:
        >>> provider = JsonRpcWalletProvider(["http://127.0.0.1:8545"])
        >>> signer = await EvmSigner.from_provider(provider, Network.DEVNET)
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        if not rpc_urls:
            raise BridgeWalletError(ErrorCode.INVALID_CONFIG, "At least one RPC URL is required")
        self._rpc_urls = list(rpc_urls)
        self._timeout = timeout
        self._transport = transport
        self._current_rpc_index = 0
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        """Get the endpoint currently in use."""
        return self._rpc_urls[self._current_rpc_index]

    async def request(self, method: str, params: Any = None) -> Any:
        result = await self._rpc_call(method, params if params is not None else [])

        if method == "wallet_switchEthereumChain" and params:
            await self.emit("chainChanged", params[0]["chainId"])

        return result

    async def _rpc_call(self, method: str, params: Any) -> Any:
        """Make an RPC call with failover."""
        errors: list[str] = []

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for _ in range(len(self._rpc_urls)):
                rpc_url = self._rpc_urls[self._current_rpc_index]
                self._request_id += 1

                try:
                    response = await client.post(
                        rpc_url,
                        json={
                            "jsonrpc": "2.0",
                            "method": method,
                            "params": params,
                            "id": self._request_id,
                        },
                    )
                    response.raise_for_status()
                    data = response.json()
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning("RPC %s failed on %s: %s", method, rpc_url, e)
                    errors.append(str(e))
                    self._current_rpc_index = (
                        self._current_rpc_index + 1
                    ) % len(self._rpc_urls)
                    continue

                if "error" in data:
                    error = data["error"] or {}
                    raise ProviderRpcError(error.get("code"), error.get("message", "RPC error"))

                return data.get("result")

        raise BridgeWalletError(
            ErrorCode.NETWORK_ERROR, f"All RPC endpoints failed: {', '.join(errors)}"
        )
