"""Solana wallet adapter."""

import asyncio
import contextlib
import logging
import re
from typing import Any

import base58

from ..config import get_config
from ..signer import WalletProvider, bind_wallet_chain
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

_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,88}$")


def encode_message(message: bytes | bytearray | str) -> str:
    """Encode a serialized transaction message as base58."""
    if isinstance(message, str):
        return message
    return base58.b58encode(bytes(message)).decode()


def encode_transaction(transaction: Any) -> dict[str, Any]:
    """
    Build the signAndSendTransaction params for a payload.

    Accepts raw message bytes, or a dict with "message" and optional
    "options" (e.g. skipPreflight, maxRetries, minContextSlot).
    """
    if isinstance(transaction, dict):
        message = transaction.get("message")
        options = dict(transaction.get("options") or {})
    else:
        message, options = transaction, {}

    if message is None:
        raise BridgeWalletError(ErrorCode.INVALID_CONFIG, "Solana transaction has no message")

    params: dict[str, Any] = {"message": encode_message(message)}
    if options:
        params["options"] = options
    return params


def _extract_public_key(response: Any) -> str | None:
    if isinstance(response, dict):
        key = response.get("publicKey")
        return str(key) if key else None
    if isinstance(response, (list, tuple)):
        return str(response[0]) if response else None
    return str(response) if response else None


def _extract_signature(response: Any) -> str | None:
    if isinstance(response, dict):
        signature = response.get("signature")
        return str(signature) if signature else None
    return str(response) if response else None


class SolanaSigner:
    """
    Signer backed by a Solana wallet.

    Example:
        >>> signer = await SolanaSigner.from_provider(provider, Network.TESTNET)
        >>> signer.chain()
        <Chain.SOLANA: 'Solana'>
    """

    platform = Platform.SOLANA

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
        """Submit each transaction via signAndSendTransaction, in order."""
        txids: list[str] = []
        if not txs:
            return txids

        async with self._lock or contextlib.nullcontext():
            for txn in txs:
                logger.info("Signing %s on %s", txn.description, self._chain.value)
                params = encode_transaction(txn.transaction)

                try:
                    response = await self._provider.request("signAndSendTransaction", params)
                except Exception as e:
                    logger.warning("Wallet rejected %s: %s", txn.description, e)
                    raise SignRejectedError(
                        f"Could not sign transaction: {txn.description}", txids, e
                    ) from e

                signature = _extract_signature(response)
                if not signature:
                    logger.warning("Wallet returned no signature for %s", txn.description)
                    raise SignRejectedError(
                        f"Could not sign transaction: {txn.description}", txids
                    )

                logger.info("Finished request, transaction id: %s", signature)
                txids.append(signature)

        return txids

    def is_valid_address(self, address: str) -> bool:
        """Check if an address is valid (base58)."""
        return bool(_BASE58_RE.match(address))

    @classmethod
    async def from_provider(
        cls,
        provider: WalletProvider,
        network: Network | None = None,
        registry: ChainRegistry | None = None,
        *,
        lock: asyncio.Lock | None = None,
    ) -> "SolanaSigner":
        """Bind a signer to the wallet's public key and cluster."""
        if network is None:
            network = get_config().network
        if registry is None:
            registry = default_registry()

        async with lock or contextlib.nullcontext():
            try:
                address = _extract_public_key(await provider.request("connect", {}))
            except Exception as e:
                raise BridgeWalletError(
                    ErrorCode.NO_ACCOUNT, "Could not retrieve public key", e
                ) from e
            if not address:
                raise BridgeWalletError(ErrorCode.NO_ACCOUNT, "Could not retrieve public key")

            try:
                genesis_hash = await provider.request("getGenesisHash", [])
            except Exception as e:
                raise BridgeWalletError(
                    ErrorCode.NO_CHAIN, "Could not retrieve genesis hash", e
                ) from e
            if not genesis_hash:
                raise BridgeWalletError(ErrorCode.NO_CHAIN, "Could not retrieve genesis hash")

        chain = bind_wallet_chain(Platform.SOLANA, genesis_hash, network, registry)
        logger.info("Bound Solana signer %s on %s", address, network.value)
        return cls(provider, address, chain, network, lock)
