"""Signer and wallet provider interfaces shared by all wallet adapters."""

import inspect
import logging
from typing import Any, Callable, Protocol, runtime_checkable

from .types import (
    BridgeWalletError,
    Chain,
    ErrorCode,
    Network,
    NetworkMismatchError,
    Platform,
    UnsignedTransaction,
)

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


@runtime_checkable
class Signer(Protocol):
    """One wallet session bound to one chain, able to submit transactions."""

    def chain(self) -> Chain:
        """Get the chain this signer is bound to."""
        ...

    def address(self) -> str:
        """Get the account address."""
        ...

    async def sign_and_send(self, txs: list[UnsignedTransaction]) -> list[str]:
        """Sign and broadcast transactions in order, returning their ids."""
        ...


class WalletProvider(Protocol):
    """Request/response channel exposed by a wallet."""

    async def request(self, method: str, params: Any = None) -> Any:
        """Send a request to the wallet and await its response."""
        ...

    def on(self, event: str, listener: Listener) -> None:
        """Subscribe to a wallet event (e.g. "chainChanged")."""
        ...

    def remove_listener(self, event: str, listener: Listener) -> None:
        """Unsubscribe from a wallet event."""
        ...


class WalletConnector(Protocol):
    """Entry point of an injected wallet SDK."""

    async def connect(self) -> Any:
        """Open the wallet connection (may prompt the user)."""
        ...

    def get_provider(self) -> WalletProvider:
        """Get the provider for the open connection."""
        ...


class EventEmitter:
    """Minimal listener registry used by wallet providers."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: str, *args: Any) -> None:
        """Deliver an event to every listener, awaiting async ones."""
        for listener in list(self._listeners.get(event, [])):
            result = listener(*args)
            if inspect.isawaitable(result):
                await result


def signer_for_platform(platform: Platform) -> type:
    """Select the wallet adapter class for a chain family."""
    from .chains.evm import EvmSigner
    from .chains.solana import SolanaSigner

    adapters = {Platform.EVM: EvmSigner, Platform.SOLANA: SolanaSigner}
    return adapters[platform]


def describe(signer: Signer | None) -> str:
    """Short form used in logs."""
    if signer is None:
        return "<no signer>"
    return f"{signer.chain().value}:{signer.address()}"


def bind_wallet_chain(
    platform: Platform,
    native_id: Any,
    network: Network,
    registry: Any,
) -> Chain:
    """
    Resolve a wallet-reported chain id and check it against the configured network.

    Raises:
        BridgeWalletError: UNSUPPORTED_CHAIN if the id is not in the registry
        NetworkMismatchError: if the chain belongs to another network
    """
    try:
        actual, chain = registry.resolve(platform, native_id)
    except BridgeWalletError as e:
        raise BridgeWalletError(
            ErrorCode.UNSUPPORTED_CHAIN,
            f"Wallet is on an unsupported {platform.name} chain ({native_id!r})",
            e,
        ) from e

    if actual != network:
        raise NetworkMismatchError(expected=network, actual=actual, chain=chain)
    return chain
