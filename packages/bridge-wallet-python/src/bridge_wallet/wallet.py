"""Wallet connection holding the current signer for one platform."""

import asyncio
import logging
from typing import Any, Callable

from .chains.evm import switch_chain_request
from .chains.registry import ChainRegistry, default_registry
from .config import get_config
from .signer import Signer, WalletConnector, WalletProvider, describe, signer_for_platform
from .types import BridgeWalletError, Chain, ErrorCode, Network, Platform

logger = logging.getLogger(__name__)

BindingCallback = Callable[[Signer | None], Any]


class WalletSession:
    """
    Wallet Session.

    Owns the connection to one wallet and rebuilds the signer whenever the
    wallet reports a chain or account change. A replaced signer is never
    mutated; holders can detect it with is_current().

    Example:
        >>> session = WalletSession(connector, Platform.EVM, Network.TESTNET)
        >>> signer = await session.connect()
        >>> signer.chain()
        <Chain.SEPOLIA: 'Sepolia'>
        >>> signer = await session.switch_chain(Chain.BASE_SEPOLIA)
    """

    def __init__(
        self,
        connector: WalletConnector,
        platform: Platform,
        network: Network | None = None,
        registry: ChainRegistry | None = None,
    ) -> None:
        self._connector = connector
        self._platform = platform
        self._network = network if network is not None else get_config().network
        self._registry = registry if registry is not None else default_registry()

        # One outstanding request per wallet provider
        self._provider_lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()

        self._provider: WalletProvider | None = None
        self._signer: Signer | None = None
        self._last_error: BridgeWalletError | None = None
        self._pending: asyncio.Task | None = None
        self._generation = 0
        self._subscribers: list[BindingCallback] = []

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def network(self) -> Network:
        return self._network

    @property
    def signer(self) -> Signer | None:
        """Get the current signer, or None while disconnected or rebuilding."""
        return self._signer

    @property
    def connected(self) -> bool:
        return self._signer is not None

    @property
    def last_error(self) -> BridgeWalletError | None:
        return self._last_error

    def is_current(self, signer: Signer) -> bool:
        """Check whether `signer` is still the session's binding."""
        return signer is not None and signer is self._signer

    def subscribe(self, callback: BindingCallback) -> Callable[[], None]:
        """Call `callback` with the new signer on every binding change."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ============================================================================
    # Connection
    # ============================================================================

    async def connect(self) -> Signer | None:
        """Connect the wallet; a second call returns the existing binding."""
        async with self._connect_lock:
            if self._provider is not None:
                return await self.wait_until_settled()

            try:
                await self._connector.connect()
            except Exception as e:
                error = BridgeWalletError(ErrorCode.NO_ACCOUNT, "Wallet connection refused", e)
                self._bind(None, error)
                raise error from e

            provider = self._connector.get_provider()
            provider.on("chainChanged", self._on_chain_changed)
            provider.on("accountsChanged", self._on_accounts_changed)
            self._provider = provider
            logger.info("Connected %s wallet on %s", self._platform.name, self._network.value)

            self._schedule_rebuild("connect")
        return await self.wait_until_settled()

    async def disconnect(self) -> None:
        provider = self._provider
        if provider is None:
            return
        provider.remove_listener("chainChanged", self._on_chain_changed)
        provider.remove_listener("accountsChanged", self._on_accounts_changed)
        self._provider = None
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            await asyncio.wait({self._pending})
        self._pending = None
        self._bind(None, None)

    async def refresh(self) -> Signer | None:
        """Re-run signer construction against the wallet."""
        self._require_provider()
        self._schedule_rebuild("refresh")
        return await self.wait_until_settled()

    async def switch_chain(self, chain: Chain) -> Signer:
        """
        Ask the wallet to move to `chain` and return the new signer.

        Raises:
            BridgeWalletError: WRONG_CHAIN if the wallet cannot or does not switch
        """
        provider = self._require_provider()
        current = await self.wait_until_settled()
        if current is not None and current.chain() == chain:
            return current

        if chain.platform != self._platform:
            raise BridgeWalletError(
                ErrorCode.WRONG_CHAIN,
                f"A {self._platform.name} wallet cannot sign on {chain.value}",
            )

        method, params = switch_chain_request(self._network, chain, self._registry)
        logger.info("Requesting wallet switch to %s", chain.value)
        async with self._provider_lock:
            try:
                await provider.request(method, params)
            except Exception as e:
                logger.warning("Wallet refused to switch to %s: %s", chain.value, e)
                raise BridgeWalletError(
                    ErrorCode.WRONG_CHAIN, f"Wallet did not switch to {chain.value}", e
                ) from e

        self._schedule_rebuild(f"switch to {chain.value}")
        signer = await self.wait_until_settled()
        if signer is None:
            raise self._last_error or BridgeWalletError(
                ErrorCode.NO_SIGNER, f"No signer after switching to {chain.value}"
            )
        if signer.chain() != chain:
            raise BridgeWalletError(
                ErrorCode.WRONG_CHAIN,
                f"Wallet is on {signer.chain().value}, expected {chain.value}",
            )
        return signer

    async def wait_until_settled(self) -> Signer | None:
        """Wait for any scheduled rebuild and return the resulting signer."""
        while self._pending is not None and not self._pending.done():
            task = self._pending
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return self._signer

    # ============================================================================
    # Wallet events
    # ============================================================================

    def _on_chain_changed(self, chain_id: Any = None) -> None:
        logger.info("Wallet reported chainChanged (%s)", chain_id)
        self._schedule_rebuild("chainChanged")

    def _on_accounts_changed(self, accounts: Any = None) -> None:
        logger.info("Wallet reported accountsChanged (%s)", accounts)
        self._schedule_rebuild("accountsChanged")

    def _schedule_rebuild(self, reason: str) -> asyncio.Task:
        if self._signer is not None:
            logger.warning("Dropping signer %s after %s", describe(self._signer), reason)
            self._bind(None, None)

        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

        self._generation += 1
        self._pending = asyncio.get_running_loop().create_task(
            self._rebuild(self._generation, reason)
        )
        return self._pending

    async def _rebuild(self, generation: int, reason: str) -> None:
        provider = self._require_provider()
        adapter = signer_for_platform(self._platform)
        try:
            signer = await adapter.from_provider(
                provider, self._network, self._registry, lock=self._provider_lock
            )
        except BridgeWalletError as e:
            if generation == self._generation:
                logger.warning("Could not bind signer after %s: %s", reason, e)
                self._bind(None, e)
            return

        if generation != self._generation:
            return
        logger.info("Bound signer %s after %s", describe(signer), reason)
        self._bind(signer, None)

    def _bind(self, signer: Signer | None, error: BridgeWalletError | None) -> None:
        self._signer = signer
        self._last_error = error
        for callback in list(self._subscribers):
            try:
                callback(signer)
            except Exception:
                logger.exception("Wallet binding subscriber failed")

    def _require_provider(self) -> WalletProvider:
        if self._provider is None:
            raise BridgeWalletError(ErrorCode.NO_ACCOUNT, "Wallet is not connected")
        return self._provider


# One wallet session per platform, created at startup
_sessions: dict[Platform, WalletSession] = {}


def init_wallet_session(
    connector: WalletConnector,
    platform: Platform,
    network: Network | None = None,
    registry: ChainRegistry | None = None,
) -> WalletSession:
    """Create the process-wide session for a platform."""
    config = get_config()
    if not config.is_platform_enabled(platform):
        raise BridgeWalletError(
            ErrorCode.INVALID_CONFIG, f"Platform {platform.name} is not enabled"
        )

    existing = _sessions.get(platform)
    if existing is not None:
        if existing._connector is connector:
            return existing
        raise BridgeWalletError(
            ErrorCode.INVALID_STATE, f"A {platform.name} wallet session already exists"
        )

    session = WalletSession(connector, platform, network, registry)
    _sessions[platform] = session
    return session


def get_wallet_session(platform: Platform) -> WalletSession:
    session = _sessions.get(platform)
    if session is None:
        raise BridgeWalletError(
            ErrorCode.INVALID_STATE, f"No {platform.name} wallet session; call init_wallet_session"
        )
    return session


def reset_wallet_sessions() -> None:
    """Forget all sessions (tests and shutdown)."""
    _sessions.clear()
