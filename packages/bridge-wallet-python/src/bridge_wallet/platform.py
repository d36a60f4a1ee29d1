"""
Chain-platform interface consumed by the transfer orchestrator.

The orchestrator only needs a ChainContext (for native decimals) and a
TokenTransferHandle with three long-running operations. BridgePlatform is
a reference implementation that delegates transaction construction to
per-chain TransferBuilders and waits for attestations through an
AttestationSource such as WormholescanClient.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from .attestation import WormholescanClient
from .chains.registry import ChainConfig, ChainRegistry, default_registry
from .config import BridgeWalletConfig
from .signer import Signer
from .types import (
    AttestationId,
    BridgeWalletError,
    Chain,
    ChainAddress,
    ErrorCode,
    Network,
    SignRejectedError,
    TokenId,
    TransferDetails,
    UnsignedTransaction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainContext:
    """Platform view of one chain."""

    chain: Chain
    config: ChainConfig

    @property
    def native_decimals(self) -> int:
        return self.config.native_decimals


class TokenTransferHandle(Protocol):
    """A transfer materialized by the platform."""

    details: TransferDetails
    required_attestations: int

    @property
    def src_tx_ids(self) -> list[str]:
        """Every source transaction id broadcast so far, including partial batches."""
        ...

    async def initiate_transfer(self, signer: Signer) -> list[str]:
        """Submit the source-chain transactions not yet broadcast."""
        ...

    async def fetch_attestation(self, timeout_ms: int) -> list[AttestationId]:
        """Wait for the attestation network to observe the transfer."""
        ...

    async def complete_transfer(self, signer: Signer) -> list[str]:
        """Submit the destination-chain transactions."""
        ...


class BridgePlatformProtocol(Protocol):
    """What the orchestrator needs from a chain platform."""

    network: Network

    def get_chain(self, chain: Chain) -> ChainContext:
        ...

    async def token_transfer(
        self,
        token: TokenId,
        amount: int,
        sender: ChainAddress,
        receiver: ChainAddress,
        automatic: bool = False,
    ) -> TokenTransferHandle:
        ...


class TransferBuilder(Protocol):
    """Builds raw transactions for one chain."""

    async def get_decimals(self, token: TokenId) -> int:
        """Decimals of a contract token (native tokens use the chain config)."""
        ...

    async def build_transfer(
        self, details: TransferDetails, sender: ChainAddress
    ) -> list[UnsignedTransaction]:
        """Transactions that lock or burn the token on the source chain."""
        ...

    async def build_redeem(
        self,
        details: TransferDetails,
        attestations: list[AttestationId],
        payer: ChainAddress,
    ) -> list[UnsignedTransaction]:
        """Transactions that redeem the attested transfer on the destination chain."""
        ...


class AttestationSource(Protocol):
    async def wait_for_attestations(
        self, tx_ids: list[str], timeout_ms: int, required: int = 1
    ) -> list[AttestationId]:
        ...


class BridgeTransfer:
    """
    Token transfer driven by TransferBuilders and an AttestationSource.

    Builders must return the same transaction list for the same details;
    after a partial rejection only the transactions past the ones already
    broadcast are submitted again.
    """

    def __init__(
        self,
        details: TransferDetails,
        platform: "BridgePlatform",
        required_attestations: int = 1,
        src_tx_ids: list[str] | None = None,
        attestations: list[AttestationId] | None = None,
    ) -> None:
        self.details = details
        self.required_attestations = required_attestations
        self._platform = platform
        self._src_tx_ids: list[str] = list(src_tx_ids or [])
        # One id per built transaction, so this is also the resume offset
        self._submitted = len(self._src_tx_ids)
        self._attestations: list[AttestationId] = list(attestations or [])
        self._dst_tx_ids: list[str] = []

    @property
    def src_tx_ids(self) -> list[str]:
        return list(self._src_tx_ids)

    @property
    def attestations(self) -> list[AttestationId]:
        return list(self._attestations)

    @property
    def dst_tx_ids(self) -> list[str]:
        return list(self._dst_tx_ids)

    def _check_signer(self, signer: Signer, expected: Chain) -> ChainAddress:
        if signer.chain() != expected:
            raise BridgeWalletError(
                ErrorCode.WRONG_CHAIN,
                f"Signer is on {signer.chain().value}, transfer needs {expected.value}",
            )
        return ChainAddress(signer.chain(), signer.address())

    async def initiate_transfer(self, signer: Signer) -> list[str]:
        sender = self._check_signer(signer, self.details.from_address.chain)
        builder = self._platform.builder(sender.chain)

        txs = await builder.build_transfer(self.details, sender)
        pending = txs[self._submitted:]
        if self._submitted:
            logger.info(
                "Resuming initiation: %d of %d transactions already sent",
                self._submitted, len(txs),
            )

        try:
            txids = await signer.sign_and_send(pending)
        except SignRejectedError as e:
            self._record_submitted(e.tx_ids)
            raise
        self._record_submitted(txids)
        return txids

    def _record_submitted(self, txids: list[str]) -> None:
        self._src_tx_ids.extend(txids)
        self._submitted += len(txids)

    async def fetch_attestation(self, timeout_ms: int) -> list[AttestationId]:
        if not self._src_tx_ids:
            raise BridgeWalletError(ErrorCode.INVALID_STATE, "Transfer has not been initiated")

        found = await self._platform.attestations.wait_for_attestations(
            self._src_tx_ids, timeout_ms, self.required_attestations
        )
        self._attestations = list(found)
        return self.attestations

    async def complete_transfer(self, signer: Signer) -> list[str]:
        if not self._attestations:
            raise BridgeWalletError(ErrorCode.INVALID_STATE, "No attestation to redeem")

        payer = self._check_signer(signer, self.details.to_address.chain)
        builder = self._platform.builder(payer.chain)

        txs = await builder.build_redeem(self.details, self.attestations, payer)
        txids = await signer.sign_and_send(txs)
        self._dst_tx_ids.extend(txids)
        return txids


class BridgePlatform:
    """
    Reference chain platform.

    Example:
        >>> platform = BridgePlatform(
        ...     Network.TESTNET,
        ...     builders={Chain.SEPOLIA: sepolia_builder, Chain.SOLANA: solana_builder},
        ...     attestations=WormholescanClient(Network.TESTNET),
        ... )
        >>> ctx = platform.get_chain(Chain.SEPOLIA)
        >>> ctx.native_decimals
        18
    """

    def __init__(
        self,
        network: Network,
        builders: dict[Chain, TransferBuilder],
        attestations: AttestationSource,
        registry: ChainRegistry | None = None,
        required_attestations: int = 1,
    ) -> None:
        if required_attestations < 1:
            raise BridgeWalletError(
                ErrorCode.INVALID_CONFIG, "At least one attestation must be required"
            )
        self.network = network
        self.attestations = attestations
        self._builders = dict(builders)
        self._registry = registry if registry is not None else default_registry()
        self._required_attestations = required_attestations

    @classmethod
    def from_config(
        cls,
        config: BridgeWalletConfig,
        builders: dict[Chain, TransferBuilder],
        registry: ChainRegistry | None = None,
    ) -> "BridgePlatform":
        """Create a platform polling Wormholescan with the configured settings."""
        client = WormholescanClient(
            config.network,
            base_url=config.wormholescan_url,
            poll_interval=config.poll_interval_seconds,
            http_timeout=config.http_timeout_seconds,
        )
        return cls(config.network, builders, client, registry)

    def builder(self, chain: Chain) -> TransferBuilder:
        builder = self._builders.get(chain)
        if builder is None:
            raise BridgeWalletError(
                ErrorCode.NO_PLATFORM, f"No transaction builder for {chain.value}"
            )
        return builder

    def get_chain(self, chain: Chain) -> ChainContext:
        """Get the context for a chain on this platform's network."""
        self.builder(chain)
        if not self._registry.has_chain(self.network, chain):
            raise BridgeWalletError(
                ErrorCode.NO_PLATFORM, f"{chain.value} is not configured on {self.network.value}"
            )
        return ChainContext(chain, self._registry.chain_config(self.network, chain))

    async def token_transfer(
        self,
        token: TokenId,
        amount: int,
        sender: ChainAddress,
        receiver: ChainAddress,
        automatic: bool = False,
    ) -> BridgeTransfer:
        """Materialize a token transfer between two chains."""
        if automatic:
            raise BridgeWalletError(
                ErrorCode.INVALID_CONFIG, "Relayed (automatic) transfers are not supported"
            )
        if amount <= 0:
            raise BridgeWalletError(ErrorCode.INVALID_AMOUNT, f"Amount must be positive: {amount}")
        if token.chain != sender.chain:
            raise BridgeWalletError(
                ErrorCode.INVALID_CONFIG,
                f"Token is on {token.chain.value} but sender is on {sender.chain.value}",
            )

        source = self.get_chain(sender.chain)
        self.get_chain(receiver.chain)

        if token.is_native:
            decimals = source.native_decimals
        else:
            decimals = await self.builder(sender.chain).get_decimals(token)

        details = TransferDetails(
            from_address=sender,
            to_address=receiver,
            token=token,
            amount=amount,
            decimals=decimals,
            automatic=automatic,
        )
        logger.info(
            "Created transfer of %s %s from %s to %s",
            amount, token, sender, receiver,
        )
        return BridgeTransfer(details, self, self._required_attestations)

    def attach_transfer(
        self,
        details: TransferDetails,
        src_tx_ids: list[str] | None = None,
        attestations: list[AttestationId] | None = None,
    ) -> BridgeTransfer:
        """Re-create the handle of a transfer started earlier (e.g. after a restart)."""
        self.get_chain(details.from_address.chain)
        self.get_chain(details.to_address.chain)
        return BridgeTransfer(
            details,
            self,
            self._required_attestations,
            src_tx_ids=src_tx_ids,
            attestations=attestations,
        )
