"""Static mapping between (network, chain) and wallet-native chain ids."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..types import BridgeWalletError, Chain, ErrorCode, Network, Platform

logger = logging.getLogger(__name__)

NativeChainId = Union[int, str]


@dataclass(frozen=True)
class ChainConfig:
    """Chain configuration on one network."""

    network: Network
    chain: Chain
    native_id: NativeChainId  # EIP-155 id for EVM, genesis hash for Solana
    name: str
    symbol: str
    decimals: int = 18
    explorer_url: str | None = None

    @property
    def platform(self) -> Platform:
        return self.chain.platform

    @property
    def native_decimals(self) -> int:
        """Decimal precision of the native token."""
        return self.decimals


def _evm(network: Network, chain: Chain, chain_id: int, name: str, symbol: str = "ETH",
         explorer_url: str | None = None) -> ChainConfig:
    return ChainConfig(network, chain, chain_id, name, symbol, 18, explorer_url)


# Pre-configured chain configs
DEFAULT_CHAINS: tuple[ChainConfig, ...] = (
    # Mainnet
    ChainConfig(
        Network.MAINNET, Chain.SOLANA, "5eykt4UsFv8P8NJdTREpY1vzqKqZKvdpKuc147dw2N9d",
        "Solana Mainnet", "SOL", 9, "https://explorer.solana.com",
    ),
    _evm(Network.MAINNET, Chain.ETHEREUM, 1, "Ethereum Mainnet", explorer_url="https://etherscan.io"),
    _evm(Network.MAINNET, Chain.BSC, 56, "BNB Smart Chain", "BNB", "https://bscscan.com"),
    _evm(Network.MAINNET, Chain.POLYGON, 137, "Polygon", "POL", "https://polygonscan.com"),
    _evm(Network.MAINNET, Chain.AVALANCHE, 43114, "Avalanche C-Chain", "AVAX", "https://snowtrace.io"),
    _evm(Network.MAINNET, Chain.FANTOM, 250, "Fantom", "FTM", "https://ftmscan.com"),
    _evm(Network.MAINNET, Chain.CELO, 42220, "Celo", "CELO", "https://celoscan.io"),
    _evm(Network.MAINNET, Chain.MOONBEAM, 1284, "Moonbeam", "GLMR", "https://moonscan.io"),
    _evm(Network.MAINNET, Chain.ARBITRUM, 42161, "Arbitrum One", explorer_url="https://arbiscan.io"),
    _evm(Network.MAINNET, Chain.OPTIMISM, 10, "Optimism", explorer_url="https://optimistic.etherscan.io"),
    _evm(Network.MAINNET, Chain.BASE, 8453, "Base", explorer_url="https://basescan.org"),
    # Testnet
    ChainConfig(
        Network.TESTNET, Chain.SOLANA, "EtWTRABZaYq6iMfeYKouRu166VU2xqa1wcaWoxPkrZBG",
        "Solana Devnet", "SOL", 9, "https://explorer.solana.com?cluster=devnet",
    ),
    _evm(Network.TESTNET, Chain.SEPOLIA, 11155111, "Ethereum Sepolia",
         explorer_url="https://sepolia.etherscan.io"),
    _evm(Network.TESTNET, Chain.HOLESKY, 17000, "Ethereum Holesky",
         explorer_url="https://holesky.etherscan.io"),
    _evm(Network.TESTNET, Chain.ARBITRUM_SEPOLIA, 421614, "Arbitrum Sepolia",
         explorer_url="https://sepolia.arbiscan.io"),
    _evm(Network.TESTNET, Chain.BASE_SEPOLIA, 84532, "Base Sepolia",
         explorer_url="https://sepolia.basescan.org"),
    _evm(Network.TESTNET, Chain.OPTIMISM_SEPOLIA, 11155420, "Optimism Sepolia",
         explorer_url="https://sepolia-optimism.etherscan.io"),
    _evm(Network.TESTNET, Chain.POLYGON_SEPOLIA, 80002, "Polygon Amoy", "POL",
         "https://amoy.polygonscan.com"),
    _evm(Network.TESTNET, Chain.BSC, 97, "BNB Smart Chain Testnet", "BNB",
         "https://testnet.bscscan.com"),
    _evm(Network.TESTNET, Chain.AVALANCHE, 43113, "Avalanche Fuji", "AVAX",
         "https://testnet.snowtrace.io"),
    _evm(Network.TESTNET, Chain.FANTOM, 4002, "Fantom Testnet", "FTM",
         "https://testnet.ftmscan.com"),
    _evm(Network.TESTNET, Chain.CELO, 44787, "Celo Alfajores", "CELO",
         "https://alfajores.celoscan.io"),
    _evm(Network.TESTNET, Chain.MOONBEAM, 1287, "Moonbase Alpha", "DEV",
         "https://moonbase.moonscan.io"),
    # Devnet (local validators)
    _evm(Network.DEVNET, Chain.ETHEREUM, 1337, "Local Ethereum"),
    _evm(Network.DEVNET, Chain.BSC, 1397, "Local BSC", "BNB"),
)


def normalize_native_id(platform: Platform, native_id: NativeChainId) -> NativeChainId:
    """
    Normalize a wallet-reported chain id.

    EVM wallets report hex strings ("0xaa36a7"); they are compared as ints.
    """
    if platform == Platform.EVM:
        if isinstance(native_id, bool):
            raise ValueError(f"Invalid EVM chain id: {native_id!r}")
        if isinstance(native_id, int):
            return native_id
        text = str(native_id).strip().lower()
        return int(text, 16) if text.startswith("0x") else int(text)
    return str(native_id).strip()


class ChainRegistry:
    """
    Registry of chains by network.

    Example:
        >>> registry = ChainRegistry.default()
        >>> registry.resolve(Platform.EVM, "0xaa36a7")
        (<Network.TESTNET: 'Testnet'>, <Chain.SEPOLIA: 'Sepolia'>)
        >>> registry.native_id(Network.TESTNET, Chain.SEPOLIA)
        11155111
    """

    def __init__(self, chains: Iterable[ChainConfig]) -> None:
        by_native: dict[tuple[Platform, NativeChainId], ChainConfig] = {}
        by_chain: dict[tuple[Network, Chain], ChainConfig] = {}

        for config in chains:
            native_key = (config.platform, normalize_native_id(config.platform, config.native_id))
            chain_key = (config.network, config.chain)
            if native_key in by_native or chain_key in by_chain:
                raise BridgeWalletError(
                    ErrorCode.INVALID_CONFIG,
                    f"Duplicate registry entry for {config.network.value}/{config.chain.value}",
                )
            by_native[native_key] = config
            by_chain[chain_key] = config

        self._by_native = by_native
        self._by_chain = by_chain

    @classmethod
    def default(cls) -> "ChainRegistry":
        """Registry with the built-in chain table."""
        return cls(DEFAULT_CHAINS)

    @classmethod
    def from_file(cls, path: str | Path) -> "ChainRegistry":
        """Load a registry from a JSON file (see RegistryFile)."""
        path = Path(path)
        try:
            raw = json.loads(path.read_text())
            parsed = RegistryFile.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise BridgeWalletError(
                ErrorCode.INVALID_CONFIG, f"Invalid chain registry {path}: {e}", e
            ) from e

        logger.info("Loaded %d chain registry entries from %s", len(parsed.chains), path)
        return cls(entry.to_config() for entry in parsed.chains)

    def resolve(self, platform: Platform, native_id: NativeChainId) -> tuple[Network, Chain]:
        """Map a wallet-native chain id to (network, chain)."""
        try:
            key = (platform, normalize_native_id(platform, native_id))
        except ValueError:
            key = None

        config = self._by_native.get(key) if key else None
        if config is None:
            raise BridgeWalletError(
                ErrorCode.UNKNOWN_CHAIN_ID,
                f"No {platform.name} chain registered for native id {native_id!r}",
            )
        return config.network, config.chain

    def native_id(self, network: Network, chain: Chain) -> NativeChainId:
        """Get the wallet-native id used to request a network switch."""
        return self.chain_config(network, chain, code=ErrorCode.UNMAPPED_CHAIN).native_id

    def chain_config(
        self, network: Network, chain: Chain, *, code: ErrorCode = ErrorCode.UNMAPPED_CHAIN
    ) -> ChainConfig:
        config = self._by_chain.get((network, chain))
        if config is None:
            raise BridgeWalletError(code, f"{chain.value} is not mapped on {network.value}")
        return config

    def has_chain(self, network: Network, chain: Chain) -> bool:
        return (network, chain) in self._by_chain

    def chains(self, network: Network) -> list[Chain]:
        """List chains registered on a network."""
        return [chain for (net, chain) in self._by_chain if net == network]

    def __len__(self) -> int:
        return len(self._by_chain)


class RegistryEntry(BaseModel):
    """One row of a registry file."""

    network: Network
    chain: Chain
    native_id: Union[int, str]
    name: str = ""
    symbol: str = "ETH"
    decimals: int = Field(default=18, ge=0, le=36)
    explorer_url: str | None = None

    @field_validator("network", mode="before")
    @classmethod
    def _parse_network(cls, value):
        return Network.parse(value) if isinstance(value, str) else value

    def to_config(self) -> ChainConfig:
        try:
            native_id = normalize_native_id(self.chain.platform, self.native_id)
        except ValueError as e:
            raise BridgeWalletError(ErrorCode.INVALID_CONFIG, str(e), e) from e
        return ChainConfig(
            network=self.network,
            chain=self.chain,
            native_id=native_id,
            name=self.name or f"{self.chain.value} {self.network.value}",
            symbol=self.symbol,
            decimals=self.decimals,
            explorer_url=self.explorer_url,
        )


class RegistryFile(BaseModel):
    """Registry file schema: {"chains": [RegistryEntry, ...]}."""

    chains: list[RegistryEntry] = Field(min_length=1)


_default_registry: ChainRegistry | None = None


def default_registry() -> ChainRegistry:
    """Get the process-wide registry, loading REGISTRY_PATH if configured."""
    global _default_registry
    if _default_registry is None:
        from ..config import get_config

        path = get_config().registry_path
        _default_registry = ChainRegistry.from_file(path) if path else ChainRegistry.default()
    return _default_registry


def set_default_registry(registry: ChainRegistry | None) -> None:
    """Replace (or with None, reset) the process-wide registry."""
    global _default_registry
    _default_registry = registry
