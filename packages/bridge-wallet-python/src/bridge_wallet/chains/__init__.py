"""Chain registry and wallet adapters for multi-chain support."""

from .registry import ChainConfig, ChainRegistry, DEFAULT_CHAINS, default_registry, set_default_registry
from .evm import EvmSigner, JsonRpcWalletProvider, ProviderRpcError, switch_chain_request
from .solana import SolanaSigner

__all__ = [
    "ChainConfig",
    "ChainRegistry",
    "DEFAULT_CHAINS",
    "default_registry",
    "set_default_registry",
    "EvmSigner",
    "JsonRpcWalletProvider",
    "ProviderRpcError",
    "switch_chain_request",
    "SolanaSigner",
]
